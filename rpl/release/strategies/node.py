from __future__ import annotations

import json
from collections.abc import Mapping

from rpl.core.structured import StrDict, as_str_dict, get_str, get_table
from rpl.release.semver import SemVer, parse_version
from rpl.release.strategies.base import join_repo_path

PACKAGE_JSON = "package.json"
PACKAGE_LOCK = "package-lock.json"


class NodeStrategy:
    """``package.json`` and ``package-lock.json``."""

    release_type = "node"

    def locate_version_files(self, path: str) -> frozenset[str]:
        return frozenset({join_repo_path(path, PACKAGE_JSON), join_repo_path(path, PACKAGE_LOCK)})

    def current_version(self, files: Mapping[str, str]) -> SemVer | None:
        for rel, text in sorted(files.items()):
            if not rel.endswith(PACKAGE_JSON):
                continue
            data = _load(text)
            if data is None:
                continue
            value = get_str(data, "version")
            if value is not None:
                return parse_version(value)
        return None

    def apply_version(self, files: Mapping[str, str], version: SemVer) -> dict[str, str]:
        out: dict[str, str] = {}
        for rel, text in files.items():
            data = _load(text)
            if data is None:
                continue

            changed = _set_version(data, version)
            if rel.endswith(PACKAGE_LOCK):
                packages = get_table(data, "packages")
                root = get_table(packages, "") if packages is not None else None
                if root is not None:
                    changed = _set_version(root, version) or changed

            if changed:
                out[rel] = json.dumps(data, indent=2, ensure_ascii=False) + "\n"
        return out


def _load(text: str) -> StrDict | None:
    try:
        obj: object = json.loads(text)
    except json.JSONDecodeError:
        return None
    return as_str_dict(obj)


def _set_version(data: StrDict, version: SemVer) -> bool:
    if get_str(data, "version") == str(version):
        return False
    data["version"] = str(version)
    return True
