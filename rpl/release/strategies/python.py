from __future__ import annotations

import re
from collections.abc import Mapping

from rpl.release.semver import SemVer, parse_version
from rpl.release.strategies.base import join_repo_path, replace_in_section

PYPROJECT = "pyproject.toml"
SETUP_CFG = "setup.cfg"
SETUP_PY = "setup.py"

_TOML_VERSION_RE = re.compile(r'(?m)^version\s*=\s*"([^"]+)"\s*$')
_CFG_VERSION_RE = re.compile(r"(?m)^version\s*=\s*(\S+)\s*$")
_SETUP_PY_VERSION_RE = re.compile(r"""version\s*=\s*["']([^"']+)["']""")

_PYPROJECT_SECTIONS = ("project", "tool.poetry")


class PythonStrategy:
    """``pyproject.toml``, ``setup.cfg`` and ``setup.py``."""

    release_type = "python"

    def locate_version_files(self, path: str) -> frozenset[str]:
        return frozenset(join_repo_path(path, name) for name in (PYPROJECT, SETUP_CFG, SETUP_PY))

    def current_version(self, files: Mapping[str, str]) -> SemVer | None:
        # pyproject.toml is authoritative when several files declare a version.
        for suffix in (PYPROJECT, SETUP_CFG, SETUP_PY):
            for rel, text in files.items():
                if not rel.endswith(suffix):
                    continue
                _, prev = _stamp(rel, text, "0.0.0")
                v = parse_version(prev) if prev is not None else None
                if v is not None:
                    return v
        return None

    def apply_version(self, files: Mapping[str, str], version: SemVer) -> dict[str, str]:
        out: dict[str, str] = {}
        for rel, text in files.items():
            new, prev = _stamp(rel, text, str(version))
            if prev is not None and new != text:
                out[rel] = new
        return out


def _stamp(rel: str, text: str, version: str) -> tuple[str, str | None]:
    if rel.endswith(PYPROJECT):
        for section in _PYPROJECT_SECTIONS:
            new, prev = replace_in_section(
                text, section=section, pattern=_TOML_VERSION_RE, value=version
            )
            if prev is not None:
                return new, prev
        return text, None

    if rel.endswith(SETUP_CFG):
        return replace_in_section(text, section="metadata", pattern=_CFG_VERSION_RE, value=version)

    if rel.endswith(SETUP_PY):
        m = _SETUP_PY_VERSION_RE.search(text)
        if m is None:
            return text, None
        return text[: m.start(1)] + version + text[m.end(1) :], m.group(1)

    return text, None
