from __future__ import annotations

from collections.abc import Mapping

from rpl.release.semver import SemVer, parse_version
from rpl.release.strategies.base import join_repo_path

DEFAULT_VERSION_FILE = "version.txt"


class SimpleStrategy:
    """A single plain-text file holding just the version.

    A missing file arrives as empty content and gets created on the first
    release.
    """

    release_type = "simple"

    def __init__(self, version_file: str | None = None) -> None:
        self.version_file = version_file or DEFAULT_VERSION_FILE

    def locate_version_files(self, path: str) -> frozenset[str]:
        return frozenset({join_repo_path(path, self.version_file)})

    def current_version(self, files: Mapping[str, str]) -> SemVer | None:
        for text in files.values():
            v = parse_version(text)
            if v is not None:
                return v
        return None

    def apply_version(self, files: Mapping[str, str], version: SemVer) -> dict[str, str]:
        new = f"{version}\n"
        return {rel: new for rel, text in files.items() if text != new}
