"""Release strategy capability interface.

A strategy knows which files carry the version for one ecosystem and how
to read and rewrite them. Strategies never touch the network: the caller
fetches file contents, and strategies only transform text.
"""

from __future__ import annotations

import posixpath
import re
from collections.abc import Mapping
from typing import Protocol, runtime_checkable

from rpl.release.semver import SemVer

__all__ = ["ReleaseStrategy", "join_repo_path", "replace_in_section"]


@runtime_checkable
class ReleaseStrategy(Protocol):
    """Version-file stamping for one ecosystem.

    Attributes:
        release_type: Registry key (e.g. ``"node"``)
    """

    release_type: str

    def locate_version_files(self, path: str) -> frozenset[str]:
        """Return repo-relative paths that may carry the version.

        Args:
            path: Release path within the repository ("" for the root)
        """
        ...

    def current_version(self, files: Mapping[str, str]) -> SemVer | None:
        """Read the version from the located files that exist.

        Args:
            files: Mapping of located path to file content

        Returns:
            The version, or None if no file declares one
        """
        ...

    def apply_version(self, files: Mapping[str, str], version: SemVer) -> dict[str, str]:
        """Stamp ``version`` into the files.

        Returns:
            Mapping of path to new content, only for files that changed
        """
        ...


def join_repo_path(path: str, name: str) -> str:
    base = path.strip().strip("/")
    if not base or base == ".":
        return name
    return posixpath.join(base, name)


def replace_in_section(
    text: str, *, section: str, pattern: re.Pattern[str], value: str
) -> tuple[str, str | None]:
    """Set the value of the first ``pattern`` match inside an INI/TOML ``[section]``.

    ``pattern`` must capture the current value as group 1. Returns the new
    text and the previous value (None when the section or key is missing).
    """
    start = text.find(f"[{section}]")
    if start < 0:
        return text, None
    nxt = re.search(r"(?m)^\[", text[start + len(section) + 2 :])
    end = start + len(section) + 2 + nxt.start() if nxt else len(text)

    sub = text[start:end]
    m = pattern.search(sub)
    if m is None:
        return text, None
    replaced = sub[: m.start(1)] + value + sub[m.end(1) :]
    return text[:start] + replaced + text[end:], m.group(1)
