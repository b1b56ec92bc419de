from __future__ import annotations

import re
from dataclasses import dataclass

from rpl.release.model import VersionBump


_VERSION_RE = re.compile(r"^(0|[1-9]\d*)\.(0|[1-9]\d*)\.(0|[1-9]\d*)$")
_TAG_RE = re.compile(r"^(?:(?P<component>.+)-)?v(?P<version>\d+\.\d+\.\d+)$")


@dataclass(frozen=True, slots=True, order=True)
class SemVer:
    major: int
    minor: int
    patch: int

    def __str__(self) -> str:
        return f"{self.major}.{self.minor}.{self.patch}"

    def to_tag(self, component: str | None = None) -> str:
        if component:
            return f"{component}-v{self}"
        return f"v{self}"

    def bump(self, kind: VersionBump) -> "SemVer":
        match kind:
            case VersionBump.MAJOR:
                return SemVer(self.major + 1, 0, 0)
            case VersionBump.MINOR:
                return SemVer(self.major, self.minor + 1, 0)
            case VersionBump.PATCH:
                return SemVer(self.major, self.minor, self.patch + 1)
            case VersionBump.NONE:
                return self


def parse_version(text: str) -> SemVer | None:
    """Parse ``MAJOR.MINOR.PATCH`` (a leading ``v`` is tolerated)."""
    s = text.strip()
    if s.startswith("v"):
        s = s[1:]
    m = _VERSION_RE.match(s)
    if m is None:
        return None
    return SemVer(int(m.group(1)), int(m.group(2)), int(m.group(3)))


def parse_tag(tag: str, *, component: str | None = None) -> SemVer | None:
    """Parse a release tag, requiring the component prefix when one is given.

    ``v1.2.3`` matches without a component; ``pkg-v1.2.3`` only matches
    ``component="pkg"``.
    """
    m = _TAG_RE.match(tag.strip())
    if m is None:
        return None
    if (m.group("component") or None) != (component or None):
        return None
    return parse_version(m.group("version"))
