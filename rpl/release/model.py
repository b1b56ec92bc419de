from __future__ import annotations

from dataclasses import dataclass
from enum import Enum
from typing import TYPE_CHECKING, Literal

if TYPE_CHECKING:
    from rpl.release.semver import SemVer


RequestState = Literal["open", "closed", "merged"]

DEFAULT_FILE_MODE = "100644"


class VersionBump(Enum):
    """Semver bump kinds; ``NONE`` means no release this run."""

    NONE = "none"
    PATCH = "patch"
    MINOR = "minor"
    MAJOR = "major"

    @property
    def rank(self) -> int:
        return _BUMP_RANK[self]

    def __str__(self) -> str:
        return self.value


_BUMP_RANK = {
    VersionBump.NONE: 0,
    VersionBump.PATCH: 1,
    VersionBump.MINOR: 2,
    VersionBump.MAJOR: 3,
}


@dataclass(frozen=True, slots=True)
class RawCommit:
    sha: str
    message: str
    files: tuple[str, ...] = ()

    @property
    def short_sha(self) -> str:
        return self.sha[:7]


@dataclass(frozen=True, slots=True)
class ChangeRecord:
    """One logical change parsed from a commit message.

    A commit can yield several records (nested commits in a squash merge);
    they share ``sha``.
    """

    sha: str
    type: str
    summary: str
    scope: str | None = None
    notes: tuple[str, ...] = ()
    breaking: bool = False
    reverts_sha: str | None = None
    release_as: str | None = None

    @property
    def short_sha(self) -> str:
        return self.sha[:7]


@dataclass(frozen=True, slots=True)
class ChangelogSection:
    key: str
    heading: str
    entries: tuple[str, ...]


@dataclass(frozen=True, slots=True)
class FileEdit:
    """A single file in a multi-file commit."""

    path: str
    content: str
    mode: str = DEFAULT_FILE_MODE


@dataclass(frozen=True, slots=True)
class PendingReleaseRequest:
    """A release pull request as observed on the remote.

    The recorded target version and changelog live in ``title`` and
    ``body``; see :mod:`rpl.release.pull_request`.
    """

    number: int
    title: str
    body: str
    branch: str
    base_branch: str
    head_sha: str
    labels: frozenset[str]
    state: RequestState = "open"
    merge_sha: str | None = None
    updated_at: str | None = None


@dataclass(frozen=True, slots=True)
class ReleaseTag:
    name: str
    sha: str
    version: SemVer
    published_at: str | None = None


@dataclass(frozen=True, slots=True)
class ReleasePlan:
    """A computed release, ready to be applied to the remote."""

    base_version: SemVer
    target_version: SemVer
    bump: VersionBump
    records: tuple[ChangeRecord, ...]
    notes: str
    edits: tuple[FileEdit, ...]
    release_date: str
