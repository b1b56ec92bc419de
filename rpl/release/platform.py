"""Remote platform boundary.

The reconciler and publisher only talk to the remote through this
protocol. :class:`rpl.release.github.GitHubPlatform` implements it with
``gh api``; tests use an in-memory fake.

Read methods return ``Err(kind="not_found")`` for missing resources; that
is a domain signal, not a failure.
"""

from __future__ import annotations

from collections.abc import Sequence
from dataclasses import dataclass
from typing import Literal, Protocol

from rpl.core.result import Err, Ok, Result
from rpl.release.errors import ReleaseError
from rpl.release.model import FileEdit, PendingReleaseRequest, RawCommit

PullRequestState = Literal["open", "closed"]


@dataclass(frozen=True, slots=True)
class RemoteTag:
    name: str
    sha: str


class ReleasePlatform(Protocol):
    repo: str

    # Reads

    def default_branch(self) -> Result[str, ReleaseError]: ...

    def list_tags(self) -> Result[list[RemoteTag], ReleaseError]: ...

    def list_commits(
        self, *, branch: str, path: str | None, stop_sha: str | None
    ) -> Result[list[RawCommit], ReleaseError]:
        """Commits on ``branch`` newest first, stopping before ``stop_sha``."""
        ...

    def commit_timestamp(self, sha: str) -> Result[str, ReleaseError]: ...

    def get_file(self, *, path: str, ref: str) -> Result[str, ReleaseError]: ...

    def list_pull_requests(
        self, *, state: PullRequestState, label: str
    ) -> Result[list[PendingReleaseRequest], ReleaseError]: ...

    def get_pull_request(self, number: int) -> Result[PendingReleaseRequest, ReleaseError]: ...

    # Writes

    def commit_files(
        self,
        *,
        branch: str,
        base_branch: str,
        message: str,
        edits: Sequence[FileEdit],
        expected_head: str | None,
    ) -> Result[str, ReleaseError]:
        """Point ``branch`` at one new commit on top of ``base_branch``.

        The branch is created when missing and force-moved otherwise. When
        ``expected_head`` is given and the branch moved since it was read,
        nothing is written and ``Err(kind="conflict")`` is returned.
        """
        ...

    def create_pull_request(
        self, *, branch: str, base_branch: str, title: str, body: str
    ) -> Result[int, ReleaseError]: ...

    def update_pull_request(
        self, number: int, *, title: str, body: str
    ) -> Result[None, ReleaseError]: ...

    def close_pull_request(self, number: int) -> Result[None, ReleaseError]: ...

    def add_labels(self, number: int, labels: Sequence[str]) -> Result[None, ReleaseError]: ...

    def remove_label(self, number: int, label: str) -> Result[None, ReleaseError]: ...

    def create_release(
        self, *, tag: str, sha: str, name: str, body: str
    ) -> Result[str, ReleaseError]:
        """Create a tag and release at ``sha``; returns the release URL."""
        ...


def read_files(
    platform: ReleasePlatform, paths: Sequence[str] | frozenset[str], *, ref: str
) -> Result[dict[str, str], ReleaseError]:
    """Fetch ``paths`` at ``ref``; missing files map to empty content."""
    out: dict[str, str] = {}
    for path in sorted(paths):
        content = platform.get_file(path=path, ref=ref)
        if isinstance(content, Err):
            if content.error.kind != "not_found":
                return content
            out[path] = ""
            continue
        out[path] = content.value
    return Ok(out)
