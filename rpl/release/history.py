"""Release history: tags, current version and the commit window."""

from __future__ import annotations

from collections.abc import Sequence

from rpl.core.result import Result
from rpl.release.errors import ReleaseError
from rpl.release.model import RawCommit, ReleaseTag
from rpl.release.platform import ReleasePlatform, RemoteTag
from rpl.release.semver import SemVer, parse_tag


def release_tags(tags: Sequence[RemoteTag], *, component: str | None) -> list[ReleaseTag]:
    """Tags that parse as releases for ``component``, highest version first."""
    out: list[ReleaseTag] = []
    for t in tags:
        version = parse_tag(t.name, component=component)
        if version is not None:
            out.append(ReleaseTag(name=t.name, sha=t.sha, version=version))
    out.sort(key=lambda t: t.version, reverse=True)
    return out


def latest_release_tag(tags: Sequence[RemoteTag], *, component: str | None) -> ReleaseTag | None:
    found = release_tags(tags, component=component)
    return found[0] if found else None


def resolve_current_version(
    latest: ReleaseTag | None,
    *,
    last_package_version: SemVer | None,
    from_files: SemVer | None,
) -> SemVer:
    """Version the next release is computed from.

    The latest release tag wins. Before the first tag, an explicit
    ``last_package_version`` is used, then whatever the version files say.
    """
    if latest is not None:
        return latest.version
    if last_package_version is not None:
        return last_package_version
    if from_files is not None:
        return from_files
    return SemVer(0, 0, 0)


def commits_since(
    platform: ReleasePlatform,
    *,
    branch: str,
    path: str | None,
    since: ReleaseTag | None,
) -> Result[list[RawCommit], ReleaseError]:
    """Commits on ``branch`` newer than ``since`` (newest first)."""
    return platform.list_commits(
        branch=branch,
        path=path,
        stop_sha=since.sha if since is not None else None,
    )
