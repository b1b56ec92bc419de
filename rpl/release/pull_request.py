"""Release pull request naming and the state recorded in it.

A pending release request records its target version in the title and
its changelog fragment in the body, between two HTML comment markers::

    chore: release 1.0.1
    chore: release api 1.0.1      # monorepo component "api"

Requests for a release path also carry a ``<!-- rpl:path:<path> -->``
marker, so every path in a repository owns its own request and branch.

Nothing else in the request is trusted; the reconciler recomputes the
plan and only compares it against these values.
"""

from __future__ import annotations

import re

from rpl.release.model import PendingReleaseRequest
from rpl.release.semver import SemVer, parse_version

TITLE_PREFIX = "chore: release"
BRANCH_PREFIX = "rpl--release--"
NOTES_START = "<!-- rpl:notes:start -->"
NOTES_END = "<!-- rpl:notes:end -->"

_DATE_RE = re.compile(r"\((\d{4}-\d{2}-\d{2})\)\s*$")
_PATH_RE = re.compile(r"^<!-- rpl:path:(?P<path>\S+) -->$", re.MULTILINE)


def normalize_path(path: str | None) -> str:
    return (path or "").strip().strip("/")


def release_branch(
    base_branch: str, component: str | None = None, *, path: str | None = None
) -> str:
    branch = f"{BRANCH_PREFIX}{base_branch}"
    if component:
        branch += f"--{component}"
    elif rel := normalize_path(path):
        branch += "--" + rel.replace("/", "-")
    return branch


def title_prefix(component: str | None = None) -> str:
    if component:
        return f"{TITLE_PREFIX} {component} "
    return f"{TITLE_PREFIX} "


def format_title(version: SemVer, component: str | None = None) -> str:
    return f"{title_prefix(component)}{version}"


def format_body(notes: str, *, version: SemVer, path: str | None = None) -> str:
    rel = normalize_path(path)
    marker = f"<!-- rpl:path:{rel} -->\n" if rel else ""
    return (
        f"Merging this pull request releases {version}.\n"
        "\n"
        f"{marker}"
        "---\n"
        "\n"
        f"{NOTES_START}\n"
        f"{notes.strip()}\n"
        f"{NOTES_END}\n"
        "\n"
        "---\n"
        "This pull request is managed by release-pilot. "
        "Edits to the branch or this description are overwritten on the next run.\n"
    )


def recorded_version(request: PendingReleaseRequest, component: str | None = None) -> SemVer | None:
    """Version from the title, or None when the title is out of scope."""
    prefix = title_prefix(component)
    if not request.title.startswith(prefix):
        return None
    return parse_version(request.title[len(prefix) :])


def recorded_path(body: str) -> str:
    """Release path from the body marker; ``""`` for the repository root."""
    m = _PATH_RE.search(body)
    return normalize_path(m.group("path")) if m else ""


def recorded_notes(body: str) -> str | None:
    start = body.find(NOTES_START)
    if start < 0:
        return None
    start += len(NOTES_START)
    end = body.find(NOTES_END, start)
    if end < 0:
        return None
    return body[start:end].strip("\n") + "\n"


def recorded_release_date(notes: str | None) -> str | None:
    """Date from the fragment heading, e.g. ``### [1.0.1](...) (2020-10-04)``."""
    if not notes:
        return None
    first = notes.lstrip().splitlines()[0] if notes.strip() else ""
    m = _DATE_RE.search(first)
    return m.group(1) if m else None


def in_scope(
    request: PendingReleaseRequest,
    *,
    base_branch: str,
    component: str | None = None,
    path: str | None = None,
) -> bool:
    """True if ``request`` is a release request for this branch, component and path."""
    if request.base_branch and request.base_branch != base_branch:
        return False
    if recorded_path(request.body) != normalize_path(path):
        return False
    return recorded_version(request, component) is not None
