"""Conventional commit parsing.

Turns raw commit messages into :class:`ChangeRecord` values. Parsing never
fails: anything that does not follow ``type(scope)!: summary`` becomes a
record of type ``unknown``, which neither bumps the version nor shows up
in the changelog by default.
"""

from __future__ import annotations

import re
from collections.abc import Iterable, Sequence

from rpl.release.model import ChangeRecord, RawCommit

UNKNOWN_TYPE = "unknown"
REVERT_TYPE = "revert"

_HEADER_RE = re.compile(
    r"^(?P<type>[A-Za-z][\w-]*)(?:\((?P<scope>[^()\r\n]*)\))?(?P<bang>!)?:[ \t]+(?P<summary>\S.*)$"
)
_GIT_REVERT_RE = re.compile(r'^Revert "(?P<header>.+)"\s*$')
_REVERTS_SHA_RE = re.compile(r"This reverts commit (?P<sha>[0-9a-fA-F]{7,40})")
_BREAKING_FOOTER_RE = re.compile(r"^BREAKING[ -]CHANGE:[ \t]*(?P<text>.*)$")
_RELEASE_AS_RE = re.compile(r"^Release-As:[ \t]*(?P<version>\S+)\s*$", re.IGNORECASE)
_FOOTER_TOKEN_RE = re.compile(r"^(?:[\w-]+:[ \t]|[\w-]+ #|BREAKING[ -]CHANGE:)")

_NESTED_BEGIN = "BEGIN_NESTED_COMMIT"
_NESTED_END = "END_NESTED_COMMIT"


def parse_commits(commits: Iterable[RawCommit]) -> tuple[ChangeRecord, ...]:
    """Parse commits (newest first) and cancel reverted changes.

    The output keeps the input order. A revert whose target commit is in
    the same window removes both itself and every record of the target.
    """
    records: list[ChangeRecord] = []
    for commit in commits:
        records.extend(parse_commit_message(sha=commit.sha, message=commit.message))
    return cancel_reverts(records)


def parse_commit_message(*, sha: str, message: str) -> list[ChangeRecord]:
    """Parse one commit message into one or more records."""
    outer, nested = _split_nested(message)
    out = [_parse_single(sha=sha, message=outer)]
    out.extend(_parse_single(sha=sha, message=block) for block in nested)
    return out


def cancel_reverts(records: Sequence[ChangeRecord]) -> tuple[ChangeRecord, ...]:
    """Drop reverted changes along with the reverts themselves.

    Reverting a revert that already took effect undoes it: the records it
    removed come back, and a further revert removes them again.
    """
    kept: list[tuple[int, ChangeRecord]] = []
    # revert sha -> (records it removed or restored, True when removed)
    effects: dict[str, tuple[list[tuple[int, ChangeRecord]], bool]] = {}

    # Walk oldest to newest so a revert only sees the changes it could revert.
    for index, record in reversed(list(enumerate(records))):
        target = record.reverts_sha
        if target is None:
            kept.append((index, record))
            continue

        hits = [item for item in kept if _same_sha(item[1].sha, target)]
        if hits:
            kept = [item for item in kept if not _same_sha(item[1].sha, target)]
            effects[record.sha] = (hits, True)
            continue

        undone = next((sha for sha in effects if _same_sha(sha, target)), None)
        if undone is None:
            kept.append((index, record))
            continue
        items, removed = effects.pop(undone)
        if removed:
            kept.extend(items)
        else:
            gone = {i for i, _ in items}
            kept = [item for item in kept if item[0] not in gone]
        effects[record.sha] = (items, not removed)

    kept.sort(key=lambda item: item[0])
    return tuple(record for _, record in kept)


def _same_sha(a: str, b: str) -> bool:
    a = a.lower()
    b = b.lower()
    return a.startswith(b) or b.startswith(a)


def _split_nested(message: str) -> tuple[str, list[str]]:
    outer: list[str] = []
    blocks: list[str] = []
    current: list[str] | None = None
    for line in message.splitlines():
        stripped = line.strip()
        if stripped == _NESTED_BEGIN:
            current = []
            continue
        if stripped == _NESTED_END:
            if current is not None and "\n".join(current).strip():
                blocks.append("\n".join(current).strip())
            current = None
            continue
        if current is not None:
            current.append(line)
        else:
            outer.append(line)
    # An unterminated block still counts as a logical commit.
    if current is not None and "\n".join(current).strip():
        blocks.append("\n".join(current).strip())
    return "\n".join(outer).strip(), blocks


def _parse_single(*, sha: str, message: str) -> ChangeRecord:
    lines = message.strip().splitlines()
    header = lines[0].strip() if lines else ""
    body_lines = lines[1:]

    notes = _breaking_notes(body_lines)
    release_as = _release_as(body_lines)
    reverts = _REVERTS_SHA_RE.search(message)
    reverts_sha = reverts.group("sha").lower() if reverts else None

    git_revert = _GIT_REVERT_RE.match(header)
    if git_revert is not None:
        return ChangeRecord(
            sha=sha,
            type=REVERT_TYPE,
            summary=git_revert.group("header"),
            reverts_sha=reverts_sha,
        )

    m = _HEADER_RE.match(header)
    if m is None:
        return ChangeRecord(sha=sha, type=UNKNOWN_TYPE, summary=header, release_as=release_as)

    kind = m.group("type").lower()
    scope = (m.group("scope") or "").strip() or None
    summary = m.group("summary").strip()
    breaking = m.group("bang") is not None or bool(notes)
    if breaking and not notes:
        notes = (summary,)

    return ChangeRecord(
        sha=sha,
        type=kind,
        summary=summary,
        scope=scope,
        notes=notes,
        breaking=breaking,
        reverts_sha=reverts_sha if kind == REVERT_TYPE else None,
        release_as=release_as,
    )


def _breaking_notes(body_lines: list[str]) -> tuple[str, ...]:
    notes: list[str] = []
    current: list[str] | None = None
    for raw in body_lines:
        line = raw.strip()
        m = _BREAKING_FOOTER_RE.match(line)
        if m is not None:
            if current:
                notes.append(" ".join(current))
            current = [m.group("text").strip()] if m.group("text").strip() else []
            continue
        if current is None:
            continue
        if not line or _FOOTER_TOKEN_RE.match(line):
            if current:
                notes.append(" ".join(current))
            current = None
            continue
        current.append(line)
    if current:
        notes.append(" ".join(current))
    return tuple(notes)


def _release_as(body_lines: list[str]) -> str | None:
    for raw in body_lines:
        m = _RELEASE_AS_RE.match(raw.strip())
        if m is not None:
            return m.group("version")
    return None
