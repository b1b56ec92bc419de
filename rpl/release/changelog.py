"""Changelog rendering.

A release fragment looks like::

    ### [1.0.1](https://github.com/o/r/compare/v1.0.0...v1.0.1) (2020-10-04)


    ### Bug Fixes

    * **deps:** update dependency X ([1f9663c](https://github.com/o/r/commit/1f9663c...))

Rendering is a pure function of its inputs, so regenerating a fragment
for the same records, version and date reproduces it byte for byte.
"""

from __future__ import annotations

import re
from collections.abc import Sequence
from dataclasses import dataclass, field
from typing import Literal

from rpl.core.result import Err, Ok, Result
from rpl.core.structured import as_obj_list, as_str_dict, get_bool, get_str
from rpl.release.errors import ReleaseError
from rpl.release.model import ChangeRecord, ChangelogSection
from rpl.release.semver import SemVer

UnknownTypePolicy = Literal["hide", "misc"]

BREAKING_KEY = "breaking"
BREAKING_HEADING = "⚠ BREAKING CHANGES"
MISC_HEADING = "Miscellaneous"
CHANGELOG_TITLE = "# Changelog"

_RELEASE_HEADING_RE = re.compile(r"(?m)^#{2,3} \[?\d+\.\d+\.\d+")


@dataclass(frozen=True, slots=True)
class SectionRule:
    """Maps a commit type to a changelog section heading."""

    type: str
    section: str
    hidden: bool = False


DEFAULT_SECTIONS: tuple[SectionRule, ...] = (
    SectionRule("feat", "Features"),
    SectionRule("fix", "Bug Fixes"),
    SectionRule("perf", "Performance Improvements"),
    SectionRule("revert", "Reverts"),
    SectionRule("docs", "Documentation", hidden=True),
    SectionRule("style", "Styles", hidden=True),
    SectionRule("chore", "Miscellaneous Chores", hidden=True),
    SectionRule("refactor", "Code Refactoring", hidden=True),
    SectionRule("test", "Tests", hidden=True),
    SectionRule("build", "Build System", hidden=True),
    SectionRule("ci", "Continuous Integration", hidden=True),
)


@dataclass(frozen=True, slots=True)
class ChangelogOptions:
    repo_slug: str
    sections: tuple[SectionRule, ...] = field(default=DEFAULT_SECTIONS)
    unknown_types: UnknownTypePolicy = "hide"
    web_host: str = "github.com"

    @property
    def repo_url(self) -> str:
        return f"https://{self.web_host}/{self.repo_slug}"


def parse_section_rules(obj: object) -> Result[tuple[SectionRule, ...], ReleaseError]:
    """Parse ``[{"type": ..., "section": ..., "hidden": ...}, ...]``."""
    items = as_obj_list(obj)
    if items is None:
        return Err(
            ReleaseError(
                kind="validation",
                message="changelog sections must be a list of objects",
                hint='[{"type": "feat", "section": "Features"}]',
            )
        )

    rules: list[SectionRule] = []
    for item in items:
        d = as_str_dict(item)
        kind = get_str(d, "type") if d is not None else None
        section = get_str(d, "section") if d is not None else None
        if d is None or kind is None or section is None:
            return Err(
                ReleaseError(
                    kind="validation",
                    message=f"invalid changelog section entry: {item!r}",
                    hint="each entry needs 'type' and 'section'",
                )
            )
        rules.append(SectionRule(kind.lower(), section, hidden=get_bool(d, "hidden") or False))
    return Ok(tuple(rules))


def build_sections(
    records: Sequence[ChangeRecord], *, options: ChangelogOptions
) -> tuple[ChangelogSection, ...]:
    """Group records into sections in emission order.

    Breaking changes come first, then the sections for ``feat`` and
    ``fix``, then every other visible section in configured order, then
    the miscellaneous bucket.
    """
    rules = {r.type: r for r in options.sections}

    order: list[str] = []
    for kind in ("feat", "fix"):
        rule = rules.get(kind)
        if rule is not None and not rule.hidden and rule.section not in order:
            order.append(rule.section)
    for rule in options.sections:
        if not rule.hidden and rule.section not in order:
            order.append(rule.section)

    if options.unknown_types == "misc" and MISC_HEADING not in order:
        order.append(MISC_HEADING)

    buckets: dict[str, list[str]] = {}
    breaking: list[str] = []
    for r in records:
        for note in r.notes if r.breaking else ():
            breaking.append(_entry(r, note, repo_url=options.repo_url))

        rule = rules.get(r.type)
        if rule is None:
            heading = MISC_HEADING if options.unknown_types == "misc" else None
        else:
            heading = None if rule.hidden else rule.section
        if heading is None:
            continue
        buckets.setdefault(heading, []).append(_entry(r, r.summary, repo_url=options.repo_url))

    out: list[ChangelogSection] = []
    if breaking:
        out.append(ChangelogSection(BREAKING_KEY, BREAKING_HEADING, tuple(breaking)))
    for heading in order:
        entries = buckets.get(heading)
        if entries:
            out.append(ChangelogSection(_section_key(heading), heading, tuple(entries)))
    return tuple(out)


def render_fragment(
    records: Sequence[ChangeRecord],
    *,
    options: ChangelogOptions,
    version: SemVer,
    tag: str,
    previous_tag: str | None,
    date: str,
) -> str:
    if previous_tag is not None:
        compare = f"{options.repo_url}/compare/{previous_tag}...{tag}"
        heading = f"### [{version}]({compare}) ({date})"
    else:
        heading = f"### {version} ({date})"

    parts = [heading]
    for section in build_sections(records, options=options):
        parts.append(f"### {section.heading}\n\n" + "\n".join(section.entries))
    return "\n\n\n".join(parts) + "\n"


def prepend_fragment(existing: str, fragment: str) -> str:
    """Insert ``fragment`` above the newest release in ``existing``."""
    if not existing.strip():
        return f"{CHANGELOG_TITLE}\n\n{fragment}"

    m = _RELEASE_HEADING_RE.search(existing)
    head = existing[: m.start()] if m else existing
    tail = existing[m.start() :] if m else ""

    head = head.strip("\n")
    if not head.startswith("# "):
        head = f"{CHANGELOG_TITLE}\n\n{head}" if head else CHANGELOG_TITLE

    out = f"{head}\n\n{fragment}"
    if tail:
        out += "\n" + tail
    return out


def extract_release_notes(changelog: str, version: SemVer) -> str | None:
    """Return the fragment for ``version`` from a full changelog."""
    heading_re = re.compile(rf"(?m)^#{{2,3}} \[?{re.escape(str(version))}[\]\s]")
    m = heading_re.search(changelog)
    if m is None:
        return None
    rest = changelog[m.start() :]
    nxt = _RELEASE_HEADING_RE.search(rest, 1)
    fragment = rest[: nxt.start()] if nxt else rest
    return fragment.strip() + "\n"


def _entry(record: ChangeRecord, text: str, *, repo_url: str) -> str:
    scope = f"**{record.scope}:** " if record.scope else ""
    link = f"{repo_url}/commit/{record.sha}"
    return f"* {scope}{text} ([{record.short_sha}]({link}))"


def _section_key(heading: str) -> str:
    return re.sub(r"[^a-z0-9]+", "-", heading.lower()).strip("-")
