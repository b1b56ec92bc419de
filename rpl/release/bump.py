from __future__ import annotations

from collections.abc import Sequence

from rpl.core.result import Err, Ok, Result
from rpl.release.errors import ReleaseError
from rpl.release.model import ChangeRecord, VersionBump
from rpl.release.semver import SemVer, parse_version

_PATCH_TYPES = frozenset({"fix", "perf"})


def compute_bump(
    records: Sequence[ChangeRecord],
    *,
    current: SemVer,
    bump_minor_pre_major: bool,
) -> VersionBump:
    """Return the strongest bump implied by ``records``.

    Breaking changes before 1.0.0 only bump minor when
    ``bump_minor_pre_major`` is set.
    """
    bump = VersionBump.NONE
    for r in records:
        if r.breaking:
            if current.major == 0 and bump_minor_pre_major:
                candidate = VersionBump.MINOR
            else:
                return VersionBump.MAJOR
        elif r.type == "feat":
            candidate = VersionBump.MINOR
        elif r.type in _PATCH_TYPES:
            candidate = VersionBump.PATCH
        else:
            continue
        if candidate.rank > bump.rank:
            bump = candidate
    return bump


def resolve_target_version(
    records: Sequence[ChangeRecord],
    *,
    current: SemVer,
    bump_minor_pre_major: bool,
    release_as: str | None,
) -> Result[tuple[VersionBump, SemVer | None], ReleaseError]:
    """Decide the next version.

    An explicit ``release_as`` wins over a ``Release-As:`` commit footer,
    which wins over the computed bump. Overrides are used verbatim but
    must be strictly greater than ``current``. Returns ``(NONE, None)``
    when nothing should be released.
    """
    bump = compute_bump(records, current=current, bump_minor_pre_major=bump_minor_pre_major)

    override = release_as
    source = "release-as option"
    if override is None:
        # Records are newest first; the most recent footer wins.
        override = next((r.release_as for r in records if r.release_as), None)
        source = "Release-As footer"

    if override is not None:
        version = parse_version(override)
        if version is None:
            return Err(
                ReleaseError(
                    kind="validation",
                    message=f"invalid version override from {source}: {override}",
                    hint="Expected MAJOR.MINOR.PATCH",
                )
            )
        if version <= current:
            return Err(
                ReleaseError(
                    kind="validation",
                    message=f"version override {version} must be greater than current {current}",
                    hint=f"from {source}",
                )
            )
        return Ok((_bump_between(current, version), version))

    if bump is VersionBump.NONE:
        return Ok((bump, None))
    return Ok((bump, current.bump(bump)))


def _bump_between(current: SemVer, target: SemVer) -> VersionBump:
    if target.major != current.major:
        return VersionBump.MAJOR
    if target.minor != current.minor:
        return VersionBump.MINOR
    return VersionBump.PATCH
