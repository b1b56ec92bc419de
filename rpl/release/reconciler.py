"""Pending release reconciliation.

One run observes the remote, recomputes the release from commit history
and converges on exactly one open release pull request:

- no pending request and something to release: commit the version and
  changelog edits to a deterministic branch, open the request, label it;
- one pending request whose recorded version or notes differ: force the
  branch to a fresh commit on the base branch and update title/body;
- a pending request that already matches: nothing is written;
- several pending requests: the one with the most recent head commit is
  kept, the others are closed (one attempt each).

All reads happen before the plan is computed and every write happens after
it, one at a time. A run interrupted halfway converges on the next run.
"""

from __future__ import annotations

from collections.abc import Callable, Sequence
from dataclasses import dataclass, field
from datetime import UTC, datetime
from enum import Enum

from rpl.core.result import Err, Ok, Result
from rpl.output.console import ConsoleProtocol, Style
from rpl.release.bump import resolve_target_version
from rpl.release.changelog import ChangelogOptions, prepend_fragment, render_fragment
from rpl.release.commits import parse_commits
from rpl.release.errors import ReleaseError
from rpl.release.history import (
    commits_since,
    latest_release_tag,
    resolve_current_version,
)
from rpl.release.model import FileEdit, PendingReleaseRequest, ReleasePlan
from rpl.release.platform import ReleasePlatform, read_files
from rpl.release.pull_request import (
    format_body,
    format_title,
    in_scope,
    normalize_path,
    recorded_notes,
    recorded_release_date,
    recorded_version,
    release_branch,
)
from rpl.release.semver import SemVer
from rpl.release.strategies.base import ReleaseStrategy, join_repo_path

DEFAULT_PENDING_LABEL = "autorelease: pending"
DEFAULT_CHANGELOG_PATH = "CHANGELOG.md"


class ReconcileState(Enum):
    """What the run observed before writing anything."""

    NO_PENDING_REQUEST = "no_pending_request"
    DUPLICATES_PRESENT = "duplicates_present"
    REQUEST_UP_TO_DATE = "request_up_to_date"
    REQUEST_NEEDS_UPDATE = "request_needs_update"

    def __str__(self) -> str:
        return self.value


class ReconcileAction(Enum):
    CREATED = "created"
    UPDATED = "updated"
    UNCHANGED = "unchanged"
    NO_RELEASE = "no_release"
    AWAITING_PUBLISH = "awaiting_publish"
    DRY_RUN = "dry_run"

    def __str__(self) -> str:
        return self.value


@dataclass(frozen=True, slots=True)
class ReconcileOptions:
    changelog: ChangelogOptions
    base_branch: str | None = None
    path: str | None = None
    component: str | None = None
    pending_label: str = DEFAULT_PENDING_LABEL
    changelog_path: str = DEFAULT_CHANGELOG_PATH
    release_as: str | None = None
    bump_minor_pre_major: bool = False
    last_package_version: SemVer | None = None
    dry_run: bool = False


@dataclass(frozen=True, slots=True)
class ReconcileOutcome:
    state: ReconcileState
    action: ReconcileAction
    request_number: int | None = None
    plan: ReleasePlan | None = None
    closed: tuple[int, ...] = ()
    close_failures: tuple[int, ...] = ()


def _today() -> str:
    return datetime.now(UTC).date().isoformat()


@dataclass(slots=True)
class _Observed:
    base_branch: str
    keep: PendingReleaseRequest | None
    duplicates: tuple[PendingReleaseRequest, ...]


@dataclass(slots=True)
class PendingReleaseReconciler:
    platform: ReleasePlatform
    strategy: ReleaseStrategy
    console: ConsoleProtocol
    options: ReconcileOptions
    today: Callable[[], str] = field(default=_today)

    def run(self) -> Result[ReconcileOutcome, ReleaseError]:
        opts = self.options

        observed = self._observe()
        if isinstance(observed, Err):
            return observed
        base_branch = observed.value.base_branch
        keep = observed.value.keep
        duplicates = observed.value.duplicates
        if duplicates:
            state = ReconcileState.DUPLICATES_PRESENT
        elif keep is None:
            state = ReconcileState.NO_PENDING_REQUEST
        else:
            state = ReconcileState.REQUEST_UP_TO_DATE

        awaiting = self._awaiting_publish(base_branch)
        if isinstance(awaiting, Err):
            return awaiting
        if awaiting.value is not None:
            self.console.warning(
                f"pull request #{awaiting.value.number} is merged but not tagged; "
                "run github-release first"
            )
            return Ok(
                ReconcileOutcome(
                    state=state,
                    action=ReconcileAction.AWAITING_PUBLISH,
                    request_number=awaiting.value.number,
                )
            )

        plan = self._plan(base_branch=base_branch, keep=keep)
        if isinstance(plan, Err):
            return plan

        if plan.value is None:
            closed, failed = self._close_duplicates(duplicates)
            self.console.print("no releasable changes since the last release", Style.DIM)
            return Ok(
                ReconcileOutcome(
                    state=state,
                    action=ReconcileAction.NO_RELEASE,
                    request_number=keep.number if keep is not None else None,
                    closed=closed,
                    close_failures=failed,
                )
            )

        p = plan.value
        title = format_title(p.target_version, opts.component)
        body = format_body(p.notes, version=p.target_version, path=opts.path)

        up_to_date = keep is not None and _matches(keep, title=title, notes=p.notes)
        if keep is not None and not up_to_date and not duplicates:
            state = ReconcileState.REQUEST_NEEDS_UPDATE

        if opts.dry_run:
            self._report_plan(p, title=title, state=state)
            return Ok(
                ReconcileOutcome(
                    state=state,
                    action=ReconcileAction.DRY_RUN,
                    request_number=keep.number if keep is not None else None,
                    plan=p,
                )
            )

        closed, failed = self._close_duplicates(duplicates)

        if up_to_date:
            assert keep is not None
            self.console.success(f"release pull request #{keep.number} is up to date ({title})")
            return Ok(
                ReconcileOutcome(
                    state=state,
                    action=ReconcileAction.UNCHANGED,
                    request_number=keep.number,
                    plan=p,
                    closed=closed,
                    close_failures=failed,
                )
            )

        if keep is not None:
            branch = keep.branch
        else:
            branch = release_branch(base_branch, opts.component, path=opts.path)
        self.console.print(f"commit {len(p.edits)} file(s) -> {branch}", Style.DIM)
        committed = self.platform.commit_files(
            branch=branch,
            base_branch=base_branch,
            message=title,
            edits=p.edits,
            expected_head=keep.head_sha if keep is not None else None,
        )
        if isinstance(committed, Err):
            return committed

        if keep is not None:
            self.console.print(f"update pull request #{keep.number}", Style.DIM)
            updated = self.platform.update_pull_request(keep.number, title=title, body=body)
            if isinstance(updated, Err):
                return updated
            self.console.success(f"updated release pull request #{keep.number}: {title}")
            return Ok(
                ReconcileOutcome(
                    state=state,
                    action=ReconcileAction.UPDATED,
                    request_number=keep.number,
                    plan=p,
                    closed=closed,
                    close_failures=failed,
                )
            )

        self.console.print(f"open pull request {branch} -> {base_branch}", Style.DIM)
        number = self.platform.create_pull_request(
            branch=branch, base_branch=base_branch, title=title, body=body
        )
        if isinstance(number, Err):
            return number

        # Without the label the next run cannot find this request.
        labelled = self.platform.add_labels(number.value, [opts.pending_label])
        if isinstance(labelled, Err):
            return labelled

        self.console.success(f"opened release pull request #{number.value}: {title}")
        return Ok(
            ReconcileOutcome(
                state=state,
                action=ReconcileAction.CREATED,
                request_number=number.value,
                plan=p,
                closed=closed,
                close_failures=failed,
            )
        )

    def _observe(self) -> Result[_Observed, ReleaseError]:
        opts = self.options

        base_branch = opts.base_branch
        if base_branch is None:
            default = self.platform.default_branch()
            if isinstance(default, Err):
                return default
            base_branch = default.value

        listed = self.platform.list_pull_requests(state="open", label=opts.pending_label)
        if isinstance(listed, Err):
            return listed
        pending = [
            r
            for r in listed.value
            if in_scope(
                r, base_branch=base_branch, component=opts.component, path=opts.path
            )
        ]

        if len(pending) <= 1:
            return Ok(
                _Observed(
                    base_branch=base_branch,
                    keep=pending[0] if pending else None,
                    duplicates=(),
                )
            )

        ranked = self._rank_by_head(pending)
        if isinstance(ranked, Err):
            return ranked
        keep, *rest = ranked.value
        self.console.warning(
            f"{len(pending)} pending release pull requests; keeping #{keep.number}"
        )
        return Ok(_Observed(base_branch=base_branch, keep=keep, duplicates=tuple(rest)))

    def _rank_by_head(
        self, requests: Sequence[PendingReleaseRequest]
    ) -> Result[list[PendingReleaseRequest], ReleaseError]:
        """Most recent head commit first; ties go to the newer request."""
        stamped: list[tuple[str, int, PendingReleaseRequest]] = []
        for r in requests:
            ts = self.platform.commit_timestamp(r.head_sha)
            if isinstance(ts, Err):
                if ts.error.kind != "not_found":
                    return ts
                stamped.append(("", r.number, r))
                continue
            stamped.append((ts.value, r.number, r))
        stamped.sort(key=lambda item: (item[0], item[1]), reverse=True)
        return Ok([r for _, _, r in stamped])

    def _awaiting_publish(self, base_branch: str) -> Result[PendingReleaseRequest | None, ReleaseError]:
        opts = self.options
        listed = self.platform.list_pull_requests(state="closed", label=opts.pending_label)
        if isinstance(listed, Err):
            return listed
        merged = [
            r
            for r in listed.value
            if r.state == "merged"
            and in_scope(
                r, base_branch=base_branch, component=opts.component, path=opts.path
            )
        ]
        if not merged:
            return Ok(None)

        tags = self.platform.list_tags()
        if isinstance(tags, Err):
            return tags
        names = {t.name for t in tags.value}
        for r in merged:
            version = recorded_version(r, opts.component)
            if version is not None and version.to_tag(opts.component) not in names:
                return Ok(r)
        return Ok(None)

    def _plan(
        self, *, base_branch: str, keep: PendingReleaseRequest | None
    ) -> Result[ReleasePlan | None, ReleaseError]:
        opts = self.options
        path = normalize_path(opts.path)

        tags = self.platform.list_tags()
        if isinstance(tags, Err):
            return tags
        latest = latest_release_tag(tags.value, component=opts.component)

        version_files = read_files(
            self.platform, self.strategy.locate_version_files(path), ref=base_branch
        )
        if isinstance(version_files, Err):
            return version_files

        current = resolve_current_version(
            latest,
            last_package_version=opts.last_package_version,
            from_files=self.strategy.current_version(
                {k: v for k, v in version_files.value.items() if v}
            ),
        )
        self.console.print(
            f"current version: {current}"
            + (f" (tag {latest.name})" if latest is not None else " (no release tag)"),
            Style.DIM,
        )

        commits = commits_since(self.platform, branch=base_branch, path=path or None, since=latest)
        if isinstance(commits, Err):
            return commits
        records = parse_commits(commits.value)
        self.console.print(
            f"{len(commits.value)} commit(s), {len(records)} change record(s) since last release",
            Style.DIM,
        )

        target = resolve_target_version(
            records,
            current=current,
            bump_minor_pre_major=opts.bump_minor_pre_major,
            release_as=opts.release_as,
        )
        if isinstance(target, Err):
            return target
        bump, version = target.value
        if version is None:
            return Ok(None)

        release_date = self._release_date(keep, version)
        tag = version.to_tag(opts.component)
        notes = render_fragment(
            records,
            options=opts.changelog,
            version=version,
            tag=tag,
            previous_tag=latest.name if latest is not None else None,
            date=release_date,
        )

        changelog_path = join_repo_path(path, opts.changelog_path)
        changelog = read_files(self.platform, [changelog_path], ref=base_branch)
        if isinstance(changelog, Err):
            return changelog

        contents = dict(self.strategy.apply_version(version_files.value, version))
        contents[changelog_path] = prepend_fragment(changelog.value[changelog_path], notes)
        edits = tuple(FileEdit(path=p, content=c) for p, c in sorted(contents.items()))

        return Ok(
            ReleasePlan(
                base_version=current,
                target_version=version,
                bump=bump,
                records=records,
                notes=notes,
                edits=edits,
                release_date=release_date,
            )
        )

    def _release_date(self, keep: PendingReleaseRequest | None, version: SemVer) -> str:
        # Same target as the open request: keep its date so reruns on later
        # days do not rewrite the notes.
        if keep is not None and recorded_version(keep, self.options.component) == version:
            date = recorded_release_date(recorded_notes(keep.body))
            if date is not None:
                return date
        return self.today()

    def _close_duplicates(
        self, duplicates: Sequence[PendingReleaseRequest]
    ) -> tuple[tuple[int, ...], tuple[int, ...]]:
        if self.options.dry_run:
            return (), ()
        closed: list[int] = []
        failed: list[int] = []
        for r in duplicates:
            self.console.print(f"close duplicate pull request #{r.number}", Style.DIM)
            result = self.platform.close_pull_request(r.number)
            if isinstance(result, Err):
                self.console.warning(f"failed to close #{r.number}: {result.error.message}")
                failed.append(r.number)
                continue
            closed.append(r.number)
        return tuple(closed), tuple(failed)

    def _report_plan(self, plan: ReleasePlan, *, title: str, state: ReconcileState) -> None:
        self.console.header(title)
        self.console.print(
            f"{plan.base_version} -> {plan.target_version} ({plan.bump}), state: {state}"
        )
        for edit in plan.edits:
            self.console.print(f"  {edit.path}", Style.DIM)
        self.console.newline()
        self.console.print(plan.notes)


def _matches(request: PendingReleaseRequest, *, title: str, notes: str) -> bool:
    recorded = recorded_notes(request.body)
    if recorded is None:
        return False
    return request.title == title and _normalize(recorded) == _normalize(notes)


def _normalize(text: str) -> str:
    return text.replace("\r\n", "\n").strip()


__all__ = [
    "DEFAULT_CHANGELOG_PATH",
    "DEFAULT_PENDING_LABEL",
    "PendingReleaseReconciler",
    "ReconcileAction",
    "ReconcileOptions",
    "ReconcileOutcome",
    "ReconcileState",
]
