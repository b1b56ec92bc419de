"""Publish a merged release pull request as a tagged GitHub release."""

from __future__ import annotations

from dataclasses import dataclass
from enum import Enum

from rpl.core.result import Err, Ok, Result
from rpl.output.console import ConsoleProtocol, Style
from rpl.release.changelog import extract_release_notes
from rpl.release.errors import ReleaseError
from rpl.release.history import latest_release_tag
from rpl.release.model import PendingReleaseRequest
from rpl.release.platform import ReleasePlatform, read_files
from rpl.release.pull_request import in_scope, normalize_path, recorded_notes
from rpl.release.reconciler import DEFAULT_CHANGELOG_PATH, DEFAULT_PENDING_LABEL
from rpl.release.semver import SemVer
from rpl.release.strategies.base import ReleaseStrategy, join_repo_path

DEFAULT_TAGGED_LABEL = "autorelease: tagged"


class PublishAction(Enum):
    PUBLISHED = "published"
    ALREADY_TAGGED = "already_tagged"
    NOTHING_TO_PUBLISH = "nothing_to_publish"
    DRY_RUN = "dry_run"

    def __str__(self) -> str:
        return self.value


@dataclass(frozen=True, slots=True)
class PublishOptions:
    base_branch: str | None = None
    path: str | None = None
    component: str | None = None
    pending_label: str = DEFAULT_PENDING_LABEL
    tagged_label: str = DEFAULT_TAGGED_LABEL
    changelog_path: str = DEFAULT_CHANGELOG_PATH
    dry_run: bool = False


@dataclass(frozen=True, slots=True)
class PublishOutcome:
    action: PublishAction
    request_number: int | None = None
    tag: str | None = None
    version: SemVer | None = None
    url: str | None = None
    label_warnings: tuple[str, ...] = ()


@dataclass(slots=True)
class ReleasePublisher:
    platform: ReleasePlatform
    strategy: ReleaseStrategy
    console: ConsoleProtocol
    options: PublishOptions

    def run(self, number: int | None = None) -> Result[PublishOutcome, ReleaseError]:
        """Tag and release the merged request ``number``.

        Without ``number`` the most recently merged request still carrying
        the pending label is used. An existing tag makes the run a no-op.
        """
        opts = self.options

        request = self._find_request(number)
        if isinstance(request, Err):
            return request
        if request.value is None:
            self.console.print("no merged release pull request to publish", Style.DIM)
            return Ok(PublishOutcome(action=PublishAction.NOTHING_TO_PUBLISH))
        pr = request.value

        if pr.state != "merged" or pr.merge_sha is None:
            return Err(
                ReleaseError(
                    kind="validation",
                    message=f"pull request #{pr.number} is not merged",
                )
            )
        merge_sha = pr.merge_sha
        path = normalize_path(opts.path)

        files = read_files(self.platform, self.strategy.locate_version_files(path), ref=merge_sha)
        if isinstance(files, Err):
            return files
        version = self.strategy.current_version({k: v for k, v in files.value.items() if v})
        if version is None:
            return Err(
                ReleaseError(
                    kind="validation",
                    message=f"no version found at merge commit {merge_sha[:7]}",
                    hint=f"release type: {self.strategy.release_type}",
                )
            )

        tag = version.to_tag(opts.component)
        tags = self.platform.list_tags()
        if isinstance(tags, Err):
            return tags
        if any(t.name == tag for t in tags.value):
            self.console.success(f"{tag} already exists; nothing to do")
            return Ok(
                PublishOutcome(
                    action=PublishAction.ALREADY_TAGGED,
                    request_number=pr.number,
                    tag=tag,
                    version=version,
                )
            )

        latest = latest_release_tag(tags.value, component=opts.component)
        if latest is not None and version <= latest.version:
            return Err(
                ReleaseError(
                    kind="validation",
                    message=f"version {version} is not greater than the latest release {latest.name}",
                    hint=f"merged pull request #{pr.number}",
                )
            )

        notes = self._release_notes(pr, version=version, ref=merge_sha, path=path)
        if isinstance(notes, Err):
            return notes

        if opts.dry_run:
            self.console.header(f"{tag} at {merge_sha[:7]} (#{pr.number})")
            self.console.print(notes.value)
            return Ok(
                PublishOutcome(
                    action=PublishAction.DRY_RUN,
                    request_number=pr.number,
                    tag=tag,
                    version=version,
                )
            )

        self.console.print(f"create release {tag} at {merge_sha[:7]}", Style.DIM)
        url = self.platform.create_release(tag=tag, sha=merge_sha, name=tag, body=notes.value)
        if isinstance(url, Err):
            return url
        self.console.success(f"published {tag}: {url.value}")

        warnings = self._swap_labels(pr)
        return Ok(
            PublishOutcome(
                action=PublishAction.PUBLISHED,
                request_number=pr.number,
                tag=tag,
                version=version,
                url=url.value,
                label_warnings=warnings,
            )
        )

    def _find_request(self, number: int | None) -> Result[PendingReleaseRequest | None, ReleaseError]:
        if number is not None:
            pr = self.platform.get_pull_request(number)
            if isinstance(pr, Err):
                return pr
            return Ok(pr.value)

        opts = self.options
        base_branch = opts.base_branch
        if base_branch is None:
            default = self.platform.default_branch()
            if isinstance(default, Err):
                return default
            base_branch = default.value

        listed = self.platform.list_pull_requests(state="closed", label=opts.pending_label)
        if isinstance(listed, Err):
            return listed
        merged = [
            r
            for r in listed.value
            if r.state == "merged"
            and in_scope(r, base_branch=base_branch, component=opts.component, path=opts.path)
        ]
        if not merged:
            return Ok(None)
        merged.sort(key=lambda r: (r.updated_at or "", r.number), reverse=True)
        return Ok(merged[0])

    def _release_notes(
        self, pr: PendingReleaseRequest, *, version: SemVer, ref: str, path: str
    ) -> Result[str, ReleaseError]:
        changelog_path = join_repo_path(path, self.options.changelog_path)
        changelog = read_files(self.platform, [changelog_path], ref=ref)
        if isinstance(changelog, Err):
            return changelog

        notes = extract_release_notes(changelog.value[changelog_path], version)
        if notes is None:
            self.console.debug(f"{changelog_path} has no entry for {version}; using PR body")
            notes = recorded_notes(pr.body)
        return Ok(notes or "")

    def _swap_labels(self, pr: PendingReleaseRequest) -> tuple[str, ...]:
        opts = self.options
        warnings: list[str] = []

        if opts.pending_label in pr.labels:
            removed = self.platform.remove_label(pr.number, opts.pending_label)
            if isinstance(removed, Err):
                warnings.append(f"failed to remove '{opts.pending_label}': {removed.error.message}")

        if opts.tagged_label not in pr.labels:
            added = self.platform.add_labels(pr.number, [opts.tagged_label])
            if isinstance(added, Err):
                warnings.append(f"failed to add '{opts.tagged_label}': {added.error.message}")

        for w in warnings:
            self.console.warning(f"#{pr.number}: {w}")
        return tuple(warnings)
