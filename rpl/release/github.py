from __future__ import annotations

import base64
import binascii
import json
import os
import re
import shutil
from collections.abc import Sequence
from dataclasses import dataclass, field
from pathlib import Path
from time import sleep
from urllib.parse import quote

from rpl.core.result import Err, Ok, Result
from rpl.core.structured import (
    StrDict,
    as_obj_list,
    as_str_dict,
    get_int,
    get_list,
    get_raw_str,
    get_str,
    get_table,
)
from rpl.platform.process import ProcessError
from rpl.platform.process import run as run_process
from rpl.release.errors import ReleaseError
from rpl.release.model import FileEdit, PendingReleaseRequest, RawCommit
from rpl.release.platform import PullRequestState, RemoteTag
from rpl.release.timeouts import (
    COMMITS_PER_PAGE,
    GH_RETRY_ATTEMPTS,
    GH_RETRY_DELAY_SECONDS,
    GH_TIMEOUT_SECONDS,
    LIST_PER_PAGE,
    MAX_COMMIT_PAGES,
    MAX_LIST_PAGES,
)

_HTTP_STATUS_RE = re.compile(r"HTTP (\d{3})")

_TRANSIENT_MARKERS = (
    "timed out",
    "timeout",
    "connection reset",
    "connection refused",
    "temporarily unavailable",
    "service unavailable",
    "bad gateway",
    "gateway timeout",
    "tls handshake timeout",
    "network is unreachable",
    "rate limit",
)


def _http_status(error: ProcessError) -> int | None:
    m = _HTTP_STATUS_RE.search(f"{error.stderr}\n{error.stdout}")
    return int(m.group(1)) if m else None


def _is_transient_gh_error(error: ProcessError) -> bool:
    status = _http_status(error)
    if status is not None:
        if status == 429 or status >= 500:
            return True
        if status == 403:
            return "rate limit" in error.stderr.lower()
        return False
    text = f"{error.stderr}\n{error.stdout}".lower()
    return any(marker in text for marker in _TRANSIENT_MARKERS)


def _classify(error: ProcessError, *, message: str) -> ReleaseError:
    status = _http_status(error)
    hint = error.stderr.strip() or str(error)
    if status == 404:
        return ReleaseError(kind="not_found", message=message, hint=hint, status=status)
    if status in (409, 422):
        return ReleaseError(kind="conflict", message=message, hint=hint, status=status)
    if _is_transient_gh_error(error):
        return ReleaseError(kind="transient", message=message, hint=hint, status=status)
    if status in (401,) or "gh auth login" in error.stderr:
        return ReleaseError(kind="gh_auth_required", message=message, hint=hint, status=status)
    return ReleaseError(kind="remote_failed", message=message, hint=hint, status=status)


def ensure_gh_available() -> Result[None, ReleaseError]:
    if shutil.which("gh") is None:
        return Err(
            ReleaseError(
                kind="gh_missing",
                message="gh: missing",
                hint="Install GitHub CLI: https://cli.github.com/",
            )
        )
    return Ok(None)


def ensure_gh_auth(
    *, cwd: Path, hostname: str | None = None, token: str | None = None
) -> Result[None, ReleaseError]:
    if token:
        # GH_TOKEN takes precedence over the stored login.
        return Ok(None)
    cmd = ["gh", "auth", "status"]
    if hostname:
        cmd += ["--hostname", hostname]
    result = run_process(cmd, cwd=cwd, timeout=GH_TIMEOUT_SECONDS)
    if isinstance(result, Err):
        return Err(
            ReleaseError(
                kind="gh_auth_required",
                message="gh auth required",
                hint="Run: gh auth login (or pass --token)",
            )
        )
    return Ok(None)


@dataclass(slots=True)
class GhApi:
    """Thin ``gh api`` runner with transient retry.

    Reads and idempotent writes are retried with linear backoff on rate
    limits, 5xx and network failures. 404 is never retried.
    """

    cwd: Path
    hostname: str | None = None
    token: str | None = None
    calls: int = field(default=0, init=False)

    def request(
        self,
        endpoint: str,
        *,
        method: str = "GET",
        payload: object | None = None,
        idempotent: bool | None = None,
    ) -> Result[object, ReleaseError]:
        cmd = ["gh", "api", "--method", method, "-H", "Accept: application/vnd.github+json"]
        if self.hostname:
            cmd += ["--hostname", self.hostname]
        cmd.append(endpoint)
        input_text: str | None = None
        if payload is not None:
            cmd += ["--input", "-"]
            input_text = json.dumps(payload)

        env: dict[str, str] | None = None
        if self.token:
            env = {**os.environ, "GH_TOKEN": self.token}

        retry = idempotent if idempotent is not None else method != "POST"
        attempts = max(1, GH_RETRY_ATTEMPTS) if retry else 1
        message = f"gh api {method} {endpoint} failed"

        for attempt in range(attempts):
            self.calls += 1
            result = run_process(
                cmd,
                cwd=self.cwd,
                env=env,
                timeout=GH_TIMEOUT_SECONDS,
                input_text=input_text,
            )
            if isinstance(result, Ok):
                return _decode_json(result.value, endpoint=endpoint)

            error = result.error
            if attempt < attempts - 1 and _is_transient_gh_error(error):
                sleep(GH_RETRY_DELAY_SECONDS * (attempt + 1))
                continue
            return Err(_classify(error, message=message))

        return Err(ReleaseError(kind="transient", message=message))

    def paged(
        self, endpoint: str, *, per_page: int = LIST_PER_PAGE, max_pages: int = MAX_LIST_PAGES
    ) -> Result[list[object], ReleaseError]:
        sep = "&" if "?" in endpoint else "?"
        out: list[object] = []
        for page in range(1, max_pages + 1):
            obj = self.request(f"{endpoint}{sep}per_page={per_page}&page={page}")
            if isinstance(obj, Err):
                return obj
            items = as_obj_list(obj.value)
            if items is None:
                return Err(
                    ReleaseError(kind="invalid_input", message=f"expected a list from {endpoint}")
                )
            out.extend(items)
            if len(items) < per_page:
                break
        return Ok(out)


def _decode_json(payload: str, *, endpoint: str) -> Result[object, ReleaseError]:
    if not payload.strip():
        return Ok(None)
    try:
        obj: object = json.loads(payload)
    except json.JSONDecodeError as e:
        return Err(
            ReleaseError(
                kind="invalid_input",
                message=f"gh api returned invalid JSON: {e}",
                hint=endpoint,
            )
        )
    return Ok(obj)


class GitHubPlatform:
    """:class:`~rpl.release.platform.ReleasePlatform` backed by the GitHub REST API."""

    def __init__(self, *, repo: str, api: GhApi, fork: bool = False) -> None:
        self.repo = repo
        self.api = api
        self.fork = fork
        self._head_repo: str | None = None

    # Reads

    def default_branch(self) -> Result[str, ReleaseError]:
        obj = self.api.request(f"repos/{self.repo}")
        if isinstance(obj, Err):
            return obj
        data = as_str_dict(obj.value)
        branch = get_str(data, "default_branch") if data is not None else None
        if branch is None:
            return Err(ReleaseError(kind="invalid_input", message=f"missing default branch: {self.repo}"))
        return Ok(branch)

    def list_tags(self) -> Result[list[RemoteTag], ReleaseError]:
        raw = self.api.paged(f"repos/{self.repo}/tags")
        if isinstance(raw, Err):
            return raw

        out: list[RemoteTag] = []
        for item in raw.value:
            d = as_str_dict(item)
            if d is None:
                continue
            name = get_str(d, "name")
            commit = get_table(d, "commit")
            sha = get_str(commit, "sha") if commit is not None else None
            if name is None or sha is None:
                continue
            out.append(RemoteTag(name=name, sha=sha))
        return Ok(out)

    def list_commits(
        self, *, branch: str, path: str | None, stop_sha: str | None
    ) -> Result[list[RawCommit], ReleaseError]:
        endpoint = f"repos/{self.repo}/commits?sha={quote(branch, safe='')}"
        if path:
            endpoint += f"&path={quote(path, safe='/')}"

        out: list[RawCommit] = []
        for page in range(1, MAX_COMMIT_PAGES + 1):
            obj = self.api.request(f"{endpoint}&per_page={COMMITS_PER_PAGE}&page={page}")
            if isinstance(obj, Err):
                return obj
            items = as_obj_list(obj.value)
            if items is None:
                return Err(
                    ReleaseError(kind="invalid_input", message=f"unexpected commits payload: {self.repo}")
                )

            for item in items:
                d = as_str_dict(item)
                sha = get_str(d, "sha") if d is not None else None
                if d is None or sha is None:
                    continue
                if stop_sha is not None and sha == stop_sha:
                    return Ok(out)
                commit_tbl = get_table(d, "commit")
                message = get_raw_str(commit_tbl, "message") if commit_tbl is not None else None
                files = tuple(
                    f for f in (get_str(x, "filename") for x in _dicts(get_list(d, "files"))) if f
                )
                out.append(RawCommit(sha=sha, message=message or "", files=files))

            if len(items) < COMMITS_PER_PAGE:
                break
        return Ok(out)

    def commit_timestamp(self, sha: str) -> Result[str, ReleaseError]:
        obj = self.api.request(f"repos/{self.repo}/commits/{sha}")
        if isinstance(obj, Err):
            return obj
        data = as_str_dict(obj.value)
        commit_tbl = get_table(data, "commit") if data is not None else None
        committer = get_table(commit_tbl, "committer") if commit_tbl is not None else None
        date = get_str(committer, "date") if committer is not None else None
        if date is None:
            return Err(ReleaseError(kind="invalid_input", message=f"missing commit date: {sha}"))
        return Ok(date)

    def get_file(self, *, path: str, ref: str) -> Result[str, ReleaseError]:
        # Contents API avoids requiring a local checkout.
        endpoint = f"repos/{self.repo}/contents/{quote(path)}?ref={quote(ref, safe='')}"
        obj = self.api.request(endpoint)
        if isinstance(obj, Err):
            return obj

        data = as_str_dict(obj.value)
        if data is None:
            return Err(
                ReleaseError(
                    kind="invalid_input",
                    message=f"unexpected contents payload: {self.repo}/{path}",
                    hint=endpoint,
                )
            )

        enc = get_str(data, "encoding")
        content = get_raw_str(data, "content")
        if enc != "base64" or content is None:
            return Err(
                ReleaseError(
                    kind="invalid_input",
                    message=f"unexpected contents encoding for {self.repo}/{path}",
                    hint=endpoint,
                )
            )

        try:
            raw = base64.b64decode(content, validate=False)
        except (binascii.Error, ValueError) as e:
            return Err(ReleaseError(kind="invalid_input", message=f"failed to decode contents: {e}"))

        try:
            return Ok(raw.decode("utf-8"))
        except UnicodeDecodeError as e:
            return Err(ReleaseError(kind="invalid_input", message=f"invalid UTF-8 in contents: {e}"))

    def list_pull_requests(
        self, *, state: PullRequestState, label: str
    ) -> Result[list[PendingReleaseRequest], ReleaseError]:
        # The pulls API cannot filter by label; filter client side.
        raw = self.api.paged(f"repos/{self.repo}/pulls?state={state}&sort=updated&direction=desc")
        if isinstance(raw, Err):
            return raw
        requests = [r for r in (_parse_pull(item) for item in raw.value) if r is not None]
        return Ok([r for r in requests if label in r.labels])

    def get_pull_request(self, number: int) -> Result[PendingReleaseRequest, ReleaseError]:
        obj = self.api.request(f"repos/{self.repo}/pulls/{number}")
        if isinstance(obj, Err):
            return obj
        request = _parse_pull(obj.value)
        if request is None:
            return Err(ReleaseError(kind="invalid_input", message=f"unexpected pull payload: #{number}"))
        return Ok(request)

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
        base_sha = self._ref_sha(f"heads/{base_branch}")
        if isinstance(base_sha, Err):
            return base_sha

        base_commit = self.api.request(f"repos/{self.repo}/git/commits/{base_sha.value}")
        if isinstance(base_commit, Err):
            return base_commit
        base_data = as_str_dict(base_commit.value)
        tree_tbl = get_table(base_data, "tree") if base_data is not None else None
        base_tree = get_str(tree_tbl, "sha") if tree_tbl is not None else None
        if base_tree is None:
            return Err(ReleaseError(kind="invalid_input", message=f"missing tree for {base_branch}"))

        # Forked runs keep the release branch in the caller's fork.
        head_repo = self.head_repo()
        if isinstance(head_repo, Err):
            return head_repo
        target = head_repo.value

        tree = self.api.request(
            f"repos/{target}/git/trees",
            method="POST",
            payload={
                "base_tree": base_tree,
                "tree": [
                    {"path": e.path, "mode": e.mode, "type": "blob", "content": e.content}
                    for e in edits
                ],
            },
            idempotent=True,
        )
        tree_sha = _sha_of(tree)
        if isinstance(tree_sha, Err):
            return tree_sha

        commit = self.api.request(
            f"repos/{target}/git/commits",
            method="POST",
            payload={"message": message, "tree": tree_sha.value, "parents": [base_sha.value]},
            idempotent=True,
        )
        commit_sha = _sha_of(commit)
        if isinstance(commit_sha, Err):
            return commit_sha

        head = self._ref_sha(f"heads/{branch}", repo=target)
        if isinstance(head, Err):
            if head.error.kind != "not_found":
                return head
            created = self.api.request(
                f"repos/{target}/git/refs",
                method="POST",
                payload={"ref": f"refs/heads/{branch}", "sha": commit_sha.value},
            )
            if isinstance(created, Err):
                return created
            return Ok(commit_sha.value)

        if expected_head is not None and head.value != expected_head:
            return Err(
                ReleaseError(
                    kind="conflict",
                    message=f"branch {branch} moved while updating the release",
                    hint=f"expected {expected_head[:7]}, found {head.value[:7]}",
                )
            )

        moved = self.api.request(
            f"repos/{target}/git/refs/heads/{quote(branch)}",
            method="PATCH",
            payload={"sha": commit_sha.value, "force": True},
        )
        if isinstance(moved, Err):
            return moved
        return Ok(commit_sha.value)

    def create_pull_request(
        self, *, branch: str, base_branch: str, title: str, body: str
    ) -> Result[int, ReleaseError]:
        head = branch
        if self.fork:
            head_repo = self.head_repo()
            if isinstance(head_repo, Err):
                return head_repo
            owner = head_repo.value.split("/", 1)[0]
            head = f"{owner}:{branch}"
        obj = self.api.request(
            f"repos/{self.repo}/pulls",
            method="POST",
            payload={"title": title, "head": head, "base": base_branch, "body": body},
        )
        if isinstance(obj, Err):
            return obj
        data = as_str_dict(obj.value)
        number = get_int(data, "number") if data is not None else None
        if number is None:
            return Err(ReleaseError(kind="invalid_input", message="missing number in created pull request"))
        return Ok(number)

    def update_pull_request(self, number: int, *, title: str, body: str) -> Result[None, ReleaseError]:
        obj = self.api.request(
            f"repos/{self.repo}/pulls/{number}",
            method="PATCH",
            payload={"title": title, "body": body},
        )
        if isinstance(obj, Err):
            return obj
        return Ok(None)

    def close_pull_request(self, number: int) -> Result[None, ReleaseError]:
        obj = self.api.request(
            f"repos/{self.repo}/pulls/{number}", method="PATCH", payload={"state": "closed"}
        )
        if isinstance(obj, Err):
            return obj
        return Ok(None)

    def add_labels(self, number: int, labels: Sequence[str]) -> Result[None, ReleaseError]:
        obj = self.api.request(
            f"repos/{self.repo}/issues/{number}/labels",
            method="POST",
            payload={"labels": list(labels)},
            idempotent=True,
        )
        if isinstance(obj, Err):
            return obj
        return Ok(None)

    def remove_label(self, number: int, label: str) -> Result[None, ReleaseError]:
        obj = self.api.request(
            f"repos/{self.repo}/issues/{number}/labels/{quote(label, safe='')}", method="DELETE"
        )
        if isinstance(obj, Err):
            return obj
        return Ok(None)

    def create_release(self, *, tag: str, sha: str, name: str, body: str) -> Result[str, ReleaseError]:
        obj = self.api.request(
            f"repos/{self.repo}/releases",
            method="POST",
            payload={"tag_name": tag, "target_commitish": sha, "name": name, "body": body},
        )
        if isinstance(obj, Err):
            return obj
        data = as_str_dict(obj.value)
        url = get_str(data, "html_url") if data is not None else None
        return Ok(url or tag)

    def head_repo(self) -> Result[str, ReleaseError]:
        """Repository that receives release branches.

        The upstream itself, or with ``fork`` the caller's fork of it. Forking
        is idempotent on GitHub: an existing fork is returned as-is.
        """
        if not self.fork:
            return Ok(self.repo)
        if self._head_repo is not None:
            return Ok(self._head_repo)
        obj = self.api.request(f"repos/{self.repo}/forks", method="POST", payload={}, idempotent=True)
        if isinstance(obj, Err):
            return obj
        data = as_str_dict(obj.value)
        name = get_str(data, "full_name") if data is not None else None
        if name is None:
            return Err(ReleaseError(kind="invalid_input", message=f"missing full_name for fork of {self.repo}"))
        self._head_repo = name
        return Ok(name)

    def _ref_sha(self, ref: str, *, repo: str | None = None) -> Result[str, ReleaseError]:
        obj = self.api.request(f"repos/{repo or self.repo}/git/ref/{quote(ref)}")
        if isinstance(obj, Err):
            return obj
        data = as_str_dict(obj.value)
        target = get_table(data, "object") if data is not None else None
        sha = get_str(target, "sha") if target is not None else None
        if sha is None:
            # A prefix lookup returns a list of refs, meaning no exact match.
            return Err(ReleaseError(kind="not_found", message=f"ref not found: {ref}"))
        return Ok(sha)


def _sha_of(result: Result[object, ReleaseError]) -> Result[str, ReleaseError]:
    if isinstance(result, Err):
        return result
    data = as_str_dict(result.value)
    sha = get_str(data, "sha") if data is not None else None
    if sha is None:
        return Err(ReleaseError(kind="invalid_input", message="missing sha in git object payload"))
    return Ok(sha)


def _dicts(items: list[object] | None) -> list[StrDict]:
    return [d for d in (as_str_dict(x) for x in items or []) if d is not None]


def _parse_pull(obj: object) -> PendingReleaseRequest | None:
    d = as_str_dict(obj)
    if d is None:
        return None
    number = get_int(d, "number")
    head = get_table(d, "head")
    base = get_table(d, "base")
    if number is None or head is None or base is None:
        return None

    labels = frozenset(
        name for name in (get_str(x, "name") for x in _dicts(get_list(d, "labels"))) if name
    )
    merged_at = get_str(d, "merged_at")
    state = "merged" if merged_at else ("open" if get_str(d, "state") == "open" else "closed")

    return PendingReleaseRequest(
        number=number,
        title=get_raw_str(d, "title") or "",
        body=get_raw_str(d, "body") or "",
        branch=get_str(head, "ref") or "",
        base_branch=get_str(base, "ref") or "",
        head_sha=get_str(head, "sha") or "",
        labels=labels,
        state=state,
        merge_sha=get_str(d, "merge_commit_sha") if merged_at else None,
        updated_at=get_str(d, "updated_at"),
    )
