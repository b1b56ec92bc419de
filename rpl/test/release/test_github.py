from __future__ import annotations

import base64
import json
from pathlib import Path

import pytest

from rpl.core.result import Err, Ok, Result
from rpl.platform.process import ProcessError
from rpl.release import github as gh_mod
from rpl.release.github import GhApi, GitHubPlatform
from rpl.release.model import FileEdit


def _err(*, stderr: str, returncode: int = 1) -> Err[ProcessError]:
    return Err(
        ProcessError(
            command=("gh", "api", "repos/octo/widgets"),
            returncode=returncode,
            stdout="",
            stderr=stderr,
        )
    )


def _no_sleep(seconds: float) -> None:
    del seconds


class _Recorder:
    """Replays canned responses and records every ``gh`` invocation."""

    def __init__(self, responses: list[Result[str, ProcessError]]) -> None:
        self.responses = responses
        self.calls: list[list[str]] = []
        self.inputs: list[object] = []
        self.envs: list[dict[str, str] | None] = []

    def __call__(
        self,
        cmd: list[str],
        cwd: Path,
        env: dict[str, str] | None = None,
        *,
        timeout: float | None = None,
        input_text: str | None = None,
    ) -> Result[str, ProcessError]:
        del cwd, timeout
        self.calls.append(cmd)
        self.envs.append(env)
        self.inputs.append(json.loads(input_text) if input_text else None)
        return self.responses.pop(0)


def _platform(
    monkeypatch: pytest.MonkeyPatch,
    tmp_path: Path,
    responses: list[Result[str, ProcessError]],
    *,
    fork: bool = False,
    **kwargs: str,
) -> tuple[GitHubPlatform, _Recorder]:
    rec = _Recorder(responses)
    monkeypatch.setattr(gh_mod, "run_process", rec)
    monkeypatch.setattr(gh_mod, "sleep", _no_sleep)
    api = GhApi(cwd=tmp_path, **kwargs)  # pyright: ignore[reportArgumentType]
    return GitHubPlatform(repo="octo/widgets", api=api, fork=fork), rec


def test_read_retries_transient_error(monkeypatch: pytest.MonkeyPatch, tmp_path: Path) -> None:
    platform, rec = _platform(
        monkeypatch,
        tmp_path,
        [
            _err(stderr="gh: Service Unavailable (HTTP 503)"),
            _err(stderr="gh: API rate limit exceeded (HTTP 429)"),
            Ok('{"default_branch": "trunk"}'),
        ],
    )

    assert platform.default_branch() == Ok("trunk")
    assert len(rec.calls) == 3


def test_retries_are_bounded(monkeypatch: pytest.MonkeyPatch, tmp_path: Path) -> None:
    platform, rec = _platform(
        monkeypatch, tmp_path, [_err(stderr="gh: Bad Gateway (HTTP 502)") for _ in range(3)]
    )

    result = platform.default_branch()

    assert isinstance(result, Err)
    assert result.error.kind == "transient"
    assert result.error.status == 502
    assert len(rec.calls) == 3


def test_not_found_is_never_retried(monkeypatch: pytest.MonkeyPatch, tmp_path: Path) -> None:
    platform, rec = _platform(monkeypatch, tmp_path, [_err(stderr="gh: Not Found (HTTP 404)")])

    result = platform.get_file(path="CHANGELOG.md", ref="main")

    assert isinstance(result, Err)
    assert result.error.kind == "not_found"
    assert len(rec.calls) == 1


def test_pull_request_creation_is_not_retried(monkeypatch: pytest.MonkeyPatch, tmp_path: Path) -> None:
    platform, rec = _platform(monkeypatch, tmp_path, [_err(stderr="gh: Bad Gateway (HTTP 502)")])

    result = platform.create_pull_request(branch="b", base_branch="main", title="t", body="x")

    assert isinstance(result, Err)
    assert len(rec.calls) == 1


def test_validation_failure_is_conflict(monkeypatch: pytest.MonkeyPatch, tmp_path: Path) -> None:
    platform, _ = _platform(
        monkeypatch, tmp_path, [_err(stderr="gh: Validation Failed (HTTP 422)")]
    )

    result = platform.create_pull_request(branch="b", base_branch="main", title="t", body="x")

    assert isinstance(result, Err)
    assert result.error.kind == "conflict"
    assert result.error.status == 422


def test_get_file_decodes_base64(monkeypatch: pytest.MonkeyPatch, tmp_path: Path) -> None:
    content = base64.b64encode("# Changelog\n".encode()).decode()
    platform, rec = _platform(
        monkeypatch, tmp_path, [Ok(json.dumps({"encoding": "base64", "content": content}))]
    )

    assert platform.get_file(path="docs/CHANGELOG.md", ref="main") == Ok("# Changelog\n")
    assert rec.calls[0][-1] == "repos/octo/widgets/contents/docs/CHANGELOG.md?ref=main"


def test_list_commits_stops_at_release_sha(monkeypatch: pytest.MonkeyPatch, tmp_path: Path) -> None:
    page = [
        {"sha": "c" * 40, "commit": {"message": "fix: b"}},
        {"sha": "b" * 40, "commit": {"message": "feat: a"}},
        {"sha": "a" * 40, "commit": {"message": "chore: release 1.0.0"}},
        {"sha": "9" * 40, "commit": {"message": "older"}},
    ]
    platform, rec = _platform(monkeypatch, tmp_path, [Ok(json.dumps(page))])

    result = platform.list_commits(branch="main", path="packages/api", stop_sha="a" * 40)

    assert isinstance(result, Ok)
    assert [c.message for c in result.value] == ["fix: b", "feat: a"]
    assert "path=packages/api" in rec.calls[0][-1]


def test_list_pull_requests_filters_label_and_detects_merge(
    monkeypatch: pytest.MonkeyPatch, tmp_path: Path
) -> None:
    pulls = [
        {
            "number": 3,
            "title": "chore: release 1.0.1",
            "body": None,
            "state": "closed",
            "merged_at": "2020-10-05T00:00:00Z",
            "merge_commit_sha": "e" * 40,
            "head": {"ref": "rpl--release--main", "sha": "d" * 40},
            "base": {"ref": "main"},
            "labels": [{"name": "autorelease: pending"}],
        },
        {
            "number": 4,
            "title": "other",
            "state": "closed",
            "merged_at": None,
            "head": {"ref": "x", "sha": "1" * 40},
            "base": {"ref": "main"},
            "labels": [],
        },
    ]
    platform, _ = _platform(monkeypatch, tmp_path, [Ok(json.dumps(pulls))])

    result = platform.list_pull_requests(state="closed", label="autorelease: pending")

    assert isinstance(result, Ok)
    (pr,) = result.value
    assert pr.number == 3
    assert pr.state == "merged"
    assert pr.merge_sha == "e" * 40
    assert pr.body == ""


def test_commit_files_builds_tree_commit_and_creates_branch(
    monkeypatch: pytest.MonkeyPatch, tmp_path: Path
) -> None:
    platform, rec = _platform(
        monkeypatch,
        tmp_path,
        [
            Ok(json.dumps({"object": {"sha": "base"}})),
            Ok(json.dumps({"sha": "base", "tree": {"sha": "base-tree"}})),
            Ok(json.dumps({"sha": "new-tree"})),
            Ok(json.dumps({"sha": "new-commit"})),
            _err(stderr="gh: Not Found (HTTP 404)"),
            Ok(json.dumps({"ref": "refs/heads/rpl--release--main"})),
        ],
    )

    result = platform.commit_files(
        branch="rpl--release--main",
        base_branch="main",
        message="chore: release 1.0.1",
        edits=[FileEdit(path="CHANGELOG.md", content="# Changelog\n")],
        expected_head=None,
    )

    assert result == Ok("new-commit")
    assert rec.inputs[2] == {
        "base_tree": "base-tree",
        "tree": [{"path": "CHANGELOG.md", "mode": "100644", "type": "blob", "content": "# Changelog\n"}],
    }
    assert rec.inputs[3] == {"message": "chore: release 1.0.1", "tree": "new-tree", "parents": ["base"]}
    assert rec.inputs[5] == {"ref": "refs/heads/rpl--release--main", "sha": "new-commit"}


def test_commit_files_refuses_to_move_a_changed_branch(
    monkeypatch: pytest.MonkeyPatch, tmp_path: Path
) -> None:
    platform, rec = _platform(
        monkeypatch,
        tmp_path,
        [
            Ok(json.dumps({"object": {"sha": "base"}})),
            Ok(json.dumps({"sha": "base", "tree": {"sha": "base-tree"}})),
            Ok(json.dumps({"sha": "new-tree"})),
            Ok(json.dumps({"sha": "new-commit"})),
            Ok(json.dumps({"object": {"sha": "someone-elses"}})),
        ],
    )

    result = platform.commit_files(
        branch="rpl--release--main",
        base_branch="main",
        message="m",
        edits=[],
        expected_head="ours",
    )

    assert isinstance(result, Err)
    assert result.error.kind == "conflict"
    assert len(rec.calls) == 5

def test_fork_writes_the_branch_to_the_fork(monkeypatch: pytest.MonkeyPatch, tmp_path: Path) -> None:
    platform, rec = _platform(
        monkeypatch,
        tmp_path,
        [
            Ok(json.dumps({"object": {"sha": "base"}})),
            Ok(json.dumps({"sha": "base", "tree": {"sha": "base-tree"}})),
            Ok(json.dumps({"full_name": "me/widgets"})),
            Ok(json.dumps({"sha": "new-tree"})),
            Ok(json.dumps({"sha": "new-commit"})),
            _err(stderr="gh: Not Found (HTTP 404)"),
            Ok(json.dumps({"ref": "refs/heads/rpl--release--main"})),
            Ok(json.dumps({"number": 12})),
        ],
        fork=True,
    )

    committed = platform.commit_files(
        branch="rpl--release--main",
        base_branch="main",
        message="chore: release 1.0.1",
        edits=[FileEdit(path="CHANGELOG.md", content="# Changelog\n")],
        expected_head=None,
    )
    opened = platform.create_pull_request(
        branch="rpl--release--main", base_branch="main", title="chore: release 1.0.1", body="notes"
    )

    assert committed == Ok("new-commit")
    assert opened == Ok(12)
    assert "repos/octo/widgets/git/ref/heads/main" in rec.calls[0]
    assert "repos/octo/widgets/git/commits/base" in rec.calls[1]
    assert "repos/octo/widgets/forks" in rec.calls[2]
    assert "repos/me/widgets/git/trees" in rec.calls[3]
    assert "repos/me/widgets/git/commits" in rec.calls[4]
    assert "repos/me/widgets/git/ref/heads/rpl--release--main" in rec.calls[5]
    assert "repos/me/widgets/git/refs" in rec.calls[6]
    assert "repos/octo/widgets/pulls" in rec.calls[7]
    pull = rec.inputs[7]
    assert isinstance(pull, dict)
    assert pull["head"] == "me:rpl--release--main"
    assert pull["base"] == "main"


def test_without_fork_the_head_is_a_plain_branch(monkeypatch: pytest.MonkeyPatch, tmp_path: Path) -> None:
    platform, rec = _platform(monkeypatch, tmp_path, [Ok(json.dumps({"number": 3}))])

    opened = platform.create_pull_request(
        branch="rpl--release--main", base_branch="main", title="chore: release 1.0.1", body="notes"
    )

    assert opened == Ok(3)
    assert len(rec.calls) == 1
    pull = rec.inputs[0]
    assert isinstance(pull, dict)
    assert pull["head"] == "rpl--release--main"


def test_fork_failure_stops_before_writing(monkeypatch: pytest.MonkeyPatch, tmp_path: Path) -> None:
    platform, rec = _platform(
        monkeypatch,
        tmp_path,
        [
            Ok(json.dumps({"object": {"sha": "base"}})),
            Ok(json.dumps({"sha": "base", "tree": {"sha": "base-tree"}})),
            _err(stderr="gh: Resource not accessible by integration (HTTP 403)"),
        ],
        fork=True,
    )

    result = platform.commit_files(
        branch="rpl--release--main", base_branch="main", message="m", edits=[], expected_head=None
    )

    assert isinstance(result, Err)
    assert len(rec.calls) == 3



def test_token_and_hostname_are_passed_to_gh(monkeypatch: pytest.MonkeyPatch, tmp_path: Path) -> None:
    platform, rec = _platform(
        monkeypatch,
        tmp_path,
        [Ok('{"default_branch": "main"}')],
        token="t0k",
        hostname="github.example.com",
    )

    platform.default_branch()

    assert rec.calls[0][rec.calls[0].index("--hostname") + 1] == "github.example.com"
    env = rec.envs[0]
    assert env is not None
    assert env["GH_TOKEN"] == "t0k"


def test_gh_missing(monkeypatch: pytest.MonkeyPatch) -> None:
    monkeypatch.setattr(gh_mod.shutil, "which", lambda name: None)

    result = gh_mod.ensure_gh_available()

    assert isinstance(result, Err)
    assert result.error.kind == "gh_missing"
