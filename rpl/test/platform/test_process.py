"""Tests for rpl.platform.process module."""

from __future__ import annotations

import sys
from pathlib import Path

import pytest

from rpl.core.result import Err, Ok
from rpl.platform.process import ProcessError, run

PY = sys.executable


class TestProcessError:
    def test_str_short_command(self) -> None:
        error = ProcessError(command=("gh", "auth"), returncode=1, stdout="", stderr="not logged in")
        assert str(error) == "gh auth failed (exit 1)"

    def test_str_long_command_truncated(self) -> None:
        error = ProcessError(
            command=("gh", "api", "--method", "POST", "repos/o/r/pulls"),
            returncode=1,
            stdout="",
            stderr="HTTP 422",
        )
        assert str(error) == "gh api --method ... failed (exit 1)"

    def test_frozen(self) -> None:
        error = ProcessError(("cmd",), 1, "", "")
        with pytest.raises(AttributeError):
            error.returncode = 2  # type: ignore[misc]


class TestRun:
    def test_success_returns_stdout(self, tmp_path: Path) -> None:
        result = run([PY, "-c", "print('hello')"], cwd=tmp_path)

        assert isinstance(result, Ok)
        assert "hello" in result.value

    def test_failure_keeps_stderr(self, tmp_path: Path) -> None:
        result = run(
            [PY, "-c", "import sys; sys.stderr.write('gh: Not Found (HTTP 404)'); sys.exit(1)"],
            cwd=tmp_path,
        )

        assert isinstance(result, Err)
        assert result.error.returncode == 1
        assert "HTTP 404" in result.error.stderr

    def test_stdin_input(self, tmp_path: Path) -> None:
        result = run(
            [PY, "-c", "import sys; print(sys.stdin.read().upper())"],
            cwd=tmp_path,
            input_text='{"title": "x"}',
        )

        assert isinstance(result, Ok)
        assert '{"TITLE": "X"}' in result.value

    def test_command_not_found(self, tmp_path: Path) -> None:
        result = run(["nonexistent_command_12345"], cwd=tmp_path)

        assert isinstance(result, Err)
        assert result.error.returncode == -1
        assert len(result.error.stderr) > 0

    def test_timeout(self, tmp_path: Path) -> None:
        result = run([PY, "-c", "import time; time.sleep(10)"], cwd=tmp_path, timeout=0.1)

        assert isinstance(result, Err)
        assert "timed out" in result.error.stderr.lower()
