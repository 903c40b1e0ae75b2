"""Tests for shipyard.platform.process module."""

from __future__ import annotations

import sys
from pathlib import Path

import pytest

from shipyard.core.result import Err, Ok
from shipyard.platform.process import ProcessError, run


class TestProcessError:
    """Test ProcessError dataclass."""

    def test_str_short_command(self) -> None:
        error = ProcessError(
            command=("gh", "auth"),
            returncode=1,
            stdout="",
            stderr="not logged in",
        )
        assert str(error) == "gh auth failed (exit 1)"

    def test_str_long_command_truncated(self) -> None:
        error = ProcessError(
            command=("rsync", "-vzhr", "--delete", "-e", "ssh", "src/", "dst"),
            returncode=23,
            stdout="",
            stderr="error",
        )
        assert str(error) == "rsync -vzhr --delete ... failed (exit 23)"

    def test_str_timed_out(self) -> None:
        error = ProcessError(("yarn", "release"), -1, "", "", timed_out=True)
        assert str(error) == "yarn release timed out"

    def test_tail_prefers_stderr(self) -> None:
        error = ProcessError(("x",), 1, "out", "\n".join(f"line {i}" for i in range(10)))
        assert error.tail(2) == "line 8\nline 9"

    def test_tail_falls_back_to_stdout(self) -> None:
        error = ProcessError(("x",), 1, "only stdout\n", "  ")
        assert error.tail() == "only stdout"

    def test_frozen(self) -> None:
        error = ProcessError(("cmd",), 1, "", "")
        with pytest.raises(AttributeError):
            error.returncode = 2  # type: ignore[misc]


class TestRun:
    """Test run function."""

    def test_success_returns_stdout(self, tmp_path: Path) -> None:
        result = run([sys.executable, "-c", "print('hello')"], cwd=tmp_path)

        assert isinstance(result, Ok)
        assert "hello" in result.value

    def test_failure_returns_error(self, tmp_path: Path) -> None:
        result = run([sys.executable, "-c", "import sys; sys.exit(42)"], cwd=tmp_path)

        assert isinstance(result, Err)
        assert result.error.returncode == 42
        assert result.error.timed_out is False

    def test_env_is_layered(self, tmp_path: Path) -> None:
        code = "import os; print(os.environ['SHIPYARD_LAYERED'], bool(os.environ.get('PATH')))"
        result = run(
            [sys.executable, "-c", code],
            cwd=tmp_path,
            env={"SHIPYARD_LAYERED": "layered"},
        )

        assert isinstance(result, Ok)
        assert result.value.split() == ["layered", "True"]

    def test_timeout(self, tmp_path: Path) -> None:
        result = run(
            [sys.executable, "-c", "import time; time.sleep(10)"],
            cwd=tmp_path,
            timeout=0.5,
        )

        assert isinstance(result, Err)
        assert result.error.timed_out is True
        assert result.error.returncode == -1

    def test_command_not_found(self, tmp_path: Path) -> None:
        result = run(["nonexistent_command_12345"], cwd=tmp_path)

        assert isinstance(result, Err)
        assert result.error.returncode == -1
