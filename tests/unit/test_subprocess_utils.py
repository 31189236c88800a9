"""Tests for subprocess_utils."""

from unittest.mock import patch

import pytest

from code_wiki.utils.subprocess_utils import (
    SubprocessError,
    check_command_exists,
    run_command,
    run_git_command,
)


def test_subprocess_error_includes_context():
    """Test SubprocessError includes all context."""
    error = SubprocessError(cmd="git status", returncode=1, stderr="error message", stdout="output")

    assert error.cmd == "git status"
    assert error.returncode == 1
    assert error.stderr == "error message"
    assert error.stdout == "output"
    assert "exit code 1" in str(error)


def test_run_command_success():
    result = run_command(["echo", "hello"], check=True)
    assert result.returncode == 0
    assert "hello" in result.stdout


def test_run_command_failure_raises():
    with pytest.raises(SubprocessError) as exc_info:
        run_command(["false"], check=True)

    assert exc_info.value.returncode != 0


def test_run_command_failure_no_check():
    result = run_command(["false"], check=False)
    assert result.returncode != 0


def test_run_command_with_cwd(tmp_path):
    (tmp_path / "test.txt").write_text("content")

    result = run_command(["ls"], cwd=tmp_path, check=True)
    assert "test.txt" in result.stdout


@pytest.mark.skipif(not check_command_exists("git"), reason="git not installed")
def test_run_git_command_outside_repo_raises(tmp_path):
    with pytest.raises(SubprocessError):
        run_git_command(["rev-parse", "HEAD"], cwd=tmp_path)


def test_run_git_command_disables_prompts(tmp_path):
    with patch("code_wiki.utils.subprocess_utils.run_command") as mock_run:
        run_git_command(["fetch", "--quiet"], cwd=tmp_path, timeout=None)

    assert mock_run.call_args.args[0] == ["git", "fetch", "--quiet"]
    env = mock_run.call_args.kwargs["env"]
    assert env["GIT_TERMINAL_PROMPT"] == "0"
    assert env["GIT_ASKPASS"] == ""
    assert mock_run.call_args.kwargs["timeout"] is None


def test_check_command_exists():
    assert check_command_exists("echo") is True
    assert check_command_exists("nonexistent_command_12345") is False
