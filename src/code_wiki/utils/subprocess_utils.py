"""Blocking command runners used by the git helpers."""

import logging
import os
import shutil
import subprocess
import time
from pathlib import Path
from typing import Mapping, Optional, Sequence

logger = logging.getLogger(__name__)

# Git must never block on an interactive credential prompt
_GIT_ENV_OVERRIDES = {
    "GIT_TERMINAL_PROMPT": "0",
    "GIT_ASKPASS": "",
}

GIT_DEFAULT_TIMEOUT = 30


class SubprocessError(Exception):
    """A command exited non-zero while the caller asked for ``check``."""

    def __init__(self, cmd: str, returncode: int, stderr: str, stdout: str = ""):
        self.cmd = cmd
        self.returncode = returncode
        self.stderr = stderr
        self.stdout = stdout
        super().__init__(f"{cmd} exited with exit code {returncode}: {self.first_line}")

    @property
    def first_line(self) -> str:
        """First non-empty stderr line, which is where git puts the reason."""
        for line in self.stderr.splitlines():
            if line.strip():
                return line.strip()
        return ""


def run_command(
    cmd: Sequence[str],
    *,
    cwd: Optional[Path] = None,
    check: bool = True,
    timeout: Optional[float] = None,
    env: Optional[Mapping[str, str]] = None,
) -> subprocess.CompletedProcess:
    """
    Run ``cmd`` (an argv list, never a shell string) and capture text output.

    Args:
        cmd: Program and arguments
        cwd: Working directory
        check: Raise SubprocessError on a non-zero exit
        timeout: Seconds before the process is killed; None waits indefinitely
        env: Full environment for the child

    Raises:
        SubprocessError: If ``check`` and the command failed
        subprocess.TimeoutExpired: If ``timeout`` elapsed
        OSError: If the program could not be started
    """
    started = time.monotonic()
    try:
        result = subprocess.run(
            list(cmd),
            cwd=cwd,
            capture_output=True,
            text=True,
            timeout=timeout,
            env=dict(env) if env is not None else None,
        )
    except subprocess.TimeoutExpired:
        logger.error(f"{cmd[0]} timed out after {timeout}s in {cwd or os.getcwd()}")
        raise

    logger.debug(f"{cmd[0]} exited {result.returncode} in {time.monotonic() - started:.2f}s")
    if check and result.returncode != 0:
        raise SubprocessError(
            cmd=" ".join(cmd),
            returncode=result.returncode,
            stderr=result.stderr,
            stdout=result.stdout,
        )
    return result


def run_git_command(
    args: Sequence[str],
    *,
    cwd: Optional[Path] = None,
    check: bool = True,
    timeout: Optional[float] = GIT_DEFAULT_TIMEOUT,
) -> subprocess.CompletedProcess:
    """Run ``git <args>`` with prompts disabled. Pass ``timeout=None`` for network calls."""
    env = {**os.environ, **_GIT_ENV_OVERRIDES}
    try:
        return run_command(["git", *args], cwd=cwd, check=check, timeout=timeout, env=env)
    except SubprocessError:
        # Arguments can carry credentials, so only the subcommand is logged
        logger.debug(f"git {args[0] if args else ''} failed in {cwd}")
        raise


def check_command_exists(command: str) -> bool:
    return shutil.which(command) is not None
