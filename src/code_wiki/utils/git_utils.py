"""Local repository primitives over the git binary.

All helpers are blocking; async callers run them via ``asyncio.to_thread``.
Expected failures (no remote, fetch/pull/clone errors) are returned as
values rather than raised.
"""

import logging
import re
import subprocess
from datetime import datetime
from pathlib import Path
from typing import Optional
from urllib.parse import urlsplit, urlunsplit

from ..sync.models import CloneResult, CommitInfo, GitStatus, PullResult
from .subprocess_utils import SubprocessError, run_git_command

logger = logging.getLogger(__name__)

_SHORTSTAT_FILES = re.compile(r"(\d+) files? changed")
_SHORTSTAT_INSERTIONS = re.compile(r"(\d+) insertions?\(\+\)")
_SHORTSTAT_DELETIONS = re.compile(r"(\d+) deletions?\(-\)")


def is_git_repo(dir_path: Path) -> bool:
    """True if ``dir_path`` holds a ``.git`` marker (directory, or file for worktrees)."""
    marker = Path(dir_path) / ".git"
    return marker.is_dir() or marker.is_file()


def find_git_repos(parent_dir: Path) -> list[Path]:
    """Immediate, non-hidden children of ``parent_dir`` that are git repositories."""
    repos: list[Path] = []
    try:
        for entry in sorted(Path(parent_dir).iterdir()):
            if entry.name.startswith("."):
                continue
            if entry.is_dir() and is_git_repo(entry):
                repos.append(entry)
    except OSError as e:
        logger.error(f"Failed to scan {parent_dir}: {e}")
    return repos


def redact_url(url: str) -> str:
    """Strip credentials from a URL so it is safe to log."""
    try:
        parts = urlsplit(url)
    except ValueError:
        return url
    if not parts.username and not parts.password:
        return url
    host = parts.hostname or ""
    if parts.port:
        host = f"{host}:{parts.port}"
    return urlunsplit((parts.scheme, host, parts.path, parts.query, parts.fragment))


def parse_status_porcelain_v2(output: str) -> GitStatus:
    """Parse ``git status --porcelain=v2 --branch`` output."""
    status = GitStatus()
    for line in output.splitlines():
        if line.startswith("# branch.head "):
            head = line[len("# branch.head "):].strip()
            status.current_branch = "unknown" if head == "(detached)" else head
        elif line.startswith("# branch.ab "):
            for token in line[len("# branch.ab "):].split():
                if token.startswith("+"):
                    status.ahead = int(token[1:])
                elif token.startswith("-"):
                    status.behind = int(token[1:])
        elif line and not line.startswith("#"):
            status.has_changes = True
    return status


def parse_shortstat(output: str) -> tuple[int, int, int]:
    """Parse ``git diff --shortstat`` into (files changed, insertions, deletions)."""
    def _grab(pattern: re.Pattern) -> int:
        match = pattern.search(output)
        return int(match.group(1)) if match else 0

    return _grab(_SHORTSTAT_FILES), _grab(_SHORTSTAT_INSERTIONS), _grab(_SHORTSTAT_DELETIONS)


def get_git_status(repo_path: Path) -> GitStatus:
    try:
        result = run_git_command(
            ["status", "--porcelain=v2", "--branch"], cwd=Path(repo_path)
        )
        return parse_status_porcelain_v2(result.stdout)
    except (SubprocessError, OSError, subprocess.TimeoutExpired) as e:
        logger.error(f"Failed to get status for {repo_path}: {e}")
        return GitStatus()


def get_remote_url(repo_path: Path) -> Optional[str]:
    try:
        result = run_git_command(
            ["remote", "get-url", "origin"], cwd=Path(repo_path), check=False
        )
    except (OSError, subprocess.TimeoutExpired):
        return None
    if result.returncode != 0:
        logger.debug(f"No remote found for {repo_path}")
        return None
    return result.stdout.strip() or None


def get_latest_commit(repo_path: Path) -> Optional[CommitInfo]:
    try:
        result = run_git_command(
            ["log", "-1", "--format=%H%n%cI"], cwd=Path(repo_path), check=False
        )
    except (OSError, subprocess.TimeoutExpired):
        return None
    lines = result.stdout.strip().splitlines()
    if result.returncode != 0 or len(lines) < 2:
        logger.debug(f"Failed to get latest commit for {repo_path}")
        return None
    try:
        date = datetime.fromisoformat(lines[1].strip())
    except ValueError:
        return None
    return CommitInfo(sha=lines[0].strip(), date=date)


def _head_sha(repo_path: Path) -> str:
    result = run_git_command(["rev-parse", "HEAD"], cwd=repo_path, check=False)
    return result.stdout.strip() if result.returncode == 0 else ""


def fetch_updates(repo_path: Path) -> bool:
    try:
        run_git_command(["fetch", "--quiet"], cwd=Path(repo_path), timeout=None)
        return True
    except (SubprocessError, OSError) as e:
        logger.warning(f"Failed to fetch {repo_path}: {e}")
        return False


def pull_updates(repo_path: Path) -> PullResult:
    """Fast-forward pull. A diverged branch fails instead of merging."""
    repo_path = Path(repo_path)
    try:
        before = _head_sha(repo_path)
        run_git_command(["pull", "--ff-only", "--quiet"], cwd=repo_path, timeout=None)
        after = _head_sha(repo_path)
    except SubprocessError as e:
        message = e.stderr.strip() or str(e)
        logger.error(f"Failed to pull {repo_path}: {message}")
        return PullResult(success=False, message=message)
    except OSError as e:
        logger.error(f"Failed to pull {repo_path}: {e}")
        return PullResult(success=False, message=str(e))

    changes = insertions = deletions = 0
    if before and after and before != after:
        diff = run_git_command(
            ["diff", "--shortstat", before, after], cwd=repo_path, check=False
        )
        changes, insertions, deletions = parse_shortstat(diff.stdout)

    updated = changes > 0 or insertions > 0 or deletions > 0
    message = (
        f"Updated: {changes} changes, {insertions} insertions, {deletions} deletions"
        if updated
        else "Already up to date"
    )
    return PullResult(
        success=True,
        updated=updated,
        message=message,
        changes=changes,
        insertions=insertions,
        deletions=deletions,
    )


def clone_repo(url: str, target_dir: Path) -> CloneResult:
    safe_url = redact_url(url)
    try:
        run_git_command(["clone", "--quiet", url, str(target_dir)], timeout=None)
    except SubprocessError as e:
        message = e.stderr.strip().replace(url, safe_url) or f"git clone exited with {e.returncode}"
        logger.error(f"Failed to clone {safe_url}: {message}")
        return CloneResult(success=False, path=str(target_dir), message=message)
    except OSError as e:
        logger.error(f"Failed to clone {safe_url}: {e}")
        return CloneResult(success=False, path=str(target_dir), message=str(e))
    return CloneResult(success=True, path=str(target_dir), message=f"Cloned to {target_dir}")


def set_remote_url(repo_path: Path, url: str) -> bool:
    try:
        result = run_git_command(
            ["remote", "set-url", "origin", url], cwd=Path(repo_path), check=False
        )
    except (OSError, subprocess.TimeoutExpired):
        return False
    return result.returncode == 0
