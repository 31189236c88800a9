"""Validation utilities for repository names and relative paths."""

import re
from pathlib import Path


def validate_repo_name(name: str) -> str:
    """
    Validate a remote repository name before using it as a directory name.

    Args:
        name: Repository name (no owner prefix)

    Returns:
        Validated repository name

    Raises:
        ValueError: If name is invalid
    """
    if not name:
        raise ValueError("Repository name cannot be empty")

    if not re.match(r'^[a-zA-Z0-9._-]+$', name):
        raise ValueError(f"Invalid repository name: {name}")

    if name in ('.', '..') or name.startswith('.'):
        raise ValueError(f"Invalid repository name: {name}")

    if len(name) > 100:
        raise ValueError("Repository name too long")

    return name


def resolve_within(root: Path, relative_path: str) -> Path:
    """
    Resolve ``relative_path`` under ``root``, rejecting traversal outside it.

    Args:
        root: Directory the result must stay inside
        relative_path: Caller-supplied path

    Returns:
        Resolved absolute path

    Raises:
        ValueError: If the resolved path escapes ``root``
    """
    root_resolved = Path(root).resolve()
    candidate = (root_resolved / relative_path).resolve()
    if candidate != root_resolved and not candidate.is_relative_to(root_resolved):
        raise ValueError(f"Path escapes {root}: {relative_path}")
    return candidate
