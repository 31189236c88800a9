"""Shared utility functions for code-wiki."""

from .atomic_io import atomic_write_model, atomic_write_text
from .subprocess_utils import (
    SubprocessError,
    run_command,
    run_git_command,
    check_command_exists,
)
from .validators import resolve_within, validate_repo_name

__all__ = [
    # Atomic I/O
    "atomic_write_model",
    "atomic_write_text",
    # Subprocess utilities
    "SubprocessError",
    "run_command",
    "run_git_command",
    "check_command_exists",
    # Validators
    "resolve_within",
    "validate_repo_name",
]
