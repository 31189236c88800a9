"""Remote repository synchronization."""

from .models import (
    CloneResult,
    CommitInfo,
    GitStatus,
    PullResult,
    RemoteRepo,
    RepoSyncState,
    SyncError,
    SyncReport,
    SyncState,
    SyncStatus,
    create_empty_sync_state,
)
from .rate_limiter import RateLimiter, is_rate_limit_error

__all__ = [
    "CloneResult",
    "CommitInfo",
    "GitStatus",
    "PullResult",
    "RemoteRepo",
    "RepoSyncState",
    "SyncError",
    "SyncReport",
    "SyncState",
    "SyncStatus",
    "create_empty_sync_state",
    "RateLimiter",
    "is_rate_limit_error",
]
