"""Models for repository synchronization state and reports."""

from datetime import datetime, timezone
from enum import Enum
from typing import Optional

from pydantic import BaseModel, Field


class SyncStatus(str, Enum):
    SYNCED = "synced"
    BEHIND = "behind"
    ERROR = "error"
    NEW = "new"


class RepoSyncState(BaseModel):
    name: str
    path: str
    last_pull: Optional[datetime] = None
    last_commit_sha: str = ""
    sync_status: SyncStatus = SyncStatus.NEW
    error_message: Optional[str] = None

    class Config:
        use_enum_values = True


class SyncState(BaseModel):
    repos: dict[str, RepoSyncState] = Field(default_factory=dict)
    last_full_sync: Optional[datetime] = None
    last_api_call: Optional[datetime] = None


class SyncError(BaseModel):
    repo: str
    error: str


class SyncReport(BaseModel):
    checked_at: datetime = Field(default_factory=lambda: datetime.now(timezone.utc))
    repos_checked: int = 0
    repos_pulled: int = 0
    repos_cloned: int = 0
    errors: list[SyncError] = Field(default_factory=list)

    def add_error(self, repo: str, error: str) -> None:
        self.errors.append(SyncError(repo=repo, error=error))


class GitStatus(BaseModel):
    ahead: int = 0
    behind: int = 0
    has_changes: bool = False
    current_branch: str = "unknown"


class CommitInfo(BaseModel):
    sha: str
    date: datetime


class PullResult(BaseModel):
    success: bool
    updated: bool = False
    message: str = ""
    changes: int = 0
    insertions: int = 0
    deletions: int = 0


class CloneResult(BaseModel):
    success: bool
    path: str
    message: str = ""


class RemoteRepo(BaseModel):
    """A repository as listed by the remote host."""

    name: str
    full_name: str
    clone_url: str
    ssh_url: str
    html_url: str = ""
    pushed_at: Optional[datetime] = None
    default_branch: str = "main"
    private: bool = False
    fork: bool = False
    description: Optional[str] = None
    language: Optional[str] = None

    @property
    def owner(self) -> str:
        return self.full_name.split("/", 1)[0]


def create_empty_sync_state() -> SyncState:
    return SyncState()
