"""Data models for the repository and document index."""

from datetime import datetime, timezone
from typing import Optional

from pydantic import BaseModel, Field

CURRENT_INDEX_VERSION = "1.0.0"


def utc_now() -> datetime:
    return datetime.now(timezone.utc)


class WikiFrontmatter(BaseModel):
    title: str = "Untitled"
    tags: list[str] = Field(default_factory=list)
    language: Optional[str] = None
    updated: Optional[str] = None
    source_repo: Optional[str] = None
    description: Optional[str] = None


class WikiDocument(BaseModel):
    """One curated document. Rebuilt wholesale on every rescan."""

    path: str
    relative_path: str
    category: str
    frontmatter: WikiFrontmatter
    content_preview: str = ""
    last_modified: datetime


class RepoMetadata(BaseModel):
    """Extracted metadata for one discovered repository.

    ``path`` is the identity key for merges; ``name`` is the lookup key.
    """

    name: str
    path: str
    remote_url: Optional[str] = None
    last_commit: str = "unknown"
    last_commit_date: datetime = Field(default_factory=utc_now)
    last_indexed: datetime = Field(default_factory=utc_now)
    languages: list[str] = Field(default_factory=list)
    file_count: int = 0
    has_readme: bool = False
    description: Optional[str] = None


class RepoIndex(BaseModel):
    """Immutable index snapshot. Writers publish a new instance instead of mutating."""

    repos: list[RepoMetadata] = Field(default_factory=list)
    wiki_documents: list[WikiDocument] = Field(default_factory=list)
    last_full_index: datetime = Field(default_factory=utc_now)
    version: str = CURRENT_INDEX_VERSION

    class Config:
        frozen = True


def create_empty_index() -> RepoIndex:
    return RepoIndex()
