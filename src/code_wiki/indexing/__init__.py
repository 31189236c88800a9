"""Repository and document index: models and on-disk cache."""

from .models import (
    CURRENT_INDEX_VERSION,
    RepoIndex,
    RepoMetadata,
    WikiDocument,
    WikiFrontmatter,
    create_empty_index,
)
from .store import CacheStore

__all__ = [
    "CURRENT_INDEX_VERSION",
    "RepoIndex",
    "RepoMetadata",
    "WikiDocument",
    "WikiFrontmatter",
    "create_empty_index",
    "CacheStore",
]
