"""Builds and maintains the repository and document index."""

import asyncio
import logging
from pathlib import Path
from typing import List, Optional

from ..core.config import CodeWikiConfig
from ..sync.models import RemoteRepo
from ..utils.git_utils import find_git_repos, is_git_repo
from ..wiki.service import WikiService
from .locations import write_repo_locations_page
from .models import RepoIndex, RepoMetadata, WikiDocument, create_empty_index, utc_now
from .scanner import scan_repo
from .store import CacheStore

logger = logging.getLogger(__name__)


class IndexBuilder:
    """
    Discovers repositories under the source directories and owns the index snapshot.

    The snapshot is immutable; every change publishes a new ``RepoIndex``, so
    readers holding the old reference keep a consistent view.
    """

    def __init__(
        self,
        config: CodeWikiConfig,
        store: CacheStore,
        wiki_service: WikiService,
        remote_client=None,
    ):
        self.config = config
        self.store = store
        self.wiki_service = wiki_service
        self.remote_client = remote_client
        self._index: RepoIndex = create_empty_index()
        # False until a build finishes or a snapshot is installed
        self._installed = False
        self._building = False

    @property
    def index(self) -> RepoIndex:
        return self._index

    @property
    def is_building(self) -> bool:
        return self._building

    @property
    def is_installed(self) -> bool:
        return self._installed

    def set_index(self, index: RepoIndex) -> None:
        self._index = index
        self._installed = True

    def is_stale(self, max_age_minutes: Optional[float] = None) -> bool:
        if max_age_minutes is None:
            max_age_minutes = self.config.cache_max_age_minutes
        return self.store.is_stale(self._index if self._installed else None, max_age_minutes)

    def discover_repo_paths(self) -> List[Path]:
        """Repository paths under every source directory, deduplicated, self-excluded."""
        seen: set[Path] = set()
        paths: List[Path] = []

        def add(candidate: Path) -> None:
            if self._is_self_excluded(candidate):
                logger.debug(f"Skipping excluded repository {candidate}")
                return
            key = candidate.resolve()
            if key in seen:
                return
            seen.add(key)
            paths.append(candidate)

        for source_dir in self.config.source_directories:
            source_dir = Path(source_dir)
            logger.info(f"Scanning {source_dir}")
            if not source_dir.is_dir():
                logger.warning(f"Source directory does not exist: {source_dir}")
                continue
            if is_git_repo(source_dir):
                add(source_dir)
            for repo_path in find_git_repos(source_dir):
                add(repo_path)
        return paths

    async def build_full(self) -> RepoIndex:
        """Rebuild the whole index. A call made while a build runs returns the current snapshot."""
        if self._building:
            logger.info("Index build already in progress")
            return self._index

        self._building = True
        logger.info("Starting full index build")
        try:
            repo_paths = await asyncio.to_thread(self.discover_repo_paths)
            repos: List[RepoMetadata] = []
            for repo_path in repo_paths:
                metadata = await self._scan(repo_path)
                if metadata is not None:
                    repos.append(metadata)

            documents = await asyncio.to_thread(self.wiki_service.get_all_documents)
            self._index = RepoIndex(repos=repos, wiki_documents=documents, last_full_index=utc_now())
            self._installed = True
            await asyncio.to_thread(self.store.save, self._index)

            await self._write_locations_page(repos)
            logger.info(f"Index built: {len(repos)} repos, {len(documents)} wiki docs")
            return self._index
        finally:
            self._building = False

    async def update_one(self, repo_path: Path) -> Optional[RepoMetadata]:
        """Re-scan one repository and replace-or-append its record by path."""
        metadata = await self._scan(Path(repo_path))
        if metadata is None:
            return None

        current = self._index
        repos = list(current.repos)
        for i, existing in enumerate(repos):
            if existing.path == metadata.path:
                repos[i] = metadata
                break
        else:
            repos.append(metadata)

        self._index = current.model_copy(update={"repos": repos})
        await asyncio.to_thread(self.store.save, self._index)
        return metadata

    async def refresh_documents(self) -> List[WikiDocument]:
        documents = await asyncio.to_thread(self.wiki_service.get_all_documents)
        self._index = self._index.model_copy(update={"wiki_documents": documents})
        await asyncio.to_thread(self.store.save, self._index)
        return documents

    def get_repo_by_name(self, name: str) -> Optional[RepoMetadata]:
        for repo in self._index.repos:
            if repo.name == name:
                return repo
        return None

    def get_all_repos(self) -> List[RepoMetadata]:
        return list(self._index.repos)

    def get_all_documents(self) -> List[WikiDocument]:
        return list(self._index.wiki_documents)

    async def _scan(self, repo_path: Path) -> Optional[RepoMetadata]:
        try:
            return await asyncio.to_thread(scan_repo, repo_path)
        except Exception as e:
            logger.error(f"Failed to index {repo_path}: {e}")
            return None

    def _is_self_excluded(self, path: Path) -> bool:
        segment = self.config.self_exclude_segment
        return bool(segment) and segment in path.name

    async def _write_locations_page(self, repos: List[RepoMetadata]) -> None:
        try:
            remote_repos = await self._list_remote_repos()
            await asyncio.to_thread(
                write_repo_locations_page, self.config.wiki_directory, repos, remote_repos
            )
        except Exception as e:
            logger.warning(f"Failed to generate repo-locations.md: {e}")

    async def _list_remote_repos(self) -> List[RemoteRepo]:
        if self.remote_client is None or not self.config.github.sync_enabled:
            return []
        try:
            return await self.remote_client.list_owned_repos()
        except Exception as e:
            logger.warning(f"Failed to list remote repositories for locations page: {e}")
            return []
