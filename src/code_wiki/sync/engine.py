"""Reconciles local repositories with the remote account.

One cycle: list remote repositories, fetch and fast-forward every indexed
local repository that is behind, then clone remote repositories that are
missing locally. Every cycle ends by persisting the sync state.
"""

import asyncio
import logging
from collections import Counter
from datetime import datetime, timezone
from pathlib import Path
from typing import List, Optional
from urllib.parse import quote, urlsplit, urlunsplit

from ..core.config import CodeWikiConfig
from ..indexing.builder import IndexBuilder
from ..indexing.models import RepoMetadata
from ..indexing.store import CacheStore
from ..utils import git_utils
from ..utils.rich_logging import ContextLogger
from ..utils.validators import validate_repo_name
from .models import (
    RemoteRepo,
    RepoSyncState,
    SyncReport,
    SyncState,
    SyncStatus,
    create_empty_sync_state,
)

logger = ContextLogger(logging.getLogger(__name__))

ALREADY_IN_PROGRESS = "Sync already in progress"


def _now() -> datetime:
    return datetime.now(timezone.utc)


def token_clone_url(clone_url: str, token: str) -> str:
    """HTTPS clone URL carrying the token as credentials."""
    parts = urlsplit(clone_url)
    netloc = f"x-access-token:{quote(token, safe='')}@{parts.hostname}"
    if parts.port:
        netloc += f":{parts.port}"
    return urlunsplit((parts.scheme, netloc, parts.path, parts.query, parts.fragment))


class SyncEngine:
    """Pull/clone reconciliation with a single in-flight cycle and optional background scheduling."""

    def __init__(
        self,
        config: CodeWikiConfig,
        store: CacheStore,
        builder: IndexBuilder,
        remote_client=None,
    ):
        self.config = config
        self.store = store
        self.builder = builder
        self.remote_client = remote_client

        self._state: SyncState = create_empty_sync_state()
        self._syncing = False
        self._cycle = 0
        self._stop_event: Optional[asyncio.Event] = None
        self._task: Optional[asyncio.Task] = None

    @property
    def state(self) -> SyncState:
        return self._state

    def initialize(self) -> None:
        self._state = self.store.load_sync_state()

    def get_repo_sync_state(self, name: str) -> Optional[RepoSyncState]:
        return self._state.repos.get(name)

    @property
    def last_sync_time(self) -> Optional[datetime]:
        return self._state.last_full_sync

    def is_sync_in_progress(self) -> bool:
        return self._syncing

    async def sync_now(self, force: bool = False) -> SyncReport:
        """Run one cycle. A call made while a cycle runs is rejected in the report."""
        if self._syncing:
            logger.info(ALREADY_IN_PROGRESS)
            report = SyncReport()
            report.add_error("", ALREADY_IN_PROGRESS)
            return report

        self._syncing = True
        self._cycle += 1
        logger.set_context(cycle_id=self._cycle)
        report = SyncReport()
        try:
            remote_repos = await self._fetch_remote_repos()
            local_repos = self.builder.get_all_repos()
            self._warn_name_collisions(local_repos)

            for repo in local_repos:
                report.repos_checked += 1
                try:
                    await self._sync_local_repo(repo, force, report)
                except Exception as e:
                    logger.error(f"Sync failed for {repo.name}: {e}")
                    report.add_error(repo.name, str(e))

            local_names = {r.name for r in local_repos}
            for remote in remote_repos:
                if remote.name in local_names:
                    continue
                report.repos_checked += 1
                await self._clone_remote_repo(remote, report)

            logger.set_context()
            logger.info(
                f"Sync complete: {report.repos_pulled} pulled, "
                f"{report.repos_cloned} cloned, {len(report.errors)} errors"
            )
        except Exception as e:
            logger.set_context()
            logger.exception(f"Sync failed: {e}")
            report.add_error("", str(e) or type(e).__name__)
        finally:
            self._state.last_full_sync = _now()
            await asyncio.to_thread(self.store.save_sync_state, self._state)
            logger.clear_context()
            self._syncing = False

        return report

    async def _fetch_remote_repos(self) -> List[RemoteRepo]:
        if self.remote_client is None or not self.config.github.sync_enabled:
            return []
        try:
            repos = await self.remote_client.list_owned_repos()
        except Exception as e:
            logger.error(f"Failed to fetch remote repositories: {e}")
            return []
        self._state.last_api_call = _now()
        return repos

    async def _sync_local_repo(self, repo: RepoMetadata, force: bool, report: SyncReport) -> None:
        logger.set_context(repo=repo.name)
        repo_path = Path(repo.path)

        if not await asyncio.to_thread(git_utils.fetch_updates, repo_path):
            # Network hiccup: leave the previous record untouched
            return

        status = await asyncio.to_thread(git_utils.get_git_status, repo_path)
        if status.behind <= 0 and not force:
            return

        logger.info(f"Pulling updates ({status.behind} behind)")
        result = await asyncio.to_thread(git_utils.pull_updates, repo_path)

        if result.success and result.updated:
            report.repos_pulled += 1
            await self.builder.update_one(repo_path)
            commit = await asyncio.to_thread(git_utils.get_latest_commit, repo_path)
            self._state.repos[repo.name] = RepoSyncState(
                name=repo.name,
                path=repo.path,
                last_pull=_now(),
                last_commit_sha=commit.sha if commit else "",
                sync_status=SyncStatus.SYNCED,
            )
        elif not result.success:
            report.add_error(repo.name, result.message)
            previous = self._state.repos.get(repo.name)
            self._state.repos[repo.name] = RepoSyncState(
                name=repo.name,
                path=repo.path,
                last_pull=previous.last_pull if previous else None,
                last_commit_sha=previous.last_commit_sha if previous else "",
                sync_status=SyncStatus.ERROR,
                error_message=result.message,
            )

    async def _clone_remote_repo(self, remote: RemoteRepo, report: SyncReport) -> None:
        logger.set_context(repo=remote.name)
        if self.config.self_exclude_segment and self.config.self_exclude_segment in remote.name:
            logger.debug("Skipping excluded repository")
            return
        try:
            validate_repo_name(remote.name)
        except ValueError as e:
            report.add_error(remote.name, str(e))
            return
        if not self.config.source_directories:
            report.add_error(remote.name, "No source directory configured for clones")
            return

        target = Path(self.config.source_directories[0]) / remote.name
        token = self.config.github.token
        url = token_clone_url(remote.clone_url, token) if token else remote.ssh_url

        logger.info(f"Cloning new repo into {target}")
        result = await asyncio.to_thread(git_utils.clone_repo, url, target)
        if not result.success:
            report.add_error(remote.name, result.message)
            return

        if token and not await asyncio.to_thread(git_utils.set_remote_url, target, remote.clone_url):
            logger.warning("Failed to reset origin; the clone URL with credentials is still configured")
            report.add_error(remote.name, "Cloned, but origin still holds the credentialed URL")

        report.repos_cloned += 1
        await self.builder.update_one(target)
        self._state.repos[remote.name] = RepoSyncState(
            name=remote.name,
            path=str(target),
            last_pull=_now(),
            last_commit_sha="",
            sync_status=SyncStatus.SYNCED,
        )

    def _warn_name_collisions(self, repos: List[RepoMetadata]) -> None:
        counts = Counter(r.name for r in repos)
        for name, count in counts.items():
            if count > 1:
                paths = ", ".join(r.path for r in repos if r.name == name)
                logger.warning(
                    f"{count} local repositories share the name {name!r} ({paths}); "
                    "their sync records overwrite each other"
                )

    # Background scheduling

    def start_background_sync(
        self,
        interval_minutes: Optional[float] = None,
        initial_delay: Optional[float] = None,
    ) -> asyncio.Task:
        """Schedule an initial cycle after ``initial_delay`` seconds, then one every interval."""
        interval = (interval_minutes or self.config.sync_interval_minutes) * 60
        delay = self.config.sync_initial_delay_seconds if initial_delay is None else initial_delay

        if self._task is not None and not self._task.done():
            self._stop_event.set()

        self._stop_event = asyncio.Event()
        self._task = asyncio.create_task(self._run_background(interval, delay, self._stop_event))
        logger.info(f"Background sync started (every {interval / 60:g} minutes)")
        return self._task

    def stop_background_sync(self) -> None:
        """Stop scheduling cycles. A cycle already running finishes normally."""
        if self._stop_event is not None and not self._stop_event.is_set():
            self._stop_event.set()
            logger.info("Background sync stopped")

    async def wait_stopped(self) -> None:
        if self._task is not None:
            await self._task

    async def _run_background(self, interval: float, delay: float, stop: asyncio.Event) -> None:
        if await self._wait_for_stop(stop, delay):
            return
        while True:
            try:
                await self.sync_now()
            except Exception as e:
                logger.error(f"Background sync failed: {e}")
            if await self._wait_for_stop(stop, interval):
                return

    @staticmethod
    async def _wait_for_stop(stop: asyncio.Event, timeout: float) -> bool:
        try:
            await asyncio.wait_for(stop.wait(), timeout=timeout)
            return True
        except asyncio.TimeoutError:
            return stop.is_set()
