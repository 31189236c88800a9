"""Persistent storage for the index and the sync state."""

import json
import logging
from datetime import datetime, timedelta, timezone
from pathlib import Path
from typing import Optional

from pydantic import BaseModel, ValidationError

from ..sync.models import SyncState, create_empty_sync_state
from ..utils.atomic_io import atomic_write_model
from .models import CURRENT_INDEX_VERSION, RepoIndex

logger = logging.getLogger(__name__)

INDEX_FILENAME = "index.json"
SYNC_STATE_FILENAME = "sync-state.json"


class CacheStore:
    """Reads and writes index.json and sync-state.json under the cache directory.

    Read failures are reported as absence; write failures are logged and
    swallowed so the in-memory index stays authoritative.
    """

    def __init__(self, cache_dir: Path) -> None:
        self._cache_dir = Path(cache_dir)
        self.index_path = self._cache_dir / INDEX_FILENAME
        self.sync_state_path = self._cache_dir / SYNC_STATE_FILENAME

    def load(self) -> Optional[RepoIndex]:
        try:
            raw = self.index_path.read_text(encoding="utf-8")
        except FileNotFoundError:
            logger.info("No cached index found")
            return None
        except OSError as exc:
            logger.warning(f"Failed to read cached index, will rebuild: {exc}")
            return None

        try:
            data = json.loads(raw)
        except json.JSONDecodeError as exc:
            logger.warning(f"Corrupt index cache, will rebuild: {exc}")
            return None

        version = data.get("version") if isinstance(data, dict) else None
        if version != CURRENT_INDEX_VERSION:
            logger.info(f"Index version mismatch ({version} vs {CURRENT_INDEX_VERSION}), will rebuild")
            return None

        try:
            index = RepoIndex.model_validate(data)
        except ValidationError as exc:
            logger.warning(f"Invalid index cache, will rebuild: {exc}")
            return None

        logger.info(
            f"Loaded cached index with {len(index.repos)} repos and {len(index.wiki_documents)} wiki docs"
        )
        return index

    def save(self, index: RepoIndex) -> bool:
        if self._write(self.index_path, index):
            logger.info(f"Saved index with {len(index.repos)} repos")
            return True
        return False

    def load_sync_state(self) -> SyncState:
        try:
            return SyncState.model_validate_json(self.sync_state_path.read_text(encoding="utf-8"))
        except (OSError, ValueError) as exc:
            # ValidationError is a ValueError; covers corrupt JSON too
            if not isinstance(exc, FileNotFoundError):
                logger.warning(f"Ignoring unreadable sync state: {exc}")
            return create_empty_sync_state()

    def save_sync_state(self, state: SyncState) -> bool:
        return self._write(self.sync_state_path, state)

    def is_stale(
        self,
        index: Optional[RepoIndex],
        max_age_minutes: float,
        now: Optional[datetime] = None,
    ) -> bool:
        if index is None:
            return True
        now = now or datetime.now(timezone.utc)
        last = index.last_full_index
        if last.tzinfo is None:
            last = last.replace(tzinfo=timezone.utc)
        return now - last > timedelta(minutes=max_age_minutes)

    def clear(self) -> None:
        for path in (self.index_path, self.sync_state_path):
            try:
                path.unlink(missing_ok=True)
            except OSError as exc:
                logger.error(f"Failed to remove {path}: {exc}")
        logger.info("Cache cleared")

    def _write(self, path: Path, model: BaseModel) -> bool:
        try:
            path.parent.mkdir(parents=True, exist_ok=True)
            atomic_write_model(path, model)
            return True
        except OSError as exc:
            logger.error(f"Failed to write {path}: {exc}")
            return False
