"""Crash-safe writes for the cache files and generated wiki pages."""

import logging
import os
import tempfile
from pathlib import Path

from pydantic import BaseModel

logger = logging.getLogger(__name__)


def atomic_write_text(file_path: Path, content: str) -> None:
    """Replace ``file_path`` with ``content`` in one rename.

    Readers see either the old file or the complete new one. The temp file
    lives beside the target so the rename never crosses filesystems.

    Raises:
        OSError: If the temp file cannot be written or renamed
    """
    file_path = Path(file_path)
    fd, tmp_name = tempfile.mkstemp(
        dir=file_path.parent, prefix=f".{file_path.name}.", suffix=".tmp"
    )
    try:
        with os.fdopen(fd, "w", encoding="utf-8") as f:
            f.write(content)
            f.flush()
            os.fsync(f.fileno())
        os.replace(tmp_name, file_path)
    except OSError:
        logger.debug(f"Discarding partial write of {file_path}")
        Path(tmp_name).unlink(missing_ok=True)
        raise


def atomic_write_model(file_path: Path, model: BaseModel, indent: int = 2) -> None:
    atomic_write_text(file_path, model.model_dump_json(indent=indent))
