"""Shared test fixtures."""

import logging
import subprocess
from datetime import datetime, timezone
from pathlib import Path

import pytest

from code_wiki.core.config import CodeWikiConfig, clear_config_cache
from code_wiki.indexing.models import RepoMetadata, WikiDocument, WikiFrontmatter
from code_wiki.utils.rich_logging import ROOT_LOGGER_NAME


@pytest.fixture(autouse=True)
def _reset_logging_and_config():
    """CLI tests install handlers on the package logger; undo that so caplog keeps working."""
    yield
    logger = logging.getLogger(ROOT_LOGGER_NAME)
    for handler in logger.handlers[:]:
        handler.close()
        logger.removeHandler(handler)
    logger.propagate = True
    logger.setLevel(logging.NOTSET)
    clear_config_cache()


@pytest.fixture
def config(tmp_path):
    source = tmp_path / "src"
    source.mkdir()
    return CodeWikiConfig(
        source_directories=[source],
        wiki_directory=tmp_path / "wiki",
        cache_directory=tmp_path / "data",
    )


def make_repo(name: str = "alpha", path: str = "/repos/alpha", **kwargs) -> RepoMetadata:
    defaults = dict(
        name=name,
        path=path,
        languages=["python"],
        file_count=3,
        last_commit="abc123",
        last_commit_date=datetime(2024, 1, 1, tzinfo=timezone.utc),
    )
    defaults.update(kwargs)
    return RepoMetadata(**defaults)


def make_doc(
    title: str,
    *,
    category: str = "patterns",
    tags=None,
    description=None,
    preview: str = "",
    updated=None,
    language=None,
    relative_path=None,
) -> WikiDocument:
    slug = title.lower().replace(" ", "-")
    relative_path = relative_path or f"{category}/{slug}.md"
    return WikiDocument(
        path=f"/wiki/{relative_path}",
        relative_path=relative_path,
        category=category,
        frontmatter=WikiFrontmatter(
            title=title,
            tags=tags or [],
            description=description,
            updated=updated,
            language=language,
        ),
        content_preview=preview,
        last_modified=datetime(2024, 1, 1, tzinfo=timezone.utc),
    )


def git(cwd: Path, *args: str) -> str:
    result = subprocess.run(
        ["git", *args], cwd=cwd, capture_output=True, text=True, check=True
    )
    return result.stdout.strip()


def init_repo(path: Path, files: dict | None = None) -> Path:
    """Create a git repository with one commit containing ``files``."""
    path.mkdir(parents=True, exist_ok=True)
    git(path, "init", "-q", "-b", "main")
    git(path, "config", "user.email", "test@example.com")
    git(path, "config", "user.name", "Test User")
    git(path, "config", "commit.gpgsign", "false")
    for rel, content in (files or {"README.md": "# Repo\n\nA test repository.\n"}).items():
        target = path / rel
        target.parent.mkdir(parents=True, exist_ok=True)
        target.write_text(content)
    git(path, "add", "-A")
    git(path, "commit", "-q", "-m", "initial")
    return path
