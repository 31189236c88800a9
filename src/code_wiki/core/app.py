"""Application wiring and the query operations exposed to callers.

Query operations return plain dicts. Not-found and invalid-input cases come
back as ``{"error": ..., "suggestion": ...}`` instead of raising.
"""

import asyncio
import contextlib
import logging
from datetime import datetime, timezone
from pathlib import Path
from typing import Any, Dict, List, Optional

from ..indexing.builder import IndexBuilder
from ..indexing.store import CacheStore
from ..integrations.github.client import GitHubRepoClient
from ..search.engine import SearchEngine
from ..search.models import SearchRequest, SearchResponse
from ..search.ripgrep import RipgrepAdapter
from ..sync.engine import SyncEngine
from ..sync.rate_limiter import RateLimiter
from ..utils.validators import resolve_within
from ..wiki.service import WIKI_CATEGORIES, WikiService
from .config import CodeWikiConfig

logger = logging.getLogger(__name__)

MAX_FILE_SIZE = 1024 * 1024
SEARCH_WIKI_DEFAULT_LIMIT = 20
SEARCH_REPOS_DEFAULT_LIMIT = 50
NOT_FOUND_REPO_SAMPLE = 10
LIST_REPOS_SORTS = ("name", "last_modified", "language")


def _iso(value: Optional[datetime]) -> Optional[str]:
    return value.isoformat() if value else None


class CodeWiki:
    """Owns one instance of every component and the startup/shutdown sequence."""

    def __init__(
        self,
        config: CodeWikiConfig,
        remote_client: Optional[GitHubRepoClient] = None,
        adapter: Optional[RipgrepAdapter] = None,
    ):
        self.config = config
        if remote_client is None and config.github.sync_enabled:
            remote_client = GitHubRepoClient(
                config.github, RateLimiter.from_config(config.rate_limit)
            )
        self.remote_client = remote_client

        self.store = CacheStore(config.cache_directory)
        self.wiki = WikiService(config.wiki_directory)
        self.builder = IndexBuilder(config, self.store, self.wiki, remote_client)
        self.adapter = adapter or RipgrepAdapter(config.ripgrep_path)
        self.search_engine = SearchEngine(config, self.builder, self.adapter)
        self.sync = SyncEngine(config, self.store, self.builder, remote_client)

        self._build_task: Optional[asyncio.Task] = None

    # Lifecycle

    async def start(self, background_sync: bool = True) -> None:
        self.sync.initialize()

        if not await self.adapter.available():
            logger.warning(
                f"ripgrep ({self.config.ripgrep_path}) not found. Repository search will "
                "return no results until it is installed."
            )

        cached = self.store.load()
        if cached is not None and not self.store.is_stale(cached, self.config.cache_max_age_minutes):
            self.builder.set_index(cached)
            logger.info("Loaded cached index")
        elif self.config.index_on_startup:
            logger.info("Cache is stale or missing, building index in the background")
            self._build_task = asyncio.create_task(self._build_in_background())

        if background_sync and self.config.github.sync_enabled:
            self.sync.start_background_sync()
        elif background_sync:
            logger.info("Remote sync disabled (no username/token configured)")

    async def _build_in_background(self) -> None:
        try:
            await self.builder.build_full()
            logger.info("Background index build complete")
        except Exception as e:
            logger.error(f"Background index build failed: {e}")

    async def shutdown(self) -> None:
        logger.info("Shutting down...")
        self.sync.stop_background_sync()
        await self.sync.wait_stopped()
        if self._build_task is not None and not self._build_task.done():
            self._build_task.cancel()
            with contextlib.suppress(asyncio.CancelledError):
                await self._build_task

    async def ensure_index(self) -> None:
        """Install the cached index, or build one when it is missing or stale."""
        cached = self.store.load()
        if cached is not None and not self.store.is_stale(cached, self.config.cache_max_age_minutes):
            self.builder.set_index(cached)
        else:
            await self.builder.build_full()

    # Repositories

    def list_repos(self, sort_by: str = "name", language: Optional[str] = None) -> Dict[str, Any]:
        if sort_by not in LIST_REPOS_SORTS:
            return {
                "error": "Invalid sort order",
                "provided": sort_by,
                "valid_sort_orders": list(LIST_REPOS_SORTS),
            }

        repos = self.builder.get_all_repos()
        if language:
            lang = language.lower()
            repos = [r for r in repos if any(lang in l.lower() for l in r.languages)]

        if sort_by == "last_modified":
            repos.sort(key=lambda r: r.last_commit_date, reverse=True)
        elif sort_by == "language":
            repos.sort(key=lambda r: r.languages[0] if r.languages else "")
        else:
            repos.sort(key=lambda r: r.name)

        return {
            "total_repos": len(repos),
            "repos": [
                {
                    "name": r.name,
                    "path": r.path,
                    "description": r.description,
                    "languages": r.languages,
                    "file_count": r.file_count,
                    "last_commit": _iso(r.last_commit_date),
                    "has_readme": r.has_readme,
                    "remote_url": r.remote_url,
                }
                for r in repos
            ],
        }

    def get_file(self, repo: str, path: str) -> Dict[str, Any]:
        metadata = self.builder.get_repo_by_name(repo)
        if metadata is None:
            return {
                "error": "Repository not found",
                "repo": repo,
                "available_repos": [r.name for r in self.builder.get_all_repos()][:NOT_FOUND_REPO_SAMPLE],
                "suggestion": "Use list_repos to see all available repositories",
            }

        try:
            target = resolve_within(Path(metadata.path), path)
        except ValueError:
            return {"error": "Invalid path: path traversal not allowed", "path": path}

        try:
            if target.is_dir():
                return {
                    "type": "directory",
                    "repo": repo,
                    "path": path,
                    "contents": [
                        {"name": entry.name, "type": "directory" if entry.is_dir() else "file"}
                        for entry in sorted(target.iterdir())
                    ],
                }

            stat = target.stat()
            if stat.st_size > MAX_FILE_SIZE:
                return {
                    "error": "File too large",
                    "path": path,
                    "size": stat.st_size,
                    "suggestion": "Use search_repos to find specific content in large files",
                }

            return {
                "type": "file",
                "repo": repo,
                "path": path,
                "extension": target.suffix.lower(),
                "size": stat.st_size,
                "last_modified": datetime.fromtimestamp(stat.st_mtime, tz=timezone.utc).isoformat(),
                "content": target.read_text(encoding="utf-8", errors="replace"),
            }
        except FileNotFoundError:
            return {
                "error": "File not found",
                "repo": repo,
                "path": path,
                "suggestion": "Use search_repos to find files matching a pattern",
            }
        except OSError as e:
            return {"error": "Failed to read file", "message": str(e)}

    # Curated documents

    def get_document(self, path: str) -> Dict[str, Any]:
        doc = self.wiki.get_document(path)
        if doc is None:
            return {
                "error": "Document not found",
                "path": path,
                "suggestion": "Use search_wiki or list_category to find available documents",
            }
        fm = doc.frontmatter
        return {
            "path": path,
            "title": fm.title,
            "tags": fm.tags,
            "language": fm.language,
            "updated": fm.updated,
            "source_repo": fm.source_repo,
            "description": fm.description,
            "content": doc.content,
        }

    def list_category(self, category: Optional[str] = None) -> Dict[str, Any]:
        docs = self.builder.get_all_documents()
        if not category:
            return {
                "categories": [
                    {"name": cat, "document_count": sum(1 for d in docs if d.category == cat)}
                    for cat in WIKI_CATEGORIES
                ],
                "total_documents": len(docs),
            }

        if category not in WIKI_CATEGORIES:
            return {
                "error": "Invalid category",
                "provided": category,
                "valid_categories": list(WIKI_CATEGORIES),
            }

        in_category = [d for d in docs if d.category == category]
        if not in_category:
            return {
                "category": category,
                "message": "No documents in this category yet",
                "suggestion": f"Add documents to {self.config.wiki_directory / category}/",
            }

        return {
            "category": category,
            "document_count": len(in_category),
            "documents": [
                {
                    "path": d.relative_path,
                    "title": d.frontmatter.title,
                    "tags": d.frontmatter.tags,
                    "language": d.frontmatter.language,
                    "description": d.frontmatter.description,
                    "last_modified": _iso(d.last_modified),
                }
                for d in in_category
            ],
        }

    # Search

    async def search(self, request: SearchRequest) -> SearchResponse:
        return await self.search_engine.search(request)

    async def search_wiki(
        self,
        query: str,
        category: Optional[str] = None,
        language: Optional[str] = None,
        limit: Optional[int] = None,
    ) -> Dict[str, Any]:
        response = await self.search(SearchRequest(
            query=query,
            category=category,
            language=language,
            limit=limit or SEARCH_WIKI_DEFAULT_LIMIT,
            include_wiki=True,
            include_repos=False,
        ))
        if not response.results:
            return {
                "message": "No wiki documents found matching your query",
                "query": query,
                "suggestions": [
                    "Try broader search terms",
                    "Check available categories with list_category",
                    "Use search_repos to search across all repositories",
                ],
            }
        return {
            "query": query,
            "total_results": response.total_count,
            "search_time_ms": response.search_time_ms,
            "results": [
                {
                    "title": r.title,
                    "category": r.category,
                    "path": r.path,
                    "tags": r.tags,
                    "preview": r.preview,
                    "relevance_score": r.score,
                }
                for r in response.results
            ],
        }

    async def search_repos(
        self,
        query: str,
        repo: Optional[str] = None,
        language: Optional[str] = None,
        limit: Optional[int] = None,
    ) -> Dict[str, Any]:
        response = await self.search(SearchRequest(
            query=query,
            repo_name=repo,
            language=language,
            limit=limit or SEARCH_REPOS_DEFAULT_LIMIT,
            include_wiki=False,
            include_repos=True,
        ))
        if not response.results:
            return {
                "message": "No matches found in repositories",
                "query": query,
                "suggestions": [
                    "Try different search terms",
                    "Remove language filter if set",
                    "Use list_repos to see available repositories",
                ],
            }
        return {
            "query": query,
            "total_results": response.total_count,
            "search_time_ms": response.search_time_ms,
            "results": [
                {
                    "repo": r.repo_name,
                    "file": r.path,
                    "line": r.line_number,
                    "match": r.match_line,
                    "preview": r.preview,
                    "relevance_score": r.score,
                }
                for r in response.results
            ],
        }

    # Sync

    async def sync_repos(self, force: bool = False) -> Dict[str, Any]:
        if self.sync.is_sync_in_progress():
            return {
                "status": "in_progress",
                "message": "A sync operation is already in progress. Please wait for it to complete.",
            }

        report = await self.sync.sync_now(force)
        result: Dict[str, Any] = {
            "status": "completed",
            "checked_at": _iso(report.checked_at),
            "summary": {
                "repos_checked": report.repos_checked,
                "repos_pulled": report.repos_pulled,
                "repos_cloned": report.repos_cloned,
                "error_count": len(report.errors),
            },
            "last_sync_time": _iso(self.sync.last_sync_time),
        }
        if report.errors:
            result["errors"] = [e.model_dump() for e in report.errors]
        return result

    # Preferences

    def get_preferences(self, file: Optional[str] = None) -> Dict[str, Any]:
        prefs_dir = self.config.preferences_directory
        if prefs_dir is None:
            return {
                "error": "Preferences directory not configured",
                "suggestion": "Set preferences_directory in code-wiki.yaml or CODE_WIKI_PREFERENCES_DIRECTORY",
            }
        prefs_dir = Path(prefs_dir).expanduser()
        if not prefs_dir.is_dir():
            return {"error": "Preferences directory not found", "path": str(prefs_dir)}

        if not file:
            try:
                files: List[str] = sorted(
                    p.name for p in prefs_dir.iterdir() if p.is_file() and not p.name.startswith(".")
                )
            except OSError as e:
                return {"error": "Failed to list preferences directory", "message": str(e)}
            return {
                "preferences_directory": str(prefs_dir),
                "available_files": files,
                "usage": "Call get_preferences with a specific file name to read its contents",
            }

        try:
            target = resolve_within(prefs_dir, file)
        except ValueError:
            return {"error": "Invalid path: file must be within preferences directory"}

        try:
            content = target.read_text(encoding="utf-8")
            mtime = target.stat().st_mtime
        except FileNotFoundError:
            return {
                "error": "File not found",
                "file": file,
                "suggestion": "Use get_preferences without a file argument to see available files",
            }
        except OSError as e:
            return {"error": "Failed to read file", "message": str(e)}

        return {
            "file": file,
            "path": str(target),
            "last_modified": datetime.fromtimestamp(mtime, tz=timezone.utc).isoformat(),
            "content": content,
        }

    # Status

    def status(self) -> Dict[str, Any]:
        index = self.builder.index
        return {
            "repos": len(index.repos),
            "wiki_documents": len(index.wiki_documents),
            "last_full_index": _iso(index.last_full_index) if self.builder.is_installed else None,
            "index_stale": self.builder.is_stale(),
            "index_building": self.builder.is_building,
            "sync_enabled": self.config.github.sync_enabled,
            "sync_in_progress": self.sync.is_sync_in_progress(),
            "last_sync_time": _iso(self.sync.last_sync_time),
            "source_directories": [str(p) for p in self.config.source_directories],
            "wiki_directory": str(self.config.wiki_directory),
            "cache_directory": str(self.config.cache_directory),
        }
