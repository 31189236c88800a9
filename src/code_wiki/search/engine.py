"""Ranked search across curated documents and repository files."""

import logging
import time
from pathlib import Path
from typing import List, Optional

from ..core.config import CodeWikiConfig
from ..indexing.builder import IndexBuilder
from ..indexing.models import RepoMetadata
from .models import ResultType, RipgrepOptions, SearchRequest, SearchResponse, SearchResult
from .ripgrep import RipgrepAdapter
from .scoring import match_preview, score_document, score_file_match, split_terms

logger = logging.getLogger(__name__)

# Language names as stored in the index -> ripgrep --type names
RIPGREP_TYPES: dict[str, str] = {
    "typescript": "ts",
    "javascript": "js",
    "python": "py",
    "ruby": "ruby",
    "go": "go",
    "rust": "rust",
    "java": "java",
}

MAX_MATCHES_PER_FILE = 5


class SearchEngine:
    """
    Scores and merges results from the index's documents and a ripgrep pass over repositories.

    Reads whatever index snapshot the builder currently publishes; never mutates it.
    """

    def __init__(self, config: CodeWikiConfig, builder: IndexBuilder, adapter: RipgrepAdapter):
        self.config = config
        self.builder = builder
        self.adapter = adapter

    async def search(self, request: SearchRequest) -> SearchResponse:
        started = time.perf_counter()
        limit = request.limit or self.config.max_search_results

        results: List[SearchResult] = []
        # Documents go first so equal scores keep them ahead after the stable sort
        if request.include_wiki:
            results.extend(self.search_wiki(request.query, request.category, request.language))
        if request.include_repos:
            results.extend(await self.search_repos(request.query, request.repo_name, request.language))

        results.sort(key=lambda r: r.score, reverse=True)
        limited = results[:limit]

        return SearchResponse(
            query=request.query,
            results=limited,
            total_count=len(results),
            wiki_count=sum(1 for r in limited if r.type == ResultType.WIKI.value),
            repo_count=sum(1 for r in limited if r.type == ResultType.FILE.value),
            search_time_ms=round((time.perf_counter() - started) * 1000, 2),
        )

    def search_wiki(
        self,
        query: str,
        category: Optional[str] = None,
        language: Optional[str] = None,
    ) -> List[SearchResult]:
        terms = split_terms(query)
        results: List[SearchResult] = []

        for doc in self.builder.get_all_documents():
            if category and doc.category != category:
                continue
            if language and doc.frontmatter.language != language:
                continue

            score = score_document(doc, terms)
            if score <= 0:
                continue
            results.append(SearchResult(
                type=ResultType.WIKI,
                path=doc.relative_path,
                title=doc.frontmatter.title,
                category=doc.category,
                tags=list(doc.frontmatter.tags),
                score=score * self.config.wiki_boost_multiplier,
                preview=doc.content_preview,
            ))
        return results

    async def search_repos(
        self,
        query: str,
        repo_name: Optional[str] = None,
        language: Optional[str] = None,
    ) -> List[SearchResult]:
        repos = self.builder.get_all_repos()
        if repo_name:
            repo = self.builder.get_repo_by_name(repo_name)
            if repo is None:
                return []
            search_paths = [repo.path]
        else:
            search_paths = [r.path for r in repos]

        if not search_paths:
            return []

        options = RipgrepOptions(
            max_matches_per_file=MAX_MATCHES_PER_FILE,
            max_total_matches=self.config.max_search_results,
            ignore_case=True,
            file_type=RIPGREP_TYPES.get(language, language) if language else None,
        )

        try:
            matches = await self.adapter.search(query, search_paths, options)
        except Exception as e:
            logger.error(f"Repository search failed: {e}")
            return []

        results: List[SearchResult] = []
        for match in matches:
            owner = owning_repo(Path(match.path), repos)
            results.append(SearchResult(
                type=ResultType.FILE,
                path=Path(match.path).relative_to(owner.path).as_posix() if owner else match.path,
                repo_name=owner.name if owner else "unknown",
                match_line=match.line_content,
                line_number=match.line_number,
                score=score_file_match(match.line_content, query),
                preview=match_preview(match.line_content, match.match_start, match.match_end),
            ))
        return results


def owning_repo(file_path: Path, repos: List[RepoMetadata]) -> Optional[RepoMetadata]:
    """Repository with the deepest path containing ``file_path``."""
    best: Optional[RepoMetadata] = None
    for repo in repos:
        repo_path = Path(repo.path)
        if file_path.is_relative_to(repo_path):
            if best is None or len(repo_path.parts) > len(Path(best.path).parts):
                best = repo
    return best
