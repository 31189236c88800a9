"""Reads the curated document collection from the wiki directory."""

import logging
from datetime import datetime, timezone
from pathlib import Path
from typing import Optional

from ..indexing.models import WikiDocument
from ..utils.validators import resolve_within
from .frontmatter import (
    ParsedDocument,
    extract_content_preview,
    extract_title_from_content,
    parse_markdown_with_frontmatter,
)

logger = logging.getLogger(__name__)

WIKI_CATEGORIES: tuple[str, ...] = (
    "patterns",
    "utilities",
    "integrations",
    "templates",
    "snippets",
    "projects",
)


class WikiService:
    """Curated markdown documents, one directory per category."""

    def __init__(self, wiki_dir: Path) -> None:
        self.wiki_dir = Path(wiki_dir)

    def exists(self) -> bool:
        return self.wiki_dir.is_dir()

    def list_categories(self) -> list[str]:
        return list(WIKI_CATEGORIES)

    def get_all_documents(self) -> list[WikiDocument]:
        documents: list[WikiDocument] = []
        for category in WIKI_CATEGORIES:
            documents.extend(self.get_documents_by_category(category))
        return documents

    def get_documents_by_category(self, category: str) -> list[WikiDocument]:
        if category not in WIKI_CATEGORIES:
            raise ValueError(f"Unknown category: {category}")

        category_path = self.wiki_dir / category
        documents: list[WikiDocument] = []
        try:
            entries = sorted(category_path.iterdir())
        except FileNotFoundError:
            return documents
        except OSError as e:
            logger.warning(f"Failed to read category {category}: {e}")
            return documents

        for entry in entries:
            if entry.suffix == ".md" and not entry.name.startswith("_") and entry.is_file():
                doc = self.parse_document(entry, category)
                if doc is not None:
                    documents.append(doc)
        return documents

    def parse_document(self, file_path: Path, category: str) -> Optional[WikiDocument]:
        try:
            text = file_path.read_text(encoding="utf-8", errors="replace")
            mtime = file_path.stat().st_mtime
        except OSError as e:
            logger.error(f"Failed to parse {file_path}: {e}")
            return None

        parsed = self._with_title(parse_markdown_with_frontmatter(text), file_path)
        return WikiDocument(
            path=str(file_path),
            relative_path=file_path.relative_to(self.wiki_dir).as_posix(),
            category=category,
            frontmatter=parsed.frontmatter,
            content_preview=extract_content_preview(parsed.content),
            last_modified=datetime.fromtimestamp(mtime, tz=timezone.utc),
        )

    def get_document(self, relative_path: str) -> Optional[ParsedDocument]:
        """Full document by wiki-relative path, or None if missing or outside the wiki."""
        try:
            file_path = resolve_within(self.wiki_dir, relative_path)
            text = file_path.read_text(encoding="utf-8", errors="replace")
        except (ValueError, OSError) as e:
            logger.error(f"Failed to get document {relative_path}: {e}")
            return None
        return self._with_title(parse_markdown_with_frontmatter(text), file_path)

    @staticmethod
    def _with_title(parsed: ParsedDocument, file_path: Path) -> ParsedDocument:
        if parsed.frontmatter.title != "Untitled":
            return parsed
        title = extract_title_from_content(parsed.content) or file_path.stem.replace("-", " ")
        return parsed._replace(frontmatter=parsed.frontmatter.model_copy(update={"title": title}))
