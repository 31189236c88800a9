"""Curated document collection."""

from .frontmatter import ParsedDocument, parse_markdown_with_frontmatter
from .service import WIKI_CATEGORIES, WikiService

__all__ = [
    "ParsedDocument",
    "parse_markdown_with_frontmatter",
    "WIKI_CATEGORIES",
    "WikiService",
]
