"""Markdown front-matter parsing."""

import logging
import re
from datetime import date, datetime
from typing import Any, NamedTuple, Optional

import yaml

from ..indexing.models import WikiFrontmatter

logger = logging.getLogger(__name__)

_FRONTMATTER_RE = re.compile(r"\A---[ \t]*\r?\n(.*?)\r?\n---[ \t]*(?:\r?\n|\Z)", re.DOTALL)
_HEADING_RE = re.compile(r"^#\s+(.+)$", re.MULTILINE)

PREVIEW_LENGTH = 500


class ParsedDocument(NamedTuple):
    frontmatter: WikiFrontmatter
    content: str


def _as_text(value: Any) -> Optional[str]:
    # YAML turns unquoted dates into date objects
    if isinstance(value, (datetime, date)):
        return value.isoformat()
    if isinstance(value, str):
        return value
    return None


def parse_markdown_with_frontmatter(text: str) -> ParsedDocument:
    """Split a markdown file into front-matter fields and body.

    Unknown keys are ignored; a malformed YAML block is treated as absent.
    """
    data: dict[str, Any] = {}
    body = text

    match = _FRONTMATTER_RE.match(text)
    if match:
        try:
            loaded = yaml.safe_load(match.group(1))
            if isinstance(loaded, dict):
                data = loaded
        except yaml.YAMLError as exc:
            logger.debug(f"Ignoring malformed front-matter: {exc}")
        body = text[match.end():]

    tags = data.get("tags")
    frontmatter = WikiFrontmatter(
        title=data["title"] if isinstance(data.get("title"), str) else "Untitled",
        tags=[str(t) for t in tags] if isinstance(tags, list) else [],
        language=_as_text(data.get("language")),
        updated=_as_text(data.get("updated")),
        source_repo=_as_text(data.get("source_repo")),
        description=_as_text(data.get("description")),
    )
    return ParsedDocument(frontmatter=frontmatter, content=body.strip())


def extract_content_preview(content: str, max_length: int = PREVIEW_LENGTH) -> str:
    """First ``max_length`` characters, cut on a word boundary when one is close."""
    if len(content) <= max_length:
        return content

    truncated = content[:max_length]
    last_space = truncated.rfind(" ")
    if last_space > max_length * 0.8:
        return truncated[:last_space] + "..."
    return truncated + "..."


def extract_title_from_content(content: str) -> Optional[str]:
    match = _HEADING_RE.search(content)
    return match.group(1).strip() if match else None
