"""Heuristic relevance scoring for documents and file matches.

Pure functions over plain records; nothing here touches the filesystem.
"""

import math
import re
from datetime import datetime, timezone
from typing import List, Optional

from ..indexing.models import WikiDocument

TITLE_MATCH = 50
TITLE_EXACT_BONUS = 25
TAG_MATCH = 30
TAG_EXACT_BONUS = 15
DESCRIPTION_MATCH = 20
CONTENT_MATCH_EACH = 5
CONTENT_MATCH_CAP = 25
RECENCY_MAX = 20
RECENCY_DECAY_PER_DAY = 0.5

FILE_MATCH_BASE = 10
FILE_QUERY_IN_LINE = 20
FILE_DEFINITION = 15
FILE_EXPORT = 10
FILE_TYPE_DEFINITION = 10

PREVIEW_MAX_LENGTH = 150

_DEFINITION_RE = re.compile(r"\b(function|class|const|let|var|def|fn|func)\b")
_EXPORT_RE = re.compile(r"\b(export|module\.exports)\b")
_TYPE_DEFINITION_RE = re.compile(r"\b(interface|type|struct|enum)\b")


def split_terms(query: str) -> List[str]:
    return query.lower().split()


def parse_date(value: Optional[str]) -> Optional[datetime]:
    """ISO date or datetime string to an aware datetime; None when unparseable."""
    if not value:
        return None
    try:
        parsed = datetime.fromisoformat(value.strip().replace("Z", "+00:00"))
    except ValueError:
        return None
    if parsed.tzinfo is None:
        parsed = parsed.replace(tzinfo=timezone.utc)
    return parsed


def days_since(when: datetime, now: Optional[datetime] = None) -> int:
    """Whole days elapsed, never negative (future dates count as today)."""
    now = now or datetime.now(timezone.utc)
    days = math.floor((now - when).total_seconds() / 86400)
    return max(days, 0)


def recency_bonus(updated: Optional[str], now: Optional[datetime] = None) -> float:
    when = parse_date(updated)
    if when is None:
        return 0.0
    return max(0.0, RECENCY_MAX - RECENCY_DECAY_PER_DAY * days_since(when, now))


def score_document(doc: WikiDocument, terms: List[str], now: Optional[datetime] = None) -> float:
    """
    Raw score of one curated document for lowercased query terms.

    Per term:
    - title contains term: +50, and +25 more if the title is the term or starts/ends with it as a word
    - a tag contains term: +30, and +15 more if a tag equals it
    - description contains term: +20
    - occurrences in the content preview: +5 each, capped at 25

    Then a recency bonus of up to 20 points when the document has an update date.
    """
    title = doc.frontmatter.title.lower()
    tags = [t.lower() for t in doc.frontmatter.tags]
    description = (doc.frontmatter.description or "").lower()
    content = doc.content_preview.lower()

    score = 0.0
    for term in terms:
        if term in title:
            score += TITLE_MATCH
            if title == term or title.startswith(term + " ") or title.endswith(" " + term):
                score += TITLE_EXACT_BONUS

        if any(term in tag for tag in tags):
            score += TAG_MATCH
            if term in tags:
                score += TAG_EXACT_BONUS

        if term in description:
            score += DESCRIPTION_MATCH

        score += min(content.count(term) * CONTENT_MATCH_EACH, CONTENT_MATCH_CAP)

    return score + recency_bonus(doc.frontmatter.updated, now)


def score_file_match(line: str, query: str) -> int:
    score = FILE_MATCH_BASE
    if query.lower() in line.lower():
        score += FILE_QUERY_IN_LINE
    if _DEFINITION_RE.search(line):
        score += FILE_DEFINITION
    if _EXPORT_RE.search(line):
        score += FILE_EXPORT
    if _TYPE_DEFINITION_RE.search(line):
        score += FILE_TYPE_DEFINITION
    return score


def match_preview(line: str, match_start: int, match_end: int, max_length: int = PREVIEW_MAX_LENGTH) -> str:
    """Trimmed line, cut to ``max_length`` around the match midpoint with ``...`` on cut sides."""
    stripped = line.strip()
    if len(stripped) <= max_length:
        return stripped

    # Offsets refer to the unstripped line
    shift = len(line) - len(line.lstrip())
    center = (match_start + match_end) // 2 - shift
    start = max(0, center - max_length // 2)
    end = min(len(stripped), start + max_length)

    preview = stripped[start:end]
    if start > 0:
        preview = "..." + preview
    if end < len(stripped):
        preview = preview + "..."
    return preview
