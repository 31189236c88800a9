"""Document and repository search."""

from .models import (
    ResultType,
    RipgrepMatch,
    RipgrepOptions,
    SearchRequest,
    SearchResponse,
    SearchResult,
)
from .ripgrep import RipgrepAdapter

__all__ = [
    "ResultType",
    "RipgrepMatch",
    "RipgrepOptions",
    "SearchRequest",
    "SearchResponse",
    "SearchResult",
    "RipgrepAdapter",
]
