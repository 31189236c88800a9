"""Search request and result models."""

from enum import Enum
from typing import Optional

from pydantic import BaseModel, Field


class ResultType(str, Enum):
    WIKI = "wiki"
    FILE = "file"


class SearchRequest(BaseModel):
    query: str
    category: Optional[str] = None
    language: Optional[str] = None
    repo_name: Optional[str] = None
    include_wiki: bool = True
    include_repos: bool = True
    limit: Optional[int] = None


class SearchResult(BaseModel):
    type: ResultType
    path: str
    score: float
    preview: str = ""
    # Wiki document fields
    title: Optional[str] = None
    category: Optional[str] = None
    tags: Optional[list[str]] = None
    # Repository file fields
    repo_name: Optional[str] = None
    line_number: Optional[int] = None
    match_line: Optional[str] = None

    class Config:
        use_enum_values = True


class SearchResponse(BaseModel):
    query: str
    results: list[SearchResult] = Field(default_factory=list)
    total_count: int = 0
    wiki_count: int = 0
    repo_count: int = 0
    search_time_ms: float = 0.0


class RipgrepMatch(BaseModel):
    path: str
    line_number: int
    line_content: str
    match_start: int = 0
    match_end: int = 0


class RipgrepOptions(BaseModel):
    file_type: Optional[str] = None
    glob: Optional[str] = None
    max_matches_per_file: Optional[int] = None
    max_total_matches: int = 100
    ignore_case: bool = False
    hidden: bool = False
