"""
Plain value types exchanged with the chunk stores.
"""

from __future__ import annotations

import dataclasses
from enum import Enum
from typing import List, Optional


class SearchType(str, Enum):
    VECTOR = "vector"
    FULLTEXT = "fulltext"
    HYBRID = "hybrid"


@dataclasses.dataclass
class ChunkRecord:
    """One chunk as written by loaders (mirrors the text_chunks columns)."""

    work_id: int
    tref: str
    content_english: Optional[str] = None
    content_hebrew: Optional[str] = None
    part_number: Optional[int] = None
    chapter_number: Optional[int] = None
    section_number: Optional[int] = None
    paragraph_number: Optional[int] = None
    canonical_ref: Optional[str] = None
    chunk_type: str = "paragraph"
    word_count: int = 0
    character_count: int = 0
    embedding_english: Optional[List[float]] = None
    embedding_hebrew: Optional[List[float]] = None
    topic_keywords: List[str] = dataclasses.field(default_factory=list)
    complexity_score: Optional[float] = None

    def as_row(self) -> dict:
        return dataclasses.asdict(self)


@dataclasses.dataclass
class SearchResult:
    """A ranked chunk returned by a store query."""

    chunk_id: int
    work_id: int
    tref: str
    similarity: float
    search_type: SearchType
    work_title: str = ""
    author_name: str = ""
    content_english: Optional[str] = None
    content_hebrew: Optional[str] = None
    matched_terms: List[str] = dataclasses.field(default_factory=list)


@dataclasses.dataclass
class CachedSearch:
    chunk_ids: List[int]
    scores: List[float]
