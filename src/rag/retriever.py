"""
Result types shared by the retrieval paths.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from enum import Enum
from typing import List, Optional

from src.db.records import SearchResult, SearchType


class Provenance(str, Enum):
    """Which retrieval path produced a witness."""

    VECTOR = "vector"
    FULLTEXT = "fulltext"
    HYBRID = "hybrid"
    STRUCTURED_INDEX = "structured_index"


@dataclass
class Witness:
    """A retrieved passage offered as evidence for an answer."""

    tref: str
    text: str
    score: float
    provenance: Provenance
    hebrew: Optional[str] = None
    work_title: Optional[str] = None
    author_name: Optional[str] = None

    @classmethod
    def from_search_result(cls, result: SearchResult, language: str = "en") -> "Witness":
        primary = result.content_hebrew if language == "he" else result.content_english
        return cls(
            tref=result.tref,
            text=primary or result.content_english or result.content_hebrew or "",
            score=result.similarity,
            provenance=Provenance(result.search_type.value),
            hebrew=result.content_hebrew if language != "he" else None,
            work_title=result.work_title or None,
            author_name=result.author_name or None,
        )


@dataclass
class SearchAnalytics:
    query_time_ms: float = 0.0
    total_results: int = 0
    vector_results: int = 0
    fulltext_results: int = 0
    hybrid_results: int = 0
    cache_hit: bool = False
    cache_write_ok: Optional[bool] = None
    degraded: bool = False
    warnings: List[str] = field(default_factory=list)
    expanded_terms: List[str] = field(default_factory=list)


@dataclass
class SearchResponse:
    results: List[SearchResult]
    analytics: SearchAnalytics

    def witnesses(self, language: str = "en") -> List[Witness]:
        return [Witness.from_search_result(r, language) for r in self.results]


__all__ = [
    "Provenance",
    "SearchAnalytics",
    "SearchResponse",
    "SearchResult",
    "SearchType",
    "Witness",
]
