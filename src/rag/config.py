"""
Configuration for the witness retrieval pipeline.
"""

from __future__ import annotations

import dataclasses
from dataclasses import dataclass
from typing import Optional, Tuple


@dataclass(frozen=True)
class SearchOptions:
    """Options for one hybrid search call; part of the cache key."""

    limit: int = 10
    min_similarity: float = 0.0
    language: str = "en"
    work_ids: Optional[Tuple[int, ...]] = None
    use_hybrid: bool = True
    expand_query: bool = False

    def with_limit(self, limit: int) -> "SearchOptions":
        return dataclasses.replace(self, limit=limit)

    def cache_fragment(self) -> dict:
        return {
            "limit": self.limit,
            "min_similarity": self.min_similarity,
            "language": self.language,
            "work_ids": sorted(self.work_ids) if self.work_ids else None,
            "use_hybrid": self.use_hybrid,
            "expand_query": self.expand_query,
        }


@dataclass
class ReconcilerConfig:
    """Configuration for semantic/legacy reconciliation."""

    min_semantic_witnesses: int = 2
    limit: int = 10
    # Low floor to favour recall
    min_similarity: float = 0.1
    use_hybrid: bool = True
    expand_query: bool = False

    def search_options(self) -> SearchOptions:
        return SearchOptions(
            limit=self.limit,
            min_similarity=self.min_similarity,
            use_hybrid=self.use_hybrid,
            expand_query=self.expand_query,
        )
