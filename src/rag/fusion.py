"""
Merge vector and lexical rankings into one list.
"""

from __future__ import annotations

import dataclasses
from typing import Dict, List, Sequence

from src.db.records import SearchResult, SearchType

HYBRID_BOOST = 1.3


def fuse_results(
    vector_results: Sequence[SearchResult],
    lexical_results: Sequence[SearchResult],
    limit: int,
) -> List[SearchResult]:
    """
    Merge by chunk id.

    Vector hits go in first. A lexical hit for a chunk already present boosts
    that chunk's similarity by HYBRID_BOOST (capped at 1.0) and marks it
    hybrid; other lexical hits are added as fulltext. Equal scores keep
    insertion order.
    """
    merged: Dict[int, SearchResult] = {}

    for r in vector_results:
        merged[r.chunk_id] = dataclasses.replace(
            r, search_type=SearchType.VECTOR, matched_terms=list(r.matched_terms)
        )

    for r in lexical_results:
        existing = merged.get(r.chunk_id)
        if existing is not None:
            existing.similarity = min(1.0, existing.similarity * HYBRID_BOOST)
            existing.search_type = SearchType.HYBRID
            existing.matched_terms = existing.matched_terms + list(r.matched_terms)
        else:
            merged[r.chunk_id] = dataclasses.replace(
                r, search_type=SearchType.FULLTEXT, matched_terms=list(r.matched_terms)
            )

    fused = sorted(merged.values(), key=lambda r: r.similarity, reverse=True)
    return fused[:limit]
