"""
Tests for vector/lexical score fusion.
"""

from __future__ import annotations

import pytest

from src.db.records import SearchResult, SearchType
from src.rag.fusion import HYBRID_BOOST, fuse_results


def _result(chunk_id: int, similarity: float, search_type: SearchType, terms=None) -> SearchResult:
    return SearchResult(
        chunk_id=chunk_id,
        work_id=1,
        tref=f"Work 1:{chunk_id}",
        similarity=similarity,
        search_type=search_type,
        matched_terms=list(terms or []),
    )


def test_fused_order_for_overlapping_results():
    vector = [_result(1, 0.9, SearchType.VECTOR), _result(2, 0.5, SearchType.VECTOR)]
    lexical = [
        _result(1, 0.2, SearchType.FULLTEXT, ["providence"]),
        _result(3, 0.1, SearchType.FULLTEXT, ["providence"]),
    ]

    fused = fuse_results(vector, lexical, limit=3)

    assert [r.chunk_id for r in fused] == [1, 2, 3]
    assert fused[0].similarity == min(1.0, 0.9 * HYBRID_BOOST) == 1.0
    assert fused[0].search_type is SearchType.HYBRID
    assert fused[0].matched_terms == ["providence"]
    assert fused[1].similarity == 0.5
    assert fused[1].search_type is SearchType.VECTOR
    assert fused[2].search_type is SearchType.FULLTEXT


@pytest.mark.parametrize("s", [0.0, 0.1, 0.42, 0.5, 0.75, 0.77, 0.9, 1.0])
def test_boost_property(s):
    fused = fuse_results(
        [_result(7, s, SearchType.VECTOR)],
        [_result(7, 0.3, SearchType.FULLTEXT)],
        limit=5,
    )
    assert fused[0].similarity == pytest.approx(min(1.0, s * HYBRID_BOOST))
    assert fused[0].search_type is SearchType.HYBRID


def test_limit_truncates_after_sorting():
    vector = [_result(i, 0.1 * i, SearchType.VECTOR) for i in range(1, 6)]
    fused = fuse_results(vector, [], limit=2)
    assert [r.chunk_id for r in fused] == [5, 4]


def test_equal_scores_keep_insertion_order():
    vector = [_result(1, 0.4, SearchType.VECTOR)]
    lexical = [_result(2, 0.4, SearchType.FULLTEXT), _result(3, 0.4, SearchType.FULLTEXT)]
    fused = fuse_results(vector, lexical, limit=3)
    assert [r.chunk_id for r in fused] == [1, 2, 3]


def test_inputs_are_not_mutated():
    vector = [_result(1, 0.5, SearchType.VECTOR)]
    lexical = [_result(1, 0.2, SearchType.FULLTEXT, ["x"])]
    fuse_results(vector, lexical, limit=1)
    assert vector[0].similarity == 0.5
    assert vector[0].search_type is SearchType.VECTOR
    assert vector[0].matched_terms == []
