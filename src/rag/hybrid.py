"""
Hybrid search engine: vector + lexical retrieval over the Chunk Store with
score fusion and a persisted result cache.
"""

from __future__ import annotations

import asyncio
import datetime as dt
import hashlib
import json
import logging
import time
from dataclasses import dataclass, field
from typing import TYPE_CHECKING, List, Optional, Sequence

from src.db.records import CachedSearch, SearchResult, SearchType
from src.llm.client import Embedder, EmbeddingError

from .config import SearchOptions
from .expansion import QueryExpander
from .fusion import fuse_results
from .retriever import SearchAnalytics, SearchResponse, Witness

if TYPE_CHECKING:
    from src.db.chunk_store import ChunkStore

logger = logging.getLogger(__name__)

DEFAULT_CACHE_TTL = dt.timedelta(hours=1)


def normalize_query(query: str) -> str:
    return query.strip().lower()


def make_cache_key(query: str, options: SearchOptions) -> str:
    """SHA-256 hex of the normalized query plus canonical JSON of the options."""
    payload = normalize_query(query) + json.dumps(
        options.cache_fragment(), sort_keys=True, separators=(",", ":")
    )
    return hashlib.sha256(payload.encode("utf-8")).hexdigest()


class HybridSearchEngine:
    """Embed once, search vector and lexical concurrently, fuse, cache."""

    def __init__(
        self,
        store: "ChunkStore",
        embedder: Embedder,
        cache_ttl: dt.timedelta = DEFAULT_CACHE_TTL,
        expander: Optional[QueryExpander] = None,
    ):
        self.store = store
        self.embedder = embedder
        self.cache_ttl = cache_ttl
        self.expander = expander

    async def search(self, query: str, options: SearchOptions | None = None) -> SearchResponse:
        if options is None:
            options = SearchOptions()
        start = time.perf_counter()
        key = make_cache_key(query, options)

        cached = await self._read_cache(key)
        if cached is not None:
            results = await self._hydrate(cached)
            if results or not cached.chunk_ids:
                analytics = SearchAnalytics(
                    query_time_ms=_elapsed_ms(start),
                    total_results=len(results),
                    hybrid_results=len(results),
                    cache_hit=True,
                )
                logger.info("Search cache hit for %r (%d results)", query, len(results))
                return SearchResponse(results=results, analytics=analytics)
            logger.warning("Cached search for %r no longer hydrates; recomputing", query)

        analytics = SearchAnalytics()
        fanout = options.with_limit(options.limit * 2)
        semantic_query = await self._semantic_query(query, options, analytics)

        if options.use_hybrid:
            vector_outcome, lexical_outcome = await asyncio.gather(
                self._vector_search(semantic_query, fanout),
                self.store.lexical_search(query, fanout),
                return_exceptions=True,
            )
            if isinstance(lexical_outcome, BaseException):
                raise lexical_outcome
            if isinstance(vector_outcome, EmbeddingError):
                vector_results = self._degrade(vector_outcome, analytics)
            elif isinstance(vector_outcome, BaseException):
                raise vector_outcome
            else:
                vector_results = vector_outcome
            lexical_results = lexical_outcome
        else:
            vector_results = await self._vector_search(semantic_query, fanout)
            lexical_results = []

        results = fuse_results(vector_results, lexical_results, options.limit)

        analytics.vector_results = len(vector_results)
        analytics.fulltext_results = len(lexical_results)
        analytics.hybrid_results = sum(1 for r in results if r.search_type is SearchType.HYBRID)
        analytics.total_results = len(results)

        if analytics.degraded:
            analytics.cache_write_ok = None
        else:
            analytics.cache_write_ok = await self._write_cache(key, query, results)

        analytics.query_time_ms = _elapsed_ms(start)
        logger.info(
            "Search %r: %d results (vector=%d fulltext=%d hybrid=%d) in %.1f ms",
            query,
            analytics.total_results,
            analytics.vector_results,
            analytics.fulltext_results,
            analytics.hybrid_results,
            analytics.query_time_ms,
        )
        return SearchResponse(results=results, analytics=analytics)

    async def _semantic_query(
        self, query: str, options: SearchOptions, analytics: SearchAnalytics
    ) -> str:
        """Text to embed. Lexical search always uses the original query."""
        if not options.expand_query:
            return query
        if self.expander is None:
            analytics.warnings.append("query expansion requested but not configured")
            return query
        expansions = await self.expander.expand(query)
        analytics.expanded_terms = expansions[1:]
        return " ".join(expansions)

    async def _vector_search(self, query: str, options: SearchOptions) -> List[SearchResult]:
        embedding = await self.embedder.embed(query)
        return await self.store.vector_search(embedding, options)

    @staticmethod
    def _degrade(error: EmbeddingError, analytics: SearchAnalytics) -> List[SearchResult]:
        """Query embedding failed in hybrid mode: continue with lexical results only."""
        message = f"query embedding failed ({error.kind.value}); lexical results only"
        logger.warning("Hybrid search degraded: %s", message)
        analytics.degraded = True
        analytics.warnings.append(message)
        return []

    async def _read_cache(self, key: str) -> Optional[CachedSearch]:
        try:
            return await self.store.get_cached_search(key)
        except Exception as e:
            logger.warning("Search cache read failed, treating as miss: %s", e)
            return None

    async def _write_cache(self, key: str, query: str, results: Sequence[SearchResult]) -> bool:
        try:
            await self.store.set_cached_search(
                key,
                query,
                [r.chunk_id for r in results],
                [r.similarity for r in results],
                self.cache_ttl,
            )
        except Exception as e:
            logger.warning("Search cache write failed: %s", e)
            return False
        return True

    async def _hydrate(self, cached: CachedSearch) -> List[SearchResult]:
        """Rebuild results from current chunk rows, in cached order with cached scores."""
        rows = {r.chunk_id: r for r in await self.store.get_by_ids(cached.chunk_ids)}
        results: List[SearchResult] = []
        for chunk_id, score in zip(cached.chunk_ids, cached.scores):
            row = rows.get(chunk_id)
            if row is None:
                continue
            row.similarity = score
            row.search_type = SearchType.HYBRID
            results.append(row)
        return results


def _elapsed_ms(start: float) -> float:
    return (time.perf_counter() - start) * 1000.0


@dataclass
class SearchQuality:
    average_similarity: float
    confidence: float
    recommendations: List[str] = field(default_factory=list)


def analyze_search_quality(witnesses: Sequence[Witness]) -> SearchQuality:
    """Rough confidence signal for a witness set."""
    average = sum(w.score for w in witnesses) / len(witnesses) if witnesses else 0.0
    recommendations: List[str] = []
    if average < 0.3:
        recommendations.append("Consider rephrasing your question or using different keywords")
    if len(witnesses) < 3:
        recommendations.append("Try a broader search or check if more texts are available")
    return SearchQuality(
        average_similarity=average,
        confidence=min(average * 2, 1.0),
        recommendations=recommendations,
    )
