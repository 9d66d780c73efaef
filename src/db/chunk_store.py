"""
Chunk Store over PostgreSQL + pgvector.

Statement builders are plain functions so they can be compiled and checked
without a database; PgChunkStore executes them through an async session
factory.
"""

from __future__ import annotations

import datetime as dt
import logging
from typing import TYPE_CHECKING, Iterable, List, Optional, Protocol, Sequence, Tuple

from sqlalchemy import Select, delete, func, literal, select, update
from sqlalchemy.dialects.postgresql import REGCONFIG
from sqlalchemy.dialects.postgresql import insert as pg_insert
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker

from src.rag.utils import build_tsquery, extract_matched_terms, lexical_terms

from .models import Author, SearchCacheEntry, TextChunk, Work
from .records import CachedSearch, ChunkRecord, SearchResult, SearchType

if TYPE_CHECKING:
    from src.rag.config import SearchOptions

logger = logging.getLogger(__name__)

# Columns refreshed when a chunk with an existing tref is loaded again
UPSERT_COLUMNS = (
    "work_id",
    "part_number",
    "chapter_number",
    "section_number",
    "paragraph_number",
    "canonical_ref",
    "content_english",
    "content_hebrew",
    "chunk_type",
    "word_count",
    "character_count",
    "embedding_english",
    "embedding_hebrew",
    "topic_keywords",
    "complexity_score",
)


class ChunkStore(Protocol):
    """Storage contract used by the hybrid search engine and loaders."""

    async def vector_search(
        self, embedding: Sequence[float], options: "SearchOptions"
    ) -> List[SearchResult]:
        ...

    async def lexical_search(self, query_text: str, options: "SearchOptions") -> List[SearchResult]:
        ...

    async def get_by_ids(self, ids: Sequence[int]) -> List[SearchResult]:
        ...

    async def get_cached_search(self, cache_key: str) -> Optional[CachedSearch]:
        ...

    async def set_cached_search(
        self,
        cache_key: str,
        query_text: str,
        chunk_ids: Sequence[int],
        scores: Sequence[float],
        ttl: dt.timedelta,
    ) -> None:
        ...

    async def save_chunks(self, chunks: Sequence[ChunkRecord]) -> int:
        ...

    async def chunks_missing_embeddings(
        self, language: str, limit: int
    ) -> List[Tuple[int, str]]:
        ...

    async def update_embeddings(
        self, pairs: Sequence[Tuple[int, List[float]]], language: str
    ) -> int:
        ...


def _embedding_column(language: str):
    return TextChunk.embedding_hebrew if language == "he" else TextChunk.embedding_english


def _search_vector_column(language: str):
    return TextChunk.search_vector_hebrew if language == "he" else TextChunk.search_vector_english


def _text_search_config(language: str) -> str:
    return "simple" if language == "he" else "english"


def _base_select(*extra) -> Select:
    return (
        select(
            TextChunk.id,
            TextChunk.work_id,
            TextChunk.tref,
            TextChunk.content_english,
            TextChunk.content_hebrew,
            Work.title.label("work_title"),
            Author.name.label("author_name"),
            *extra,
        )
        .join(Work, TextChunk.work_id == Work.id)
        .join(Author, Work.author_id == Author.id)
    )


def build_vector_search(embedding: Sequence[float], options: "SearchOptions") -> Select:
    column = _embedding_column(options.language)
    distance = column.cosine_distance(list(embedding))
    similarity = (1 - distance).label("similarity")
    stmt = _base_select(similarity).where(column.is_not(None))
    if options.min_similarity > 0:
        stmt = stmt.where(1 - distance >= options.min_similarity)
    if options.work_ids:
        stmt = stmt.where(TextChunk.work_id.in_(list(options.work_ids)))
    return stmt.order_by(distance).limit(options.limit)


def build_lexical_search(tsquery: str, options: "SearchOptions") -> Select:
    vector = _search_vector_column(options.language)
    query = func.to_tsquery(
        literal(_text_search_config(options.language), type_=REGCONFIG), tsquery
    )
    rank = func.ts_rank(vector, query)
    # min_similarity applies to vector hits only
    stmt = _base_select(rank.label("similarity")).where(vector.bool_op("@@")(query))
    if options.work_ids:
        stmt = stmt.where(TextChunk.work_id.in_(list(options.work_ids)))
    return stmt.order_by(rank.desc()).limit(options.limit)


def build_get_by_ids(ids: Sequence[int]) -> Select:
    return _base_select().where(TextChunk.id.in_(list(ids)))


def build_cache_lookup(cache_key: str, now: dt.datetime) -> Select:
    return select(SearchCacheEntry.chunk_ids, SearchCacheEntry.scores).where(
        SearchCacheEntry.query_hash == cache_key,
        SearchCacheEntry.expires_at > now,
    )


def build_cache_upsert(
    cache_key: str,
    query_text: str,
    chunk_ids: Sequence[int],
    scores: Sequence[float],
    expires_at: dt.datetime,
):
    stmt = pg_insert(SearchCacheEntry).values(
        query_hash=cache_key,
        query_text=query_text,
        chunk_ids=list(chunk_ids),
        scores=list(scores),
        search_type=SearchType.HYBRID.value,
        expires_at=expires_at,
    )
    return stmt.on_conflict_do_update(
        index_elements=[SearchCacheEntry.query_hash],
        set_={
            "query_text": stmt.excluded.query_text,
            "chunk_ids": stmt.excluded.chunk_ids,
            "scores": stmt.excluded.scores,
            "expires_at": stmt.excluded.expires_at,
            "created_at": func.now(),
        },
    )


def build_chunk_upsert(chunks: Iterable[ChunkRecord]):
    stmt = pg_insert(TextChunk).values([c.as_row() for c in chunks])
    set_ = {name: getattr(stmt.excluded, name) for name in UPSERT_COLUMNS}
    set_["updated_at"] = func.now()
    return stmt.on_conflict_do_update(index_elements=[TextChunk.tref], set_=set_)


def _row_to_result(
    row,
    search_type: SearchType,
    similarity: float = 0.0,
    matched_terms: Optional[List[str]] = None,
) -> SearchResult:
    return SearchResult(
        chunk_id=row.id,
        work_id=row.work_id,
        tref=row.tref,
        similarity=similarity,
        search_type=search_type,
        work_title=row.work_title,
        author_name=row.author_name,
        content_english=row.content_english,
        content_hebrew=row.content_hebrew,
        matched_terms=matched_terms or [],
    )


class PgChunkStore:
    """ChunkStore backed by PostgreSQL (asyncpg) with pgvector and tsvector columns."""

    def __init__(self, session_factory: async_sessionmaker[AsyncSession]):
        self.session_factory = session_factory

    async def vector_search(
        self, embedding: Sequence[float], options: "SearchOptions"
    ) -> List[SearchResult]:
        async with self.session_factory() as session:
            rows = (await session.execute(build_vector_search(embedding, options))).all()
        return [
            _row_to_result(r, SearchType.VECTOR, similarity=float(r.similarity)) for r in rows
        ]

    async def lexical_search(self, query_text: str, options: "SearchOptions") -> List[SearchResult]:
        terms = lexical_terms(query_text)
        if not terms:
            return []
        async with self.session_factory() as session:
            rows = (
                await session.execute(build_lexical_search(build_tsquery(terms), options))
            ).all()
        results: List[SearchResult] = []
        for r in rows:
            content = r.content_hebrew if options.language == "he" else r.content_english
            results.append(
                _row_to_result(
                    r,
                    SearchType.FULLTEXT,
                    similarity=float(r.similarity),
                    matched_terms=extract_matched_terms(content, terms),
                )
            )
        return results

    async def get_by_ids(self, ids: Sequence[int]) -> List[SearchResult]:
        if not ids:
            return []
        async with self.session_factory() as session:
            rows = (await session.execute(build_get_by_ids(ids))).all()
        return [_row_to_result(r, SearchType.HYBRID) for r in rows]

    async def get_cached_search(self, cache_key: str) -> Optional[CachedSearch]:
        now = dt.datetime.now(dt.timezone.utc)
        async with self.session_factory() as session:
            row = (await session.execute(build_cache_lookup(cache_key, now))).first()
        if row is None:
            return None
        return CachedSearch(chunk_ids=list(row.chunk_ids), scores=[float(s) for s in row.scores])

    async def set_cached_search(
        self,
        cache_key: str,
        query_text: str,
        chunk_ids: Sequence[int],
        scores: Sequence[float],
        ttl: dt.timedelta,
    ) -> None:
        expires_at = dt.datetime.now(dt.timezone.utc) + ttl
        async with self.session_factory() as session:
            async with session.begin():
                await session.execute(
                    build_cache_upsert(cache_key, query_text, chunk_ids, scores, expires_at)
                )

    async def save_chunks(self, chunks: Sequence[ChunkRecord]) -> int:
        """Upsert a batch of chunks on tref; the whole batch rolls back on failure."""
        if not chunks:
            return 0
        async with self.session_factory() as session:
            async with session.begin():
                await session.execute(build_chunk_upsert(chunks))
        logger.info("Saved %d chunks", len(chunks))
        return len(chunks)

    async def delete_work_chunks(self, work_id: int) -> int:
        async with self.session_factory() as session:
            async with session.begin():
                result = await session.execute(
                    delete(TextChunk).where(TextChunk.work_id == work_id)
                )
        return result.rowcount or 0

    async def chunks_missing_embeddings(
        self, language: str, limit: int
    ) -> List[Tuple[int, str]]:
        content = TextChunk.content_hebrew if language == "he" else TextChunk.content_english
        stmt = (
            select(TextChunk.id, content)
            .where(_embedding_column(language).is_(None), content.is_not(None))
            .order_by(TextChunk.id)
            .limit(limit)
        )
        async with self.session_factory() as session:
            rows = (await session.execute(stmt)).all()
        return [(r[0], r[1]) for r in rows]

    async def update_embeddings(
        self, pairs: Sequence[Tuple[int, List[float]]], language: str
    ) -> int:
        if not pairs:
            return 0
        column_name = "embedding_hebrew" if language == "he" else "embedding_english"
        async with self.session_factory() as session:
            async with session.begin():
                for chunk_id, embedding in pairs:
                    await session.execute(
                        update(TextChunk)
                        .where(TextChunk.id == chunk_id)
                        .values({column_name: embedding, "updated_at": func.now()})
                    )
        return len(pairs)
