"""
In-process Chunk Store for local mode and tests.

Vector search uses numpy cosine similarity; lexical search scores with
rank_bm25 after the same prefix/AND filtering the PostgreSQL store applies.
"""

from __future__ import annotations

import dataclasses
import datetime as dt
import json
import logging
from dataclasses import dataclass
from pathlib import Path
from typing import TYPE_CHECKING, Callable, Dict, List, Optional, Sequence, Tuple

import numpy as np
from rank_bm25 import BM25Okapi

from src.rag.utils import extract_matched_terms, iter_tokens, lexical_terms

from .records import CachedSearch, ChunkRecord, SearchResult, SearchType

if TYPE_CHECKING:
    from src.rag.config import SearchOptions

logger = logging.getLogger(__name__)


def bm25_similarity(score: float) -> float:
    """Squash an unbounded BM25 score into [0, 1) like ts_rank; negatives become 0."""
    score = max(score, 0.0)
    return score / (1.0 + score)


def _utcnow() -> dt.datetime:
    return dt.datetime.now(dt.timezone.utc)


@dataclass
class _StoredWork:
    title: str
    author_name: str


@dataclass
class _CacheRow:
    query_text: str
    entry: CachedSearch
    expires_at: dt.datetime


class InMemoryChunkStore:
    """
    ChunkStore kept in Python dicts; ids are assigned on first save of a tref.

    With `snapshot_path`, works and chunks are loaded from that JSONL file at
    construction and rewritten after every write, so local mode survives
    between processes. The search cache is never persisted.
    """

    def __init__(
        self,
        clock: Callable[[], dt.datetime] = _utcnow,
        snapshot_path: Path | None = None,
    ):
        self._clock = clock
        self._works: Dict[int, _StoredWork] = {}
        self._chunks: Dict[int, ChunkRecord] = {}
        self._ids_by_tref: Dict[str, int] = {}
        self._cache: Dict[str, _CacheRow] = {}
        self._next_id = 1
        self.snapshot_path = snapshot_path
        if snapshot_path is not None and snapshot_path.exists():
            self._load_snapshot(snapshot_path)

    def add_work(self, work_id: int, title: str, author_name: str = "") -> None:
        self._works[work_id] = _StoredWork(title=title, author_name=author_name)
        self._write_snapshot()

    def _load_snapshot(self, path: Path) -> None:
        with path.open(encoding="utf-8") as f:
            for line_no, line in enumerate(f, start=1):
                if not line.strip():
                    continue
                try:
                    row = json.loads(line)
                    kind = row.pop("kind")
                    if kind == "work":
                        self._works[int(row["id"])] = _StoredWork(
                            title=row["title"], author_name=row.get("author_name", "")
                        )
                    elif kind == "chunk":
                        chunk_id = int(row.pop("id"))
                        chunk = ChunkRecord(**row)
                        self._chunks[chunk_id] = chunk
                        self._ids_by_tref[chunk.tref] = chunk_id
                        self._next_id = max(self._next_id, chunk_id + 1)
                    else:
                        raise ValueError(f"unknown row kind {kind!r}")
                except (KeyError, TypeError, ValueError) as e:
                    raise ValueError(f"{path}:{line_no}: invalid snapshot row: {e}") from e
        logger.info("Loaded %d chunks from %s", len(self._chunks), path)

    def _write_snapshot(self) -> None:
        if self.snapshot_path is None:
            return
        self.snapshot_path.parent.mkdir(parents=True, exist_ok=True)
        tmp = self.snapshot_path.with_suffix(self.snapshot_path.suffix + ".tmp")
        with tmp.open("w", encoding="utf-8") as f:
            for work_id, work in sorted(self._works.items()):
                row = {"kind": "work", "id": work_id, **dataclasses.asdict(work)}
                f.write(json.dumps(row, ensure_ascii=False) + "\n")
            for chunk_id, chunk in sorted(self._chunks.items()):
                row = {"kind": "chunk", "id": chunk_id, **chunk.as_row()}
                f.write(json.dumps(row, ensure_ascii=False) + "\n")
        tmp.replace(self.snapshot_path)

    def __len__(self) -> int:
        return len(self._chunks)

    @staticmethod
    def _content(chunk: ChunkRecord, language: str) -> Optional[str]:
        return chunk.content_hebrew if language == "he" else chunk.content_english

    @staticmethod
    def _embedding(chunk: ChunkRecord, language: str) -> Optional[List[float]]:
        return chunk.embedding_hebrew if language == "he" else chunk.embedding_english

    def _result(
        self,
        chunk_id: int,
        search_type: SearchType,
        similarity: float = 0.0,
        matched_terms: Optional[List[str]] = None,
    ) -> SearchResult:
        chunk = self._chunks[chunk_id]
        work = self._works.get(chunk.work_id, _StoredWork(title="", author_name=""))
        return SearchResult(
            chunk_id=chunk_id,
            work_id=chunk.work_id,
            tref=chunk.tref,
            similarity=similarity,
            search_type=search_type,
            work_title=work.title,
            author_name=work.author_name,
            content_english=chunk.content_english,
            content_hebrew=chunk.content_hebrew,
            matched_terms=matched_terms or [],
        )

    def _candidates(self, options: "SearchOptions") -> List[int]:
        ids = list(self._chunks)
        if options.work_ids:
            allowed = set(options.work_ids)
            ids = [i for i in ids if self._chunks[i].work_id in allowed]
        return ids

    async def vector_search(
        self, embedding: Sequence[float], options: "SearchOptions"
    ) -> List[SearchResult]:
        ids = [
            i
            for i in self._candidates(options)
            if self._embedding(self._chunks[i], options.language) is not None
        ]
        if not ids:
            return []
        matrix = np.array(
            [self._embedding(self._chunks[i], options.language) for i in ids], dtype=float
        )
        query = np.asarray(embedding, dtype=float)
        norms = np.linalg.norm(matrix, axis=1) * np.linalg.norm(query)
        norms[norms == 0] = 1.0
        sims = matrix @ query / norms

        order = np.argsort(-sims, kind="stable")
        results: List[SearchResult] = []
        for idx in order:
            score = float(sims[idx])
            if options.min_similarity > 0 and score < options.min_similarity:
                continue
            results.append(self._result(ids[int(idx)], SearchType.VECTOR, similarity=score))
            if len(results) >= options.limit:
                break
        return results

    async def lexical_search(self, query_text: str, options: "SearchOptions") -> List[SearchResult]:
        terms = lexical_terms(query_text)
        if not terms:
            return []
        ids = [
            i
            for i in self._candidates(options)
            if self._content(self._chunks[i], options.language)
        ]
        if not ids:
            return []
        docs = [list(iter_tokens(self._content(self._chunks[i], options.language))) for i in ids]

        # Every term must prefix-match some token of the document
        matching: List[int] = []
        expanded: set[str] = set()
        for pos, tokens in enumerate(docs):
            hits = [[tok for tok in tokens if tok.startswith(t)] for t in terms]
            if all(hits):
                matching.append(pos)
                for h in hits:
                    expanded.update(h)
        if not matching:
            return []

        scores = BM25Okapi(docs).get_scores(sorted(expanded))
        ranked = sorted(matching, key=lambda pos: float(scores[pos]), reverse=True)
        results: List[SearchResult] = []
        # min_similarity applies to vector hits only
        for pos in ranked:
            score = bm25_similarity(float(scores[pos]))
            chunk_id = ids[pos]
            content = self._content(self._chunks[chunk_id], options.language)
            results.append(
                self._result(
                    chunk_id,
                    SearchType.FULLTEXT,
                    similarity=score,
                    matched_terms=extract_matched_terms(content, terms),
                )
            )
            if len(results) >= options.limit:
                break
        return results

    async def get_by_ids(self, ids: Sequence[int]) -> List[SearchResult]:
        return [self._result(i, SearchType.HYBRID) for i in ids if i in self._chunks]

    async def get_cached_search(self, cache_key: str) -> Optional[CachedSearch]:
        row = self._cache.get(cache_key)
        if row is None:
            return None
        if row.expires_at <= self._clock():
            del self._cache[cache_key]
            return None
        return CachedSearch(chunk_ids=list(row.entry.chunk_ids), scores=list(row.entry.scores))

    async def set_cached_search(
        self,
        cache_key: str,
        query_text: str,
        chunk_ids: Sequence[int],
        scores: Sequence[float],
        ttl: dt.timedelta,
    ) -> None:
        self._cache[cache_key] = _CacheRow(
            query_text=query_text,
            entry=CachedSearch(chunk_ids=list(chunk_ids), scores=list(scores)),
            expires_at=self._clock() + ttl,
        )

    async def save_chunks(self, chunks: Sequence[ChunkRecord]) -> int:
        staged: Dict[str, ChunkRecord] = {}
        for chunk in chunks:
            if not chunk.tref:
                raise ValueError("chunk tref is required")
            staged[chunk.tref] = dataclasses.replace(chunk)
        # Whole batch validated before any write
        for tref, chunk in staged.items():
            chunk_id = self._ids_by_tref.get(tref)
            if chunk_id is None:
                chunk_id = self._next_id
                self._next_id += 1
                self._ids_by_tref[tref] = chunk_id
            self._chunks[chunk_id] = chunk
        self._write_snapshot()
        return len(chunks)

    async def delete_work_chunks(self, work_id: int) -> int:
        doomed = [i for i, c in self._chunks.items() if c.work_id == work_id]
        for i in doomed:
            del self._ids_by_tref[self._chunks[i].tref]
            del self._chunks[i]
        if doomed:
            self._write_snapshot()
        return len(doomed)

    async def chunks_missing_embeddings(
        self, language: str, limit: int
    ) -> List[Tuple[int, str]]:
        out: List[Tuple[int, str]] = []
        for chunk_id in sorted(self._chunks):
            chunk = self._chunks[chunk_id]
            content = self._content(chunk, language)
            if content and self._embedding(chunk, language) is None:
                out.append((chunk_id, content))
            if len(out) >= limit:
                break
        return out

    async def update_embeddings(
        self, pairs: Sequence[Tuple[int, List[float]]], language: str
    ) -> int:
        field_name = "embedding_hebrew" if language == "he" else "embedding_english"
        missing = [i for i, _ in pairs if i not in self._chunks]
        if missing:
            raise KeyError(f"unknown chunk ids: {missing}")
        for chunk_id, embedding in pairs:
            setattr(self._chunks[chunk_id], field_name, list(embedding))
        self._write_snapshot()
        return len(pairs)
