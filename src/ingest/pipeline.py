"""
Ingestion: fetch a work, chunk it, embed it, and upsert the chunks.
"""

from __future__ import annotations

import asyncio
import logging
from dataclasses import dataclass
from typing import TYPE_CHECKING, Dict, List, Optional

from src.db.records import ChunkRecord
from src.llm.client import Embedder, EmbeddingError, embed_batched
from src.sources.sefaria import ReferenceFetcher

from .chunker import ProcessingOptions, TextChunker, normalize_text
from .keywords import complexity_score, extract_keywords

if TYPE_CHECKING:
    from src.db.chunk_store import ChunkStore

logger = logging.getLogger(__name__)


class WorkProcessor:
    """Turn one reference of a work into embedded ChunkRecords."""

    def __init__(
        self,
        fetcher: ReferenceFetcher,
        embedder: Embedder,
        store: Optional["ChunkStore"] = None,
        batch_size: int = 10,
        delay: float = 0.1,
    ):
        self.fetcher = fetcher
        self.embedder = embedder
        self.store = store
        self.batch_size = batch_size
        self.delay = delay

    def build_chunks(
        self,
        work_id: int,
        tref: str,
        english_segments: List[str],
        hebrew_segments: List[str],
        options: ProcessingOptions,
    ) -> List[ChunkRecord]:
        """
        One source segment may yield several English chunks; the matching
        Hebrew segment is attached to the first of them only.
        """
        chunker = TextChunker(options)
        english = english_segments if options.include_english else []
        hebrew = hebrew_segments if options.include_hebrew else []

        chunks: List[ChunkRecord] = []
        for i in range(max(len(english), len(hebrew))):
            parts = chunker.chunk_text(english[i], "english") if i < len(english) else []
            hebrew_text = normalize_text(hebrew[i]) if i < len(hebrew) else None
            if not parts:
                if not hebrew_text:
                    continue
                parts = [None]

            for j, content in enumerate(parts):
                n = len(chunks) + 1
                he = hebrew_text if j == 0 else None
                measured = content or he or ""
                keyword_language = "english" if content else "hebrew"
                chunks.append(
                    ChunkRecord(
                        work_id=work_id,
                        tref=f"{tref}:{n}",
                        canonical_ref=f"{tref}:{n}",
                        content_english=content,
                        content_hebrew=he,
                        chunk_type=options.chunk_size,
                        section_number=i + 1,
                        paragraph_number=n,
                        word_count=len(measured.split()),
                        character_count=len(measured),
                        topic_keywords=(
                            extract_keywords(measured, keyword_language)
                            if options.generate_keywords
                            else []
                        ),
                        complexity_score=complexity_score(measured),
                    )
                )
        return chunks

    async def _attach_embeddings(self, chunks: List[ChunkRecord], language: str) -> int:
        attr = "content_hebrew" if language == "he" else "content_english"
        target = "embedding_hebrew" if language == "he" else "embedding_english"
        indexed = [(i, getattr(c, attr)) for i, c in enumerate(chunks) if getattr(c, attr)]
        if not indexed:
            return 0
        texts = [text for _, text in indexed]
        embedded = 0
        async for pos, vector in embed_batched(
            self.embedder, texts, batch_size=self.batch_size, delay=self.delay
        ):
            if vector is None:
                continue
            setattr(chunks[indexed[pos][0]], target, vector)
            embedded += 1
        return embedded

    async def process_work(
        self,
        work_id: int,
        tref: str,
        options: ProcessingOptions | None = None,
        save: bool = False,
    ) -> List[ChunkRecord]:
        if options is None:
            options = ProcessingOptions()
        result = await self.fetcher.fetch_text(tref, language="en")
        chunks = self.build_chunks(
            work_id, tref, result.segments, result.alternate_segments, options
        )
        embedded: Dict[str, int] = {}
        if options.include_english:
            embedded["en"] = await self._attach_embeddings(chunks, "en")
        if options.include_hebrew:
            embedded["he"] = await self._attach_embeddings(chunks, "he")
        logger.info("Processed %s: %d chunks, embedded %s", tref, len(chunks), embedded)

        if save:
            if self.store is None:
                raise ValueError("save requested but no chunk store configured")
            await self.store.save_chunks(chunks)
        return chunks


@dataclass
class BackfillReport:
    updated: int = 0
    batches: int = 0
    failed_batches: int = 0


async def backfill_embeddings(
    store: "ChunkStore",
    embedder: Embedder,
    language: str = "en",
    batch_size: int = 10,
    delay: float = 0.1,
    max_batches: Optional[int] = None,
) -> BackfillReport:
    """
    Embed stored chunks that have content but no vector for `language`.

    Each batch is written in its own transaction. Stops at the first failed
    batch, since the same rows would be selected again.
    """
    report = BackfillReport()
    while max_batches is None or report.batches < max_batches:
        pending = await store.chunks_missing_embeddings(language, batch_size)
        if not pending:
            break
        report.batches += 1
        try:
            vectors = await embedder.embed_batch([text for _, text in pending])
        except EmbeddingError as e:
            logger.warning("Backfill batch %d failed (%s); stopping", report.batches, e.kind.value)
            report.failed_batches += 1
            break
        report.updated += await store.update_embeddings(
            [(chunk_id, v) for (chunk_id, _), v in zip(pending, vectors)], language
        )
        logger.info("Backfill batch %d: %d chunks embedded", report.batches, len(pending))
        await asyncio.sleep(delay)
    return report
