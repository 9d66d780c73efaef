from __future__ import annotations

from typing import List

import pytest

from src.db.memory_store import InMemoryChunkStore
from src.db.records import ChunkRecord
from src.ingest.chunker import ProcessingOptions
from src.ingest.pipeline import WorkProcessor, backfill_embeddings
from src.llm.client import EmbeddingErrorKind
from src.sources.sefaria import FetchResult
from tests.fakes import FakeEmbedder


class OneTextFetcher:
    def __init__(self, english: List[str], hebrew: List[str]):
        self.english = english
        self.hebrew = hebrew
        self.requested: List[str] = []

    async def fetch_text(self, reference: str, language: str = "en", version=None) -> FetchResult:
        self.requested.append(reference)
        return FetchResult(
            resolved_reference=reference,
            text=" ".join(self.english),
            segments=list(self.english),
            alternate_segments=list(self.hebrew),
        )


ENGLISH = ["Short first.", "Long A sentence here. Long B sentence here."]
HEBREW = ["עברית א", "עברית ב", "עברית ג"]
OPTIONS = ProcessingOptions(max_chunk_length=25, overlap_size=5)


def _processor(embedder=None, store=None) -> WorkProcessor:
    return WorkProcessor(
        OneTextFetcher(ENGLISH, HEBREW),
        embedder or FakeEmbedder(),
        store=store,
        batch_size=2,
        delay=0,
    )


def test_build_chunks_layout():
    chunks = _processor().build_chunks(7, "Work 1", ENGLISH, HEBREW, OPTIONS)

    assert [c.tref for c in chunks] == ["Work 1:1", "Work 1:2", "Work 1:3", "Work 1:4"]
    assert [c.content_english for c in chunks] == [
        "Short first.",
        "Long A sentence here.",
        "Long B sentence here.",
        None,
    ]
    # Hebrew rides on the first chunk of its segment only
    assert [c.content_hebrew for c in chunks] == ["עברית א", "עברית ב", None, "עברית ג"]
    assert [c.section_number for c in chunks] == [1, 2, 2, 3]
    assert all(c.work_id == 7 for c in chunks)
    assert chunks[3].topic_keywords == ["עברית"]


def test_build_chunks_respects_language_switches():
    options = ProcessingOptions(include_hebrew=False, generate_keywords=False)
    chunks = _processor().build_chunks(1, "Work 1", ENGLISH, HEBREW, options)
    assert len(chunks) == 2
    assert all(c.content_hebrew is None for c in chunks)
    assert all(c.topic_keywords == [] for c in chunks)


@pytest.mark.anyio
async def test_process_work_embeds_and_saves():
    store = InMemoryChunkStore()
    embedder = FakeEmbedder()
    processor = _processor(embedder, store)

    chunks = await processor.process_work(7, "Work 1", OPTIONS, save=True)

    assert len(store) == 4
    assert [c.embedding_english is not None for c in chunks] == [True, True, True, False]
    assert [c.embedding_hebrew is not None for c in chunks] == [True, True, False, True]
    # three English texts then three Hebrew texts, in batches of two
    assert [len(batch) for batch in embedder.calls] == [2, 1, 2, 1]


@pytest.mark.anyio
async def test_failed_embeddings_leave_chunks_unembedded_then_backfill_fills_them():
    store = InMemoryChunkStore()
    processor = _processor(FakeEmbedder(fail=EmbeddingErrorKind.UNAVAILABLE), store)

    chunks = await processor.process_work(7, "Work 1", OPTIONS, save=True)
    assert all(c.embedding_english is None for c in chunks)

    report = await backfill_embeddings(store, FakeEmbedder(), "en", batch_size=2, delay=0)
    assert report.updated == 3
    assert report.batches == 2
    assert report.failed_batches == 0
    assert await store.chunks_missing_embeddings("en", 10) == []


@pytest.mark.anyio
async def test_save_without_store_is_an_error():
    with pytest.raises(ValueError):
        await _processor().process_work(7, "Work 1", OPTIONS, save=True)


async def _seeded_store(count: int) -> InMemoryChunkStore:
    store = InMemoryChunkStore()
    await store.save_chunks(
        [ChunkRecord(work_id=1, tref=f"Work 2:{n}", content_english=f"text {n}") for n in range(count)]
    )
    return store


@pytest.mark.anyio
async def test_backfill_respects_max_batches():
    store = await _seeded_store(5)
    report = await backfill_embeddings(store, FakeEmbedder(), batch_size=2, delay=0, max_batches=1)
    assert (report.updated, report.batches) == (2, 1)
    assert len(await store.chunks_missing_embeddings("en", 10)) == 3


@pytest.mark.anyio
async def test_backfill_stops_at_first_failure():
    store = await _seeded_store(5)
    embedder = FakeEmbedder(fail=EmbeddingErrorKind.RATE_LIMITED)
    report = await backfill_embeddings(store, embedder, batch_size=2, delay=0)
    assert (report.updated, report.batches, report.failed_batches) == (0, 1, 1)
    assert len(embedder.calls) == 1
