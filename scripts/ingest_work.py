"""
Chunk and embed one work reference, or backfill missing embeddings.

Modes:
- Default (dry-run): fetch, chunk and embed the reference, then print a
  summary; no database writes.
- Apply mode (--apply): upsert the chunks into the chunk store in a single
  transaction.
- Backfill mode (--backfill): embed stored chunks that have no vector yet,
  one transaction per batch.
- --memory: use the local JSONL chunk snapshot instead of PostgreSQL; the
  search CLI reads the same file with --memory.
"""

from __future__ import annotations

import argparse
import asyncio
import dataclasses
import logging
from collections import Counter

from src.db.memory_store import InMemoryChunkStore
from src.ingest.chunker import ProcessingOptions
from src.ingest.pipeline import backfill_embeddings
from src.runtime.config import Settings
from src.runtime.container import build_services


async def ingest(
    settings: Settings,
    work_id: int,
    tref: str,
    options: ProcessingOptions,
    apply: bool,
    work_title: str | None = None,
) -> None:
    services = build_services(settings)
    try:
        if apply and work_title and isinstance(services.store, InMemoryChunkStore):
            services.store.add_work(work_id, work_title)
        chunks = await services.processor.process_work(work_id, tref, options, save=apply)
    finally:
        await services.aclose()

    total = len(chunks)
    print(f"Built {total} chunks for {tref}")
    if total == 0:
        return
    with_en = sum(1 for c in chunks if c.embedding_english is not None)
    with_he = sum(1 for c in chunks if c.embedding_hebrew is not None)
    bilingual = sum(1 for c in chunks if c.content_english and c.content_hebrew)
    print(f"  English embeddings: {with_en:5d} ({with_en / total * 100:5.1f}%)")
    print(f"  Hebrew embeddings:  {with_he:5d} ({with_he / total * 100:5.1f}%)")
    print(f"  Bilingual chunks:   {bilingual:5d}")

    keywords: Counter = Counter()
    for c in chunks:
        keywords.update(c.topic_keywords)
    if keywords:
        print("\nTop keywords:")
        for word, count in keywords.most_common(10):
            print(f"  {word:20s}: {count:4d}")

    if apply:
        print("\nChunks upserted.")
    else:
        print("\nDry run complete. No database changes were made.")


async def backfill(settings: Settings, language: str, batch_size: int, max_batches: int | None) -> None:
    services = build_services(settings)
    try:
        report = await backfill_embeddings(
            services.store,
            services.embedder,
            language=language,
            batch_size=batch_size,
            max_batches=max_batches,
        )
    finally:
        await services.aclose()
    print("\nBackfill complete.")
    print(f"  Batches:          {report.batches}")
    print(f"  Chunks embedded:  {report.updated}")
    print(f"  Failed batches:   {report.failed_batches}")


def main() -> None:
    parser = argparse.ArgumentParser(description="Ingest a work reference into the chunk store.")
    parser.add_argument("--work-id", type=int, help="Database id of the work the chunks belong to")
    parser.add_argument("--tref", help='Reference to ingest, e.g. "Mesillat Yesharim 1"')
    parser.add_argument("--apply", action="store_true", help="Write chunks to the chunk store.")
    parser.add_argument(
        "--memory",
        action="store_true",
        help="Write to the local chunk snapshot (MEMORY_STORE_PATH) instead of PostgreSQL.",
    )
    parser.add_argument("--work-title", help="Work title recorded in the local snapshot")
    parser.add_argument("--no-hebrew", action="store_true", help="Skip Hebrew content.")
    parser.add_argument("--max-chunk-length", type=int, default=1000)
    parser.add_argument("--overlap", type=int, default=100)
    parser.add_argument("--backfill", action="store_true", help="Embed stored chunks lacking vectors.")
    parser.add_argument("--language", choices=("en", "he"), default="en")
    parser.add_argument("--batch-size", type=int, default=10)
    parser.add_argument("--max-batches", type=int, default=None)
    args = parser.parse_args()

    settings = Settings.from_env()
    if args.memory:
        settings = dataclasses.replace(settings, chunk_store="memory")
    logging.basicConfig(level=settings.log_level, format="%(levelname)s %(name)s: %(message)s")

    if args.backfill:
        asyncio.run(backfill(settings, args.language, args.batch_size, args.max_batches))
        return

    if args.work_id is None or not args.tref:
        parser.error("--work-id and --tref are required unless --backfill is given")

    options = ProcessingOptions(
        include_hebrew=not args.no_hebrew,
        max_chunk_length=args.max_chunk_length,
        overlap_size=args.overlap,
    )
    asyncio.run(
        ingest(settings, args.work_id, args.tref, options, args.apply, args.work_title)
    )


if __name__ == "__main__":
    main()
