"""
Ask a question against the retrieval stack and print the witnesses.

- Runs the reconciler (hybrid search first, structured index fallback).
- With --verify-answer FILE, checks the answer in FILE against the
  retrieved witnesses and prints the annotated text.
"""

from __future__ import annotations

import argparse
import asyncio
import dataclasses
import logging
from pathlib import Path

from src.rag.hybrid import analyze_search_quality
from src.runtime.config import Settings
from src.runtime.container import build_services
from src.verification.citations import verify_answer


def _preview(text: str, width: int = 160) -> str:
    text = " ".join(text.split())
    return text if len(text) <= width else text[: width - 3] + "..."


async def run(question: str, answer_path: Path | None, settings: Settings) -> None:
    services = build_services(settings)
    try:
        resolved = await services.reconciler.resolve(question)
    finally:
        await services.aclose()

    print(f"Question:   {resolved.question}")
    print(f"Provenance: {resolved.provenance.value}")
    print(f"Witnesses:  {len(resolved.witnesses)}")
    for i, w in enumerate(resolved.witnesses, start=1):
        print(f"\n[{i}] {w.tref}  ({w.provenance.value}, score={w.score:.3f})")
        print(f"    {_preview(w.text)}")

    if resolved.analytics is not None:
        a = resolved.analytics
        print("\nSearch analytics:")
        print(f"  query_time_ms:    {a.query_time_ms:8.1f}")
        print(f"  vector/fulltext:  {a.vector_results}/{a.fulltext_results}")
        print(f"  hybrid results:   {a.hybrid_results}")
        print(f"  cache hit:        {a.cache_hit}")
        if a.expanded_terms:
            print(f"  expanded with:    {', '.join(a.expanded_terms)}")
        if a.warnings:
            print(f"  warnings:         {'; '.join(a.warnings)}")

    quality = analyze_search_quality(resolved.witnesses)
    print(f"\nConfidence: {quality.confidence:.2f}")
    for rec in quality.recommendations:
        print(f"  - {rec}")

    if answer_path is not None:
        result = verify_answer(answer_path.read_text(encoding="utf-8"), resolved.witnesses)
        print("\nVerification:")
        print(f"  sourced sentences: {result.sourced_sentences}/{result.total_sentences}")
        print(f"  accuracy:          {result.accuracy:5.1f}%")
        print(f"\n{result.verified_answer}")


def main() -> None:
    parser = argparse.ArgumentParser(
        description="Retrieve witnesses for a question about the author's works.",
    )
    parser.add_argument("question", help="Natural-language question")
    parser.add_argument(
        "--verify-answer",
        type=Path,
        default=None,
        help="Path to a generated answer to check against the retrieved witnesses",
    )
    parser.add_argument(
        "--memory",
        action="store_true",
        help="Use the local chunk snapshot (MEMORY_STORE_PATH) instead of PostgreSQL.",
    )
    parser.add_argument(
        "--expand",
        action="store_true",
        help="Expand the query with related terms before embedding it.",
    )
    args = parser.parse_args()

    if not args.question.strip():
        print("Error: question must not be empty")
        return
    if args.verify_answer is not None and not args.verify_answer.exists():
        print(f"Error: answer file not found: {args.verify_answer}")
        return

    settings = Settings.from_env()
    if args.memory:
        settings = dataclasses.replace(settings, chunk_store="memory")
    if args.expand:
        settings = dataclasses.replace(settings, query_expansion=True)
    logging.basicConfig(level=settings.log_level, format="%(levelname)s %(name)s: %(message)s")

    asyncio.run(run(args.question, args.verify_answer, settings))


if __name__ == "__main__":
    main()
