"""
Corpus ingestion: chunking, keyword metrics, embedding and upsert.
"""

from .chunker import ProcessingOptions, TextChunker, normalize_text
from .keywords import complexity_score, extract_keywords
from .pipeline import BackfillReport, WorkProcessor, backfill_embeddings

__all__ = [
    "BackfillReport",
    "ProcessingOptions",
    "TextChunker",
    "WorkProcessor",
    "backfill_embeddings",
    "complexity_score",
    "extract_keywords",
    "normalize_text",
]
