"""
Paragraph/sentence chunker for source texts.

Chunks follow natural boundaries first (blank-line paragraphs, then
sentences) and are only cut by character count as a last resort.
"""

from __future__ import annotations

import re
from dataclasses import dataclass
from typing import List


INLINE_WS_RE = re.compile(r"[^\S\n]+")
EXCESS_NEWLINES_RE = re.compile(r"\n{3,}")
PARAGRAPH_RE = re.compile(r"\n\s*\n")
ENGLISH_SENTENCE_RE = re.compile(r"(?<=[.!?])\s+")
HEBREW_SENTENCE_RE = re.compile(r"(?<=[.!?׃։])\s*")


@dataclass
class ProcessingOptions:
    """Options for chunking and ingesting one work."""

    chunk_size: str = "paragraph"  # paragraph, section or chapter
    include_hebrew: bool = True
    include_english: bool = True
    generate_keywords: bool = True
    max_chunk_length: int = 1000
    overlap_size: int = 100

    def __post_init__(self) -> None:
        if self.max_chunk_length <= 0:
            raise ValueError("max_chunk_length must be positive")
        if not 0 <= self.overlap_size < self.max_chunk_length:
            raise ValueError("overlap_size must be in [0, max_chunk_length)")


def normalize_text(text: str) -> str:
    """Collapse whitespace inside lines, keep at most one blank line between paragraphs."""
    lines = [INLINE_WS_RE.sub(" ", line).strip() for line in text.split("\n")]
    return EXCESS_NEWLINES_RE.sub("\n\n", "\n".join(lines)).strip()


class TextChunker:
    def __init__(self, options: ProcessingOptions | None = None):
        self.options = options or ProcessingOptions()

    def chunk_text(self, text: str, language: str = "english") -> List[str]:
        if not text or not text.strip():
            return []
        clean = normalize_text(text)
        chunks = self._split_by_boundaries(clean, language)
        return self._split_oversized(chunks)

    def _split_by_boundaries(self, text: str, language: str) -> List[str]:
        limit = self.options.max_chunk_length
        chunks: List[str] = []
        for paragraph in PARAGRAPH_RE.split(text):
            paragraph = paragraph.strip()
            if not paragraph:
                continue
            if len(paragraph) <= limit:
                chunks.append(paragraph)
                continue

            current = ""
            for sentence in self.split_sentences(paragraph, language):
                candidate = f"{current} {sentence}" if current else sentence
                if len(candidate) <= limit:
                    current = candidate
                    continue
                if current:
                    chunks.append(current)
                current = sentence
            if current:
                chunks.append(current)
        return chunks

    @staticmethod
    def split_sentences(text: str, language: str = "english") -> List[str]:
        pattern = HEBREW_SENTENCE_RE if language == "hebrew" else ENGLISH_SENTENCE_RE
        return [s.strip() for s in pattern.split(text) if s.strip()]

    def _split_oversized(self, chunks: List[str]) -> List[str]:
        limit = self.options.max_chunk_length
        step = limit - self.options.overlap_size
        out: List[str] = []
        for chunk in chunks:
            if len(chunk) <= limit:
                out.append(chunk)
                continue
            start = 0
            while True:
                end = min(start + limit, len(chunk))
                out.append(chunk[start:end])
                if end == len(chunk):
                    break
                start += step
        return out
