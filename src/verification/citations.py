"""
Sentence-level citation check: every sentence of a generated answer should
cite, in parentheses, the reference of a witness that was actually retrieved.
"""

from __future__ import annotations

import re
from dataclasses import dataclass, field
from typing import Iterable, List

from src.rag.retriever import Witness

WARNING_MARKER = "⚠️"
NEEDS_SOURCE = "(Needs source)"

# Approximation: end punctuation, whitespace, then a capital letter. Our own
# "(Needs source)" suffix also ends a sentence so flagged output re-splits.
SENTENCE_BOUNDARY_RE = re.compile(r"(?:(?<=[.!?])|(?<=\(Needs source\)))\s+(?=[A-Z]|\u26a0)")
PARENTHETICAL_RE = re.compile(r"\(([^)]+)\)")


@dataclass
class SentenceCheck:
    text: str
    sourced: bool
    citations: List[str] = field(default_factory=list)


@dataclass
class VerificationResult:
    original_answer: str
    verified_answer: str
    unsourced_sentences: int
    total_sentences: int
    sentences: List[SentenceCheck] = field(default_factory=list)

    @property
    def sourced_sentences(self) -> int:
        return self.total_sentences - self.unsourced_sentences

    @property
    def accuracy(self) -> float:
        """Percentage of sourced sentences (100 for an empty answer)."""
        if self.total_sentences == 0:
            return 100.0
        return 100.0 * self.sourced_sentences / self.total_sentences


def split_sentences(text: str) -> List[str]:
    parts = (s.strip() for s in SENTENCE_BOUNDARY_RE.split(text))
    return [s for s in parts if s]


def extract_parentheticals(sentence: str) -> List[str]:
    return PARENTHETICAL_RE.findall(sentence)


def _is_flagged(sentence: str) -> bool:
    return sentence.startswith(WARNING_MARKER) and sentence.endswith(NEEDS_SOURCE)


def flag_sentence(sentence: str) -> str:
    return f"{WARNING_MARKER} {sentence} {NEEDS_SOURCE}"


def verify_answer(answer: str, witnesses: Iterable[Witness]) -> VerificationResult:
    """
    Mark sentences that do not cite a retrieved witness.

    A sentence is sourced when one of its parentheticals equals a witness tref
    exactly (case-sensitive, no normalization). Anything else, including a
    plausible-looking reference that was not retrieved, is flagged.
    """
    if not answer or not answer.strip():
        return VerificationResult(
            original_answer=answer,
            verified_answer=answer,
            unsourced_sentences=0,
            total_sentences=0,
        )

    valid_trefs = {w.tref for w in witnesses}
    checks: List[SentenceCheck] = []
    rendered: List[str] = []
    for sentence in split_sentences(answer):
        citations = extract_parentheticals(sentence)
        sourced = any(c in valid_trefs for c in citations)
        checks.append(SentenceCheck(text=sentence, sourced=sourced, citations=citations))
        if sourced or _is_flagged(sentence):
            rendered.append(sentence)
        else:
            rendered.append(flag_sentence(sentence))

    return VerificationResult(
        original_answer=answer,
        verified_answer=" ".join(rendered),
        unsourced_sentences=sum(1 for c in checks if not c.sourced),
        total_sentences=len(checks),
        sentences=checks,
    )
