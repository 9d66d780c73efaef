"""
Utility functions for lexical search.
"""

from __future__ import annotations

import re
from typing import Iterable, List

TOKEN_RE = re.compile(r"\w+", re.UNICODE)

STOPWORDS = {
    "the", "a", "an", "and", "or", "of", "in", "on", "for", "to",
    "is", "are", "be", "as", "that", "this", "these", "those",
    "with", "by", "at", "from", "it", "its", "we", "they", "you",
    "what", "does", "do", "how", "why", "about", "say", "says",
}


def iter_tokens(text: str) -> Iterable[str]:
    """Lowercased unicode word tokens (Hebrew included)."""
    for match in TOKEN_RE.finditer(text.lower()):
        yield match.group(0)


def lexical_terms(query: str) -> List[str]:
    """Query terms for full-text search: stopwords dropped, first occurrence kept."""
    seen: set[str] = set()
    terms: List[str] = []
    for tok in iter_tokens(query):
        if tok in STOPWORDS or tok in seen:
            continue
        seen.add(tok)
        terms.append(tok)
    return terms


def build_tsquery(terms: List[str]) -> str:
    """'divine providence' terms -> 'divine:* & providence:*'."""
    return " & ".join(f"{t}:*" for t in terms)


def extract_matched_terms(text: str | None, terms: List[str]) -> List[str]:
    """Terms that occur (as a word prefix) in the given text."""
    if not text:
        return []
    tokens = set(iter_tokens(text))
    return [t for t in terms if any(tok.startswith(t) for tok in tokens)]
