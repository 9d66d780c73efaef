"""
Minimal keyword and complexity metrics for chunks.

Frequency based, no NLP dependencies:
- Lowercase, strip punctuation
- Drop short tokens and a small per-language stopword list
- Return the most frequent tokens (first occurrence wins ties)
"""

from __future__ import annotations

import re
from collections import Counter
from typing import Iterable, List

PUNCT_RE = re.compile(r"[^\w\s]")
SENTENCE_END_RE = re.compile(r"[.!?]+")

ENGLISH_STOPWORDS = {
    "the", "a", "an", "and", "or", "but", "in", "on", "at", "to", "for",
    "of", "with", "by", "is", "are", "was", "were",
}
HEBREW_STOPWORDS = {
    "של", "על", "את", "עם", "אל", "בו", "לא", "זה", "הוא", "היא", "הם", "הן",
}


def iter_keywords(text: str, language: str = "english") -> Iterable[str]:
    stopwords = HEBREW_STOPWORDS if language == "hebrew" else ENGLISH_STOPWORDS
    for tok in PUNCT_RE.sub(" ", text.lower()).split():
        if len(tok) <= 2 or tok in stopwords:
            continue
        yield tok


def extract_keywords(text: str, language: str = "english", max_terms: int = 10) -> List[str]:
    if not text:
        return []
    counts = Counter(iter_keywords(text, language))
    return [tok for tok, _ in counts.most_common(max_terms)]


def complexity_score(text: str) -> float:
    """0..1, from average sentence length (60%) and average word length (40%)."""
    words = text.split() if text else []
    if not words:
        return 0.0
    sentences = len(SENTENCE_END_RE.split(text))
    words_per_sentence = len(words) / max(sentences, 1)
    word_length = sum(len(w) for w in words) / len(words)
    return min((words_per_sentence / 20) * 0.6 + (word_length / 8) * 0.4, 1.0)
