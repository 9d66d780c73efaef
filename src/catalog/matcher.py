"""
Keyword/topic matcher over the structured works catalog.

Scores works against a question by plain lowercase substring matching (no
stemming, no fuzzy matching), picks candidate chapter references for the
best works, then walks to neighbouring chapters.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass
from typing import Dict, Iterable, List, Sequence, Tuple

from .models import Catalog, CatalogChapter, CatalogWork, StructureType

logger = logging.getLogger(__name__)


TITLE_WEIGHT = 10
ALT_TITLE_WEIGHT = 8
KEYWORD_WEIGHT = 3
TOPIC_WEIGHT = 2

CHAPTER_TITLE_WEIGHT = 15
CHAPTER_TOPIC_WEIGHT = 10

MAX_MATCHED_WORKS = 3
MAX_RELEVANT_CHAPTERS = 4
MAX_BASE_REFERENCES = 8
MAX_EXPANDED_REFERENCES = 12
ADJACENT_WINDOW = 2


def _ordered_unique(refs: Iterable[str], cap: int) -> List[str]:
    seen: set[str] = set()
    out: List[str] = []
    for ref in refs:
        if ref in seen:
            continue
        seen.add(ref)
        out.append(ref)
    return out[:cap]


@dataclass(frozen=True)
class WorkMatch:
    work: CatalogWork
    score: int


class StructuredIndexMatcher:
    """Match questions against an immutable catalog."""

    def __init__(self, catalog: Catalog):
        self.catalog = catalog

    def score_work(self, work: CatalogWork, question: str) -> int:
        q = question.lower()
        score = 0
        if work.title.lower() in q:
            score += TITLE_WEIGHT
        for alt in work.alternative_titles:
            if alt.lower() in q:
                score += ALT_TITLE_WEIGHT
        for kw in work.keywords:
            if kw.lower() in q:
                score += KEYWORD_WEIGHT
        for chapter in work.all_chapters():
            for topic in chapter.topics:
                if topic.lower() in q:
                    score += TOPIC_WEIGHT
        return score

    def scored_works(self, question: str) -> List[WorkMatch]:
        """All works with a positive score, best first (ties keep catalog order)."""
        matches = [
            WorkMatch(work=w, score=self.score_work(w, question))
            for w in self.catalog.works
        ]
        matches = [m for m in matches if m.score > 0]
        matches.sort(key=lambda m: m.score, reverse=True)
        return matches

    def match_works(self, question: str) -> List[CatalogWork]:
        return [m.work for m in self.scored_works(question)[:MAX_MATCHED_WORKS]]

    @staticmethod
    def _relevant_chapters(
        chapters: Sequence[CatalogChapter], question: str
    ) -> List[CatalogChapter]:
        q = question.lower()
        scored: List[Tuple[CatalogChapter, int]] = []
        for ch in chapters:
            s = 0
            if ch.title.lower() in q:
                s += CHAPTER_TITLE_WEIGHT
            for topic in ch.topics:
                if topic.lower() in q:
                    s += CHAPTER_TOPIC_WEIGHT
            if s > 0:
                scored.append((ch, s))
        scored.sort(key=lambda x: x[1], reverse=True)
        return [ch for ch, _ in scored[:MAX_RELEVANT_CHAPTERS]]

    def select_references(
        self, matched_works: Sequence[CatalogWork], question: str
    ) -> List[str]:
        refs: List[str] = []
        for work in matched_works:
            if work.structure is StructureType.SIMPLE_CHAPTERS:
                relevant = self._relevant_chapters(work.chapters, question)
                if not relevant:
                    relevant = list(work.chapters[: min(3, len(work.chapters))])
                refs.extend(ch.tref for ch in relevant)
            elif work.structure is StructureType.COMPLEX_PARTS:
                relevant = self._relevant_chapters(work.all_chapters(), question)
                if not relevant:
                    relevant = [ch for part in work.parts[:2] for ch in part.chapters[:2]]
                refs.extend(ch.tref for ch in relevant)
            elif work.tref:
                refs.append(work.tref)
        return _ordered_unique(refs, MAX_BASE_REFERENCES)

    def opening_references(self, works: Sequence[CatalogWork]) -> List[str]:
        """Opening chapters of the given works, used when nothing matched."""
        refs: List[str] = []
        for work in works:
            if work.structure is StructureType.SIMPLE_CHAPTERS:
                refs.extend(ch.tref for ch in work.chapters[: min(3, len(work.chapters))])
            elif work.structure is StructureType.COMPLEX_PARTS:
                refs.extend(ch.tref for part in work.parts[:2] for ch in part.chapters[:2])
            elif work.tref:
                refs.append(work.tref)
        return _ordered_unique(refs, MAX_BASE_REFERENCES)

    def expand_adjacent(
        self, base_references: Sequence[str], matched_works: Sequence[CatalogWork]
    ) -> List[str]:
        refs: List[str] = list(base_references)
        for work in matched_works:
            if work.structure is not StructureType.SIMPLE_CHAPTERS:
                continue
            index: Dict[str, int] = {ch.tref: i for i, ch in enumerate(work.chapters)}
            for base in base_references:
                idx = index.get(base)
                if idx is None:
                    continue
                for offset in range(-ADJACENT_WINDOW, ADJACENT_WINDOW + 1):
                    target = idx + offset
                    if offset == 0 or target < 0 or target >= len(work.chapters):
                        continue
                    refs.append(work.chapters[target].tref)
        return _ordered_unique(refs, MAX_EXPANDED_REFERENCES)

    def guess_references(self, question: str) -> List[str]:
        """Full structured-index pass: match, select, expand (or flagship fallback)."""
        matched = self.match_works(question)
        if not matched:
            refs = self.opening_references(self.catalog.flagship_works())
            logger.info("No catalog match; falling back to %d flagship references", len(refs))
            return refs
        base = self.select_references(matched, question)
        refs = self.expand_adjacent(base, matched)
        logger.info(
            "Catalog matched %s -> %d base / %d expanded references",
            [w.key for w in matched],
            len(base),
            len(refs),
        )
        return refs
