"""
Legacy retrieval path: catalog matcher guesses references, the fetcher
resolves them one at a time.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass, field
from typing import List

from src.catalog.matcher import StructuredIndexMatcher
from src.sources.sefaria import FetchError, ReferenceFetcher

from .retriever import Provenance, Witness

logger = logging.getLogger(__name__)


class WitnessFetchError(Exception):
    """Every guessed reference failed to fetch."""

    def __init__(self, references: List[str], errors: List[FetchError]):
        super().__init__(f"all {len(references)} reference fetches failed")
        self.references = references
        self.errors = errors


@dataclass
class StructuredResult:
    question: str
    witnesses: List[Witness]
    guesses: List[str] = field(default_factory=list)


class StructuredIndexRetriever:
    """Structured-index bootstrap: guess references, then fetch them sequentially."""

    def __init__(self, matcher: StructuredIndexMatcher, fetcher: ReferenceFetcher):
        self.matcher = matcher
        self.fetcher = fetcher

    async def fetch_witnesses(self, references: List[str]) -> List[Witness]:
        # Sequential on purpose: the text service is rate limited
        witnesses: List[Witness] = []
        errors: List[FetchError] = []
        for ref in references:
            try:
                result = await self.fetcher.fetch_text(ref, language="en")
            except FetchError as e:
                logger.warning("Skipping %s (%s): %s", ref, e.kind.value, e)
                errors.append(e)
                continue
            if not result.text or not result.text.strip():
                logger.warning("Skipping %s: no text content", ref)
                continue
            witnesses.append(
                Witness(
                    tref=result.resolved_reference or ref,
                    text=result.text,
                    score=0.0,
                    provenance=Provenance.STRUCTURED_INDEX,
                    hebrew=result.alternate_text,
                )
            )
        if references and len(errors) == len(references):
            raise WitnessFetchError(list(references), errors)
        return witnesses

    async def bootstrap(self, question: str) -> StructuredResult:
        question = question.strip()
        guesses = self.matcher.guess_references(question)
        witnesses = await self.fetch_witnesses(guesses)
        logger.info(
            "Structured index: %d/%d references resolved", len(witnesses), len(guesses)
        )
        return StructuredResult(question=question, witnesses=witnesses, guesses=guesses)
