"""
Retrieval reconciler: semantic (hybrid search) first, structured index as
fallback, merged by reference when both contribute.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass, field
from enum import Enum
from typing import List, Optional

from .config import ReconcilerConfig
from .hybrid import HybridSearchEngine
from .retriever import SearchAnalytics, Witness
from .structured import StructuredIndexRetriever, WitnessFetchError

logger = logging.getLogger(__name__)


class RetrievalMethod(str, Enum):
    SEMANTIC = "semantic"
    LEGACY = "legacy"
    HYBRID = "hybrid"


@dataclass
class ReconciledWitnesses:
    question: str
    witnesses: List[Witness]
    provenance: RetrievalMethod
    guesses: List[str] = field(default_factory=list)
    analytics: Optional[SearchAnalytics] = None


def merge_witnesses(primary: List[Witness], secondary: List[Witness]) -> List[Witness]:
    """All of `primary`, then the `secondary` witnesses whose tref is new."""
    merged = list(primary)
    seen = {w.tref for w in primary}
    for w in secondary:
        if w.tref in seen:
            continue
        seen.add(w.tref)
        merged.append(w)
    return merged


class RetrievalReconciler:
    def __init__(
        self,
        engine: HybridSearchEngine,
        legacy: StructuredIndexRetriever,
        config: ReconcilerConfig | None = None,
    ):
        self.engine = engine
        self.legacy = legacy
        self.config = config or ReconcilerConfig()

    async def resolve(self, question: str) -> ReconciledWitnesses:
        question = question.strip()
        if not question:
            raise ValueError("question must not be empty")

        try:
            response = await self.engine.search(question, self.config.search_options())
        except Exception as e:
            logger.warning("Semantic retrieval failed, falling back to structured index: %s", e)
            legacy = await self.legacy.bootstrap(question)
            return ReconciledWitnesses(
                question=question,
                witnesses=legacy.witnesses,
                provenance=RetrievalMethod.LEGACY,
                guesses=legacy.guesses,
            )

        semantic = response.witnesses()
        semantic_guesses = [w.tref for w in semantic]
        semantic_result = ReconciledWitnesses(
            question=question,
            witnesses=semantic,
            provenance=RetrievalMethod.SEMANTIC,
            guesses=semantic_guesses,
            analytics=response.analytics,
        )
        if len(semantic) >= self.config.min_semantic_witnesses:
            return semantic_result

        logger.info(
            "Semantic retrieval returned %d witnesses, trying structured index", len(semantic)
        )
        try:
            legacy = await self.legacy.bootstrap(question)
        except WitnessFetchError as e:
            logger.warning("Structured index unavailable: %s", e)
            return semantic_result

        if semantic and legacy.witnesses:
            return ReconciledWitnesses(
                question=question,
                witnesses=merge_witnesses(semantic, legacy.witnesses),
                provenance=RetrievalMethod.HYBRID,
                guesses=semantic_guesses + legacy.guesses,
                analytics=response.analytics,
            )
        if len(legacy.witnesses) > len(semantic):
            return ReconciledWitnesses(
                question=question,
                witnesses=legacy.witnesses,
                provenance=RetrievalMethod.LEGACY,
                guesses=legacy.guesses,
                analytics=response.analytics,
            )
        return semantic_result
