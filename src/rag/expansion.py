"""
LLM query expansion.

Asks a chat model for a few related terms that might appear in relevant
passages. Any API failure falls back to the original query alone.
"""

from __future__ import annotations

import logging
import re
from dataclasses import dataclass
from typing import List

import openai
from openai import AsyncOpenAI

DEFAULT_EXPANSION_MODEL = "gpt-4o-mini"

EXPANSION_PROMPT = (
    "Given a query about Jewish texts, generate 5 related terms or concepts that "
    "might appear in relevant passages. Return only the terms, one per line."
)

# "1. term", "- term", "* term"
_LIST_MARKER_RE = re.compile(r"^\s*(?:\d+[.)]|[-*•])\s*")

logger = logging.getLogger(__name__)


@dataclass
class QueryExpander:
    """Thin wrapper over an AsyncOpenAI chat client."""

    client: AsyncOpenAI
    model: str = DEFAULT_EXPANSION_MODEL
    max_terms: int = 5

    async def expand(self, query: str) -> List[str]:
        """Return [query, *related_terms]; just [query] when the model is unavailable."""
        try:
            response = await self.client.chat.completions.create(
                model=self.model,
                messages=[
                    {"role": "system", "content": EXPANSION_PROMPT},
                    {"role": "user", "content": query},
                ],
                max_tokens=100,
                temperature=0.3,
            )
        except openai.OpenAIError as e:
            logger.warning("Query expansion failed, using original query: %s", e)
            return [query]

        content = response.choices[0].message.content if response.choices else None
        terms: List[str] = []
        for line in (content or "").splitlines():
            term = _LIST_MARKER_RE.sub("", line).strip()
            if term and term.lower() != query.lower() and term not in terms:
                terms.append(term)
        return [query, *terms[: self.max_terms]]
