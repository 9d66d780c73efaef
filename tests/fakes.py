"""
Hand-written fakes for retrieval tests (no network, no database).
"""

from __future__ import annotations

import datetime as dt
from typing import Dict, List, Sequence

from src.llm.client import EmbeddingError, EmbeddingErrorKind


class FakeEmbedder:
    """Returns a fixed vector per known text (or the default), counting calls."""

    def __init__(
        self,
        vectors: Dict[str, List[float]] | None = None,
        default: List[float] | None = None,
        fail: EmbeddingErrorKind | None = None,
    ):
        self.vectors = vectors or {}
        self.default = default or [1.0, 0.0, 0.0]
        self.dimensions = len(self.default)
        self.fail = fail
        self.calls: List[List[str]] = []

    async def embed(self, text: str) -> List[float]:
        return (await self.embed_batch([text]))[0]

    async def embed_batch(self, texts: Sequence[str]) -> List[List[float]]:
        self.calls.append(list(texts))
        if self.fail is not None:
            raise EmbeddingError(self.fail, "embedding backend down")
        return [list(self.vectors.get(t, self.default)) for t in texts]


class FakeClock:
    def __init__(self, start: dt.datetime | None = None):
        self.now = start or dt.datetime(2026, 1, 1, tzinfo=dt.timezone.utc)

    def __call__(self) -> dt.datetime:
        return self.now

    def advance(self, **kwargs) -> None:
        self.now += dt.timedelta(**kwargs)
