"""
Embedding client for OpenAI-compatible APIs.

Errors are mapped by exception type to EmbeddingError(kind) so callers can
branch on the kind instead of inspecting messages.
"""

from __future__ import annotations

import asyncio
import logging
import os
import random
from enum import Enum
from typing import AsyncIterator, List, Optional, Protocol, Sequence, Tuple

import openai
from openai import AsyncOpenAI

DEFAULT_EMBEDDING_MODEL = "text-embedding-3-small"
DEFAULT_EMBEDDING_DIM = 1536
DEFAULT_LOCAL_EMBEDDING_MODEL = "all-MiniLM-L6-v2"

logger = logging.getLogger(__name__)


class EmbeddingErrorKind(str, Enum):
    RATE_LIMITED = "rate_limited"
    AUTHENTICATION = "authentication"
    UNAVAILABLE = "unavailable"
    INVALID_RESPONSE = "invalid_response"


class EmbeddingError(Exception):
    def __init__(self, kind: EmbeddingErrorKind, message: str):
        super().__init__(message)
        self.kind = kind


class Embedder(Protocol):
    """Anything that turns text into fixed-size vectors."""

    dimensions: int

    async def embed(self, text: str) -> List[float]:
        ...

    async def embed_batch(self, texts: Sequence[str]) -> List[List[float]]:
        ...


def _classify(exc: Exception) -> EmbeddingErrorKind:
    if isinstance(exc, openai.RateLimitError):
        return EmbeddingErrorKind.RATE_LIMITED
    if isinstance(exc, (openai.AuthenticationError, openai.PermissionDeniedError)):
        return EmbeddingErrorKind.AUTHENTICATION
    if isinstance(exc, openai.BadRequestError):
        return EmbeddingErrorKind.INVALID_RESPONSE
    return EmbeddingErrorKind.UNAVAILABLE


class OpenAIEmbedder:
    """Async embeddings via an OpenAI-compatible endpoint."""

    def __init__(
        self,
        api_key: Optional[str] = None,
        base_url: Optional[str] = None,
        model: str = DEFAULT_EMBEDDING_MODEL,
        dimensions: int = DEFAULT_EMBEDDING_DIM,
        max_retries: int = 3,
        retry_base_delay: float = 0.5,
        client: Optional[AsyncOpenAI] = None,
    ):
        self.model = model
        self.dimensions = dimensions
        self.max_retries = max_retries
        self.retry_base_delay = retry_base_delay
        if client is None:
            api_key = api_key or os.getenv("OPENAI_API_KEY")
            if not api_key:
                raise ValueError("API key required. Set OPENAI_API_KEY.")
            # Retries are handled here so backoff stays visible in logs
            client = AsyncOpenAI(api_key=api_key, base_url=base_url, max_retries=0)
        self.client = client

    async def embed(self, text: str) -> List[float]:
        vectors = await self.embed_batch([text])
        return vectors[0]

    async def embed_batch(self, texts: Sequence[str]) -> List[List[float]]:
        if not texts:
            return []
        retry_count = 0
        while True:
            try:
                response = await self.client.embeddings.create(
                    model=self.model,
                    input=list(texts),
                )
                break
            except openai.OpenAIError as e:
                kind = _classify(e)
                if kind is EmbeddingErrorKind.RATE_LIMITED and retry_count < self.max_retries:
                    retry_count += 1
                    # Exponential backoff with jitter
                    backoff = (2 ** retry_count) * self.retry_base_delay + random.uniform(
                        0, self.retry_base_delay
                    )
                    logger.warning(
                        "Embedding rate limit hit. Retrying in %s s (attempt %s/%s)",
                        round(backoff, 1),
                        retry_count,
                        self.max_retries,
                    )
                    await asyncio.sleep(backoff)
                    continue
                logger.error("Embedding request failed (%s): %s", kind.value, e)
                raise EmbeddingError(kind, str(e)) from e

        vectors = [list(item.embedding) for item in sorted(response.data, key=lambda d: d.index)]
        self._check(vectors, len(texts))
        return vectors

    def _check(self, vectors: List[List[float]], expected: int) -> None:
        if len(vectors) != expected:
            raise EmbeddingError(
                EmbeddingErrorKind.INVALID_RESPONSE,
                f"expected {expected} embeddings, got {len(vectors)}",
            )
        for v in vectors:
            if len(v) != self.dimensions:
                raise EmbeddingError(
                    EmbeddingErrorKind.INVALID_RESPONSE,
                    f"expected {self.dimensions} dimensions, got {len(v)}",
                )


async def embed_batched(
    embedder: Embedder,
    texts: Sequence[str],
    batch_size: int = 10,
    delay: float = 0.1,
) -> AsyncIterator[Tuple[int, Optional[List[float]]]]:
    """
    Embed texts in sequential batches, yielding (index, vector) pairs.

    A batch that fails yields None for each of its texts so the caller never
    stores a vector against the wrong content.
    """
    for start in range(0, len(texts), batch_size):
        batch = list(texts[start : start + batch_size])
        try:
            vectors: List[Optional[List[float]]] = list(await embedder.embed_batch(batch))
        except EmbeddingError as e:
            logger.warning(
                "Embedding batch %d-%d failed (%s); leaving it empty",
                start,
                start + len(batch) - 1,
                e.kind.value,
            )
            vectors = [None] * len(batch)
        for offset, vector in enumerate(vectors):
            yield start + offset, vector
        if start + batch_size < len(texts):
            await asyncio.sleep(delay)
