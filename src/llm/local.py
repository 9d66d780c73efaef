"""
Local embeddings with sentence-transformers.
"""

from __future__ import annotations

import asyncio
import logging
from typing import List, Sequence

from sentence_transformers import SentenceTransformer

from .client import DEFAULT_LOCAL_EMBEDDING_MODEL, EmbeddingError, EmbeddingErrorKind

logger = logging.getLogger(__name__)


class SentenceTransformerEmbedder:
    """Embedder that runs a sentence-transformers model off the event loop."""

    def __init__(self, model_name: str = DEFAULT_LOCAL_EMBEDDING_MODEL, model: SentenceTransformer | None = None):
        self.model_name = model_name
        self.model = model or SentenceTransformer(model_name)
        self.dimensions = int(self.model.get_sentence_embedding_dimension())

    def _encode(self, texts: List[str]) -> List[List[float]]:
        emb = self.model.encode(
            texts,
            batch_size=64,
            show_progress_bar=False,
            convert_to_numpy=True,
            normalize_embeddings=True,
        )
        return [row.tolist() for row in emb]

    async def embed(self, text: str) -> List[float]:
        vectors = await self.embed_batch([text])
        return vectors[0]

    async def embed_batch(self, texts: Sequence[str]) -> List[List[float]]:
        if not texts:
            return []
        try:
            return await asyncio.to_thread(self._encode, list(texts))
        except (RuntimeError, ValueError) as e:
            logger.error("Local embedding failed: %s", e)
            raise EmbeddingError(EmbeddingErrorKind.UNAVAILABLE, str(e)) from e
