"""
Embedding clients: OpenAI-compatible API and local sentence-transformers.
"""

from .client import (
    Embedder,
    EmbeddingError,
    EmbeddingErrorKind,
    OpenAIEmbedder,
    embed_batched,
)

__all__ = [
    "Embedder",
    "EmbeddingError",
    "EmbeddingErrorKind",
    "OpenAIEmbedder",
    "embed_batched",
]
