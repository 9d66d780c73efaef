from __future__ import annotations

from typing import List

import numpy as np
import pytest

from src.llm.client import EmbeddingError, EmbeddingErrorKind
from src.llm.local import SentenceTransformerEmbedder


class _Model:
    def __init__(self, fail: bool = False):
        self.fail = fail
        self.seen: List[List[str]] = []

    def get_sentence_embedding_dimension(self) -> int:
        return 2

    def encode(self, texts, **kwargs):
        self.seen.append(list(texts))
        assert kwargs["normalize_embeddings"] is True
        if self.fail:
            raise RuntimeError("CUDA out of memory")
        return np.array([[float(len(t)), 1.0] for t in texts])


@pytest.mark.anyio
async def test_encodes_off_the_event_loop():
    embedder = SentenceTransformerEmbedder("fake", model=_Model())
    assert embedder.dimensions == 2
    assert await embedder.embed_batch(["ab", "abc"]) == [[2.0, 1.0], [3.0, 1.0]]
    assert await embedder.embed_batch([]) == []


@pytest.mark.anyio
async def test_model_failure_is_unavailable():
    embedder = SentenceTransformerEmbedder("fake", model=_Model(fail=True))
    with pytest.raises(EmbeddingError) as info:
        await embedder.embed("text")
    assert info.value.kind is EmbeddingErrorKind.UNAVAILABLE
