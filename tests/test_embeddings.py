"""
OpenAIEmbedder against a stand-in for the AsyncOpenAI client.
"""

from __future__ import annotations

from types import SimpleNamespace
from typing import List

import httpx
import openai
import pytest

from src.llm.client import EmbeddingError, EmbeddingErrorKind, OpenAIEmbedder, embed_batched
from tests.fakes import FakeEmbedder


def _api_error(cls, status: int):
    request = httpx.Request("POST", "https://api.example/v1/embeddings")
    return cls("failed", response=httpx.Response(status, request=request), body=None)


class _Embeddings:
    def __init__(self, outcomes: List[object]):
        self.outcomes = list(outcomes)
        self.calls: List[dict] = []

    async def create(self, **kwargs):
        self.calls.append(kwargs)
        outcome = self.outcomes.pop(0)
        if isinstance(outcome, Exception):
            raise outcome
        return outcome


def _response(*vectors: List[float]):
    # reversed on purpose: the client must reorder by index
    data = [SimpleNamespace(index=i, embedding=v) for i, v in enumerate(vectors)]
    return SimpleNamespace(data=list(reversed(data)))


def _embedder(*outcomes, dimensions: int = 2, max_retries: int = 3) -> OpenAIEmbedder:
    client = SimpleNamespace(embeddings=_Embeddings(list(outcomes)))
    return OpenAIEmbedder(
        client=client, dimensions=dimensions, max_retries=max_retries, retry_base_delay=0
    )


@pytest.mark.anyio
async def test_embed_batch_orders_by_index():
    embedder = _embedder(_response([1.0, 0.0], [0.0, 1.0]))
    assert await embedder.embed_batch(["a", "b"]) == [[1.0, 0.0], [0.0, 1.0]]
    assert embedder.client.embeddings.calls[0]["input"] == ["a", "b"]


@pytest.mark.anyio
async def test_empty_batch_makes_no_request():
    embedder = _embedder()
    assert await embedder.embed_batch([]) == []
    assert embedder.client.embeddings.calls == []


@pytest.mark.anyio
async def test_rate_limit_is_retried():
    embedder = _embedder(
        _api_error(openai.RateLimitError, 429),
        _api_error(openai.RateLimitError, 429),
        _response([0.5, 0.5]),
    )
    assert await embedder.embed("q") == [0.5, 0.5]
    assert len(embedder.client.embeddings.calls) == 3


@pytest.mark.anyio
async def test_rate_limit_gives_up_after_max_retries():
    embedder = _embedder(*[_api_error(openai.RateLimitError, 429)] * 3, max_retries=2)
    with pytest.raises(EmbeddingError) as info:
        await embedder.embed("q")
    assert info.value.kind is EmbeddingErrorKind.RATE_LIMITED
    assert len(embedder.client.embeddings.calls) == 3


@pytest.mark.anyio
@pytest.mark.parametrize(
    "error, kind",
    [
        (_api_error(openai.AuthenticationError, 401), EmbeddingErrorKind.AUTHENTICATION),
        (_api_error(openai.PermissionDeniedError, 403), EmbeddingErrorKind.AUTHENTICATION),
        (_api_error(openai.BadRequestError, 400), EmbeddingErrorKind.INVALID_RESPONSE),
        (_api_error(openai.InternalServerError, 500), EmbeddingErrorKind.UNAVAILABLE),
    ],
)
async def test_other_errors_are_not_retried(error, kind):
    embedder = _embedder(error)
    with pytest.raises(EmbeddingError) as info:
        await embedder.embed("q")
    assert info.value.kind is kind
    assert len(embedder.client.embeddings.calls) == 1


@pytest.mark.anyio
async def test_wrong_dimensions_are_rejected():
    embedder = _embedder(_response([1.0, 0.0, 0.0]))
    with pytest.raises(EmbeddingError) as info:
        await embedder.embed("q")
    assert info.value.kind is EmbeddingErrorKind.INVALID_RESPONSE


@pytest.mark.anyio
async def test_wrong_count_is_rejected():
    embedder = _embedder(_response([1.0, 0.0]))
    with pytest.raises(EmbeddingError):
        await embedder.embed_batch(["a", "b"])


def test_api_key_required_without_client(monkeypatch):
    monkeypatch.delenv("OPENAI_API_KEY", raising=False)
    with pytest.raises(ValueError):
        OpenAIEmbedder()


class _FlakyEmbedder(FakeEmbedder):
    async def embed_batch(self, texts):
        if "bad" in texts:
            self.calls.append(list(texts))
            raise EmbeddingError(EmbeddingErrorKind.UNAVAILABLE, "flaky")
        return await super().embed_batch(texts)


@pytest.mark.anyio
async def test_embed_batched_yields_none_for_failed_batch():
    embedder = _FlakyEmbedder()
    out = [pair async for pair in embed_batched(embedder, ["a", "b", "bad", "c", "d"], batch_size=2, delay=0)]

    assert [i for i, _ in out] == [0, 1, 2, 3, 4]
    assert [v is None for _, v in out] == [False, False, True, True, False]
    assert len(embedder.calls) == 3
