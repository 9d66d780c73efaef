from __future__ import annotations

from pathlib import Path

import httpx
import pytest

import src.llm.local
from src.catalog.models import CATALOG_PATH
from src.db.memory_store import InMemoryChunkStore
from src.db.records import ChunkRecord
from src.rag.reconciler import RetrievalMethod
from src.rag.retriever import Provenance
from src.runtime.config import MEMORY_STORE_PATH, Settings
from src.runtime.container import build_embedder, build_expander, build_services
from tests.fakes import FakeEmbedder

ENV_VARS = (
    "DATABASE_URL",
    "CHUNK_STORE",
    "EMBEDDING_BACKEND",
    "EMBEDDING_DIM",
    "OPENAI_BASE_URL",
    "SEARCH_CACHE_TTL_SECONDS",
    "CATALOG_PATH",
    "RAG_MIN_SEMANTIC_WITNESSES",
    "LOG_LEVEL",
    "EMBEDDING_MODEL",
    "MEMORY_STORE_PATH",
    "QUERY_EXPANSION",
    "EXPANSION_MODEL",
    "OPENAI_API_KEY",
)


@pytest.fixture
def clean_env(monkeypatch):
    for name in ENV_VARS:
        monkeypatch.delenv(name, raising=False)
    return monkeypatch


def test_settings_defaults(clean_env):
    settings = Settings.from_env(load_env=False)
    assert settings.database_url.startswith("postgresql+asyncpg://")
    assert settings.chunk_store == "postgres"
    assert settings.embedding_backend == "openai"
    assert settings.catalog_path == CATALOG_PATH
    assert settings.min_semantic_witnesses == 2
    assert settings.openai_base_url is None


def test_settings_from_environment(clean_env, tmp_path):
    clean_env.setenv("CHUNK_STORE", "Memory")
    clean_env.setenv("EMBEDDING_DIM", "384")
    clean_env.setenv("SEARCH_CACHE_TTL_SECONDS", "60")
    clean_env.setenv("CATALOG_PATH", str(tmp_path / "catalog.json"))
    clean_env.setenv("LOG_LEVEL", "debug")

    settings = Settings.from_env(load_env=False)

    assert settings.chunk_store == "memory"
    assert settings.embedding_dim == 384
    assert settings.search_cache_ttl_seconds == 60
    assert settings.catalog_path == Path(tmp_path / "catalog.json")
    assert settings.log_level == "DEBUG"


@pytest.mark.parametrize("name, value", [("CHUNK_STORE", "redis"), ("EMBEDDING_BACKEND", "cohere")])
def test_settings_reject_unknown_backends(clean_env, name, value):
    clean_env.setenv(name, value)
    with pytest.raises(ValueError):
        Settings.from_env(load_env=False)


def _text_service(request: httpx.Request) -> httpx.Response:
    ref = request.url.path.rsplit("/", 1)[-1]
    return httpx.Response(200, json={"ref": ref, "text": [f"Passage of {ref}."]})


@pytest.mark.anyio
async def test_empty_store_falls_back_to_structured_index():
    settings = Settings(database_url="unused", chunk_store="memory")
    client = httpx.AsyncClient(transport=httpx.MockTransport(_text_service))
    services = build_services(settings, embedder=FakeEmbedder(), http_client=client)
    try:
        resolved = await services.reconciler.resolve(
            "What does Ramchal say about divine providence?"
        )
    finally:
        await services.aclose()

    assert isinstance(services.store, InMemoryChunkStore)
    assert services.db_engine is None
    assert resolved.provenance is RetrievalMethod.LEGACY
    assert resolved.witnesses
    assert len(resolved.witnesses) == len(resolved.guesses)
    assert all(w.provenance is Provenance.STRUCTURED_INDEX for w in resolved.witnesses)
    assert client.is_closed


def test_catalog_titles_are_url_encoded_whole():
    settings = Settings(database_url="unused", chunk_store="memory")
    services = build_services(settings, embedder=FakeEmbedder(), store=InMemoryChunkStore())
    for work in services.catalog.works:
        assert "." not in services.fetcher.api_ref(f"{work.title} 1")


def test_memory_snapshot_and_local_model_settings(clean_env, tmp_path):
    settings = Settings.from_env(load_env=False)
    assert settings.memory_store_path == MEMORY_STORE_PATH
    assert settings.embedding_model == "text-embedding-3-small"
    assert settings.query_expansion is False

    clean_env.setenv("EMBEDDING_BACKEND", "local")
    clean_env.setenv("MEMORY_STORE_PATH", str(tmp_path / "chunks.jsonl"))
    clean_env.setenv("QUERY_EXPANSION", "1")
    settings = Settings.from_env(load_env=False)
    assert settings.embedding_model == "all-MiniLM-L6-v2"
    assert settings.memory_store_path == tmp_path / "chunks.jsonl"
    assert settings.query_expansion is True


def _no_network(request: httpx.Request) -> httpx.Response:
    raise AssertionError(f"unexpected request to {request.url}")


@pytest.mark.anyio
async def test_memory_mode_reads_the_ingested_snapshot(tmp_path):
    path = tmp_path / "chunks.jsonl"
    seeded = InMemoryChunkStore(snapshot_path=path)
    seeded.add_work(1, "Derech Hashem", "Ramchal")
    await seeded.save_chunks(
        [
            ChunkRecord(
                work_id=1,
                tref="Derech Hashem 2:2:1",
                content_english="Divine providence extends over every detail of creation.",
                embedding_english=[1.0, 0.0, 0.0],
            ),
            ChunkRecord(
                work_id=1,
                tref="Derech Hashem 2:2:2",
                content_english="Reward and punishment follow from the Creator's justice.",
                embedding_english=[0.8, 0.6, 0.0],
            ),
        ]
    )

    settings = Settings(database_url="unused", chunk_store="memory", memory_store_path=path)
    client = httpx.AsyncClient(transport=httpx.MockTransport(_no_network))
    services = build_services(settings, embedder=FakeEmbedder(), http_client=client)
    try:
        resolved = await services.reconciler.resolve(
            "What does Ramchal say about divine providence?"
        )
    finally:
        await services.aclose()

    assert len(services.store) == 2
    assert resolved.provenance is RetrievalMethod.SEMANTIC
    assert [w.tref for w in resolved.witnesses] == ["Derech Hashem 2:2:1", "Derech Hashem 2:2:2"]
    assert all(w.work_title == "Derech Hashem" for w in resolved.witnesses)
    assert all(w.provenance is not Provenance.STRUCTURED_INDEX for w in resolved.witnesses)


class _FakeLocalEmbedder:
    def __init__(self, model_name):
        self.model_name = model_name
        self.dimensions = 384


def test_local_embedder_uses_configured_model(monkeypatch):
    monkeypatch.setattr(src.llm.local, "SentenceTransformerEmbedder", _FakeLocalEmbedder)
    settings = Settings(
        database_url="unused",
        embedding_backend="local",
        embedding_model="paraphrase-multilingual-MiniLM-L12-v2",
        embedding_dim=384,
    )
    embedder = build_embedder(settings)
    assert embedder.model_name == "paraphrase-multilingual-MiniLM-L12-v2"


def test_embedding_dimension_mismatch_is_rejected(monkeypatch):
    monkeypatch.setattr(src.llm.local, "SentenceTransformerEmbedder", _FakeLocalEmbedder)
    settings = Settings(
        database_url="unused",
        embedding_backend="local",
        embedding_model="all-MiniLM-L6-v2",
        embedding_dim=1536,
    )
    with pytest.raises(ValueError, match="EMBEDDING_DIM is 1536"):
        build_embedder(settings)


def test_query_expansion_needs_an_api_key():
    assert build_expander(Settings(database_url="unused")) is None
    with pytest.raises(ValueError):
        build_expander(Settings(database_url="unused", query_expansion=True))
    expander = build_expander(
        Settings(database_url="unused", query_expansion=True, openai_api_key="sk-test")
    )
    assert expander.model == "gpt-4o-mini"
