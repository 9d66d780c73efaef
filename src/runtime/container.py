"""
Service wiring: every component is built once here and passed explicitly.
"""

from __future__ import annotations

import datetime as dt
import logging
from dataclasses import dataclass
from typing import Optional

import httpx
from openai import AsyncOpenAI
from sqlalchemy.ext.asyncio import AsyncEngine

from src.catalog.matcher import StructuredIndexMatcher
from src.catalog.models import Catalog, load_catalog
from src.db.chunk_store import ChunkStore, PgChunkStore
from src.db.memory_store import InMemoryChunkStore
from src.db.session import create_engine_and_sessionmaker
from src.ingest.pipeline import WorkProcessor
from src.llm.client import Embedder, OpenAIEmbedder
from src.rag.config import ReconcilerConfig
from src.rag.expansion import QueryExpander
from src.rag.hybrid import HybridSearchEngine
from src.rag.reconciler import RetrievalReconciler
from src.rag.structured import StructuredIndexRetriever
from src.sources.sefaria import AUTHOR_TITLES, ReferenceFetcher

from .config import Settings

logger = logging.getLogger(__name__)


@dataclass
class Services:
    settings: Settings
    catalog: Catalog
    matcher: StructuredIndexMatcher
    fetcher: ReferenceFetcher
    store: ChunkStore
    embedder: Embedder
    engine: HybridSearchEngine
    legacy: StructuredIndexRetriever
    reconciler: RetrievalReconciler
    processor: WorkProcessor
    http_client: httpx.AsyncClient
    db_engine: Optional[AsyncEngine] = None

    async def aclose(self) -> None:
        await self.http_client.aclose()
        if self.db_engine is not None:
            await self.db_engine.dispose()


def build_embedder(settings: Settings) -> Embedder:
    """Build the configured embedder; its dimension must match the vector columns."""
    embedder: Embedder
    if settings.embedding_backend == "local":
        from src.llm.local import SentenceTransformerEmbedder

        embedder = SentenceTransformerEmbedder(settings.embedding_model)
    else:
        embedder = OpenAIEmbedder(
            api_key=settings.openai_api_key,
            base_url=settings.openai_base_url,
            model=settings.embedding_model,
            dimensions=settings.embedding_dim,
        )
    if embedder.dimensions != settings.embedding_dim:
        raise ValueError(
            f"Embedding model {settings.embedding_model!r} produces {embedder.dimensions}-d "
            f"vectors but EMBEDDING_DIM is {settings.embedding_dim}"
        )
    return embedder


def build_expander(settings: Settings) -> Optional[QueryExpander]:
    if not settings.query_expansion:
        return None
    if not settings.openai_api_key:
        raise ValueError("QUERY_EXPANSION needs OPENAI_API_KEY.")
    client = AsyncOpenAI(api_key=settings.openai_api_key, base_url=settings.openai_base_url)
    return QueryExpander(client, model=settings.expansion_model)


def build_services(
    settings: Settings,
    *,
    embedder: Embedder | None = None,
    store: ChunkStore | None = None,
    http_client: httpx.AsyncClient | None = None,
    expander: QueryExpander | None = None,
) -> Services:
    """Construct the retrieval stack; pass fakes for embedder/store/http_client in tests."""
    catalog = load_catalog(settings.catalog_path)
    matcher = StructuredIndexMatcher(catalog)

    client = http_client or httpx.AsyncClient(timeout=settings.fetch_timeout)
    titles = set(AUTHOR_TITLES)
    for work in catalog.works:
        titles.add(work.title)
        titles.update(work.alternative_titles)
    fetcher = ReferenceFetcher(
        client,
        base_url=settings.sefaria_base_url,
        encoded_titles=sorted(titles),
    )

    db_engine: Optional[AsyncEngine] = None
    if store is None:
        if settings.chunk_store == "memory":
            store = InMemoryChunkStore(snapshot_path=settings.memory_store_path)
        else:
            db_engine, session_factory = create_engine_and_sessionmaker(
                settings.database_url, pool_size=settings.database_pool_size
            )
            store = PgChunkStore(session_factory)

    if embedder is None:
        embedder = build_embedder(settings)

    engine = HybridSearchEngine(
        store,
        embedder,
        cache_ttl=dt.timedelta(seconds=settings.search_cache_ttl_seconds),
        expander=expander if expander is not None else build_expander(settings),
    )
    legacy = StructuredIndexRetriever(matcher, fetcher)
    reconciler = RetrievalReconciler(
        engine,
        legacy,
        ReconcilerConfig(
            min_semantic_witnesses=settings.min_semantic_witnesses,
            expand_query=settings.query_expansion,
        ),
    )
    processor = WorkProcessor(fetcher, embedder, store)
    logger.info(
        "Services built (store=%s, embeddings=%s, %d catalog works)",
        settings.chunk_store,
        settings.embedding_backend,
        len(catalog.works),
    )
    return Services(
        settings=settings,
        catalog=catalog,
        matcher=matcher,
        fetcher=fetcher,
        store=store,
        embedder=embedder,
        engine=engine,
        legacy=legacy,
        reconciler=reconciler,
        processor=processor,
        http_client=client,
        db_engine=db_engine,
    )
