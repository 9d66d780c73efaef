"""
Process settings read from the environment (and a project .env when present).
"""

from __future__ import annotations

import os
from dataclasses import dataclass
from pathlib import Path
from typing import Optional

from dotenv import load_dotenv

from src.catalog.models import CATALOG_PATH
from src.db.session import get_database_url
from src.llm.client import (
    DEFAULT_EMBEDDING_DIM,
    DEFAULT_EMBEDDING_MODEL,
    DEFAULT_LOCAL_EMBEDDING_MODEL,
)
from src.rag.expansion import DEFAULT_EXPANSION_MODEL
from src.sources.sefaria import DEFAULT_BASE_URL

PROJECT_ROOT = Path(__file__).resolve().parents[2]
MEMORY_STORE_PATH = PROJECT_ROOT / "data" / "chunks.jsonl"


def _flag(name: str, default: str = "0") -> bool:
    return os.getenv(name, default).strip().lower() in ("1", "true", "yes", "on")


def load_env_file(path: Path | None = None) -> None:
    env_file = path or PROJECT_ROOT / ".env"
    if env_file.exists():
        load_dotenv(env_file)


@dataclass
class Settings:
    database_url: str
    database_pool_size: int = 20
    chunk_store: str = "postgres"  # postgres | memory
    memory_store_path: Optional[Path] = None
    embedding_backend: str = "openai"  # openai | local
    embedding_model: str = DEFAULT_EMBEDDING_MODEL
    embedding_dim: int = DEFAULT_EMBEDDING_DIM
    openai_api_key: Optional[str] = None
    openai_base_url: Optional[str] = None
    sefaria_base_url: str = DEFAULT_BASE_URL
    fetch_timeout: float = 15.0
    search_cache_ttl_seconds: int = 3600
    catalog_path: Path = CATALOG_PATH
    min_semantic_witnesses: int = 2
    query_expansion: bool = False
    expansion_model: str = DEFAULT_EXPANSION_MODEL
    log_level: str = "INFO"

    @classmethod
    def from_env(cls, load_env: bool = True) -> "Settings":
        if load_env:
            load_env_file()
        chunk_store = os.getenv("CHUNK_STORE", "postgres").lower()
        if chunk_store not in ("postgres", "memory"):
            raise ValueError(f"CHUNK_STORE must be 'postgres' or 'memory', got {chunk_store!r}")
        backend = os.getenv("EMBEDDING_BACKEND", "openai").lower()
        if backend not in ("openai", "local"):
            raise ValueError(f"EMBEDDING_BACKEND must be 'openai' or 'local', got {backend!r}")
        return cls(
            database_url=get_database_url(),
            database_pool_size=int(os.getenv("DATABASE_POOL_SIZE", "20")),
            chunk_store=chunk_store,
            embedding_backend=backend,
            memory_store_path=Path(os.getenv("MEMORY_STORE_PATH", str(MEMORY_STORE_PATH))),
            embedding_model=os.getenv(
                "EMBEDDING_MODEL",
                DEFAULT_LOCAL_EMBEDDING_MODEL if backend == "local" else DEFAULT_EMBEDDING_MODEL,
            ),
            embedding_dim=int(os.getenv("EMBEDDING_DIM", str(DEFAULT_EMBEDDING_DIM))),
            openai_api_key=os.getenv("OPENAI_API_KEY"),
            openai_base_url=os.getenv("OPENAI_BASE_URL") or None,
            sefaria_base_url=os.getenv("SEFARIA_BASE_URL", DEFAULT_BASE_URL),
            fetch_timeout=float(os.getenv("FETCH_TIMEOUT", "15")),
            search_cache_ttl_seconds=int(os.getenv("SEARCH_CACHE_TTL_SECONDS", "3600")),
            catalog_path=Path(os.getenv("CATALOG_PATH", str(CATALOG_PATH))),
            min_semantic_witnesses=int(os.getenv("RAG_MIN_SEMANTIC_WITNESSES", "2")),
            query_expansion=_flag("QUERY_EXPANSION"),
            expansion_model=os.getenv("EXPANSION_MODEL", DEFAULT_EXPANSION_MODEL),
            log_level=os.getenv("LOG_LEVEL", "INFO").upper(),
        )
