from __future__ import annotations

import datetime as dt
import os
from typing import List, Optional

from pgvector.sqlalchemy import Vector
from sqlalchemy import (
    Computed,
    DateTime,
    Float,
    ForeignKey,
    Index,
    Integer,
    String,
    Text,
    func,
)
from sqlalchemy.dialects.postgresql import ARRAY, TSVECTOR
from sqlalchemy.orm import DeclarativeBase, Mapped, mapped_column, relationship

EMBEDDING_DIM = int(os.getenv("EMBEDDING_DIM", "1536"))


class Base(DeclarativeBase):
    """Base class for all ORM models."""


class Author(Base):
    __tablename__ = "authors"

    id: Mapped[int] = mapped_column(Integer, primary_key=True)
    name: Mapped[str] = mapped_column(String(255), nullable=False)
    hebrew_name: Mapped[Optional[str]] = mapped_column(String(255), nullable=True)
    birth_year: Mapped[Optional[int]] = mapped_column(Integer, nullable=True)
    death_year: Mapped[Optional[int]] = mapped_column(Integer, nullable=True)
    bio: Mapped[Optional[str]] = mapped_column(Text, nullable=True)
    created_at: Mapped[dt.datetime] = mapped_column(
        DateTime(timezone=True),
        server_default=func.now(),
        nullable=False,
    )

    works: Mapped[List["Work"]] = relationship(back_populates="author")


class Work(Base):
    __tablename__ = "works"

    id: Mapped[int] = mapped_column(Integer, primary_key=True)
    author_id: Mapped[int] = mapped_column(ForeignKey("authors.id"), nullable=False, index=True)
    title: Mapped[str] = mapped_column(String(255), nullable=False)
    hebrew_title: Mapped[Optional[str]] = mapped_column(String(255), nullable=True)
    alternative_titles: Mapped[List[str]] = mapped_column(
        ARRAY(Text), nullable=False, server_default="{}"
    )
    description: Mapped[Optional[str]] = mapped_column(Text, nullable=True)
    original_language: Mapped[str] = mapped_column(String(8), nullable=False, default="he")
    # simple_chapters, complex_parts or continuous
    structure_type: Mapped[str] = mapped_column(String(32), nullable=False)
    source_index_title: Mapped[Optional[str]] = mapped_column(String(255), nullable=True)
    total_chapters: Mapped[Optional[int]] = mapped_column(Integer, nullable=True)
    created_at: Mapped[dt.datetime] = mapped_column(
        DateTime(timezone=True),
        server_default=func.now(),
        nullable=False,
    )
    updated_at: Mapped[dt.datetime] = mapped_column(
        DateTime(timezone=True),
        server_default=func.now(),
        onupdate=func.now(),
        nullable=False,
    )

    author: Mapped["Author"] = relationship(back_populates="works")
    chunks: Mapped[List["TextChunk"]] = relationship(back_populates="work")


class TextChunk(Base):
    __tablename__ = "text_chunks"
    __table_args__ = (
        Index(
            "ix_text_chunks_embedding_english",
            "embedding_english",
            postgresql_using="hnsw",
            postgresql_ops={"embedding_english": "vector_cosine_ops"},
        ),
        Index(
            "ix_text_chunks_embedding_hebrew",
            "embedding_hebrew",
            postgresql_using="hnsw",
            postgresql_ops={"embedding_hebrew": "vector_cosine_ops"},
        ),
        Index(
            "ix_text_chunks_search_english",
            "search_vector_english",
            postgresql_using="gin",
        ),
        Index(
            "ix_text_chunks_search_hebrew",
            "search_vector_hebrew",
            postgresql_using="gin",
        ),
    )

    id: Mapped[int] = mapped_column(Integer, primary_key=True)
    work_id: Mapped[int] = mapped_column(ForeignKey("works.id"), nullable=False, index=True)

    part_number: Mapped[Optional[int]] = mapped_column(Integer, nullable=True)
    chapter_number: Mapped[Optional[int]] = mapped_column(Integer, nullable=True)
    section_number: Mapped[Optional[int]] = mapped_column(Integer, nullable=True)
    paragraph_number: Mapped[Optional[int]] = mapped_column(Integer, nullable=True)

    # Upsert key for loaders
    tref: Mapped[str] = mapped_column(String(500), unique=True, nullable=False)
    canonical_ref: Mapped[Optional[str]] = mapped_column(String(500), nullable=True)

    content_english: Mapped[Optional[str]] = mapped_column(Text, nullable=True)
    content_hebrew: Mapped[Optional[str]] = mapped_column(Text, nullable=True)
    # paragraph, section, chapter, footnote
    chunk_type: Mapped[str] = mapped_column(String(32), nullable=False, default="paragraph")
    word_count: Mapped[Optional[int]] = mapped_column(Integer, nullable=True)
    character_count: Mapped[Optional[int]] = mapped_column(Integer, nullable=True)

    embedding_english: Mapped[Optional[List[float]]] = mapped_column(
        Vector(EMBEDDING_DIM), nullable=True
    )
    embedding_hebrew: Mapped[Optional[List[float]]] = mapped_column(
        Vector(EMBEDDING_DIM), nullable=True
    )

    search_vector_english = mapped_column(
        TSVECTOR,
        Computed("to_tsvector('english', coalesce(content_english, ''))", persisted=True),
    )
    search_vector_hebrew = mapped_column(
        TSVECTOR,
        Computed("to_tsvector('simple', coalesce(content_hebrew, ''))", persisted=True),
    )

    topic_keywords: Mapped[List[str]] = mapped_column(
        ARRAY(Text), nullable=False, server_default="{}"
    )
    complexity_score: Mapped[Optional[float]] = mapped_column(Float, nullable=True)

    created_at: Mapped[dt.datetime] = mapped_column(
        DateTime(timezone=True),
        server_default=func.now(),
        nullable=False,
    )
    updated_at: Mapped[dt.datetime] = mapped_column(
        DateTime(timezone=True),
        server_default=func.now(),
        onupdate=func.now(),
        nullable=False,
    )

    work: Mapped["Work"] = relationship(back_populates="chunks")


class SearchCacheEntry(Base):
    __tablename__ = "search_cache"

    id: Mapped[int] = mapped_column(Integer, primary_key=True)
    query_hash: Mapped[str] = mapped_column(String(64), unique=True, nullable=False)
    query_text: Mapped[str] = mapped_column(Text, nullable=False)
    chunk_ids: Mapped[List[int]] = mapped_column(ARRAY(Integer), nullable=False)
    scores: Mapped[List[float]] = mapped_column(ARRAY(Float), nullable=False)
    search_type: Mapped[str] = mapped_column(String(16), nullable=False, default="hybrid")
    expires_at: Mapped[dt.datetime] = mapped_column(
        DateTime(timezone=True), nullable=False, index=True
    )
    created_at: Mapped[dt.datetime] = mapped_column(
        DateTime(timezone=True),
        server_default=func.now(),
        nullable=False,
    )
