"""create corpus tables

Revision ID: 3c81e5d0a4f2
Revises:
Create Date: 2026-10-12 10:15:00.000000

"""

from typing import Sequence, Union

from alembic import op
import sqlalchemy as sa
from pgvector.sqlalchemy import Vector
from sqlalchemy.dialects import postgresql


# revision identifiers, used by Alembic.
revision: str = "3c81e5d0a4f2"
down_revision: Union[str, Sequence[str], None] = None
branch_labels: Union[str, Sequence[str], None] = None
depends_on: Union[str, Sequence[str], None] = None

EMBEDDING_DIM = 1536


def upgrade() -> None:
    """Upgrade schema."""
    op.execute("CREATE EXTENSION IF NOT EXISTS vector")

    op.create_table(
        "authors",
        sa.Column("id", sa.Integer(), nullable=False),
        sa.Column("name", sa.String(length=255), nullable=False),
        sa.Column("hebrew_name", sa.String(length=255), nullable=True),
        sa.Column("birth_year", sa.Integer(), nullable=True),
        sa.Column("death_year", sa.Integer(), nullable=True),
        sa.Column("bio", sa.Text(), nullable=True),
        sa.Column("created_at", sa.DateTime(timezone=True), server_default=sa.func.now(), nullable=False),
        sa.PrimaryKeyConstraint("id"),
    )

    op.create_table(
        "works",
        sa.Column("id", sa.Integer(), nullable=False),
        sa.Column("author_id", sa.Integer(), nullable=False),
        sa.Column("title", sa.String(length=255), nullable=False),
        sa.Column("hebrew_title", sa.String(length=255), nullable=True),
        sa.Column("alternative_titles", postgresql.ARRAY(sa.Text()), server_default="{}", nullable=False),
        sa.Column("description", sa.Text(), nullable=True),
        sa.Column("original_language", sa.String(length=8), server_default="he", nullable=False),
        sa.Column("structure_type", sa.String(length=32), nullable=False),
        sa.Column("source_index_title", sa.String(length=255), nullable=True),
        sa.Column("total_chapters", sa.Integer(), nullable=True),
        sa.Column("created_at", sa.DateTime(timezone=True), server_default=sa.func.now(), nullable=False),
        sa.Column("updated_at", sa.DateTime(timezone=True), server_default=sa.func.now(), nullable=False),
        sa.ForeignKeyConstraint(["author_id"], ["authors.id"]),
        sa.PrimaryKeyConstraint("id"),
    )
    op.create_index("ix_works_author_id", "works", ["author_id"], unique=False)

    op.create_table(
        "text_chunks",
        sa.Column("id", sa.Integer(), nullable=False),
        sa.Column("work_id", sa.Integer(), nullable=False),
        sa.Column("part_number", sa.Integer(), nullable=True),
        sa.Column("chapter_number", sa.Integer(), nullable=True),
        sa.Column("section_number", sa.Integer(), nullable=True),
        sa.Column("paragraph_number", sa.Integer(), nullable=True),
        sa.Column("tref", sa.String(length=500), nullable=False),
        sa.Column("canonical_ref", sa.String(length=500), nullable=True),
        sa.Column("content_english", sa.Text(), nullable=True),
        sa.Column("content_hebrew", sa.Text(), nullable=True),
        sa.Column("chunk_type", sa.String(length=32), server_default="paragraph", nullable=False),
        sa.Column("word_count", sa.Integer(), nullable=True),
        sa.Column("character_count", sa.Integer(), nullable=True),
        sa.Column("embedding_english", Vector(EMBEDDING_DIM), nullable=True),
        sa.Column("embedding_hebrew", Vector(EMBEDDING_DIM), nullable=True),
        sa.Column(
            "search_vector_english",
            postgresql.TSVECTOR(),
            sa.Computed("to_tsvector('english', coalesce(content_english, ''))", persisted=True),
        ),
        sa.Column(
            "search_vector_hebrew",
            postgresql.TSVECTOR(),
            sa.Computed("to_tsvector('simple', coalesce(content_hebrew, ''))", persisted=True),
        ),
        sa.Column("topic_keywords", postgresql.ARRAY(sa.Text()), server_default="{}", nullable=False),
        sa.Column("complexity_score", sa.Float(), nullable=True),
        sa.Column("created_at", sa.DateTime(timezone=True), server_default=sa.func.now(), nullable=False),
        sa.Column("updated_at", sa.DateTime(timezone=True), server_default=sa.func.now(), nullable=False),
        sa.ForeignKeyConstraint(["work_id"], ["works.id"]),
        sa.PrimaryKeyConstraint("id"),
        sa.UniqueConstraint("tref", name="uq_text_chunks_tref"),
    )
    op.create_index("ix_text_chunks_work_id", "text_chunks", ["work_id"], unique=False)
    op.create_index(
        "ix_text_chunks_embedding_english",
        "text_chunks",
        ["embedding_english"],
        postgresql_using="hnsw",
        postgresql_ops={"embedding_english": "vector_cosine_ops"},
    )
    op.create_index(
        "ix_text_chunks_embedding_hebrew",
        "text_chunks",
        ["embedding_hebrew"],
        postgresql_using="hnsw",
        postgresql_ops={"embedding_hebrew": "vector_cosine_ops"},
    )
    op.create_index(
        "ix_text_chunks_search_english",
        "text_chunks",
        ["search_vector_english"],
        postgresql_using="gin",
    )
    op.create_index(
        "ix_text_chunks_search_hebrew",
        "text_chunks",
        ["search_vector_hebrew"],
        postgresql_using="gin",
    )

    op.create_table(
        "search_cache",
        sa.Column("id", sa.Integer(), nullable=False),
        sa.Column("query_hash", sa.String(length=64), nullable=False),
        sa.Column("query_text", sa.Text(), nullable=False),
        sa.Column("chunk_ids", postgresql.ARRAY(sa.Integer()), nullable=False),
        sa.Column("scores", postgresql.ARRAY(sa.Float()), nullable=False),
        sa.Column("search_type", sa.String(length=16), server_default="hybrid", nullable=False),
        sa.Column("expires_at", sa.DateTime(timezone=True), nullable=False),
        sa.Column("created_at", sa.DateTime(timezone=True), server_default=sa.func.now(), nullable=False),
        sa.PrimaryKeyConstraint("id"),
        sa.UniqueConstraint("query_hash", name="uq_search_cache_query_hash"),
    )
    op.create_index("ix_search_cache_expires_at", "search_cache", ["expires_at"], unique=False)


def downgrade() -> None:
    """Downgrade schema."""
    op.drop_index("ix_search_cache_expires_at", table_name="search_cache")
    op.drop_table("search_cache")

    op.drop_index("ix_text_chunks_search_hebrew", table_name="text_chunks")
    op.drop_index("ix_text_chunks_search_english", table_name="text_chunks")
    op.drop_index("ix_text_chunks_embedding_hebrew", table_name="text_chunks")
    op.drop_index("ix_text_chunks_embedding_english", table_name="text_chunks")
    op.drop_index("ix_text_chunks_work_id", table_name="text_chunks")
    op.drop_table("text_chunks")

    op.drop_index("ix_works_author_id", table_name="works")
    op.drop_table("works")
    op.drop_table("authors")
