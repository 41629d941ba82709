"""
SQLAlchemy Models

Defines the persisted schema of the vector store: the ``documents`` table
(one row per chunk) with a pgvector column and an HNSW index using the
cosine operator class.
"""

from __future__ import annotations

import uuid

from sqlalchemy import (
    Column,
    Integer,
    Text,
    Index,
)
from sqlalchemy.dialects.postgresql import UUID
from sqlalchemy.orm import DeclarativeBase, Mapped, mapped_column
from pgvector.sqlalchemy import Vector

from ..config import settings


class Base(DeclarativeBase):
    """Base class for all models."""
    pass


# ---------------------------------------------------------------------
# Document chunk model
# ---------------------------------------------------------------------

class DocumentChunk(Base):
    """
    One retrievable chunk of an ingested document and its embedding.

    The table keeps the name ``documents`` for compatibility with existing
    databases even though each row is a chunk.
    """
    __tablename__ = "documents"

    id: Mapped[int] = mapped_column(Integer, primary_key=True, autoincrement=True)
    content: Mapped[str] = mapped_column(Text, nullable=False)
    document_id: Mapped[uuid.UUID] = mapped_column(
        UUID(as_uuid=True),
        nullable=False,
        index=True,
    )
    sequence_index: Mapped[int] = mapped_column(Integer, nullable=False, default=0)

    # pgvector column, 1536 dimensions for text-embedding-3-small by default
    embedding = Column(Vector(settings.embedding_dimension), nullable=True)

    __table_args__ = (
        Index(
            "documents_embedding_hnsw_idx",
            "embedding",
            postgresql_using="hnsw",
            postgresql_with={
                "m": settings.hnsw_m,
                "ef_construction": settings.hnsw_ef_construction,
            },
            postgresql_ops={"embedding": "vector_cosine_ops"},
        ),
    )

