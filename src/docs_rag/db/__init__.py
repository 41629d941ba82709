"""
Database Package

Provides SQLAlchemy async engine/session construction, the ``documents``
schema and its migrations, and the pgvector-backed vector store.
"""

from .session import create_engine, create_session_factory
from .models import Base, DocumentChunk
from .migrate import run_migrations
from .vector_store import PgVectorStore, VectorStoreProtocol, check_dimensions

__all__ = [
    "create_engine",
    "create_session_factory",
    "Base",
    "DocumentChunk",
    "run_migrations",
    "PgVectorStore",
    "VectorStoreProtocol",
    "check_dimensions",
]
