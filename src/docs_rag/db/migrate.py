"""
Schema Migrations

Idempotent schema setup for the vector store. Order matters:

1. Enable the ``vector`` extension (the column type must exist first)
2. Create the ``documents`` table
3. Create the HNSW index on ``documents.embedding``

Every step is guarded (``IF NOT EXISTS`` / ``checkfirst``), so re-running is a
no-op once applied.
"""

from __future__ import annotations

import logging

from sqlalchemy import text
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.ext.asyncio import AsyncEngine

from .models import Base
from ..core.errors import StoreError

logger = logging.getLogger("rag.migrate")


async def run_migrations(engine: AsyncEngine) -> None:
    """
    Apply the schema to the database behind ``engine``.

    Raises
    ------
    StoreError
        If any step fails. The whole migration runs in one transaction.
    """
    try:
        async with engine.begin() as conn:
            await conn.execute(text("CREATE EXTENSION IF NOT EXISTS vector"))
            # create_all issues CREATE TABLE then CREATE INDEX, skipping existing ones
            await conn.run_sync(Base.metadata.create_all, checkfirst=True)
    except SQLAlchemyError as exc:
        logger.error("Migration failed: %s", exc)
        raise StoreError(f"Migration failed: {type(exc).__name__}") from exc

    logger.info("Database schema is up to date")
