"""
Vector Store

PostgreSQL + pgvector based vector storage and similarity search.

Each operation opens its own session from the injected session factory, so a
single store instance is safe to share across concurrent requests. Inserts
are one transaction per call: a batch is either fully written or not at all.
"""

from __future__ import annotations

import asyncio
import math
import logging
from typing import List, Optional, Protocol, Sequence

from sqlalchemy import select, func, text
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker

from .models import DocumentChunk
from ..config import settings
from ..core.errors import DimensionMismatchError, StoreError
from ..rag.models import NewRecord, SearchResult

logger = logging.getLogger("rag.store")


class VectorStoreProtocol(Protocol):
    """Operations every vector store backend provides."""

    dimension: int

    async def insert_many(self, records: Sequence[NewRecord]) -> int: ...

    async def search(
        self,
        query_embedding: Sequence[float],
        limit: int,
        threshold: float,
    ) -> List[SearchResult]: ...

    async def count(self) -> int: ...


def check_dimensions(embeddings: Sequence[Sequence[float]], dimension: int) -> None:
    """
    Validate every vector before anything is written.

    Raises
    ------
    DimensionMismatchError
        On the first vector whose length differs from ``dimension``.
    """
    for position, emb in enumerate(embeddings):
        if len(emb) != dimension:
            raise DimensionMismatchError(dimension, len(emb), position)


class PgVectorStore:
    """
    PostgreSQL-backed vector store using a pgvector HNSW index for
    approximate nearest-neighbor search by cosine distance.
    """

    def __init__(
        self,
        session_factory: async_sessionmaker[AsyncSession],
        dimension: Optional[int] = None,
        timeout: Optional[float] = None,
        ef_search: Optional[int] = None,
    ) -> None:
        """
        Parameters
        ----------
        session_factory : async_sessionmaker[AsyncSession]
            Factory bound to the application's engine.
        dimension : Optional[int]
            Configured vector dimension. Defaults to settings.embedding_dimension.
        timeout : Optional[float]
            Upper bound in seconds for each store call.
        ef_search : Optional[int]
            HNSW candidate list size used at query time.
        """
        self._session_factory = session_factory
        self.dimension = dimension or settings.embedding_dimension
        self.timeout = timeout if timeout is not None else settings.db_timeout
        self.ef_search = ef_search or settings.hnsw_ef_search

    # ------------------------------------------------------------------
    # Public API
    # ------------------------------------------------------------------

    async def insert_many(self, records: Sequence[NewRecord]) -> int:
        """
        Insert chunk records in a single transaction.

        Duplicate content is allowed. Ids are assigned by the database.

        Returns
        -------
        int
            Number of records inserted.

        Raises
        ------
        DimensionMismatchError
            If any embedding has the wrong dimension (nothing is inserted).
        StoreError
            On connectivity failure, constraint violation or timeout.
        """
        if not records:
            return 0

        check_dimensions([r.embedding for r in records], self.dimension)

        rows = [
            DocumentChunk(
                content=r.content,
                embedding=r.embedding,
                document_id=r.document_id,
                sequence_index=r.sequence_index,
            )
            for r in records
        ]

        async def _insert() -> None:
            async with self._session_factory() as session:
                async with session.begin():
                    session.add_all(rows)

        await self._run(_insert(), "insert")
        logger.info("Inserted %d records", len(rows))
        return len(rows)

    async def search(
        self,
        query_embedding: Sequence[float],
        limit: int,
        threshold: float,
    ) -> List[SearchResult]:
        """
        Search for stored chunks similar to ``query_embedding``.

        Similarity is ``1 - cosine_distance``; only records with similarity
        strictly greater than ``threshold`` are returned, best first, ties by
        ascending id, at most ``limit`` of them.
        """
        check_dimensions([query_embedding], self.dimension)

        # Build the cosine similarity query using pgvector's <=> operator
        cosine_distance = DocumentChunk.embedding.cosine_distance(list(query_embedding))
        similarity = (1 - cosine_distance).label("similarity")

        stmt = (
            select(
                DocumentChunk.id,
                DocumentChunk.content,
                DocumentChunk.document_id,
                DocumentChunk.sequence_index,
                similarity,
            )
            .where(DocumentChunk.embedding.is_not(None))
            .where((1 - cosine_distance) > threshold)
            # zero vectors give a NaN distance, which compares greater than any number
            .where(cosine_distance != float("nan"))
            .order_by(cosine_distance, DocumentChunk.id)
            .limit(limit)
        )

        async def _search():
            async with self._session_factory() as session:
                async with session.begin():
                    await session.execute(
                        text(f"SET LOCAL hnsw.ef_search = {int(self.ef_search)}")
                    )
                    result = await session.execute(stmt)
                    return result.all()

        rows = await self._run(_search(), "search")

        return [
            SearchResult(
                id=row.id,
                content=row.content,
                similarity=float(row.similarity),
                document_id=row.document_id,
                sequence_index=row.sequence_index,
            )
            for row in rows
            if not math.isnan(float(row.similarity))
        ]

    async def count(self) -> int:
        """
        Return the number of stored records.
        """
        async def _count() -> int:
            async with self._session_factory() as session:
                result = await session.execute(
                    select(func.count()).select_from(DocumentChunk)
                )
                return result.scalar() or 0

        return await self._run(_count(), "count")

    # ------------------------------------------------------------------
    # Internal helpers
    # ------------------------------------------------------------------

    async def _run(self, coro, operation: str):
        try:
            return await asyncio.wait_for(coro, timeout=self.timeout)
        except asyncio.TimeoutError as exc:
            logger.error("Vector store %s timed out after %.1fs", operation, self.timeout)
            raise StoreError(f"Vector store {operation} timed out") from exc
        except (SQLAlchemyError, OSError) as exc:
            logger.error("Vector store %s failed: %s", operation, exc)
            raise StoreError(
                f"Vector store {operation} failed: {type(exc).__name__}"
            ) from exc
