"""
Ingestion Pipeline

Chunker -> Embedder -> Vector Store for one document.

The store insert happens once, after every chunk has been embedded, as a
single batch. An embedding failure therefore leaves no rows behind, and a
failed insert leaves no partial document.
"""

from __future__ import annotations

import logging
import uuid

from .chunker import Chunker
from .embedder import Embedder
from .models import IngestionResult, NewRecord
from ..core.errors import (
    EmbeddingServiceError,
    EmptyDocumentError,
    StoreError,
)
from ..db.vector_store import VectorStoreProtocol

logger = logging.getLogger("rag.ingest")


class IngestionPipeline:
    """Turns extracted document text into stored, searchable chunk records."""

    def __init__(
        self,
        chunker: Chunker,
        embedder: Embedder,
        store: VectorStoreProtocol,
    ) -> None:
        self._chunker = chunker
        self._embedder = embedder
        self._store = store

    async def ingest(self, document_text: str) -> IngestionResult:
        """
        Ingest one document's plain text.

        Never raises for expected failures: an empty document, an embedding
        service failure and a store failure are each reported through
        ``IngestionResult.error_kind``.
        """
        document_id = uuid.uuid4()

        try:
            count = await self._ingest(document_id, document_text)
        except EmptyDocumentError as exc:
            logger.info("Skipped empty document %s", document_id)
            return IngestionResult(
                success=False,
                error=str(exc),
                error_kind="empty_document",
            )
        except EmbeddingServiceError as exc:
            logger.error("Embedding failed for document %s: %s", document_id, exc)
            return IngestionResult(
                success=False,
                error=f"Failed to embed document: {exc.detail}",
                error_kind="embedding_service",
                retryable=exc.retryable,
            )
        except StoreError as exc:
            logger.error("Storing document %s failed: %s", document_id, exc)
            return IngestionResult(
                success=False,
                error=f"Failed to store document: {exc}",
                error_kind="store",
            )

        return IngestionResult(
            success=True,
            chunks_created=count,
            document_id=document_id,
            message=f"Created {count} searchable chunks",
        )

    async def _ingest(self, document_id: uuid.UUID, document_text: str) -> int:
        if not document_text or not document_text.strip():
            raise EmptyDocumentError("No text found in document")

        # 1. Chunk
        chunks = self._chunker.chunk_with_positions(document_text)
        if not chunks:
            raise EmptyDocumentError("No text found in document")

        # 2. Embed (all chunks before any write)
        embeddings = await self._embedder.embed_batch([c.content for c in chunks])
        if len(embeddings) != len(chunks):
            raise EmbeddingServiceError(
                f"Got {len(embeddings)} embeddings for {len(chunks)} chunks"
            )

        # 3. Store as one batch
        records = [
            NewRecord(
                content=chunk.content,
                embedding=embedding,
                document_id=document_id,
                sequence_index=chunk.sequence_index,
            )
            for chunk, embedding in zip(chunks, embeddings)
        ]
        inserted = await self._store.insert_many(records)

        logger.info("Ingested document %s as %d chunks", document_id, inserted)
        return inserted
