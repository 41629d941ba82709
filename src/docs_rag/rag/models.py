"""
Retrieval Data Models

This module defines the canonical records that flow through the retrieval
core:

- ``NewRecord``: one chunk + its vector, ready to be inserted
- ``SearchResult``: one ranked match returned by a similarity query
- ``RetrievalParams``: the validated limit/threshold dial of a query
- ``IngestionResult``: the structured outcome of ingesting one document
"""

from __future__ import annotations

from typing import List, Literal, Optional
from uuid import UUID

from pydantic import BaseModel, Field, ConfigDict


class NewRecord(BaseModel):
    """
    A chunk and its embedding, not yet persisted.

    ``id`` is assigned by the vector store on insert.
    """

    content: str = Field(..., min_length=1)
    embedding: List[float]
    document_id: UUID = Field(
        ...,
        description="Identifier of the ingestion call this chunk came from.",
    )
    sequence_index: int = Field(
        ...,
        ge=0,
        description="Position of the chunk within its document.",
    )

    model_config = ConfigDict(
        extra="forbid",
        frozen=True,
    )


class SearchResult(BaseModel):
    """
    A single similarity match. ``similarity`` is ``1 - cosine_distance`` and
    is not clamped, so it may be negative.
    """

    id: int
    content: str
    similarity: float = Field(..., ge=-1.0 - 1e-6, le=1.0 + 1e-6)
    document_id: Optional[UUID] = None
    sequence_index: Optional[int] = None

    model_config = ConfigDict(frozen=True)


class RetrievalParams(BaseModel):
    """Result-count limit and strict similarity threshold for a query."""

    limit: int = Field(default=5, gt=0)
    threshold: float = Field(default=0.5, ge=-1.0, le=1.0)

    model_config = ConfigDict(extra="forbid", frozen=True)


ErrorKind = Literal["empty_document", "embedding_service", "store"]


class IngestionResult(BaseModel):
    """
    Outcome of ingesting one document.

    Failures are reported here rather than raised so the upload collaborator
    can choose the user-facing message from ``error_kind``.
    """

    success: bool
    chunks_created: int = Field(default=0, ge=0)
    document_id: Optional[UUID] = None
    message: Optional[str] = None
    error: Optional[str] = None
    error_kind: Optional[ErrorKind] = None
    retryable: bool = False

    model_config = ConfigDict(extra="forbid")
