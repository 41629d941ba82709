"""
API Models

Pydantic models used for request/response validation of the document and
search endpoints. Core records (SearchResult, IngestionResult) are reused
from rag/models.py so the HTTP contract cannot drift from the core.
"""

from __future__ import annotations

from typing import List, Optional
from pydantic import BaseModel, Field, ConfigDict

from ..rag.models import SearchResult


# ---------------------------------------------------------------------
# Document Models
# ---------------------------------------------------------------------

class IngestDocumentRequest(BaseModel):
    """
    Plain text of one document, already extracted by the upload handler.

    Empty text is accepted here and reported as an ``empty_document``
    ingestion failure.
    """
    text: str

    model_config = ConfigDict(extra="forbid")


class DocumentStatsResponse(BaseModel):
    """
    Statistics for the vector store.
    """
    total_records: int = Field(..., ge=0)
    vector_backend: str

    model_config = ConfigDict(extra="forbid")


# ---------------------------------------------------------------------
# Search Models
# ---------------------------------------------------------------------

class SearchRequest(BaseModel):
    """
    Similarity search request. ``limit`` and ``threshold`` override the
    configured defaults when given.
    """
    query: str = Field(..., min_length=1)
    limit: Optional[int] = Field(default=None, gt=0, le=100)
    threshold: Optional[float] = Field(default=None, ge=-1.0, le=1.0)

    model_config = ConfigDict(extra="forbid")


class SearchResponse(BaseModel):
    """
    Ranked matches plus the numbered context block built from them.
    """
    results: List[SearchResult] = Field(default_factory=list)
    context: str

    model_config = ConfigDict(extra="forbid")
