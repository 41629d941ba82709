"""
Document Routes

This module exposes endpoints for:
- Ingesting one document's extracted text
- Querying vector store statistics

The ingestion endpoint is the contract with the upload handler: it receives
plain text (extraction happens upstream) and answers with a structured
success/failure result rather than an exception.
"""

from fastapi import APIRouter, Depends, Response, status
from typing import Annotated, Dict

from .models import IngestDocumentRequest, DocumentStatsResponse
from .dependencies import get_ingestion_pipeline, get_vector_store
from ..config import settings
from ..db.vector_store import VectorStoreProtocol
from ..rag.ingest import IngestionPipeline
from ..rag.models import IngestionResult

router = APIRouter(prefix="/documents", tags=["documents"])


_FAILURE_STATUS: Dict[str, int] = {
    "empty_document": 422,
    "embedding_service": status.HTTP_502_BAD_GATEWAY,
    "store": status.HTTP_503_SERVICE_UNAVAILABLE,
}


@router.post(
    "",
    response_model=IngestionResult,
    summary="Ingest a document's plain text",
)
async def ingest_document(
    req: IngestDocumentRequest,
    response: Response,
    pipeline: Annotated[IngestionPipeline, Depends(get_ingestion_pipeline)],
) -> IngestionResult:
    """
    Chunk, embed and store one document.

    Workflow
    --------
    1. Split the text into overlapping chunks.
    2. Embed every chunk in batched requests.
    3. Insert all chunk records in one transaction.
    """
    result = await pipeline.ingest(req.text)

    if result.success:
        response.status_code = status.HTTP_201_CREATED
    else:
        response.status_code = _FAILURE_STATUS.get(
            result.error_kind or "", status.HTTP_500_INTERNAL_SERVER_ERROR
        )

    return result


@router.get(
    "/stats",
    response_model=DocumentStatsResponse,
    summary="Get vector store statistics",
)
async def get_document_stats(
    store: Annotated[VectorStoreProtocol, Depends(get_vector_store)],
) -> DocumentStatsResponse:
    """
    Return the number of stored chunk records.
    """
    return DocumentStatsResponse(
        total_records=await store.count(),
        vector_backend=settings.vector_backend,
    )
