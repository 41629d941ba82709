"""
Search Routes

Similarity search over ingested documents. This is the query entry point used
by the chat collaborator: it returns ranked matches together with the
numbered context block handed to the language model.
"""

from fastapi import APIRouter, Depends, status
from typing import Annotated

from .models import SearchRequest, SearchResponse
from .dependencies import get_retriever
from ..rag.models import RetrievalParams
from ..rag.retriever import Retriever, default_params, format_context

router = APIRouter(prefix="/search", tags=["search"])


@router.post(
    "/",
    response_model=SearchResponse,
    summary="Similarity search over ingested documents",
    status_code=status.HTTP_200_OK,
)
async def search(
    req: SearchRequest,
    retriever: Annotated[Retriever, Depends(get_retriever)],
) -> SearchResponse:
    """
    Retrieve the chunks most similar to the query.

    Parameters
    ----------
    req : SearchRequest
        Contains:
        - query: Search query string
        - limit: Optional maximum number of results
        - threshold: Optional strict minimum similarity

    Returns
    -------
    SearchResponse
        Ranked results (possibly empty) and the formatted context.
    """
    # Embedding and store failures are RagErrors, mapped by the handler in
    # core/errors.py so they are never confused with an empty result.
    defaults = default_params()
    params = RetrievalParams(
        limit=req.limit if req.limit is not None else defaults.limit,
        threshold=req.threshold if req.threshold is not None else defaults.threshold,
    )

    results = await retriever.retrieve(req.query, params)
    return SearchResponse(results=results, context=format_context(results))
