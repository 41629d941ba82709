"""
Retriever

Turns a free-text query into a ranked, bounded list of stored chunks:

1. Embed the query
2. Ask the vector store for candidates with ``similarity = 1 - cosine_distance``
3. Keep only ``similarity > threshold`` (strict)
4. Order by descending similarity, ties by ascending id
5. Truncate to ``limit``

Steps 3-5 are re-applied here on whatever the backend returns, so the
guarantees hold for every store implementation.
"""

from __future__ import annotations

import logging
from typing import List, Optional, Sequence

from .embedder import Embedder
from .models import RetrievalParams, SearchResult
from ..config import settings
from ..db.vector_store import VectorStoreProtocol

logger = logging.getLogger("rag.retriever")

NO_RESULTS_MESSAGE = "No relevant information found"


def default_params() -> RetrievalParams:
    return RetrievalParams(
        limit=settings.retrieval_limit,
        threshold=settings.retrieval_threshold,
    )


def rank_results(
    results: Sequence[SearchResult],
    params: RetrievalParams,
) -> List[SearchResult]:
    """Apply the strict threshold, the ordering and the limit."""
    kept = [r for r in results if r.similarity > params.threshold]
    kept.sort(key=lambda r: (-r.similarity, r.id))
    return kept[: params.limit]


def format_context(results: Sequence[SearchResult]) -> str:
    """
    Render results as numbered snippets for the language model, e.g.::

        [1] first passage
        [2] second passage
    """
    if not results:
        return NO_RESULTS_MESSAGE
    return "\n".join(f"[{i}] {r.content}" for i, r in enumerate(results, start=1))


class Retriever:
    """Similarity search over the vector store for free-text queries."""

    def __init__(self, embedder: Embedder, store: VectorStoreProtocol) -> None:
        self._embedder = embedder
        self._store = store

    async def retrieve(
        self,
        query: str,
        params: Optional[RetrievalParams] = None,
    ) -> List[SearchResult]:
        """
        Return the stored chunks most similar to ``query``.

        An empty list means nothing exceeded the threshold (or the store is
        empty). Upstream failures are raised, never turned into an empty list.

        Raises
        ------
        EmbeddingServiceError
            If the query could not be embedded.
        StoreError
            If the vector store query failed.
        """
        params = params or default_params()

        query_embedding = await self._embedder.embed(query)
        candidates = await self._store.search(
            query_embedding,
            limit=params.limit,
            threshold=params.threshold,
        )
        results = rank_results(candidates, params)

        logger.info(
            "Retrieved %d/%d results (limit=%d, threshold=%.3f)",
            len(results),
            len(candidates),
            params.limit,
            params.threshold,
        )
        return results
