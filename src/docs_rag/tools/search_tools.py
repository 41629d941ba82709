"""
Knowledge Base Search Tool

This module implements the LLM tool `search_knowledge_base`, which runs a
retrieval and renders the matches as numbered context snippets.

Responsibilities
----------------
- Run the retriever with the tool's fixed limit/threshold
- Render results for the model
- Return a structured error (not an exception) when retrieval fails, so the
  model can tell "nothing relevant" apart from "search unavailable"
"""

from __future__ import annotations

import logging
from typing import Any, Dict, Union

from ..core.errors import RagError
from ..rag.models import RetrievalParams
from ..rag.retriever import Retriever, format_context

logger = logging.getLogger("rag.tools")

# Fewer, higher-confidence passages than the HTTP search default
TOOL_RETRIEVAL_PARAMS = RetrievalParams(limit=3, threshold=0.5)


async def tool_search_knowledge_base(
    query: str,
    retriever: Retriever,
    params: RetrievalParams = TOOL_RETRIEVAL_PARAMS,
) -> Union[str, Dict[str, Any]]:
    """
    Semantic knowledge-base search callable by the LLM.

    Parameters
    ----------
    query : str
        Search text chosen by the model.

    retriever : Retriever
        Configured retriever.

    Returns
    -------
    str | dict
        Numbered passages, "No relevant information found", or an error dict
        with ``error`` and ``details`` keys.
    """
    try:
        results = await retriever.retrieve(query, params)
    except RagError as exc:
        logger.warning("Knowledge base search failed: %s", exc)
        return {
            "error": "Failed to search the knowledge base",
            "details": str(exc),
        }

    return format_context(results)
