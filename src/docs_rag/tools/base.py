"""
Tool Dispatch Layer

Central dispatch for LLM-invoked tool calls. Only tools registered here can be
executed; arguments are validated before the handler runs.
"""

from __future__ import annotations

from typing import Any, Dict, Callable, Awaitable

from .definitions import TOOL_SEARCH_KNOWLEDGE_BASE
from .search_tools import tool_search_knowledge_base
from ..rag.retriever import Retriever


# ---------------------------------------------------------------------
# Tool Type Definitions
# ---------------------------------------------------------------------

ToolHandler = Callable[[Dict[str, Any], Retriever], Awaitable[Any]]


# ---------------------------------------------------------------------
# Tool Registry (AUTHORITATIVE)
# ---------------------------------------------------------------------

async def _handle_search_knowledge_base(
    args: Dict[str, Any],
    retriever: Retriever,
) -> Any:
    query = args.get("query")
    if not isinstance(query, str) or not query.strip():
        raise ValueError("search_knowledge_base requires a non-empty 'query' argument.")
    return await tool_search_knowledge_base(query, retriever)


TOOL_REGISTRY: Dict[str, ToolHandler] = {
    TOOL_SEARCH_KNOWLEDGE_BASE: _handle_search_knowledge_base,
}


# ---------------------------------------------------------------------
# Public Dispatch API
# ---------------------------------------------------------------------

async def dispatch_tool_call(
    name: str,
    args: Dict[str, Any],
    retriever: Retriever,
) -> Any:
    """
    Execute a registered tool.

    Raises
    ------
    ValueError
        If the tool is unknown or its arguments are invalid.
    """
    handler = TOOL_REGISTRY.get(name)
    if handler is None:
        raise ValueError(f"Unknown tool: {name}")
    return await handler(args, retriever)
