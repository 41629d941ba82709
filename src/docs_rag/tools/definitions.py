"""
LLM Tool Definitions

This module defines the tool/function schemas offered to the external
language-model loop. These definitions must remain synchronized with
tools/base.py (TOOL_REGISTRY) and the handler implementations.
"""

from __future__ import annotations

from typing import Dict, List, Any, Final


# ---------------------------------------------------------------------
# Tool Name Constants (Single Source of Truth)
# ---------------------------------------------------------------------

TOOL_SEARCH_KNOWLEDGE_BASE: Final[str] = "search_knowledge_base"


# ---------------------------------------------------------------------
# Tool Definitions
# ---------------------------------------------------------------------

TOOL_DEFINITIONS: List[Dict[str, Any]] = [
    {
        "type": "function",
        "function": {
            "name": TOOL_SEARCH_KNOWLEDGE_BASE,
            "description": (
                "Search the knowledge base for the most relevant information. "
                "Returns numbered passages from uploaded documents."
            ),
            "parameters": {
                "type": "object",
                "properties": {
                    "query": {
                        "type": "string",
                        "description": "The query to search for.",
                        "minLength": 1,
                    }
                },
                "required": ["query"],
                "additionalProperties": False,
            },
        },
    },
]
