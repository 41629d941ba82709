"""
Error Taxonomy and Global Error Handling

This module defines the typed failures raised by the retrieval core and the
application-wide exception handlers that turn them into HTTP responses.

Design Goals
------------
- Every failure of the core is a typed exception, never a logged-and-dropped one
- "No match above threshold" (empty result) is never confused with an upstream error
- Never leak internal exception details of unexpected errors to clients
- Always return deterministic, machine-readable error responses
"""

from __future__ import annotations

import logging
from typing import Dict, Any

from fastapi import Request, status
from fastapi.responses import JSONResponse

logger = logging.getLogger("rag.errors")


# ---------------------------------------------------------------------
# Exception Taxonomy
# ---------------------------------------------------------------------

class RagError(RuntimeError):
    """Base class for all retrieval-core failures."""

    kind: str = "rag_error"


class EmptyInputError(RagError):
    """Raised when text to be chunked is empty after trimming."""

    kind = "empty_input"


class EmptyDocumentError(RagError):
    """Raised when a document has no extractable text."""

    kind = "empty_document"


class EmbeddingServiceError(RagError):
    """
    Raised when the upstream embedding call fails.

    ``retryable`` is True only for transient transport failures (network
    errors, timeouts, 5xx, rate limiting). Auth, quota and malformed-input
    failures must not be retried blindly.
    """

    kind = "embedding_service"

    def __init__(self, detail: str, *, retryable: bool = False) -> None:
        super().__init__(detail)
        self.detail = detail
        self.retryable = retryable


class StoreError(RagError):
    """Raised on persistence-layer failure (connectivity, schema, constraint, timeout)."""

    kind = "store"


class DimensionMismatchError(StoreError):
    """Raised when a vector does not have the configured dimension."""

    kind = "dimension_mismatch"

    def __init__(self, expected: int, actual: int, position: int | None = None) -> None:
        where = f" at position {position}" if position is not None else ""
        super().__init__(
            f"Embedding dimension mismatch{where}: expected {expected}, got {actual}"
        )
        self.expected = expected
        self.actual = actual
        self.position = position


# ---------------------------------------------------------------------
# Public Exception Handlers
# ---------------------------------------------------------------------

_STATUS_BY_KIND: Dict[str, int] = {
    EmptyInputError.kind: 422,
    EmptyDocumentError.kind: 422,
    EmbeddingServiceError.kind: status.HTTP_502_BAD_GATEWAY,
    StoreError.kind: status.HTTP_503_SERVICE_UNAVAILABLE,
    DimensionMismatchError.kind: status.HTTP_500_INTERNAL_SERVER_ERROR,
}


async def rag_error_handler(request: Request, exc: RagError) -> JSONResponse:
    """
    Map a typed core failure to a deterministic JSON error response.

    The error kind is always returned so callers can distinguish an upstream
    embedding failure from a storage failure.
    """
    logger.warning(
        "Request %s %s failed with %s: %s",
        request.method,
        request.url.path,
        exc.kind,
        exc,
    )

    payload: Dict[str, Any] = {
        "error": exc.kind,
        "detail": str(exc),
    }
    if isinstance(exc, EmbeddingServiceError):
        payload["retryable"] = exc.retryable

    return JSONResponse(
        status_code=_STATUS_BY_KIND.get(exc.kind, status.HTTP_500_INTERNAL_SERVER_ERROR),
        content=payload,
    )


async def unhandled_exception_handler(
    request: Request,
    exc: Exception,
) -> JSONResponse:
    """
    Catch-all handler for uncaught exceptions.

    Behavior
    --------
    - Logs the full exception stack trace for internal diagnostics.
    - Returns a generic 500 error to the client with no internal details.

    Parameters
    ----------
    request : Request
        The incoming HTTP request that triggered the exception.

    exc : Exception
        The uncaught exception instance.

    Returns
    -------
    JSONResponse
        A JSON 500 response with a minimal error payload.
    """

    # Log full traceback internally (never returned to client)
    logger.exception(
        "Unhandled exception during request: %s %s",
        request.method,
        request.url.path,
        exc_info=exc,
    )

    payload: Dict[str, Any] = {
        "error": "internal_server_error",
        "detail": "Internal server error",
    }

    return JSONResponse(
        status_code=500,
        content=payload,
    )
