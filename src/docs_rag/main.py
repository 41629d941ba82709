"""
Application Entry Point

This module defines the FastAPI application instance, registers all routers,
configures global exception handling, and owns the lifecycle of the
retrieval components.

Design Goals
------------
- Deterministic startup: configuration validated before the first request
- No ambient globals: components are built once in the lifespan, stored on
  ``app.state`` and injected into routes
- Every external resource (HTTP client, DB pool) is closed on shutdown
- Test-friendly via create_app()
"""

from __future__ import annotations

import logging
from contextlib import asynccontextmanager
from typing import AsyncIterator

from fastapi import FastAPI

from .config import settings
from .core.errors import RagError, rag_error_handler, unhandled_exception_handler
from .db import PgVectorStore, create_engine, create_session_factory, run_migrations
from .rag.chunker import Chunker
from .rag.embedder import Embedder
from .rag.faiss_store import FaissVectorStore
from .rag.ingest import IngestionPipeline
from .rag.retriever import Retriever

from .api import (
    document_routes,
    search_routes,
    health_routes,
)


logger = logging.getLogger("rag.app")


# ---------------------------------------------------------------------
# Lifespan
# ---------------------------------------------------------------------

@asynccontextmanager
async def lifespan(app: FastAPI) -> AsyncIterator[None]:
    """
    Build the retrieval components at startup and release them at shutdown.
    """
    logger.info("Starting docs-rag-server (backend=%s)", settings.vector_backend)

    # Fail fast on missing credentials (not at first use)
    api_key = settings.openai_api_key.get_secret_value()
    if not api_key:
        raise RuntimeError("OPENAI_API_KEY is not configured")

    engine = None
    faiss_store = None

    if settings.vector_backend == "faiss":
        faiss_store = FaissVectorStore()
        if faiss_store.load():
            logger.info("Loaded FAISS index with %d records", await faiss_store.count())
        store = faiss_store
    else:
        engine = create_engine()
        if settings.auto_migrate:
            await run_migrations(engine)
        store = PgVectorStore(create_session_factory(engine))

    embedder = Embedder(api_key=api_key)
    chunker = Chunker()

    app.state.vector_store = store
    app.state.retriever = Retriever(embedder, store)
    app.state.ingestion_pipeline = IngestionPipeline(chunker, embedder, store)

    logger.info("Configuration validated successfully")

    try:
        yield
    finally:
        logger.info("Shutting down docs-rag-server")
        await embedder.aclose()
        if faiss_store is not None:
            faiss_store.save()
        if engine is not None:
            await engine.dispose()


# ---------------------------------------------------------------------
# Application Factory (Test-Friendly)
# ---------------------------------------------------------------------

def create_app() -> FastAPI:
    """
    Create and configure the FastAPI application.

    Returns
    -------
    FastAPI
        Fully configured FastAPI application.
    """
    logging.basicConfig(
        level=settings.log_level.upper(),
        format="%(asctime)s %(levelname)s %(name)s: %(message)s",
    )

    app = FastAPI(
        title="docs-rag-server",
        version="1.0.0",
        docs_url="/docs",
        redoc_url="/redoc",
        openapi_url="/openapi.json",
        lifespan=lifespan,
    )

    # --------------------------------------------------------------
    # Global Exception Handling
    # --------------------------------------------------------------

    app.add_exception_handler(RagError, rag_error_handler)
    app.add_exception_handler(Exception, unhandled_exception_handler)

    # --------------------------------------------------------------
    # Router Registration
    # --------------------------------------------------------------

    app.include_router(health_routes.router)
    app.include_router(document_routes.router)
    app.include_router(search_routes.router)

    return app


# ---------------------------------------------------------------------
# Default Application Instance (for Uvicorn/Gunicorn)
# ---------------------------------------------------------------------

app = create_app()
