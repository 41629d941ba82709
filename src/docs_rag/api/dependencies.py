"""
Request dependencies.

Components are built once in the application lifespan (see main.py) and kept
on ``app.state``; these functions hand them to route handlers. Tests replace
them through ``app.dependency_overrides``.
"""

from fastapi import Request

from ..db.vector_store import VectorStoreProtocol
from ..rag.ingest import IngestionPipeline
from ..rag.retriever import Retriever


def get_retriever(request: Request) -> Retriever:
    return request.app.state.retriever


def get_ingestion_pipeline(request: Request) -> IngestionPipeline:
    return request.app.state.ingestion_pipeline


def get_vector_store(request: Request) -> VectorStoreProtocol:
    return request.app.state.vector_store
