import argparse
import asyncio
import os
import sys

# Ensure src is in pythonpath
sys.path.append(os.path.join(os.path.dirname(__file__), "..", "src"))

from dotenv import load_dotenv
load_dotenv()

from docs_rag.config import settings
from docs_rag.db import PgVectorStore, create_engine, create_session_factory
from docs_rag.rag.chunker import Chunker
from docs_rag.rag.embedder import Embedder
from docs_rag.rag.faiss_store import FaissVectorStore
from docs_rag.rag.ingest import IngestionPipeline


async def main(path: str) -> int:
    print(f"Reading {path}...")
    with open(path, "r", encoding="utf-8") as f:
        text = f.read()

    engine = None
    if settings.vector_backend == "faiss":
        store = FaissVectorStore()
        store.load()
    else:
        engine = create_engine()
        store = PgVectorStore(create_session_factory(engine))

    embedder = Embedder()
    pipeline = IngestionPipeline(Chunker(), embedder, store)

    try:
        result = await pipeline.ingest(text)
    finally:
        await embedder.aclose()
        if engine is not None:
            await engine.dispose()

    if not result.success:
        print(f"Ingestion failed ({result.error_kind}): {result.error}")
        return 1

    if isinstance(store, FaissVectorStore):
        store.save()

    print(f"{result.message} (document {result.document_id})")
    return 0


if __name__ == "__main__":
    parser = argparse.ArgumentParser(description="Ingest a plain-text document.")
    parser.add_argument("path", help="Path to a UTF-8 text file")
    args = parser.parse_args()
    sys.exit(asyncio.run(main(args.path)))
