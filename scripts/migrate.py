import asyncio
import os
import sys

# Ensure src is in pythonpath
sys.path.append(os.path.join(os.path.dirname(__file__), "..", "src"))

from dotenv import load_dotenv
load_dotenv()

from docs_rag.db import create_engine, run_migrations


async def main():
    engine = create_engine()
    print("Applying schema (vector extension, documents table, HNSW index)...")
    try:
        await run_migrations(engine)
    finally:
        await engine.dispose()
    print("Done! Schema is up to date.")

if __name__ == "__main__":
    asyncio.run(main())
