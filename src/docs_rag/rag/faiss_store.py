"""
FAISS Vector Store

In-process vector store backed by a FAISS HNSW graph. It implements the same
interface as the pgvector store and is used for local development and tests
where no PostgreSQL server is available.

Key Properties
--------------
- Approximate nearest-neighbor search (``IndexHNSWFlat``) with explicit ids
  via ``IndexIDMap2``
- Cosine similarity as inner product over L2-normalized vectors
- Ids assigned monotonically from 1, like a SERIAL column
- Whole-batch validation before any vector is added
- Thread-safe (internal RLock); optional persistence of index + metadata
"""

from __future__ import annotations

import json
from dataclasses import dataclass, asdict
from pathlib import Path
from threading import RLock
from typing import Dict, List, Optional, Sequence
from uuid import UUID

import faiss
import numpy as np

from .models import NewRecord, SearchResult
from ..config import settings
from ..core.errors import StoreError
from ..db.vector_store import check_dimensions


# ---------------------------------------------------------------------
# Exceptions
# ---------------------------------------------------------------------

class FaissPersistenceError(StoreError):
    """Raised when index persistence fails."""


@dataclass(frozen=True)
class StoredChunk:
    content: str
    document_id: Optional[str]
    sequence_index: Optional[int]


# ---------------------------------------------------------------------
# FAISS Store
# ---------------------------------------------------------------------

class FaissVectorStore:
    """
    HNSW vector store held in memory.

    This class is thread-safe; async methods do their work synchronously
    under the internal lock.
    """

    def __init__(
        self,
        dimension: Optional[int] = None,
        index_path: Optional[str] = None,
        meta_path: Optional[str] = None,
        m: Optional[int] = None,
        ef_construction: Optional[int] = None,
        ef_search: Optional[int] = None,
    ) -> None:
        """
        Initialize an empty store.

        Parameters
        ----------
        dimension : Optional[int]
            Vector dimension. Defaults to settings.embedding_dimension.

        index_path, meta_path : Optional[str]
            Filesystem paths used by save() / load(). Default to settings.

        m, ef_construction, ef_search : Optional[int]
            HNSW graph parameters.
        """
        self.dimension = dimension or settings.embedding_dimension
        self._index_path = index_path or settings.faiss_index_path
        self._meta_path = meta_path or settings.faiss_meta_path
        self._m = m or settings.hnsw_m
        self._ef_construction = ef_construction or settings.hnsw_ef_construction
        self.ef_search = ef_search or settings.hnsw_ef_search

        self._index: faiss.IndexIDMap2 = self._new_index()
        self._doc_map: Dict[int, StoredChunk] = {}
        self._next_id: int = 1

        self._lock = RLock()

    # ------------------------------------------------------------------
    # Internal Helpers
    # ------------------------------------------------------------------

    def _new_index(self) -> faiss.IndexIDMap2:
        base = faiss.IndexHNSWFlat(self.dimension, self._m, faiss.METRIC_INNER_PRODUCT)
        base.hnsw.efConstruction = self._ef_construction
        base.hnsw.efSearch = self.ef_search
        return faiss.IndexIDMap2(base)

    @staticmethod
    def _normalized(vectors: Sequence[Sequence[float]]) -> np.ndarray:
        arr = np.asarray(vectors, dtype="float32")
        faiss.normalize_L2(arr)
        return arr

    # ------------------------------------------------------------------
    # Public API
    # ------------------------------------------------------------------

    async def insert_many(self, records: Sequence[NewRecord]) -> int:
        """
        Add records and their embeddings to the index.

        The batch is validated in full first; a mismatched dimension rejects
        the whole batch.
        """
        if not records:
            return 0

        check_dimensions([r.embedding for r in records], self.dimension)

        with self._lock:
            ids = np.arange(
                self._next_id,
                self._next_id + len(records),
                dtype="int64",
            )
            vectors = self._normalized([r.embedding for r in records])

            try:
                self._index.add_with_ids(vectors, ids)
            except Exception as exc:
                raise StoreError(
                    f"Failed to add vectors to FAISS: {type(exc).__name__}"
                ) from exc

            self._next_id += len(records)
            for i, r in zip(ids, records):
                self._doc_map[int(i)] = StoredChunk(
                    content=r.content,
                    document_id=str(r.document_id),
                    sequence_index=r.sequence_index,
                )

            return len(records)

    async def search(
        self,
        query_embedding: Sequence[float],
        limit: int,
        threshold: float,
    ) -> List[SearchResult]:
        """
        Return up to ``limit`` records with similarity strictly above
        ``threshold``, best first, ties by ascending id.
        """
        check_dimensions([query_embedding], self.dimension)

        with self._lock:
            if self._index.ntotal == 0:
                return []

            k = min(int(self._index.ntotal), max(limit, self.ef_search))
            q = self._normalized([query_embedding])
            scores, idxs = self._index.search(q, k)

            candidates = []
            for score, idx in zip(scores[0], idxs[0]):
                idx = int(idx)
                if idx == -1:
                    continue
                doc = self._doc_map.get(idx)
                if doc is None:
                    continue
                similarity = float(score)
                if similarity > threshold:
                    candidates.append((idx, doc, similarity))

        candidates.sort(key=lambda c: (-c[2], c[0]))

        return [
            SearchResult(
                id=idx,
                content=doc.content,
                similarity=similarity,
                document_id=UUID(doc.document_id) if doc.document_id else None,
                sequence_index=doc.sequence_index,
            )
            for idx, doc, similarity in candidates[:limit]
        ]

    async def count(self) -> int:
        with self._lock:
            return int(self._index.ntotal)

    # ------------------------------------------------------------------
    # Persistence
    # ------------------------------------------------------------------

    def save(self) -> None:
        """
        Persist both FAISS index and metadata to disk.
        """
        with self._lock:
            index_path = Path(self._index_path)
            meta_path = Path(self._meta_path)

            index_path.parent.mkdir(parents=True, exist_ok=True)

            try:
                faiss.write_index(self._index, str(index_path))
            except Exception as exc:
                raise FaissPersistenceError(
                    f"Failed to write FAISS index: {type(exc).__name__}"
                ) from exc

            meta = {
                "dimension": self.dimension,
                "next_id": self._next_id,
                "doc_map": {
                    str(k): asdict(v)
                    for k, v in self._doc_map.items()
                },
            }

            try:
                meta_path.parent.mkdir(parents=True, exist_ok=True)
                with meta_path.open("w", encoding="utf-8") as f:
                    json.dump(meta, f)
            except OSError as exc:
                raise FaissPersistenceError(
                    f"Failed to write FAISS metadata: {type(exc).__name__}"
                ) from exc

    def load(self) -> bool:
        """
        Load index and metadata from disk if available.

        Returns False when no saved index exists.
        """
        with self._lock:
            index_path = Path(self._index_path)
            meta_path = Path(self._meta_path)

            if not index_path.exists() or not meta_path.exists():
                return False

            try:
                index = faiss.read_index(str(index_path))
            except Exception as exc:
                raise FaissPersistenceError(
                    f"Failed to read FAISS index: {type(exc).__name__}"
                ) from exc

            if index.d != self.dimension:
                raise FaissPersistenceError(
                    f"Saved index has dimension {index.d}, expected {self.dimension}"
                )

            try:
                with meta_path.open("r", encoding="utf-8") as f:
                    data = json.load(f)

                next_id = int(data.get("next_id", 1))
                doc_map = {
                    int(k): StoredChunk(**v)
                    for k, v in data.get("doc_map", {}).items()
                }
            except (OSError, ValueError, TypeError) as exc:
                raise FaissPersistenceError(
                    f"Failed to load FAISS metadata: {type(exc).__name__}"
                ) from exc

            self._index = index
            self._next_id = next_id
            self._doc_map = doc_map
            return True
