"""
FAISS Vector Store Tests

Behavioral checks of the in-process HNSW store: batch validation, strict
thresholding, ranking, tie-breaking, limits and persistence.
"""

import uuid

import pytest

from docs_rag.core.errors import DimensionMismatchError, StoreError
from docs_rag.rag.faiss_store import FaissVectorStore
from docs_rag.rag.models import NewRecord

from conftest import DIM, unit


def _records(*vectors, document_id=None):
    document_id = document_id or uuid.uuid4()
    return [
        NewRecord(
            content=f"chunk {i}",
            embedding=vec,
            document_id=document_id,
            sequence_index=i,
        )
        for i, vec in enumerate(vectors)
    ]


class TestInsert:

    @pytest.mark.asyncio
    async def test_insert_assigns_sequential_ids(self, store):
        assert await store.insert_many(_records(unit(1), unit(0, 1))) == 2
        assert await store.insert_many(_records(unit(0, 0, 1))) == 1
        assert await store.count() == 3

        results = await store.search(unit(0, 0, 1), limit=1, threshold=0.5)
        assert results[0].id == 3

    @pytest.mark.asyncio
    async def test_empty_insert_is_noop(self, store):
        assert await store.insert_many([]) == 0
        assert await store.count() == 0

    @pytest.mark.asyncio
    async def test_duplicate_content_allowed(self, store):
        records = _records(unit(1), unit(1))
        assert await store.insert_many(records) == 2
        assert await store.count() == 2

    @pytest.mark.asyncio
    async def test_mixed_dimension_batch_rejected_entirely(self, store):
        records = _records(unit(1), [1.0, 0.0], unit(0, 1))

        with pytest.raises(DimensionMismatchError) as exc_info:
            await store.insert_many(records)

        assert exc_info.value.position == 1
        assert exc_info.value.expected == DIM
        assert isinstance(exc_info.value, StoreError)
        assert await store.count() == 0

    @pytest.mark.asyncio
    async def test_provenance_preserved(self, store):
        doc_id = uuid.uuid4()
        await store.insert_many(_records(unit(1), unit(0, 1), document_id=doc_id))

        results = await store.search(unit(0, 1), limit=1, threshold=0.5)

        assert results[0].document_id == doc_id
        assert results[0].sequence_index == 1
        assert results[0].content == "chunk 1"


class TestSearch:

    @pytest.mark.asyncio
    async def test_empty_store_returns_nothing(self, store):
        assert await store.search(unit(1), limit=5, threshold=-1.0) == []

    @pytest.mark.asyncio
    async def test_threshold_is_strict(self, store):
        # similarities to unit(1): 1.0, 0.0, ~0.707
        await store.insert_many(_records(unit(1), unit(0, 1), unit(1, 1)))

        above_zero = await store.search(unit(1), limit=10, threshold=0.0)
        assert [r.id for r in above_zero] == [1, 3]

        above_one = await store.search(unit(1), limit=10, threshold=1.0)
        assert above_one == []

        all_results = await store.search(unit(1), limit=10, threshold=-0.5)
        assert len(all_results) == 3
        assert all_results[-1].similarity == pytest.approx(0.0, abs=1e-6)

    @pytest.mark.asyncio
    async def test_negative_similarity_not_clamped(self, store):
        await store.insert_many(_records(unit(-1, 0.2)))

        results = await store.search(unit(1), limit=1, threshold=-0.99)

        assert len(results) == 1
        assert results[0].similarity == pytest.approx(-1 / 1.04 ** 0.5, abs=1e-5)

    @pytest.mark.asyncio
    async def test_exact_opposite_excluded_at_minimum_threshold(self, store):
        await store.insert_many(_records(unit(-1)))

        assert await store.search(unit(1), limit=1, threshold=-1.0) == []

    @pytest.mark.asyncio
    async def test_results_ranked_best_first(self, store):
        await store.insert_many(
            _records(unit(1, 3), unit(1), unit(1, 1), unit(1, 0.2), unit(0, 1))
        )

        results = await store.search(unit(1), limit=10, threshold=-1.0)
        sims = [r.similarity for r in results]

        assert sims == sorted(sims, reverse=True)
        assert results[0].id == 2

    @pytest.mark.asyncio
    async def test_ties_broken_by_insertion_order(self, store):
        await store.insert_many(_records(unit(0, 1), unit(1, 1), unit(1, 1), unit(1, 1)))

        results = await store.search(unit(1, 1), limit=3, threshold=0.5)

        assert [r.id for r in results] == [2, 3, 4]

    @pytest.mark.asyncio
    async def test_limit_respected(self, store):
        await store.insert_many(_records(*[unit(1, 0.1 * i) for i in range(6)]))

        results = await store.search(unit(1), limit=3, threshold=0.0)

        assert len(results) == 3
        assert [r.id for r in results] == [1, 2, 3]

    @pytest.mark.asyncio
    async def test_query_dimension_checked(self, store):
        await store.insert_many(_records(unit(1)))

        with pytest.raises(DimensionMismatchError):
            await store.search([1.0, 0.0], limit=1, threshold=0.0)


class TestPersistence:

    @pytest.mark.asyncio
    async def test_save_and_load_roundtrip(self, tmp_path):
        index_path = str(tmp_path / "idx" / "faiss.bin")
        meta_path = str(tmp_path / "idx" / "meta.json")

        original = FaissVectorStore(dimension=DIM, index_path=index_path, meta_path=meta_path)
        await original.insert_many(_records(unit(1), unit(0, 1)))
        original.save()

        restored = FaissVectorStore(dimension=DIM, index_path=index_path, meta_path=meta_path)
        assert restored.load() is True
        assert await restored.count() == 2

        results = await restored.search(unit(0, 1), limit=1, threshold=0.5)
        assert results[0].id == 2
        assert results[0].content == "chunk 1"

        # ids keep increasing after a reload
        await restored.insert_many(_records(unit(0, 0, 1)))
        results = await restored.search(unit(0, 0, 1), limit=1, threshold=0.5)
        assert results[0].id == 3

    def test_load_without_files_returns_false(self, tmp_path):
        store = FaissVectorStore(
            dimension=DIM,
            index_path=str(tmp_path / "missing.bin"),
            meta_path=str(tmp_path / "missing.json"),
        )
        assert store.load() is False
