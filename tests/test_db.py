"""
Database Tests

Schema definition, migrations and the pgvector store, exercised against fake
sessions and engines (no PostgreSQL server required).
"""

import asyncio
import uuid
from unittest.mock import AsyncMock, MagicMock

import pytest
from sqlalchemy.dialects import postgresql
from sqlalchemy.exc import OperationalError
from sqlalchemy.schema import CreateIndex, CreateTable

from docs_rag.core.errors import DimensionMismatchError, StoreError
from docs_rag.db import DocumentChunk, PgVectorStore, run_migrations
from docs_rag.rag.models import NewRecord


DIM = 3


class MockRow:
    def __init__(self, **kwargs):
        for k, v in kwargs.items():
            setattr(self, k, v)


class FakeResult:
    def __init__(self, rows=None, scalar=None):
        self._rows = rows or []
        self._scalar = scalar

    def all(self):
        return self._rows

    def scalar(self):
        return self._scalar


class FakeSession:
    """Minimal AsyncSession stand-in recording what the store does."""

    def __init__(self, result=None, execute_error=None, delay=0.0):
        self.added = []
        self.executed = []
        self.began = 0
        self._result = result or FakeResult()
        self._execute_error = execute_error
        self._delay = delay

    async def __aenter__(self):
        return self

    async def __aexit__(self, *exc_info):
        return False

    def begin(self):
        self.began += 1
        return self

    def add_all(self, rows):
        self.added.extend(rows)

    async def execute(self, stmt):
        if self._delay:
            await asyncio.sleep(self._delay)
        if self._execute_error is not None:
            raise self._execute_error
        self.executed.append(stmt)
        return self._result


def _factory(session):
    factory = MagicMock()
    factory.return_value = session
    return factory


def _record(vec, i=0):
    return NewRecord(
        content=f"chunk {i}",
        embedding=vec,
        document_id=uuid.uuid4(),
        sequence_index=i,
    )


class TestSchema:

    def test_table_definition(self):
        ddl = str(CreateTable(DocumentChunk.__table__).compile(dialect=postgresql.dialect()))

        assert DocumentChunk.__tablename__ == "documents"
        assert "content TEXT NOT NULL" in ddl
        assert "embedding VECTOR(1536)" in ddl
        assert "document_id UUID NOT NULL" in ddl
        assert "sequence_index INTEGER NOT NULL" in ddl

    def test_hnsw_cosine_index(self):
        index = next(
            i for i in DocumentChunk.__table__.indexes
            if i.name == "documents_embedding_hnsw_idx"
        )
        ddl = str(CreateIndex(index).compile(dialect=postgresql.dialect()))

        assert "USING hnsw" in ddl
        assert "vector_cosine_ops" in ddl


class TestMigrations:

    @pytest.mark.asyncio
    async def test_extension_enabled_before_tables(self):
        conn = MagicMock()
        conn.execute = AsyncMock()
        conn.run_sync = AsyncMock()
        engine = MagicMock()
        engine.begin.return_value.__aenter__ = AsyncMock(return_value=conn)
        engine.begin.return_value.__aexit__ = AsyncMock(return_value=False)

        await run_migrations(engine)

        first_stmt = str(conn.execute.await_args_list[0].args[0])
        assert first_stmt == "CREATE EXTENSION IF NOT EXISTS vector"
        create_all, = conn.run_sync.await_args.args
        assert conn.run_sync.await_args.kwargs == {"checkfirst": True}
        assert create_all.__name__ == "create_all"

    @pytest.mark.asyncio
    async def test_failure_becomes_store_error(self):
        conn = MagicMock()
        conn.execute = AsyncMock(side_effect=OperationalError("stmt", {}, Exception("no server")))
        engine = MagicMock()
        engine.begin.return_value.__aenter__ = AsyncMock(return_value=conn)
        engine.begin.return_value.__aexit__ = AsyncMock(return_value=False)

        with pytest.raises(StoreError):
            await run_migrations(engine)


class TestPgVectorStoreInsert:

    @pytest.mark.asyncio
    async def test_batch_added_in_one_transaction(self):
        session = FakeSession()
        store = PgVectorStore(_factory(session), dimension=DIM, timeout=1.0)

        count = await store.insert_many([_record([1, 0, 0], 0), _record([0, 1, 0], 1)])

        assert count == 2
        assert session.began == 1
        assert [row.content for row in session.added] == ["chunk 0", "chunk 1"]
        assert [row.sequence_index for row in session.added] == [0, 1]

    @pytest.mark.asyncio
    async def test_dimension_mismatch_opens_no_session(self):
        factory = _factory(FakeSession())
        store = PgVectorStore(factory, dimension=DIM, timeout=1.0)

        with pytest.raises(DimensionMismatchError):
            await store.insert_many([_record([1, 0, 0]), _record([1, 0])])

        factory.assert_not_called()

    @pytest.mark.asyncio
    async def test_empty_batch_is_noop(self):
        factory = _factory(FakeSession())
        store = PgVectorStore(factory, dimension=DIM)

        assert await store.insert_many([]) == 0
        factory.assert_not_called()


class TestPgVectorStoreSearch:

    @pytest.mark.asyncio
    async def test_search_query_and_result_mapping(self):
        doc_id = uuid.uuid4()
        rows = [
            MockRow(id=4, content="brown fox", document_id=doc_id, sequence_index=1, similarity=0.91),
            MockRow(id=9, content="lazy fox", document_id=doc_id, sequence_index=4, similarity=0.62),
        ]
        session = FakeSession(result=FakeResult(rows=rows))
        store = PgVectorStore(_factory(session), dimension=DIM, timeout=1.0, ef_search=80)

        results = await store.search([1.0, 0.0, 0.0], limit=2, threshold=0.5)

        assert [(r.id, r.content, r.similarity) for r in results] == [
            (4, "brown fox", 0.91),
            (9, "lazy fox", 0.62),
        ]
        assert results[0].document_id == doc_id

        set_stmt, select_stmt = session.executed
        assert str(set_stmt) == "SET LOCAL hnsw.ef_search = 80"

        sql = str(select_stmt.compile(dialect=postgresql.dialect()))
        assert "FROM documents" in sql
        assert "<=>" in sql
        assert "ORDER BY" in sql and "documents.id" in sql.split("ORDER BY")[1]
        assert "LIMIT" in sql

    @pytest.mark.asyncio
    async def test_zero_vector_rows_excluded(self):
        doc_id = uuid.uuid4()
        rows = [
            MockRow(id=1, content="blank", document_id=doc_id, sequence_index=0, similarity=float("nan")),
            MockRow(id=2, content="fox", document_id=doc_id, sequence_index=1, similarity=0.8),
        ]
        session = FakeSession(result=FakeResult(rows=rows))
        store = PgVectorStore(_factory(session), dimension=DIM, timeout=1.0)

        results = await store.search([1.0, 0.0, 0.0], limit=5, threshold=0.5)

        assert [r.id for r in results] == [2]

        sql = str(session.executed[1].compile(dialect=postgresql.dialect()))
        where = sql.split("WHERE")[1].split("ORDER BY")[0]
        assert where.count("<=>") == 2
        assert "!=" in where

    @pytest.mark.asyncio
    async def test_query_dimension_checked(self):
        factory = _factory(FakeSession())
        store = PgVectorStore(factory, dimension=DIM)

        with pytest.raises(DimensionMismatchError):
            await store.search([1.0, 0.0], limit=1, threshold=0.0)
        factory.assert_not_called()

    @pytest.mark.asyncio
    async def test_database_error_becomes_store_error(self):
        error = OperationalError("SELECT", {}, Exception("connection refused"))
        store = PgVectorStore(_factory(FakeSession(execute_error=error)), dimension=DIM)

        with pytest.raises(StoreError) as exc_info:
            await store.search([1.0, 0.0, 0.0], limit=1, threshold=0.0)

        assert not isinstance(exc_info.value, DimensionMismatchError)

    @pytest.mark.asyncio
    async def test_timeout_becomes_store_error(self):
        store = PgVectorStore(_factory(FakeSession(delay=1.0)), dimension=DIM, timeout=0.01)

        with pytest.raises(StoreError, match="timed out"):
            await store.search([1.0, 0.0, 0.0], limit=1, threshold=0.0)


class TestPgVectorStoreCount:

    @pytest.mark.asyncio
    async def test_count(self):
        store = PgVectorStore(_factory(FakeSession(result=FakeResult(scalar=7))), dimension=DIM)
        assert await store.count() == 7

    @pytest.mark.asyncio
    async def test_count_empty(self):
        store = PgVectorStore(_factory(FakeSession(result=FakeResult(scalar=None))), dimension=DIM)
        assert await store.count() == 0
