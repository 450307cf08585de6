"""
Unit tests for app.db.store – placeholder rewriting and the SQLAlchemy-backed store.
"""
import asyncio

import pytest
import pytest_asyncio
from sqlalchemy.ext.asyncio import create_async_engine

from app.db.models import Base
from app.db.store import QueryResult, SqlStore, to_named_binds
from app.services.query_builder import build_insert_query


class TestToNamedBinds:
    def test_rewrites_in_order(self):
        sql, params = to_named_binds("SELECT * FROM books WHERE genre = ? AND year = ?", ["SF", 1965])
        assert sql == "SELECT * FROM books WHERE genre = :p0 AND year = :p1"
        assert params == {"p0": "SF", "p1": 1965}

    def test_no_placeholders(self):
        assert to_named_binds("SELECT 1", []) == ("SELECT 1", {})

    def test_count_mismatch_raises(self):
        with pytest.raises(ValueError, match="expects 2 parameters but 1"):
            to_named_binds("SELECT ? + ?", [1])


class TestSqlStore:
    @pytest.mark.asyncio
    async def test_bind_returns_new_statement(self, store):
        stmt = store.prepare("SELECT ? AS value")
        bound = stmt.bind(1)
        assert bound is not stmt
        assert stmt.values == ()
        assert bound.values == (1,)

    @pytest.mark.asyncio
    async def test_run_reports_last_row_id(self, store, make_book):
        query = build_insert_query(make_book())
        result = await store.prepare(query.sql).bind(*query.params).run()
        assert result.success is True
        assert result.meta.last_row_id == 1
        assert result.meta.changes == 1

    @pytest.mark.asyncio
    async def test_all_returns_dict_rows(self, store, insert_book, make_book):
        await insert_book(make_book(title="A"))
        await insert_book(make_book(title="B"))
        result = await store.prepare("SELECT id, title FROM books ORDER BY id").all()
        assert isinstance(result, QueryResult)
        assert result.results == [{"id": 1, "title": "A"}, {"id": 2, "title": "B"}]

    @pytest.mark.asyncio
    async def test_first_missing_row(self, store):
        assert await store.prepare("SELECT * FROM books WHERE id = ?").bind(99).first() is None

    @pytest.mark.asyncio
    async def test_null_round_trip(self, store, insert_book):
        book_id = await insert_book({"title": "T", "author": "A", "genre": ""})
        row = await store.prepare("SELECT genre, year FROM books WHERE id = ?").bind(book_id).first()
        assert row == {"genre": None, "year": None}

    @pytest.mark.asyncio
    async def test_hostile_text_is_bound_not_executed(self, store, insert_book):
        hostile = "x'); DROP TABLE books; --"
        book_id = await insert_book({"title": hostile, "author": "A"})
        row = await store.prepare("SELECT title FROM books WHERE id = ?").bind(book_id).first()
        assert row["title"] == hostile


@pytest_asyncio.fixture
async def file_store(tmp_path):
    """A file-backed store with a real connection pool, for concurrent writers."""
    engine = create_async_engine(f"sqlite+aiosqlite:///{tmp_path / 'books.db'}")
    async with engine.begin() as conn:
        await conn.run_sync(Base.metadata.create_all)
    yield SqlStore(engine)
    await engine.dispose()


class TestConcurrentInserts:
    @pytest.mark.asyncio
    async def test_distinct_ids(self, file_store):
        async def create(title):
            query = build_insert_query({"title": title, "author": "A"})
            result = await file_store.prepare(query.sql).bind(*query.params).run()
            return result.meta.last_row_id

        ids = await asyncio.gather(*(create(f"Book {i}") for i in range(2)))
        assert len(set(ids)) == 2

        rows = (await file_store.prepare("SELECT id FROM books").all()).results
        assert sorted(r["id"] for r in rows) == sorted(ids)


class TestGetStore:
    def test_returns_process_wide_store(self):
        from app.db.session import get_store, store

        assert get_store() is store
        assert isinstance(store, SqlStore)
