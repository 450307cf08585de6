"""
Shared fixtures for unit tests.
Uses an in-memory SQLite database for fast isolated testing.
"""
import pytest
import pytest_asyncio
from sqlalchemy.ext.asyncio import create_async_engine
from sqlalchemy.pool import StaticPool

from app.db.models import Base
from app.db.store import SqlStore
from app.services.query_builder import build_insert_query


@pytest_asyncio.fixture
async def async_engine():
    """Create an in-memory SQLite engine for testing."""
    engine = create_async_engine(
        "sqlite+aiosqlite:///:memory:",
        echo=False,
        poolclass=StaticPool,
    )

    async with engine.begin() as conn:
        await conn.run_sync(Base.metadata.create_all)

    yield engine

    async with engine.begin() as conn:
        await conn.run_sync(Base.metadata.drop_all)

    await engine.dispose()


@pytest_asyncio.fixture
async def store(async_engine) -> SqlStore:
    return SqlStore(async_engine)


# ─── Helper factories ───────────────────────────────────────────


@pytest.fixture
def make_book():
    """Factory fixture returning book payload dicts."""
    def _make(
        title: str = "Test Book",
        author: str = "Test Author",
        year: int = 2020,
        isbn: str = "9780000000001",
        genre: str = "Fiction",
        description: str = "A test book",
    ) -> dict:
        return {
            "title": title,
            "author": author,
            "year": year,
            "isbn": isbn,
            "genre": genre,
            "description": description,
        }
    return _make


@pytest.fixture
def insert_book(store):
    """Insert a payload straight into the store and return its id."""
    async def _insert(book: dict) -> int:
        query = build_insert_query(book)
        result = await store.prepare(query.sql).bind(*query.params).run()
        return result.meta.last_row_id
    return _insert
