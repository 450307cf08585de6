"""
Shared fixtures for functional tests.
Uses httpx.AsyncClient against the real FastAPI app with an in-memory SQLite DB.
"""
import pytest_asyncio
from httpx import AsyncClient, ASGITransport
from sqlalchemy.ext.asyncio import create_async_engine
from sqlalchemy.pool import StaticPool

from app.db.models import Base
from app.db import session as db_session_module
from app.db.store import SqlStore
from app.main import app


# ─── DB override ────────────────────────────────────────────────

@pytest_asyncio.fixture
async def test_engine():
    """Create an in-memory SQLite engine for functional testing."""
    engine = create_async_engine(
        "sqlite+aiosqlite:///:memory:", echo=False, poolclass=StaticPool
    )

    async with engine.begin() as conn:
        await conn.run_sync(Base.metadata.create_all)

    yield engine

    async with engine.begin() as conn:
        await conn.run_sync(Base.metadata.drop_all)
    await engine.dispose()


@pytest_asyncio.fixture
async def test_store(test_engine):
    return SqlStore(test_engine)


@pytest_asyncio.fixture
async def client(test_store):
    """Provide an httpx.AsyncClient with the store overridden to use the test DB."""
    app.dependency_overrides[db_session_module.get_store] = lambda: test_store
    previous_limiter = app.state.rate_limiter
    app.state.rate_limiter = None

    transport = ASGITransport(app=app)
    async with AsyncClient(transport=transport, base_url="http://test") as ac:
        yield ac

    app.state.rate_limiter = previous_limiter
    app.dependency_overrides.clear()


# ─── Data helpers ───────────────────────────────────────────────

@pytest_asyncio.fixture
async def create_book(client: AsyncClient):
    """POST a book and return the created record."""
    async def _create(**fields) -> dict:
        payload = {"title": "Test Book", "author": "Test Author"}
        payload.update(fields)
        resp = await client.post("/api/books", json=payload)
        assert resp.status_code == 201, resp.text
        return resp.json()
    return _create
