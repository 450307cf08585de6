"""
Unit tests for app.main – app assembly, limiter wiring, docs endpoints.
"""
from unittest.mock import patch

import pytest
import pytest_asyncio
from httpx import AsyncClient, ASGITransport

from app.main import app, build_rate_limiter
from app.services.rate_limit import InMemoryRateLimiter


@pytest_asyncio.fixture
async def test_client():
    """Simple test client without DB overrides (for endpoints that don't need DB)."""
    transport = ASGITransport(app=app)
    async with AsyncClient(transport=transport, base_url="http://test") as ac:
        yield ac


class TestBuildRateLimiter:
    def test_disabled_by_default(self):
        with patch("app.main.settings.RATE_LIMIT_ENABLED", False):
            assert build_rate_limiter() is None

    def test_enabled(self):
        with patch("app.main.settings.RATE_LIMIT_ENABLED", True):
            assert isinstance(build_rate_limiter(), InMemoryRateLimiter)


class TestRoutes:
    def test_api_paths_registered(self):
        paths = set(app.openapi()["paths"])
        assert {
            "/api/health",
            "/api/stats",
            "/api/books",
            "/api/books/search",
            "/api/books/{book_id}",
        } <= paths


class TestOpenAPISpec:
    @pytest.mark.asyncio
    async def test_docs_endpoint_accessible(self, test_client):
        resp = await test_client.get("/docs")
        assert resp.status_code == 200

    @pytest.mark.asyncio
    async def test_openapi_lists_book_paths(self, test_client):
        resp = await test_client.get("/openapi.json")
        assert resp.status_code == 200
        assert "/api/books/search" in resp.json()["paths"]
