import asyncio
import math
from datetime import datetime, timezone
from typing import Any, Awaitable, Mapping, Optional, TypeVar

from app.core.config import settings
from app.core.errors import NotFoundError, StoreTimeoutError, ValidationError
from app.core.logging import get_logger
from app.db.store import Store
from app.services.query_builder import (
    HEALTH_QUERY,
    MAX_SQL_INTEGER,
    ListFilters,
    Query,
    build_delete_query,
    build_get_query,
    build_insert_query,
    build_list_queries,
    build_search_query,
    build_stats_queries,
    build_update_query,
)
from app.services.validation import GENRE_MAX_LENGTH, ValidationMode, validate_book

logger = get_logger("services.book")

T = TypeVar("T")

DEFAULT_PAGE = 1
DEFAULT_LIMIT = 10
MAX_LIMIT = 100


async def with_timeout(awaitable: Awaitable[T], timeout: Optional[float] = None) -> T:
    """Await a store operation, failing with StoreTimeoutError after ``timeout`` seconds."""
    timeout = settings.QUERY_TIMEOUT_SECONDS if timeout is None else timeout
    try:
        return await asyncio.wait_for(awaitable, timeout=timeout)
    except asyncio.TimeoutError as exc:
        raise StoreTimeoutError() from exc


async def _all(store: Store, query: Query) -> list[dict]:
    result = await with_timeout(store.prepare(query.sql).bind(*query.params).all())
    return result.results


async def _first(store: Store, query: Query) -> Optional[dict]:
    return await with_timeout(store.prepare(query.sql).bind(*query.params).first())


async def _run(store: Store, query: Query, action: str):
    result = await with_timeout(store.prepare(query.sql).bind(*query.params).run())
    if not result.success:
        raise RuntimeError(f"Failed to {action} book")
    return result


def safe_parse_int(value: Any, default: Optional[int]) -> Optional[int]:
    """Parse a positive integer that fits an SQL INTEGER, falling back to ``default``."""
    try:
        parsed = int(str(value).strip())
    except (TypeError, ValueError):
        return default
    return parsed if 0 < parsed <= MAX_SQL_INTEGER else default


def parse_list_filters(
    page: Optional[str] = None,
    limit: Optional[str] = None,
    genre: Optional[str] = None,
    year: Optional[str] = None,
) -> ListFilters:
    """Turn raw query-string values into a ListFilters intent."""
    if genre and len(genre) > GENRE_MAX_LENGTH:
        raise ValidationError("Genre parameter too long")
    limit_value = min(safe_parse_int(limit, DEFAULT_LIMIT), MAX_LIMIT)
    # keep the OFFSET bindable
    page_value = min(safe_parse_int(page, DEFAULT_PAGE), MAX_SQL_INTEGER // limit_value)
    return ListFilters(
        page=page_value,
        limit=limit_value,
        genre=genre or None,
        year=safe_parse_int(year, None),
    )


def calculate_pages(total: int, limit: int) -> int:
    return math.ceil(total / limit) if limit > 0 else 0


async def check_health(store: Store) -> dict:
    await _first(store, Query(HEALTH_QUERY, []))
    return {"status": "healthy", "timestamp": datetime.now(timezone.utc).isoformat()}


async def get_stats(store: Store) -> dict:
    """Total count, genre histogram and year range."""
    total_query, genres_query, years_query = build_stats_queries()
    total = await _first(store, total_query)
    genres = await _all(store, genres_query)
    years = await _first(store, years_query) or {}
    return {
        "totalBooks": total["total"] if total else 0,
        "genreBreakdown": genres,
        "yearRange": {
            "earliest": years.get("earliest"),
            "latest": years.get("latest"),
        },
    }


async def list_books(store: Store, filters: ListFilters) -> tuple[list[dict], int]:
    """List books matching ``filters``; returns the page and the total match count."""
    count_query, data_query = build_list_queries(filters)
    counted = await _all(store, count_query)
    total = counted[0]["count"] if counted else 0
    books = await _all(store, data_query)
    return books, total


def validate_search_term(term: Optional[str]) -> str:
    if not term:
        raise ValidationError("Search query `?q=` is required")
    if len(term) > settings.SEARCH_QUERY_MAX_LENGTH:
        raise ValidationError(
            f"Search query too long (max {settings.SEARCH_QUERY_MAX_LENGTH} characters)"
        )
    return term


async def search_books(store: Store, term: Optional[str]) -> list[dict]:
    term = validate_search_term(term)
    return await _all(store, build_search_query(term))


async def get_book_by_id(store: Store, book_id: int) -> Optional[dict]:
    """Get a single book by ID."""
    return await _first(store, build_get_query(book_id))


async def require_book(store: Store, book_id: int) -> dict:
    if book_id <= 0:
        raise ValidationError("Invalid book ID")
    if book_id > MAX_SQL_INTEGER:
        raise NotFoundError("Book not found")
    book = await get_book_by_id(store, book_id)
    if book is None:
        raise NotFoundError("Book not found")
    return book


async def create_book(store: Store, data: Mapping[str, Any]) -> dict:
    """Validate and insert a book, returning the stored row."""
    validate_book(data, ValidationMode.CREATE)

    result = await _run(store, build_insert_query(data), "insert")
    book_id = result.meta.last_row_id
    book = await get_book_by_id(store, book_id)

    logger.info(f"Book created: id={book_id}", extra={"extra_data": {"book_id": book_id}})
    return book


async def update_book(store: Store, existing: Mapping[str, Any], changes: Mapping[str, Any]) -> dict:
    """Apply a partial update to ``existing`` and return the refreshed row.

    The read of ``existing`` and the write are separate statements.
    """
    book_id = existing["id"]
    query, fields = build_update_query(book_id, changes)
    validate_book({**existing, **changes}, ValidationMode.UPDATE)

    await _run(store, query, "update")
    book = await get_book_by_id(store, book_id)

    logger.info(
        f"Book updated: id={book_id}",
        extra={"extra_data": {"book_id": book_id, "updated_fields": fields}},
    )
    return book


async def delete_book(store: Store, book_id: int) -> None:
    await _run(store, build_delete_query(book_id), "delete")
    logger.info(f"Book deleted: id={book_id}", extra={"extra_data": {"book_id": book_id}})
