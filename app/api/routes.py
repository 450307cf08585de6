from typing import Annotated

from fastapi import APIRouter, Depends, Request, status

from app.api.dispatcher import (
    LIST_CACHE_CONTROL,
    RECORD_CACHE_CONTROL,
    json_response,
    read_json_object,
)
from app.core.errors import MethodNotAllowedError
from app.db.session import get_store
from app.db.store import Store
from app.schemas.book import (
    BookListResponse,
    BookResponse,
    ErrorResponse,
    HealthResponse,
    Pagination,
    SearchResponse,
    StatsResponse,
)
from app.services.book import (
    calculate_pages,
    check_health,
    create_book,
    delete_book,
    get_stats,
    list_books,
    parse_list_filters,
    require_book,
    search_books,
    update_book,
)

router = APIRouter(prefix="/api")

StoreDep = Annotated[Store, Depends(get_store)]

_ERRORS = {
    400: {"model": ErrorResponse, "description": "Invalid input"},
    429: {"model": ErrorResponse, "description": "Rate limit exceeded"},
    504: {"model": ErrorResponse, "description": "Database timeout"},
}
_NOT_FOUND = {404: {"model": ErrorResponse, "description": "Book not found"}}


@router.get(
    "/health",
    response_model=HealthResponse,
    tags=["Health"],
    summary="Health check",
    description="Probes the database and returns the current status with a timestamp.",
)
async def health(store: StoreDep):
    return json_response(await check_health(store))


@router.get(
    "/stats",
    response_model=StatsResponse,
    tags=["Books"],
    summary="Catalog statistics",
    description="Total number of books, a per-genre histogram and the publication year range.",
)
async def stats(store: StoreDep):
    body = StatsResponse(**await get_stats(store))
    return json_response(body.model_dump(), cache_control=RECORD_CACHE_CONTROL)


@router.get(
    "/books/search",
    response_model=SearchResponse,
    tags=["Books"],
    summary="Search books",
    description="Case-insensitive substring search over title, author, genre, ISBN, year and description.",
    responses=_ERRORS,
)
async def search(store: StoreDep, q: str | None = None):
    results = await search_books(store, q)
    body = SearchResponse(query=q, results=results, count=len(results))
    return json_response(body.model_dump(), cache_control=LIST_CACHE_CONTROL)


@router.get(
    "/books",
    response_model=BookListResponse,
    tags=["Books"],
    summary="List books",
    description="Paginated list of books, optionally filtered by exact genre and year.",
    responses=_ERRORS,
)
async def list_books_endpoint(
    store: StoreDep,
    page: str | None = None,
    limit: str | None = None,
    genre: str | None = None,
    year: str | None = None,
):
    filters = parse_list_filters(page=page, limit=limit, genre=genre, year=year)
    books, total = await list_books(store, filters)
    body = BookListResponse(
        data=books,
        pagination=Pagination(
            total=total,
            page=filters.page,
            limit=filters.limit,
            pages=calculate_pages(total, filters.limit),
        ),
    )
    return json_response(body.model_dump(), cache_control=LIST_CACHE_CONTROL)


@router.post(
    "/books",
    response_model=BookResponse,
    status_code=status.HTTP_201_CREATED,
    tags=["Books"],
    summary="Create a book",
    responses=_ERRORS,
)
async def create_book_endpoint(request: Request, store: StoreDep):
    data = await read_json_object(request)
    book = await create_book(store, data)
    return json_response(BookResponse(**book).model_dump(), status_code=status.HTTP_201_CREATED)


@router.get(
    "/books/{book_id:int}",
    response_model=BookResponse,
    tags=["Books"],
    summary="Get book details",
    responses=_NOT_FOUND,
)
async def get_book(book_id: int, store: StoreDep):
    book = await require_book(store, book_id)
    return json_response(BookResponse(**book).model_dump(), cache_control=RECORD_CACHE_CONTROL)


@router.put(
    "/books/{book_id:int}",
    response_model=BookResponse,
    tags=["Books"],
    summary="Update a book",
    description="Partial update; keys outside the editable fields are ignored.",
    responses={**_ERRORS, **_NOT_FOUND},
)
async def update_book_endpoint(book_id: int, request: Request, store: StoreDep):
    existing = await require_book(store, book_id)
    changes = await read_json_object(request)
    book = await update_book(store, existing, changes)
    return json_response(BookResponse(**book).model_dump())


@router.delete(
    "/books/{book_id:int}",
    status_code=status.HTTP_204_NO_CONTENT,
    tags=["Books"],
    summary="Delete a book",
    responses=_NOT_FOUND,
)
async def delete_book_endpoint(book_id: int, store: StoreDep):
    await require_book(store, book_id)
    await delete_book(store, book_id)
    return json_response(None, status_code=status.HTTP_204_NO_CONTENT)


@router.api_route("/books/{book_id:int}", methods=["PATCH"], include_in_schema=False)
async def unsupported_book_method(book_id: int, store: StoreDep):
    # an absent record is reported before the method is rejected
    await require_book(store, book_id)
    raise MethodNotAllowedError()
