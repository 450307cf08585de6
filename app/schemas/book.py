from typing import Optional, List
from pydantic import BaseModel


class BookResponse(BaseModel):
    id: int
    title: str
    author: str
    year: Optional[int] = None
    isbn: Optional[str] = None
    genre: Optional[str] = None
    description: Optional[str] = None

    model_config = {"from_attributes": True}


class Pagination(BaseModel):
    total: int
    page: int
    limit: int
    pages: int


class BookListResponse(BaseModel):
    data: List[BookResponse]
    pagination: Pagination


class SearchResponse(BaseModel):
    query: str
    results: List[BookResponse]
    count: int


class GenreCount(BaseModel):
    genre: str
    count: int


class YearRange(BaseModel):
    earliest: Optional[int] = None
    latest: Optional[int] = None


class StatsResponse(BaseModel):
    totalBooks: int
    genreBreakdown: List[GenreCount]
    yearRange: YearRange


class HealthResponse(BaseModel):
    status: str
    timestamp: str


class ErrorResponse(BaseModel):
    error: str
