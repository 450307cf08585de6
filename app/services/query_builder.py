"""
Parameterized statement construction for the books table.

User-supplied values are only ever bound as ``?`` parameters. Column names
that appear in statement text come from the fixed tuples below.
"""
from typing import Any, Mapping, NamedTuple, Optional

from app.core.errors import ValidationError
from app.services.validation import parse_year

TABLE = "books"

INSERT_COLUMNS = ("title", "author", "year", "isbn", "genre", "description")
ALLOWED_UPDATE_FIELDS = ("title", "author", "year", "isbn", "genre", "description")
SEARCH_COLUMNS = ("title", "author", "genre", "isbn", "CAST(year AS TEXT)", "description")

HEALTH_QUERY = "SELECT 1"

# largest value SQLite can bind as INTEGER
MAX_SQL_INTEGER = 2**63 - 1


class Query(NamedTuple):
    sql: str
    params: list


class ListFilters(NamedTuple):
    page: int = 1
    limit: int = 10
    genre: Optional[str] = None
    year: Optional[int] = None

    @property
    def offset(self) -> int:
        return (self.page - 1) * self.limit


def clean_value(value: Any) -> Any:
    """Trim text; blank text becomes None so it is stored as NULL."""
    if isinstance(value, str):
        stripped = value.strip()
        return stripped or None
    return value


def _column_value(column: str, value: Any) -> Any:
    value = clean_value(value)
    if column == "year" and value is not None:
        parsed = parse_year(value)
        return parsed if parsed is not None else value
    return value


def build_list_queries(filters: ListFilters) -> tuple[Query, Query]:
    """Return the (count, data) queries for a filtered, paginated listing."""
    where = "WHERE 1=1"
    params: list = []

    if filters.genre:
        where += " AND genre = ?"
        params.append(filters.genre)
    if filters.year:
        where += " AND year = ?"
        params.append(filters.year)

    count = Query(f"SELECT COUNT(*) AS count FROM {TABLE} {where}", list(params))
    data = Query(
        f"SELECT * FROM {TABLE} {where} ORDER BY id ASC LIMIT ? OFFSET ?",
        params + [filters.limit, filters.offset],
    )
    return count, data


def escape_like(term: str) -> str:
    return term.replace("\\", "\\\\").replace("%", "\\%").replace("_", "\\_")


def build_search_query(term: str) -> Query:
    """Case-insensitive substring match of ``term`` across every text-like column."""
    pattern = f"%{escape_like(term)}%"
    # term and column go through the same LOWER()
    predicate = " OR ".join(
        f"LOWER({column}) LIKE LOWER(?) ESCAPE '\\'" for column in SEARCH_COLUMNS
    )
    sql = f"SELECT * FROM {TABLE} WHERE {predicate} ORDER BY id ASC"
    return Query(sql, [pattern] * len(SEARCH_COLUMNS))


def build_get_query(book_id: int) -> Query:
    return Query(f"SELECT * FROM {TABLE} WHERE id = ?", [book_id])


def build_insert_query(book: Mapping[str, Any]) -> Query:
    columns = ", ".join(INSERT_COLUMNS)
    placeholders = ", ".join("?" for _ in INSERT_COLUMNS)
    params = [_column_value(column, book.get(column)) for column in INSERT_COLUMNS]
    return Query(f"INSERT INTO {TABLE} ({columns}) VALUES ({placeholders})", params)


def build_update_query(book_id: int, changes: Mapping[str, Any]) -> tuple[Query, list[str]]:
    """Build a partial UPDATE from the allow-listed keys of ``changes``.

    Unknown keys are dropped. Returns the query and the columns it sets.
    """
    fields = [key for key in changes if key in ALLOWED_UPDATE_FIELDS]
    if not fields:
        raise ValidationError("No valid fields to update")

    set_clause = ", ".join(f"{key} = ?" for key in fields)
    params = [_column_value(key, changes[key]) for key in fields]
    params.append(book_id)
    return Query(f"UPDATE {TABLE} SET {set_clause} WHERE id = ?", params), fields


def build_delete_query(book_id: int) -> Query:
    return Query(f"DELETE FROM {TABLE} WHERE id = ?", [book_id])


def build_stats_queries() -> tuple[Query, Query, Query]:
    """Return the (total, genre histogram, year range) queries."""
    total = Query(f"SELECT COUNT(*) AS total FROM {TABLE}", [])
    genres = Query(
        f"SELECT genre, COUNT(*) AS count FROM {TABLE} "
        "WHERE genre IS NOT NULL GROUP BY genre ORDER BY count DESC, genre ASC",
        [],
    )
    years = Query(
        f"SELECT MIN(year) AS earliest, MAX(year) AS latest FROM {TABLE} "
        "WHERE year IS NOT NULL",
        [],
    )
    return total, genres, years
