"""
Field-level validation for book records.

Checks run in a fixed field order and stop at the first violation. Optional
fields are skipped when they are ``None`` or an empty string.
"""
import enum
import re
from datetime import datetime, timezone
from typing import Any, Mapping, Optional

from app.core.errors import ValidationError

TITLE_MAX_LENGTH = 500
AUTHOR_MAX_LENGTH = 200
GENRE_MAX_LENGTH = 100
DESCRIPTION_MAX_LENGTH = 5000
YEAR_LOOKAHEAD = 10

REQUIRED_FIELDS = ("title", "author")

_ISBN_PATTERN = re.compile(r"\d{10}|\d{13}|[\d-]{13,17}", re.ASCII)
_INTEGER_PATTERN = re.compile(r"\s*-?\d+\s*", re.ASCII)


class ValidationMode(str, enum.Enum):
    CREATE = "create"
    UPDATE = "update"


def _is_blank(value: Any) -> bool:
    return value is None or value == ""


def max_year(today: Optional[datetime] = None) -> int:
    today = today or datetime.now(timezone.utc)
    return today.year + YEAR_LOOKAHEAD


def parse_year(value: Any) -> Optional[int]:
    """Return ``value`` as an int, or None when it is not an integer."""
    if isinstance(value, bool):
        return None
    if isinstance(value, int):
        return value
    if isinstance(value, float) and value.is_integer():
        return int(value)
    if isinstance(value, str) and _INTEGER_PATTERN.fullmatch(value):
        return int(value)
    return None


def is_valid_isbn(value: str) -> bool:
    return _ISBN_PATTERN.fullmatch(value) is not None


def _check_required_text(book: Mapping[str, Any], name: str, limit: int) -> None:
    if name not in book:
        return
    value = book[name]
    label = name.capitalize()
    if not isinstance(value, str) or not value.strip():
        raise ValidationError(f"{label} must be a non-empty string")
    if len(value) > limit:
        raise ValidationError(f"{label} must be {limit} characters or less")


def _check_optional_text(book: Mapping[str, Any], name: str, limit: int) -> None:
    value = book.get(name)
    if _is_blank(value):
        return
    label = name.capitalize()
    if not isinstance(value, str):
        raise ValidationError(f"{label} must be a string")
    if len(value) > limit:
        raise ValidationError(f"{label} must be {limit} characters or less")


def validate_book(book: Mapping[str, Any], mode: ValidationMode = ValidationMode.CREATE) -> None:
    """Raise ValidationError describing the first constraint ``book`` violates.

    In UPDATE mode ``book`` is expected to be the stored record merged with the
    requested changes, so required fields are already present.
    """
    if mode is ValidationMode.CREATE:
        missing = [name for name in REQUIRED_FIELDS if not book.get(name)]
        if missing:
            raise ValidationError(f"Missing required fields: {', '.join(missing)}")

    _check_required_text(book, "title", TITLE_MAX_LENGTH)
    _check_required_text(book, "author", AUTHOR_MAX_LENGTH)

    year = book.get("year")
    if not _is_blank(year):
        upper = max_year()
        parsed = parse_year(year)
        if parsed is None or parsed < 0 or parsed > upper:
            raise ValidationError(f"Year must be a valid number between 0 and {upper}")

    isbn = book.get("isbn")
    if not _is_blank(isbn):
        if not isinstance(isbn, str):
            raise ValidationError("ISBN must be a string")
        if not is_valid_isbn(isbn):
            raise ValidationError("Invalid ISBN format")

    _check_optional_text(book, "description", DESCRIPTION_MAX_LENGTH)
    _check_optional_text(book, "genre", GENRE_MAX_LENGTH)
