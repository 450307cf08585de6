"""
Unit tests for app.core.errors – error kinds, statuses and classification.
"""
import asyncio
import json

import pytest

from app.core.errors import (
    ApiError,
    ErrorKind,
    MalformedBodyError,
    MethodNotAllowedError,
    NotFoundError,
    PayloadTooLargeError,
    RateLimitError,
    StoreTimeoutError,
    ValidationError,
    classify,
)


class TestErrorKinds:
    @pytest.mark.parametrize(
        "error, status",
        [
            (ValidationError("bad"), 400),
            (NotFoundError("Book not found"), 404),
            (RateLimitError(), 429),
            (PayloadTooLargeError(), 413),
            (StoreTimeoutError(), 504),
            (MalformedBodyError(), 400),
            (MethodNotAllowedError(), 405),
            (ApiError(ErrorKind.INTERNAL), 500),
        ],
    )
    def test_status(self, error, status):
        assert error.status == status

    def test_specific_message_kept(self):
        assert ValidationError("Invalid ISBN format").message == "Invalid ISBN format"

    def test_default_message_used(self):
        assert RateLimitError().message == "Rate limit exceeded. Please try again later."
        assert PayloadTooLargeError().message == "Request body too large (max 1MB)"

    def test_to_response_shape(self):
        assert NotFoundError("Book not found").to_response() == {"error": "Book not found"}

    def test_kinds_are_distinct(self):
        assert len({kind.value for kind in ErrorKind}) == len(ErrorKind)


class TestClassify:
    def test_api_error_passes_through(self):
        err = ValidationError("x")
        assert classify(err) is err

    def test_timeout_maps_to_504(self):
        result = classify(asyncio.TimeoutError())
        assert result.kind is ErrorKind.TIMEOUT
        assert result.message == "Request timeout"

    def test_json_error_maps_to_malformed_body(self):
        try:
            json.loads("{not json")
        except json.JSONDecodeError as exc:
            result = classify(exc)
        assert result.kind is ErrorKind.MALFORMED_BODY
        assert result.status == 400

    def test_unknown_maps_to_generic_500(self):
        result = classify(RuntimeError("connection string leaked: secret"))
        assert result.kind is ErrorKind.INTERNAL
        assert "secret" not in result.message
        assert result.message == "An unexpected error occurred"
