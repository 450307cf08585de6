"""
Error taxonomy for the book API.

Every failure a component can signal is an ``ApiError`` tagged with one
``ErrorKind``. The kind fixes the HTTP status; the dispatcher is the only place
that turns an error into a response.
"""
import asyncio
import enum
import json


class ErrorKind(enum.Enum):
    VALIDATION = (400, "Invalid request")
    MALFORMED_BODY = (400, "Invalid JSON in request body")
    NOT_FOUND = (404, "Not Found")
    METHOD_NOT_ALLOWED = (405, "Method not allowed")
    PAYLOAD_TOO_LARGE = (413, "Request body too large (max 1MB)")
    RATE_LIMITED = (429, "Rate limit exceeded. Please try again later.")
    INTERNAL = (500, "An unexpected error occurred")
    TIMEOUT = (504, "Request timeout")

    def __init__(self, status: int, default_message: str):
        self.status = status
        self.default_message = default_message


class ApiError(Exception):
    """A classified failure carrying its kind and a client-safe message."""

    def __init__(self, kind: ErrorKind, message: str | None = None):
        self.kind = kind
        self.message = message or kind.default_message
        super().__init__(self.message)

    @property
    def status(self) -> int:
        return self.kind.status

    def to_response(self) -> dict:
        return {"error": self.message}


class ValidationError(ApiError):
    def __init__(self, message: str):
        super().__init__(ErrorKind.VALIDATION, message)


class NotFoundError(ApiError):
    def __init__(self, message: str = "Not Found"):
        super().__init__(ErrorKind.NOT_FOUND, message)


class RateLimitError(ApiError):
    def __init__(self, message: str | None = None):
        super().__init__(ErrorKind.RATE_LIMITED, message)


class PayloadTooLargeError(ApiError):
    def __init__(self, message: str | None = None):
        super().__init__(ErrorKind.PAYLOAD_TOO_LARGE, message)


class StoreTimeoutError(ApiError):
    def __init__(self, message: str | None = None):
        super().__init__(ErrorKind.TIMEOUT, message)


class MalformedBodyError(ApiError):
    def __init__(self, message: str | None = None):
        super().__init__(ErrorKind.MALFORMED_BODY, message)


class MethodNotAllowedError(ApiError):
    def __init__(self, message: str | None = None):
        super().__init__(ErrorKind.METHOD_NOT_ALLOWED, message)


def classify(exc: BaseException) -> ApiError:
    """Map any exception onto the closed taxonomy.

    Unknown failures become INTERNAL with the generic message so that no
    internal detail reaches the client.
    """
    if isinstance(exc, ApiError):
        return exc
    if isinstance(exc, (asyncio.TimeoutError, TimeoutError)):
        return StoreTimeoutError()
    if isinstance(exc, (json.JSONDecodeError, UnicodeDecodeError)):
        return MalformedBodyError()
    return ApiError(ErrorKind.INTERNAL)
