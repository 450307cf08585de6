"""
Request dispatcher: the policy pipeline every request passes through.

Order of checks: CORS preflight short-circuit, declared body size, rate limit
gate, content type, then routing. Every failure raised along the way or by a
route is classified here and rendered as ``{"error": message}``; internal
details only go to the log. A completion event is logged once per request.
"""
import json
import logging
import time
import uuid
from typing import Any, Optional

from fastapi import Request
from fastapi.responses import JSONResponse, Response
from starlette.exceptions import HTTPException as StarletteHTTPException

from app.core.config import settings
from app.core.errors import (
    ApiError,
    ErrorKind,
    MalformedBodyError,
    PayloadTooLargeError,
    ValidationError,
    classify,
)
from app.core.logging import get_logger, log_event, request_id_ctx
from app.services.rate_limit import RateLimitGate

logger = get_logger("api.dispatcher")

CORS_HEADERS = {
    "Access-Control-Allow-Origin": "*",
    "Access-Control-Allow-Methods": "GET, POST, PUT, DELETE, OPTIONS",
    "Access-Control-Allow-Headers": "Content-Type",
}

LIST_CACHE_CONTROL = "public, max-age=60, stale-while-revalidate=120"
RECORD_CACHE_CONTROL = "public, max-age=300, stale-while-revalidate=600"

BODY_METHODS = ("POST", "PUT")


class PrettyJSONResponse(JSONResponse):
    """JSON response indented for readability."""

    def render(self, content: Any) -> bytes:
        return json.dumps(content, ensure_ascii=False, indent=2, default=str).encode("utf-8")


def json_response(
    body: Any, status_code: int = 200, cache_control: Optional[str] = None
) -> Response:
    headers = dict(CORS_HEADERS)
    if cache_control:
        headers["Cache-Control"] = cache_control
    if body is None:
        return Response(status_code=status_code, headers=headers, media_type="application/json")
    return PrettyJSONResponse(body, status_code=status_code, headers=headers)


def error_response(error: ApiError) -> Response:
    return json_response(error.to_response(), status_code=error.status)


def client_key(request: Request) -> str:
    """Client IP used as the rate limit key."""
    forwarded = request.headers.get(settings.CLIENT_IP_HEADER)
    if forwarded:
        return forwarded.split(",")[0].strip()
    return request.client.host if request.client else ""


def enforce_body_size(request: Request) -> None:
    declared = request.headers.get("content-length")
    if not declared:
        return
    try:
        length = int(declared)
    except ValueError:
        return
    if length > settings.MAX_BODY_BYTES:
        raise PayloadTooLargeError()


def enforce_content_type(request: Request) -> None:
    if request.method not in BODY_METHODS:
        return
    content_type = request.headers.get("content-type", "")
    if "application/json" not in content_type:
        raise ValidationError("Content-Type must be application/json")


async def read_json_object(request: Request) -> dict:
    """Parse the request body as a JSON object."""
    try:
        body = await request.json()
    except (json.JSONDecodeError, UnicodeDecodeError) as exc:
        raise MalformedBodyError() from exc
    if not isinstance(body, dict):
        raise ValidationError("Request body must be a JSON object")
    return body


def handle_error(request: Request, exc: Exception) -> Response:
    error = classify(exc)
    fields = {
        "error": str(exc),
        "kind": error.kind.name,
        "method": request.method,
        "url": str(request.url),
    }
    if error.status >= 500:
        log_event(logger, logging.ERROR, "Request error", exc_info=exc, **fields)
    else:
        log_event(logger, logging.WARNING, "Request error", **fields)
    return error_response(error)


async def http_exception_handler(request: Request, exc: StarletteHTTPException) -> Response:
    """Render routing failures (unknown path, wrong method) in the API error shape."""
    if exc.status_code == ErrorKind.NOT_FOUND.status:
        error = ApiError(ErrorKind.NOT_FOUND)
    elif exc.status_code == ErrorKind.METHOD_NOT_ALLOWED.status:
        error = ApiError(ErrorKind.METHOD_NOT_ALLOWED)
    else:
        return json_response({"error": str(exc.detail)}, status_code=exc.status_code)

    response = error_response(error)
    for name, value in (exc.headers or {}).items():
        response.headers[name] = value
    return response


async def _dispatch(request: Request, call_next) -> Response:
    if request.method == "OPTIONS":
        return json_response(None, status_code=204)

    try:
        enforce_body_size(request)
        gate = RateLimitGate(getattr(request.app.state, "rate_limiter", None))
        await gate.check(client_key(request))
        enforce_content_type(request)
        response = await call_next(request)
    except Exception as exc:
        return handle_error(request, exc)

    for name, value in CORS_HEADERS.items():
        response.headers[name] = value
    return response


async def dispatch_request(request: Request, call_next) -> Response:
    """HTTP middleware wrapping every request with correlation id and timing."""
    request_id = str(uuid.uuid4())
    token = request_id_ctx.set(request_id)
    start_time = time.perf_counter()
    status_code = 500

    log_event(
        logger,
        logging.INFO,
        "Request started",
        method=request.method,
        url=str(request.url),
        ip=client_key(request),
    )
    try:
        response = await _dispatch(request, call_next)
        status_code = response.status_code
        response.headers["X-Request-ID"] = request_id
        return response
    finally:
        duration_ms = round((time.perf_counter() - start_time) * 1000, 3)
        log_event(
            logger,
            logging.INFO,
            "Request completed",
            method=request.method,
            path=request.url.path,
            status=status_code,
            duration_ms=duration_ms,
        )
        request_id_ctx.reset(token)
