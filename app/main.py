from contextlib import asynccontextmanager

from fastapi import FastAPI
from fastapi.responses import JSONResponse
from starlette.exceptions import HTTPException as StarletteHTTPException

from app.core.config import settings
from app.core.logging import setup_logging, get_logger
from app.db.session import engine
from app.db.models import Base
from app.api.dispatcher import dispatch_request, http_exception_handler
from app.api.routes import router as api_router
from app.services.rate_limit import InMemoryRateLimiter

logger = get_logger("app.main")


def build_rate_limiter():
    """Return the configured limiter collaborator, or None when disabled."""
    if not settings.RATE_LIMIT_ENABLED:
        return None
    return InMemoryRateLimiter(
        times=settings.RATE_LIMIT_REQUESTS,
        seconds=settings.RATE_LIMIT_WINDOW_SECONDS,
    )


@asynccontextmanager
async def lifespan(app: FastAPI):
    """Application lifespan: startup and shutdown."""
    # Startup
    setup_logging()
    logger.info(f"Starting {settings.APP_NAME} v{settings.APP_VERSION}")

    # Create tables (schema migration is out of scope)
    async with engine.begin() as conn:
        await conn.run_sync(Base.metadata.create_all)

    if app.state.rate_limiter is not None:
        logger.info(
            f"Rate limiting enabled: {settings.RATE_LIMIT_REQUESTS} requests "
            f"per {settings.RATE_LIMIT_WINDOW_SECONDS}s"
        )

    yield

    # Shutdown
    await engine.dispose()
    logger.info("Application shutdown complete")


app = FastAPI(
    title=settings.APP_NAME,
    version=settings.APP_VERSION,
    description=(
        "## Book Catalog API\n\n"
        "A JSON API over a single collection of books:\n\n"
        "- **Books** – Create, read, partially update and delete records\n"
        "- **Listing** – Pagination with exact `genre` / `year` filters\n"
        "- **Search** – Case-insensitive substring search across all fields\n"
        "- **Stats** – Totals, genre histogram and year range\n\n"
        "### Errors\n"
        "Every error response has the shape `{\"error\": \"<message>\"}`.\n\n"
        "### Limits\n"
        "| Policy | Value |\n"
        "|--------|-------|\n"
        "| Request body | 1 MB (declared `Content-Length`) |\n"
        "| Search term | 200 characters |\n"
        "| Page size | 100 |\n"
        "| Database query | 5 seconds |\n"
    ),
    lifespan=lifespan,
    docs_url="/docs",
    redoc_url="/redoc",
    openapi_tags=[
        {
            "name": "Health",
            "description": "Application health checks",
        },
        {
            "name": "Books",
            "description": "Book catalog management with search and filtering",
        },
    ],
    license_info={
        "name": "MIT",
    },
    servers=[
        {"url": "http://localhost:8000", "description": "Local development"},
    ],
)

app.state.rate_limiter = build_rate_limiter()

# Correlation id, request policy, error mapping and completion logging
app.middleware("http")(dispatch_request)
app.add_exception_handler(StarletteHTTPException, http_exception_handler)


# OpenAPI spec download endpoint
@app.get(
    "/openapi.json",
    tags=["Health"],
    summary="Download OpenAPI spec",
    description="Download the OpenAPI 3.x JSON specification for import into Postman or other API tools.",
    include_in_schema=False,
)
async def get_openapi_spec():
    return JSONResponse(content=app.openapi())


app.include_router(api_router)
