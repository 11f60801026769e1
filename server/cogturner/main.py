import logging
from contextlib import asynccontextmanager

import httpx
from fastapi import FastAPI
from fastapi import Request as FastAPIRequest
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse
from slowapi.errors import RateLimitExceeded

from cogturner.api import api_router
from cogturner.core.config import get_settings
from cogturner.core.errors import CatalogError, NoResultsFound
from cogturner.core.rate_limit import limiter, rate_limit_exceeded_handler

settings = get_settings()

# Configure app-level logging so module loggers (fetcher, enrichment, etc.)
# emit INFO-level diagnostics instead of being silenced by Python's default WARNING level.
logging.getLogger("cogturner").setLevel(logging.INFO)

logger = logging.getLogger(__name__)

# The API is read-only
CORS_ALLOW_METHODS = ["GET", "OPTIONS"]


@asynccontextmanager
async def lifespan(app: FastAPI):
    # One pooled client for every Discogs call made by this process
    async with httpx.AsyncClient(timeout=settings.request_timeout_seconds) as client:
        app.state.http_client = client
        yield


app = FastAPI(
    title="CogTurner API",
    description="Daily dispatch of vinyl records by style, sourced from Discogs",
    version="0.1.0",
    lifespan=lifespan,
    # Disable API docs in production
    docs_url=None if settings.is_production else "/docs",
    redoc_url=None if settings.is_production else "/redoc",
    openapi_url=None if settings.is_production else "/openapi.json",
)

# Rate limiting
app.state.limiter = limiter
app.add_exception_handler(RateLimitExceeded, rate_limit_exceeded_handler)


@app.exception_handler(NoResultsFound)
async def no_results_handler(request: FastAPIRequest, exc: NoResultsFound) -> JSONResponse:
    logger.info("No records for style '%s'", exc.style)
    return JSONResponse(status_code=404, content={"error": str(exc)})


@app.exception_handler(CatalogError)
async def catalog_error_handler(request: FastAPIRequest, exc: CatalogError) -> JSONResponse:
    """Pipeline failures that could not be degraded (search, config, rate limit)."""
    logger.error("Record pipeline failed on %s: %s", request.url.path, exc)
    return JSONResponse(status_code=500, content={"error": f"Failed to fetch records: {exc}"})


@app.exception_handler(Exception)
async def global_exception_handler(request: FastAPIRequest, exc: Exception) -> JSONResponse:
    """Catch unhandled exceptions and return a generic 500 response."""
    logger.exception("Unhandled exception on %s %s", request.method, request.url.path)
    content = {"error": "Internal server error"}
    if not settings.is_production:
        content["debug"] = str(exc)
    return JSONResponse(status_code=500, content=content)


# CORS
if settings.cors_origins.strip() == "*":
    app.add_middleware(
        CORSMiddleware,
        allow_origins=["*"],
        allow_credentials=False,
        allow_methods=CORS_ALLOW_METHODS,
        allow_headers=["*"],
    )
else:
    origins = [origin.strip() for origin in settings.cors_origins.split(",")]
    app.add_middleware(
        CORSMiddleware,
        allow_origins=origins,
        allow_credentials=False,
        allow_methods=CORS_ALLOW_METHODS,
        allow_headers=["Content-Type"],
    )

# Include API router
app.include_router(api_router, prefix="/api")


@app.get("/health")
def health_check():
    return {"status": "ok"}
