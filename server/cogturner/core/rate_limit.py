"""Inbound rate limiting using slowapi.

Guards the records endpoint, whose cache misses fan out into dozens of
Discogs calls.
"""

from fastapi import Request, Response
from slowapi import Limiter
from slowapi.errors import RateLimitExceeded
from slowapi.util import get_remote_address
from starlette.responses import JSONResponse

from cogturner.core.config import get_settings

DEFAULT_RETRY_AFTER = 60  # seconds

# Limiter keyed by the connecting client address
limiter = Limiter(key_func=get_remote_address, enabled=get_settings().is_rate_limit_enabled)


def records_rate_limit() -> str:
    return f"{get_settings().records_rate_limit_per_minute}/minute"


def rate_limit_exceeded_handler(request: Request, exc: RateLimitExceeded) -> Response:
    """Respond with the API's ``{error}`` shape and a Retry-After header."""
    return JSONResponse(
        status_code=429,
        content={"error": "Rate limit exceeded. Please try again later."},
        headers={"Retry-After": str(DEFAULT_RETRY_AFTER)},
    )
