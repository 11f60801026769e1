"""Discogs HTTP access with exponential backoff on rate limiting.

Only HTTP 429 is retried. Transport errors are terminal (NetworkError) and
any other status is handed back to the caller to decide on a fallback.
"""

import asyncio
import logging
from collections.abc import Awaitable, Callable, Mapping
from typing import Any

import httpx

from cogturner.core.errors import MalformedResponse, NetworkError, RateLimitExceeded, UpstreamError
from cogturner.services.discogs import build_headers

logger = logging.getLogger(__name__)

MAX_RETRIES = 5
BACKOFF_BASE = 1.0  # seconds
BACKOFF_CAP = 10.0  # seconds

Sleep = Callable[[float], Awaitable[Any]]
QueryParams = Mapping[str, str | int] | None


def backoff_delay(attempt: int, base: float = BACKOFF_BASE, cap: float = BACKOFF_CAP) -> float:
    """Seconds to wait after the rate-limited attempt ``attempt`` (0-indexed)."""
    return min(base * (2**attempt), cap)


def describe_transport_error(e: httpx.TransportError) -> str:
    """Safe error text; httpx messages can echo full URLs and headers."""
    if isinstance(e, httpx.TimeoutException):
        return "Discogs API timeout"
    if isinstance(e, httpx.ConnectError):
        return "Discogs API connection failed"
    return "Discogs API transport error"


class RetryingFetcher:
    def __init__(
        self,
        client: httpx.AsyncClient,
        token: str,
        user_agent: str,
        *,
        max_retries: int = MAX_RETRIES,
        backoff_base: float = BACKOFF_BASE,
        backoff_cap: float = BACKOFF_CAP,
        sleep: Sleep = asyncio.sleep,
    ) -> None:
        self._client = client
        self._token = token
        self._user_agent = user_agent
        self._max_retries = max_retries
        self._backoff_base = backoff_base
        self._backoff_cap = backoff_cap
        self._sleep = sleep

    async def fetch(self, url: str, params: QueryParams = None) -> httpx.Response:
        """GET ``url``, retrying while Discogs answers 429.

        Returns the first non-429 response whatever its status.
        Raises RateLimitExceeded once the retry budget is spent and
        NetworkError on transport failures.
        """
        headers = build_headers(self._token, self._user_agent)

        for attempt in range(self._max_retries + 1):
            try:
                response = await self._client.get(url, params=params, headers=headers)
            except httpx.TransportError as e:
                message = describe_transport_error(e)
                logger.warning("%s (%s)", message, type(e).__name__)
                raise NetworkError(message) from e

            if response.status_code != 429:
                return response

            if attempt < self._max_retries:
                wait = backoff_delay(attempt, self._backoff_base, self._backoff_cap)
                logger.warning(
                    "Rate limited by Discogs, waiting %.1fs before retry %d/%d",
                    wait,
                    attempt + 1,
                    self._max_retries,
                )
                await self._sleep(wait)

        logger.error("Discogs rate limit persisted after %d attempts", self._max_retries + 1)
        raise RateLimitExceeded(self._max_retries + 1)

    async def get_json(self, url: str, params: QueryParams = None) -> dict[str, Any]:
        """Fetch ``url`` and decode a JSON object body.

        Raises UpstreamError for non-2xx statuses and MalformedResponse when
        the body is not a JSON object.
        """
        response = await self.fetch(url, params)
        if not response.is_success:
            raise UpstreamError(response.status_code)

        try:
            data = response.json()
        except ValueError as e:
            raise MalformedResponse("Discogs returned an unparseable body") from e

        if not isinstance(data, dict):
            raise MalformedResponse("Discogs returned an unexpected JSON shape")
        return data
