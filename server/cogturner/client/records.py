"""Async client for the records API with a local fallback cache.

A fresh local entry short-circuits the network. When the API call fails, a
stale local entry (if any) is returned instead, flagged so callers can tell a
degraded read from a normal one.
"""

from __future__ import annotations

import logging
from collections.abc import AsyncIterator
from dataclasses import dataclass
from enum import Enum

import httpx
from pydantic import ValidationError

from cogturner.client.cache import ClientCacheEntry, ClientRecordCache
from cogturner.schemas.records import Record, RecordsPage

logger = logging.getLogger(__name__)

RECORDS_PATH = "/api/records"


class RecordsUnavailable(Exception):
    """The API could not supply records and no cached copy exists."""

    def __init__(self, message: str, status_code: int | None = None) -> None:
        self.status_code = status_code
        super().__init__(message)


class ClientSource(str, Enum):
    CACHE = "cache"
    NETWORK = "network"
    STALE = "stale"


@dataclass(frozen=True)
class ClientResult:
    records: list[Record]
    is_complete: bool
    source: ClientSource

    @property
    def is_stale(self) -> bool:
        return self.source is ClientSource.STALE


class RecordsClient:
    def __init__(
        self,
        http: httpx.AsyncClient,
        cache: ClientRecordCache | None = None,
        *,
        path: str = RECORDS_PATH,
    ) -> None:
        self._http = http
        self._cache = cache
        self._path = path

    async def fetch(self, style: str) -> ClientResult:
        """Complete records for a style, in one request."""
        entry = self._cached(style)
        if entry is not None and self._cache.is_fresh(entry):
            return ClientResult(entry.records, True, ClientSource.CACHE)

        try:
            page = await self._request(style)
        except RecordsUnavailable as e:
            return self._fallback(style, entry, e)

        self._store(style, page.records)
        return ClientResult(page.records, True, ClientSource.NETWORK)

    async def fetch_phased(self, style: str) -> AsyncIterator[ClientResult]:
        """Yield basic records first, then the completed set.

        A fresh cache hit or an already complete basic response yields once.
        """
        entry = self._cached(style)
        if entry is not None and self._cache.is_fresh(entry):
            yield ClientResult(entry.records, True, ClientSource.CACHE)
            return

        try:
            page = await self._request(style, phase="basic")
        except RecordsUnavailable as e:
            yield self._fallback(style, entry, e)
            return

        if page.is_complete:
            self._store(style, page.records)
            yield ClientResult(page.records, True, ClientSource.NETWORK)
            return

        yield ClientResult(page.records, False, ClientSource.NETWORK)

        try:
            page = await self._request(style, phase="complete", handle=page.handle)
        except RecordsUnavailable as e:
            yield self._fallback(style, entry, e)
            return

        self._store(style, page.records)
        yield ClientResult(page.records, True, ClientSource.NETWORK)

    def _cached(self, style: str) -> ClientCacheEntry | None:
        return self._cache.get(style) if self._cache is not None else None

    def _store(self, style: str, records: list[Record]) -> None:
        if self._cache is not None:
            self._cache.put(style, records)

    def _fallback(
        self, style: str, entry: ClientCacheEntry | None, error: RecordsUnavailable
    ) -> ClientResult:
        if entry is None:
            raise error
        logger.warning("Serving stale cached records for style '%s': %s", style, error)
        return ClientResult(entry.records, True, ClientSource.STALE)

    async def _request(
        self, style: str, phase: str | None = None, handle: str | None = None
    ) -> RecordsPage:
        params = {"style": style}
        if phase is not None:
            params["phase"] = phase
        if handle is not None:
            params["handle"] = handle

        try:
            response = await self._http.get(self._path, params=params)
        except httpx.HTTPError as e:
            raise RecordsUnavailable(f"Request failed: {type(e).__name__}") from e

        try:
            data = response.json()
        except ValueError:
            data = None

        if not response.is_success:
            message = data.get("error") if isinstance(data, dict) else None
            raise RecordsUnavailable(
                message or f"Failed to fetch records ({response.status_code})",
                response.status_code,
            )

        try:
            if isinstance(data, list):
                records = [Record.model_validate(item) for item in data]
                return RecordsPage(records=records, is_complete=True)
            return RecordsPage.model_validate(data)
        except ValidationError as e:
            raise RecordsUnavailable("Unexpected response from records API") from e
