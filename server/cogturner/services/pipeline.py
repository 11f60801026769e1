"""Record pipeline: cache check, sampling, enrichment, cache write.

Non-phased requests run the whole pipeline on a miss. Phased requests split
it in two calls: ``basic`` returns the unenriched sample straight away along
with a handle to it, ``complete`` enriches the sample behind that handle (or
a fresh one if the handle is missing or expired) and writes the cache.

Concurrent requests for the same stale style each run the full pipeline;
there is no single-flight deduplication.
"""

from __future__ import annotations

import logging
from collections.abc import Sequence
from dataclasses import dataclass
from datetime import timedelta
from enum import Enum

import httpx

from cogturner.core.config import Settings
from cogturner.core.errors import CatalogError, ConfigError, NoResultsFound
from cogturner.schemas.records import Record
from cogturner.services.batch import BatchCoordinator, get_pacing
from cogturner.services.cache import CacheEntry, InMemoryResultCache, ResultCache, SampleStore
from cogturner.services.discogs import DiscogsEndpoints, get_price_endpoint
from cogturner.services.enrichment import Enricher
from cogturner.services.fetcher import RetryingFetcher
from cogturner.services.sampler import SAMPLE_SIZE, SearchSampler, get_selection

logger = logging.getLogger(__name__)


class RecordSource(str, Enum):
    CACHE = "cache"
    FRESH = "fresh"
    BASIC = "basic"
    STALE = "stale"


@dataclass(frozen=True)
class RecordsResult:
    records: list[Record]
    is_complete: bool
    source: RecordSource
    handle: str | None = None


class PipelineService:
    def __init__(
        self,
        sampler: SearchSampler,
        batch: BatchCoordinator,
        cache: ResultCache,
        samples: SampleStore | None = None,
        *,
        sample_size: int = SAMPLE_SIZE,
        serve_stale_on_error: bool = False,
    ) -> None:
        self._sampler = sampler
        self._batch = batch
        self._cache = cache
        self._samples = samples
        self._sample_size = sample_size
        self._serve_stale_on_error = serve_stale_on_error

    async def get_records(self, style: str) -> RecordsResult:
        """Fully enriched records for ``style``, from cache when fresh."""
        cached = self._fresh_entry(style)
        if cached is not None:
            return _from_cache(cached)

        try:
            sample = await self._sampler.sample(style, self._sample_size)
            return await self._enrich_and_store(style, sample)
        except (NoResultsFound, ConfigError):
            raise
        except CatalogError as e:
            return self._stale_or_raise(style, e)

    async def get_basic(self, style: str) -> RecordsResult:
        """Phase one: the unenriched sample, or cached records when fresh."""
        cached = self._fresh_entry(style)
        if cached is not None:
            return _from_cache(cached)

        try:
            sample = await self._sampler.sample(style, self._sample_size)
        except (NoResultsFound, ConfigError):
            raise
        except CatalogError as e:
            return self._stale_or_raise(style, e)

        handle = self._samples.put(style, sample) if self._samples is not None else None
        return RecordsResult(
            records=sample, is_complete=False, source=RecordSource.BASIC, handle=handle
        )

    async def complete(self, style: str, handle: str | None = None) -> RecordsResult:
        """Phase two: enrich the sample behind ``handle`` from the basic phase."""
        cached = self._fresh_entry(style)
        if cached is not None:
            return _from_cache(cached)

        try:
            sample = None
            if handle is not None and self._samples is not None:
                sample = self._samples.take(handle, style)
            if sample is None:
                logger.info("No stored sample for style '%s', sampling again", style)
                sample = await self._sampler.sample(style, self._sample_size)
            return await self._enrich_and_store(style, sample)
        except (NoResultsFound, ConfigError):
            raise
        except CatalogError as e:
            return self._stale_or_raise(style, e)

    def _fresh_entry(self, style: str) -> CacheEntry | None:
        entry = self._cache.get(style)
        if entry is not None and self._cache.is_fresh(entry):
            logger.debug("Cache hit for style '%s'", style)
            return entry
        return None

    async def _enrich_and_store(self, style: str, sample: Sequence[Record]) -> RecordsResult:
        records = await self._batch.run(sample)
        self._cache.put(style, records)
        return RecordsResult(records=records, is_complete=True, source=RecordSource.FRESH)

    def _stale_or_raise(self, style: str, error: CatalogError) -> RecordsResult:
        entry = self._cache.get(style) if self._serve_stale_on_error else None
        if entry is None:
            raise error
        logger.warning(
            "Serving stale records for style '%s' after pipeline failure: %s", style, error
        )
        return RecordsResult(
            records=list(entry.records), is_complete=True, source=RecordSource.STALE
        )


def _from_cache(entry: CacheEntry) -> RecordsResult:
    return RecordsResult(records=list(entry.records), is_complete=True, source=RecordSource.CACHE)


def build_pipeline(
    settings: Settings,
    client: httpx.AsyncClient,
    cache: ResultCache | None = None,
    samples: SampleStore | None = None,
) -> PipelineService:
    """Wire a PipelineService from settings around a shared HTTP client."""
    endpoints = DiscogsEndpoints(base_url=settings.discogs_api_url.rstrip("/"))
    fetcher = RetryingFetcher(
        client,
        settings.discogs_token,
        settings.user_agent,
        max_retries=settings.max_retries,
        backoff_base=settings.backoff_base_seconds,
        backoff_cap=settings.backoff_cap_seconds,
    )
    sampler = SearchSampler(
        fetcher,
        endpoints,
        page_size=settings.search_page_size,
        selection=get_selection(settings.sample_policy),
    )
    enricher = Enricher(fetcher, endpoints, get_price_endpoint(settings.price_source, endpoints))
    pacing = get_pacing(
        settings.enrich_pacing, settings.enrich_chunk_size, settings.enrich_delay_seconds
    )
    if cache is None:
        cache = InMemoryResultCache(ttl=timedelta(seconds=settings.cache_ttl_seconds))
    return PipelineService(
        sampler,
        BatchCoordinator(enricher, pacing),
        cache,
        samples,
        sample_size=settings.sample_size,
        serve_stale_on_error=settings.serve_stale_on_error,
    )
