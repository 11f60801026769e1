from datetime import timedelta
from functools import lru_cache

import httpx
from fastapi import Depends, Request

from cogturner.core.config import Settings, get_settings
from cogturner.services.cache import InMemoryResultCache, SampleStore
from cogturner.services.pipeline import PipelineService, build_pipeline


@lru_cache
def get_result_cache() -> InMemoryResultCache:
    """Process-wide server cache, shared by every request."""
    settings = get_settings()
    return InMemoryResultCache(ttl=timedelta(seconds=settings.cache_ttl_seconds))


@lru_cache
def get_sample_store() -> SampleStore:
    settings = get_settings()
    return SampleStore(ttl=timedelta(seconds=settings.sample_handle_ttl_seconds))


def get_http_client(request: Request) -> httpx.AsyncClient:
    return request.app.state.http_client


def get_pipeline(
    client: httpx.AsyncClient = Depends(get_http_client),
    settings: Settings = Depends(get_settings),
) -> PipelineService:
    return build_pipeline(settings, client, get_result_cache(), get_sample_store())
