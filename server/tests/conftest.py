"""Pytest configuration and fixtures for CogTurner tests."""

import os

# Settings are read once at import time; give the app a token before that.
os.environ.setdefault("DISCOGS_TOKEN", "test-token")
os.environ.setdefault("ENV", "development")

from collections.abc import Callable, Generator  # noqa: E402
from datetime import UTC, datetime, timedelta  # noqa: E402
from typing import Any  # noqa: E402

import httpx  # noqa: E402
import pytest  # noqa: E402
from fastapi.testclient import TestClient  # noqa: E402

from cogturner.api.deps import get_pipeline  # noqa: E402
from cogturner.main import app  # noqa: E402
from cogturner.services.batch import BatchCoordinator, ChunkedParallelPacing  # noqa: E402
from cogturner.services.cache import InMemoryResultCache, SampleStore  # noqa: E402
from cogturner.services.discogs import DiscogsEndpoints, MarketplaceStatsPrice  # noqa: E402
from cogturner.services.enrichment import Enricher  # noqa: E402
from cogturner.services.fetcher import RetryingFetcher  # noqa: E402
from cogturner.services.pipeline import PipelineService  # noqa: E402
from cogturner.services.sampler import FirstSeenSelection, SearchSampler  # noqa: E402

DISCOGS_BASE = "https://api.discogs.test"


class FakeClock:
    """Manually advanced clock."""

    def __init__(self, start: datetime | None = None) -> None:
        self.now = start or datetime(2024, 6, 1, 12, 0, tzinfo=UTC)

    def __call__(self) -> datetime:
        return self.now

    def advance(self, **kwargs: float) -> None:
        self.now += timedelta(**kwargs)


class RecordingSleep:
    """Async sleep stand-in that records requested delays instead of waiting."""

    def __init__(self) -> None:
        self.calls: list[float] = []

    async def __call__(self, seconds: float) -> None:
        self.calls.append(seconds)

    @property
    def total(self) -> float:
        return sum(self.calls)


class FakeDiscogs:
    """Routes MockTransport requests by URL path.

    Each path holds a queue of canned replies; the last one repeats. A reply
    is a dict (200 JSON), a ``(status, body)`` tuple, an exception to raise,
    or a callable taking the request and returning an httpx.Response.
    """

    def __init__(self) -> None:
        self.routes: dict[str, list[Any]] = {}
        self.requests: list[httpx.Request] = []

    def add(self, path: str, *replies: Any) -> "FakeDiscogs":
        self.routes.setdefault(path, []).extend(replies)
        return self

    def calls_to(self, path: str) -> int:
        return sum(1 for request in self.requests if request.url.path == path)

    def handler(self, request: httpx.Request) -> httpx.Response:
        self.requests.append(request)
        queue = self.routes.get(request.url.path)
        if not queue:
            return httpx.Response(404, json={"message": "Resource not found."})
        reply = queue.pop(0) if len(queue) > 1 else queue[0]
        if isinstance(reply, Exception):
            raise reply
        if callable(reply):
            return reply(request)
        if isinstance(reply, tuple):
            status, body = reply
            return httpx.Response(status, json=body)
        return httpx.Response(200, json=reply)

    def client(self) -> httpx.AsyncClient:
        return httpx.AsyncClient(transport=httpx.MockTransport(self.handler))


def search_result(
    release_id: int,
    title: str,
    *,
    year: str | None = "1999",
    cover_image: str | None = "https://img.discogs.test/cover.jpg",
    have: int | None = 10,
    want: int | None = 20,
) -> dict[str, Any]:
    result: dict[str, Any] = {"id": release_id, "title": title, "type": "release"}
    if year is not None:
        result["year"] = year
    if cover_image is not None:
        result["cover_image"] = cover_image
    community = {}
    if have is not None:
        community["have"] = have
    if want is not None:
        community["want"] = want
    result["community"] = community
    return result


def release_detail(
    *,
    videos: list[str] | None = None,
    rating: Any = 4.25,
    have: int | None = 100,
    want: int | None = 200,
) -> dict[str, Any]:
    community: dict[str, Any] = {}
    if rating is not None:
        community["rating"] = {"average": rating, "count": 12}
    if have is not None:
        community["have"] = have
    if want is not None:
        community["want"] = want
    detail: dict[str, Any] = {"community": community}
    if videos is not None:
        detail["videos"] = [{"uri": uri, "title": "Video"} for uri in videos]
    return detail


def stats(lowest: float | None, num_for_sale: int = 3) -> dict[str, Any]:
    return {
        "lowest_price": None if lowest is None else {"value": lowest, "currency": "EUR"},
        "num_for_sale": num_for_sale,
    }


@pytest.fixture
def clock() -> FakeClock:
    return FakeClock()


@pytest.fixture
def sleep() -> RecordingSleep:
    return RecordingSleep()


@pytest.fixture
def discogs() -> FakeDiscogs:
    return FakeDiscogs()


@pytest.fixture
def endpoints() -> DiscogsEndpoints:
    return DiscogsEndpoints(base_url=DISCOGS_BASE)


@pytest.fixture
def make_fetcher(discogs: FakeDiscogs, sleep: RecordingSleep) -> Callable[..., RetryingFetcher]:
    def _make(token: str = "test-token", **kwargs: Any) -> RetryingFetcher:
        kwargs.setdefault("sleep", sleep)
        return RetryingFetcher(discogs.client(), token, "CogTurner/1.0", **kwargs)

    return _make


@pytest.fixture
def make_pipeline(
    make_fetcher: Callable[..., RetryingFetcher],
    endpoints: DiscogsEndpoints,
    sleep: RecordingSleep,
    clock: FakeClock,
) -> Callable[..., PipelineService]:
    """Build a real pipeline against FakeDiscogs with deterministic sampling."""

    def _make(
        *,
        token: str = "test-token",
        cache: InMemoryResultCache | None = None,
        samples: SampleStore | None = None,
        sample_size: int = 20,
        serve_stale_on_error: bool = False,
    ) -> PipelineService:
        fetcher = make_fetcher(token=token)
        sampler = SearchSampler(fetcher, endpoints, selection=FirstSeenSelection())
        enricher = Enricher(fetcher, endpoints, MarketplaceStatsPrice(endpoints))
        batch = BatchCoordinator(enricher, ChunkedParallelPacing(), sleep=sleep)
        return PipelineService(
            sampler,
            batch,
            cache if cache is not None else InMemoryResultCache(clock=clock),
            samples,
            sample_size=sample_size,
            serve_stale_on_error=serve_stale_on_error,
        )

    return _make


@pytest.fixture
def client() -> Generator[TestClient, None, None]:
    """Test client; tests install their pipeline via app.dependency_overrides."""
    with TestClient(app) as c:
        yield c
    app.dependency_overrides.clear()


@pytest.fixture
def use_pipeline() -> Callable[[PipelineService], None]:
    def _use(pipeline: PipelineService) -> None:
        app.dependency_overrides[get_pipeline] = lambda: pipeline

    return _use
