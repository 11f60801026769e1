"""Tests for paced batch enrichment."""

import asyncio

import pytest
from conftest import release_detail, search_result, stats

from cogturner.services.batch import (
    BatchCoordinator,
    ChunkedParallelPacing,
    SequentialPacing,
    get_pacing,
)
from cogturner.services.discogs import MarketplaceStatsPrice, record_from_search_result
from cogturner.services.enrichment import Enricher


def _records(count):
    return [
        record_from_search_result(search_result(i, f"Artist {i} - Title {i}"), "Ambient")
        for i in range(1, count + 1)
    ]


class FakeEnricher:
    """Marks records as enriched and tracks how many run at once."""

    def __init__(self):
        self.active = 0
        self.max_active = 0

    async def enrich(self, record):
        self.active += 1
        self.max_active = max(self.max_active, self.active)
        # Let other tasks in the same chunk start; later ids finish first
        await asyncio.sleep(0.001 * (10 - record.id % 10))
        self.active -= 1
        return record.model_copy(update={"lowest_price": float(record.id)})


@pytest.mark.asyncio
class TestChunkedParallelPacing:
    async def test_preserves_order_and_sleeps_between_chunks(self, sleep):
        enricher = FakeEnricher()
        pacing = ChunkedParallelPacing(chunk_size=5, delay=1.0)
        batch = BatchCoordinator(enricher, pacing, sleep=sleep)
        samples = _records(12)

        result = await batch.run(samples)

        assert [r.id for r in result] == [r.id for r in samples]
        assert [r.lowest_price for r in result] == [float(r.id) for r in samples]
        # Three chunks, no delay before the first or after the last
        assert sleep.calls == [1.0, 1.0]

    async def test_chunk_items_run_concurrently(self, sleep):
        enricher = FakeEnricher()
        batch = BatchCoordinator(enricher, ChunkedParallelPacing(chunk_size=5), sleep=sleep)

        await batch.run(_records(10))

        assert enricher.max_active == 5

    async def test_single_chunk_never_sleeps(self, sleep):
        batch = BatchCoordinator(FakeEnricher(), ChunkedParallelPacing(chunk_size=5), sleep=sleep)

        result = await batch.run(_records(5))

        assert len(result) == 5
        assert sleep.calls == []

    async def test_empty_sample(self, sleep):
        batch = BatchCoordinator(FakeEnricher(), ChunkedParallelPacing(), sleep=sleep)
        assert await batch.run([]) == []
        assert sleep.calls == []


@pytest.mark.asyncio
class TestSequentialPacing:
    async def test_one_at_a_time_with_delay_before_each(self, sleep):
        enricher = FakeEnricher()
        batch = BatchCoordinator(enricher, SequentialPacing(delay=0.5), sleep=sleep)
        samples = _records(4)

        result = await batch.run(samples)

        assert [r.id for r in result] == [1, 2, 3, 4]
        assert enricher.max_active == 1
        assert sleep.calls == [0.5, 0.5, 0.5, 0.5]


@pytest.mark.asyncio
class TestBatchWithDegradedItems:
    async def test_failed_detail_calls_do_not_drop_records(
        self, discogs, make_fetcher, endpoints, sleep
    ):
        """Detail fails for one release but every record still comes back."""
        for release_id in (1, 2, 3):
            if release_id == 2:
                discogs.add(f"/releases/{release_id}", (500, {}))
            else:
                discogs.add(f"/releases/{release_id}", release_detail(rating=3.5))
            discogs.add(f"/marketplace/stats/{release_id}", stats(float(release_id)))
        enricher = Enricher(make_fetcher(), endpoints, MarketplaceStatsPrice(endpoints))
        batch = BatchCoordinator(enricher, ChunkedParallelPacing(chunk_size=2), sleep=sleep)

        result = await batch.run(_records(3))

        assert [r.id for r in result] == [1, 2, 3]
        assert [r.lowest_price for r in result] == [1.0, 2.0, 3.0]
        assert result[1].community_rating is None
        assert result[0].community_rating == 3.5
        assert result[2].community_rating == 3.5


class TestGetPacing:
    def test_builds_named_policies(self):
        chunked = get_pacing("chunked", chunk_size=3, delay=2.0)
        assert isinstance(chunked, ChunkedParallelPacing)
        assert chunked.chunk_size == 3
        assert chunked.delay == 2.0
        assert isinstance(get_pacing("sequential"), SequentialPacing)

    def test_unknown_policy(self):
        with pytest.raises(ValueError):
            get_pacing("burst")

    def test_rejects_bad_chunk_size(self):
        with pytest.raises(ValueError):
            ChunkedParallelPacing(chunk_size=0)
