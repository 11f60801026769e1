"""Paced enrichment of a whole sample.

Pacing exists only to stay under the Discogs rate limit. Policies never
reorder or drop records, and there is no batch-level retry: 429 handling
lives in the fetcher and per-record failures already degrade in the Enricher.
"""

from __future__ import annotations

import asyncio
import logging
import time
from abc import ABC, abstractmethod
from collections.abc import Awaitable, Callable, Sequence

from cogturner.schemas.records import Record
from cogturner.services.enrichment import Enricher
from cogturner.services.fetcher import Sleep

logger = logging.getLogger(__name__)

CHUNK_SIZE = 5
PACING_DELAY = 1.0  # seconds

Worker = Callable[[Record], Awaitable[Record]]


class PacingPolicy(ABC):
    name: str

    @abstractmethod
    async def run(self, items: Sequence[Record], worker: Worker, sleep: Sleep) -> list[Record]:
        """Apply ``worker`` to every item, returning results in input order."""


class ChunkedParallelPacing(PacingPolicy):
    """Enrich fixed-size chunks concurrently with a pause between chunks."""

    name = "chunked"

    def __init__(self, chunk_size: int = CHUNK_SIZE, delay: float = PACING_DELAY) -> None:
        if chunk_size < 1:
            raise ValueError("chunk_size must be at least 1")
        self.chunk_size = chunk_size
        self.delay = delay

    async def run(self, items: Sequence[Record], worker: Worker, sleep: Sleep) -> list[Record]:
        results: list[Record] = []
        for start in range(0, len(items), self.chunk_size):
            if start:
                await sleep(self.delay)
            chunk = items[start : start + self.chunk_size]
            results.extend(await asyncio.gather(*(worker(item) for item in chunk)))
        return results


class SequentialPacing(PacingPolicy):
    """One record at a time, waiting before each."""

    name = "sequential"

    def __init__(self, delay: float = PACING_DELAY) -> None:
        self.delay = delay

    async def run(self, items: Sequence[Record], worker: Worker, sleep: Sleep) -> list[Record]:
        results: list[Record] = []
        for item in items:
            await sleep(self.delay)
            results.append(await worker(item))
        return results


def get_pacing(
    name: str, chunk_size: int = CHUNK_SIZE, delay: float = PACING_DELAY
) -> PacingPolicy:
    if name == ChunkedParallelPacing.name:
        return ChunkedParallelPacing(chunk_size, delay)
    if name == SequentialPacing.name:
        return SequentialPacing(delay)
    raise ValueError(f"Unknown enrichment pacing: {name}")


class BatchCoordinator:
    def __init__(
        self,
        enricher: Enricher,
        pacing: PacingPolicy | None = None,
        *,
        sleep: Sleep = asyncio.sleep,
    ) -> None:
        self._enricher = enricher
        self._pacing = pacing or ChunkedParallelPacing()
        self._sleep = sleep

    async def run(self, samples: Sequence[Record]) -> list[Record]:
        started = time.monotonic()
        enriched = await self._pacing.run(list(samples), self._enricher.enrich, self._sleep)
        logger.info(
            "Enriched %d records in %.1fs (%s pacing)",
            len(enriched),
            time.monotonic() - started,
            self._pacing.name,
        )
        return enriched
