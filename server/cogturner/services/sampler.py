"""Bounded, artist-unique samples of a style's search results.

One oversized search page is requested; there is no pagination. If the page
holds fewer distinct artists than requested the sample is simply shorter.
"""

from __future__ import annotations

import logging
import random
from collections.abc import Iterable

from cogturner.core.errors import MalformedResponse, NoResultsFound
from cogturner.schemas.records import Record
from cogturner.services.discogs import DiscogsEndpoints, record_from_search_result, search_params
from cogturner.services.fetcher import RetryingFetcher

logger = logging.getLogger(__name__)

SAMPLE_SIZE = 20
SEARCH_PAGE_SIZE = 100


def normalize_artist(artist: str) -> str:
    return artist.strip().casefold()


def select_distinct_artists(records: Iterable[Record], target_size: int) -> list[Record]:
    """Keep the first record seen for each artist, up to target_size."""
    seen: set[str] = set()
    sample: list[Record] = []
    for record in records:
        if len(sample) >= target_size:
            break
        key = normalize_artist(record.artist)
        if key in seen:
            continue
        seen.add(key)
        sample.append(record)
    return sample


class FirstSeenSelection:
    """Upstream order, deterministic."""

    name = "first_seen"

    def order(self, records: list[Record]) -> list[Record]:
        return list(records)


class ShuffleSelection:
    """Random permutation before the dedup scan."""

    name = "shuffle"

    def __init__(self, rng: random.Random | None = None) -> None:
        self._rng = rng or random.Random()  # nosec B311 - not used for security

    def order(self, records: list[Record]) -> list[Record]:
        shuffled = list(records)
        self._rng.shuffle(shuffled)
        return shuffled


def get_selection(name: str) -> FirstSeenSelection | ShuffleSelection:
    if name == FirstSeenSelection.name:
        return FirstSeenSelection()
    if name == ShuffleSelection.name:
        return ShuffleSelection()
    raise ValueError(f"Unknown sample policy: {name}")


class SearchSampler:
    def __init__(
        self,
        fetcher: RetryingFetcher,
        endpoints: DiscogsEndpoints,
        *,
        page_size: int = SEARCH_PAGE_SIZE,
        selection: FirstSeenSelection | ShuffleSelection | None = None,
    ) -> None:
        self._fetcher = fetcher
        self._endpoints = endpoints
        self._page_size = page_size
        self._selection = selection or ShuffleSelection()

    async def sample(self, style: str, target_size: int = SAMPLE_SIZE) -> list[Record]:
        """Search Discogs for ``style`` and return up to target_size basic records.

        Raises NoResultsFound when the search yields nothing usable. Fetch
        failures (UpstreamError, RateLimitExceeded, NetworkError) propagate.
        """
        try:
            payload = await self._fetcher.get_json(
                self._endpoints.search(), params=search_params(style, self._page_size)
            )
        except MalformedResponse as e:
            logger.warning("Search for style '%s' returned no usable data: %s", style, e)
            raise NoResultsFound(style) from e

        results = payload.get("results")
        if not isinstance(results, list):
            results = []

        records = []
        for item in results:
            record = record_from_search_result(item, style)
            if record is not None:
                records.append(record)

        if not records:
            raise NoResultsFound(style)

        sample = select_distinct_artists(self._selection.order(records), target_size)
        logger.info(
            "Sampled %d records from %d search results for style '%s' (%s)",
            len(sample),
            len(results),
            style,
            self._selection.name,
        )
        return sample
