"""Per-record enrichment from the Discogs release and marketplace endpoints.

Each record gets two independent calls, run concurrently:

1. Release detail (YouTube video id, community rating, have/want counts)
2. Lowest marketplace price

Either call may fail without affecting the other. A failed call leaves its
fields absent (None) and keeps whatever the search result already supplied.
"""

from __future__ import annotations

import asyncio
import logging
import re
from dataclasses import dataclass
from typing import Any

from cogturner.core.errors import ConfigError
from cogturner.schemas.records import Record
from cogturner.services.discogs import DiscogsEndpoints, PriceEndpoint, finite_number, parse_count
from cogturner.services.fetcher import RetryingFetcher

logger = logging.getLogger(__name__)

_YOUTUBE_ID_RE = re.compile(r"(?:youtube\.com/watch\?v=|youtu\.be/)([^&\s]+)")


def extract_youtube_id(uri: str | None) -> str | None:
    if not uri:
        return None
    match = _YOUTUBE_ID_RE.search(uri)
    return match.group(1) if match else None


def first_youtube_id(videos: Any) -> str | None:
    """Return the id of the first video whose URI points at YouTube."""
    if not isinstance(videos, list):
        return None
    for video in videos:
        uri = video.get("uri") if isinstance(video, dict) else None
        video_id = extract_youtube_id(uri) if isinstance(uri, str) else None
        if video_id:
            return video_id
    return None


def parse_rating(community: Any) -> float | None:
    """Average community rating, or None if missing or not a finite number."""
    if not isinstance(community, dict):
        return None
    rating = community.get("rating")
    if not isinstance(rating, dict):
        return None
    return finite_number(rating.get("average"))


@dataclass(frozen=True)
class ReleaseDetail:
    youtube_id: str | None = None
    community_rating: float | None = None
    haves: int | None = None
    wants: int | None = None


def parse_release_detail(payload: dict[str, Any]) -> ReleaseDetail:
    community = payload.get("community")
    counts = community if isinstance(community, dict) else {}
    return ReleaseDetail(
        youtube_id=first_youtube_id(payload.get("videos")),
        community_rating=parse_rating(community),
        haves=parse_count(counts.get("have")),
        wants=parse_count(counts.get("want")),
    )


def merge_enrichment(
    record: Record,
    detail: ReleaseDetail | None,
    lowest_price: float | None,
) -> Record:
    """Apply enrichment results to a basic record.

    Counts are only overwritten when the detail call actually returned them;
    zero is a real value, not a missing one.
    """
    update: dict[str, Any] = {
        "youtube_id": None,
        "community_rating": None,
        "lowest_price": lowest_price,
    }
    if detail is not None:
        update["youtube_id"] = detail.youtube_id
        update["community_rating"] = detail.community_rating
        if detail.haves is not None:
            update["haves"] = detail.haves
        if detail.wants is not None:
            update["wants"] = detail.wants
    return record.model_copy(update=update)


class Enricher:
    def __init__(
        self,
        fetcher: RetryingFetcher,
        endpoints: DiscogsEndpoints,
        price_endpoint: PriceEndpoint,
    ) -> None:
        self._fetcher = fetcher
        self._endpoints = endpoints
        self._price_endpoint = price_endpoint

    async def enrich(self, record: Record) -> Record:
        """Return ``record`` with detail and price fields filled where possible."""
        detail_task = asyncio.ensure_future(self.fetch_detail(record.id))
        price_task = asyncio.ensure_future(self.fetch_lowest_price(record.id))
        try:
            detail, lowest_price = await asyncio.gather(detail_task, price_task)
        except ConfigError:
            # Nothing awaits the sibling call after this point
            detail_task.cancel()
            price_task.cancel()
            raise
        return merge_enrichment(record, detail, lowest_price)

    async def fetch_detail(self, release_id: int) -> ReleaseDetail | None:
        try:
            payload = await self._fetcher.get_json(self._endpoints.release(release_id))
        except ConfigError:
            raise
        except Exception as e:
            logger.error("Release detail failed for %d: %s", release_id, type(e).__name__)
            return None
        return parse_release_detail(payload)

    async def fetch_lowest_price(self, release_id: int) -> float | None:
        endpoint = self._price_endpoint
        try:
            payload = await self._fetcher.get_json(
                endpoint.url(release_id), params=endpoint.params()
            )
        except ConfigError:
            raise
        except Exception as e:
            logger.error(
                "Marketplace %s lookup failed for %d: %s",
                endpoint.name,
                release_id,
                type(e).__name__,
            )
            return None
        return endpoint.lowest_price(payload)
