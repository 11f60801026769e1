"""Discogs API endpoints and payload parsing.

Only the fields the record pipeline consumes are modeled:

- ``GET /database/search`` → ``results[]`` with id, "Artist - Title", year,
  cover_image and a ``community`` have/want block
- ``GET /releases/{id}`` → ``videos[].uri`` and ``community`` have/want/rating
- price, from one of two endpoint variants (see ``PriceEndpoint``)
"""

from __future__ import annotations

import math
from abc import ABC, abstractmethod
from dataclasses import dataclass
from typing import Any

from cogturner.core.errors import TokenNotConfigured
from cogturner.schemas.records import Record

DISCOGS_RELEASE_URL = "https://www.discogs.com/release/{release_id}"
SEARCH_FORMAT = "vinyl"
TITLE_SEPARATOR = " - "


def build_headers(token: str, user_agent: str) -> dict[str, str]:
    """Headers sent with every Discogs call.

    Raises TokenNotConfigured if no personal access token is set.
    """
    if not token:
        raise TokenNotConfigured()
    return {
        "Authorization": f"Discogs token={token}",
        "User-Agent": user_agent,
        "Accept": "application/json",
    }


@dataclass(frozen=True)
class DiscogsEndpoints:
    base_url: str = "https://api.discogs.com"

    def search(self) -> str:
        return f"{self.base_url}/database/search"

    def release(self, release_id: int) -> str:
        return f"{self.base_url}/releases/{release_id}"


def search_params(style: str, per_page: int) -> dict[str, str | int]:
    return {
        "style": style,
        "format": SEARCH_FORMAT,
        "type": "release",
        "per_page": per_page,
    }


def finite_number(value: Any) -> float | None:
    """Return value as a float if it is a real, finite number, else None.

    Booleans and numeric strings are rejected. Zero is a valid value.
    """
    if isinstance(value, bool) or not isinstance(value, int | float):
        return None
    number = float(value)
    if not math.isfinite(number):
        return None
    return number


def parse_count(value: Any) -> int | None:
    if isinstance(value, bool) or not isinstance(value, int) or value < 0:
        return None
    return value


def split_title(composite: str) -> tuple[str, str]:
    """Split a Discogs "Artist - Title" field on its first separator.

    Without a separator both artist and title are the whole field.
    """
    artist, sep, title = composite.partition(TITLE_SEPARATOR)
    if not sep:
        whole = composite.strip()
        return whole, whole
    return artist.strip(), title.strip() or composite.strip()


def parse_year(value: Any) -> int:
    if isinstance(value, bool):
        return 0
    if isinstance(value, int):
        return value
    if isinstance(value, str):
        try:
            return int(value.strip())
        except ValueError:
            return 0
    return 0


def record_from_search_result(item: Any, style: str) -> Record | None:
    """Build a basic record from one search result, or None if unusable."""
    if not isinstance(item, dict):
        return None
    release_id = item.get("id")
    composite = item.get("title")
    if isinstance(release_id, bool) or not isinstance(release_id, int):
        return None
    if not isinstance(composite, str) or not composite.strip():
        return None

    artist, title = split_title(composite)
    community = item.get("community")
    if not isinstance(community, dict):
        community = {}
    image = item.get("cover_image")

    return Record(
        id=release_id,
        artist=artist,
        title=title,
        style=style,
        year=parse_year(item.get("year")),
        image=image if isinstance(image, str) else "",
        source_url=DISCOGS_RELEASE_URL.format(release_id=release_id),
        haves=parse_count(community.get("have")) or 0,
        wants=parse_count(community.get("want")) or 0,
    )


class PriceEndpoint(ABC):
    """Where the current lowest price for a release comes from."""

    name: str

    def __init__(self, endpoints: DiscogsEndpoints) -> None:
        self.endpoints = endpoints

    @abstractmethod
    def url(self, release_id: int) -> str: ...

    def params(self) -> dict[str, str | int] | None:
        return None

    @abstractmethod
    def lowest_price(self, payload: dict[str, Any]) -> float | None: ...


class MarketplaceStatsPrice(PriceEndpoint):
    """``/marketplace/stats/{id}`` → ``lowest_price: {value, currency}``."""

    name = "stats"

    def url(self, release_id: int) -> str:
        return f"{self.endpoints.base_url}/marketplace/stats/{release_id}"

    def lowest_price(self, payload: dict[str, Any]) -> float | None:
        if payload.get("num_for_sale") == 0:
            return None
        lowest = payload.get("lowest_price")
        if isinstance(lowest, dict):
            lowest = lowest.get("value")
        return finite_number(lowest)


class MarketplaceListingsPrice(PriceEndpoint):
    """Listings sorted by ascending price; the first one is the cheapest."""

    name = "listings"

    def url(self, release_id: int) -> str:
        return f"{self.endpoints.base_url}/marketplace/listings/release/{release_id}"

    def params(self) -> dict[str, str | int]:
        return {"sort": "price", "sort_order": "asc", "limit": 1}

    def lowest_price(self, payload: dict[str, Any]) -> float | None:
        listings = payload.get("listings")
        if not isinstance(listings, list) or not listings:
            return None
        first = listings[0]
        price = first.get("price") if isinstance(first, dict) else None
        if isinstance(price, dict):
            price = price.get("value")
        return finite_number(price)


PRICE_ENDPOINTS: dict[str, type[PriceEndpoint]] = {
    MarketplaceStatsPrice.name: MarketplaceStatsPrice,
    MarketplaceListingsPrice.name: MarketplaceListingsPrice,
}


def get_price_endpoint(name: str, endpoints: DiscogsEndpoints) -> PriceEndpoint:
    try:
        return PRICE_ENDPOINTS[name](endpoints)
    except KeyError:
        raise ValueError(f"Unknown price source: {name}") from None
