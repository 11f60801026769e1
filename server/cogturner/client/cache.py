"""Client-side fallback cache of records per style.

All styles share one storage key holding ``{style: {timestamp, data}}``,
with millisecond epoch timestamps. Writes are best effort and never raise:
on a quota failure the oldest style is evicted and the write retried once,
and I/O errors drop the write.
"""

from __future__ import annotations

import json
import logging
from collections.abc import Sequence
from dataclasses import dataclass
from datetime import datetime, timedelta
from typing import Any

from pydantic import ValidationError

from cogturner.client.storage import LocalStorage, StorageQuotaExceeded
from cogturner.core.time import Clock, from_epoch_ms, to_epoch_ms, utcnow
from cogturner.schemas.records import Record

logger = logging.getLogger(__name__)

CACHE_KEY = "cogturner_records_cache"
CLIENT_CACHE_TTL = timedelta(days=7)


@dataclass(frozen=True)
class ClientCacheEntry:
    style: str
    timestamp: datetime
    records: list[Record]


class ClientRecordCache:
    def __init__(
        self,
        storage: LocalStorage,
        ttl: timedelta = CLIENT_CACHE_TTL,
        clock: Clock = utcnow,
    ) -> None:
        self.storage = storage
        self.ttl = ttl
        self._clock = clock

    def _load(self) -> dict[str, Any]:
        raw = self.storage.get_item(CACHE_KEY)
        if raw is None:
            return {}
        try:
            data = json.loads(raw)
        except ValueError:
            logger.warning("Discarding corrupt client cache")
            return {}
        return data if isinstance(data, dict) else {}

    def get(self, style: str) -> ClientCacheEntry | None:
        stored = self._load().get(style)
        if not isinstance(stored, dict):
            return None
        timestamp = stored.get("timestamp")
        if isinstance(timestamp, bool) or not isinstance(timestamp, int | float):
            return None
        try:
            records = [Record.model_validate(item) for item in stored.get("data") or []]
        except (TypeError, ValidationError):
            logger.warning("Discarding malformed client cache entry for style '%s'", style)
            return None
        return ClientCacheEntry(style=style, timestamp=from_epoch_ms(timestamp), records=records)

    def is_fresh(self, entry: ClientCacheEntry) -> bool:
        return self._clock() - entry.timestamp < self.ttl

    def put(self, style: str, records: Sequence[Record]) -> bool:
        """Store records for style. Returns False if the write was dropped."""
        data = self._load()
        data[style] = {
            "timestamp": to_epoch_ms(self._clock()),
            "data": [record.model_dump(mode="json", by_alias=True) for record in records],
        }
        try:
            self.storage.set_item(CACHE_KEY, json.dumps(data))
            return True
        except StorageQuotaExceeded as e:
            evicted = _evict_oldest(data, keep=style)
            if evicted is None:
                logger.warning("Dropping client cache write for style '%s': %s", style, e)
                return False
            logger.info("Client cache full, evicted style '%s'", evicted)
        except OSError as e:
            logger.warning("Client cache write failed for style '%s': %s", style, e)
            return False

        try:
            self.storage.set_item(CACHE_KEY, json.dumps(data))
            return True
        except StorageQuotaExceeded as e:
            logger.warning("Dropping client cache write for style '%s': %s", style, e)
            return False
        except OSError as e:
            logger.warning("Client cache write failed for style '%s': %s", style, e)
            return False


def _evict_oldest(data: dict[str, Any], keep: str) -> str | None:
    """Remove the entry with the smallest timestamp other than ``keep``."""

    def timestamp_of(style: str) -> float:
        entry = data[style]
        value = entry.get("timestamp") if isinstance(entry, dict) else None
        if isinstance(value, bool) or not isinstance(value, int | float):
            return float("-inf")
        return float(value)

    candidates = [style for style in data if style != keep]
    if not candidates:
        return None
    oldest = min(candidates, key=timestamp_of)
    del data[oldest]
    return oldest
