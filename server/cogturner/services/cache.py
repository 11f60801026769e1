"""Server-side record cache.

Entries are replaced whole, per key, so plain dict assignment is enough;
concurrent writers to the same style are last-write-wins. Stale entries are
never removed, only reported as not fresh.
"""

from __future__ import annotations

import logging
import uuid
from collections.abc import Sequence
from dataclasses import dataclass
from datetime import datetime, timedelta
from typing import Protocol

from cogturner.core.time import Clock, utcnow
from cogturner.schemas.records import Record

logger = logging.getLogger(__name__)

DEFAULT_TTL = timedelta(hours=24)
SAMPLE_HANDLE_TTL = timedelta(minutes=10)


@dataclass(frozen=True)
class CacheEntry:
    key: str
    timestamp: datetime
    records: tuple[Record, ...]


class ResultCache(Protocol):
    def get(self, key: str) -> CacheEntry | None: ...

    def put(self, key: str, records: Sequence[Record]) -> CacheEntry: ...

    def is_fresh(self, entry: CacheEntry) -> bool: ...


class InMemoryResultCache:
    """Process-memory ResultCache; lost on restart."""

    def __init__(self, ttl: timedelta = DEFAULT_TTL, clock: Clock = utcnow) -> None:
        self.ttl = ttl
        self._clock = clock
        self._entries: dict[str, CacheEntry] = {}

    def get(self, key: str) -> CacheEntry | None:
        return self._entries.get(key)

    def put(self, key: str, records: Sequence[Record]) -> CacheEntry:
        entry = CacheEntry(key=key, timestamp=self._clock(), records=tuple(records))
        self._entries[key] = entry
        return entry

    def is_fresh(self, entry: CacheEntry) -> bool:
        return self._clock() - entry.timestamp < self.ttl

    def keys(self) -> list[str]:
        return list(self._entries)

    def clear(self) -> int:
        count = len(self._entries)
        self._entries = {}
        return count


class SampleStore:
    """Short-lived handles from the basic phase to the complete phase.

    Each basic call gets its own opaque handle, so the complete phase
    enriches exactly the records that caller was shown even when other
    callers sample the same style in between.
    """

    def __init__(self, ttl: timedelta = SAMPLE_HANDLE_TTL, clock: Clock = utcnow) -> None:
        self.ttl = ttl
        self._clock = clock
        self._samples: dict[str, tuple[datetime, str, tuple[Record, ...]]] = {}

    def put(self, style: str, sample: Sequence[Record]) -> str:
        """Store a sample and return the handle that redeems it."""
        now = self._clock()
        self._prune(now)
        handle = uuid.uuid4().hex
        self._samples[handle] = (now, style, tuple(sample))
        return handle

    def take(self, handle: str, style: str) -> list[Record] | None:
        """Remove and return the stored sample.

        Returns None if the handle is unknown, expired, or was issued for a
        different style.
        """
        stored = self._samples.pop(handle, None)
        if stored is None:
            return None
        created, stored_style, sample = stored
        if stored_style != style:
            logger.info("Sample handle was issued for style '%s', not '%s'", stored_style, style)
            return None
        if self._clock() - created >= self.ttl:
            logger.info("Discarding expired sample handle for style '%s'", style)
            return None
        return list(sample)

    def __len__(self) -> int:
        return len(self._samples)

    def _prune(self, now: datetime) -> None:
        # Unredeemed handles are dropped once expired
        expired = [
            handle
            for handle, (created, _, _) in self._samples.items()
            if now - created >= self.ttl
        ]
        for handle in expired:
            del self._samples[handle]
