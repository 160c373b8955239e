"""Freshness-aware cache of parsed feed results."""

import hashlib
import logging
import time
from dataclasses import dataclass
from typing import Callable, Optional

from pydantic import ValidationError

from .models import CacheEntry, CalendarEvent
from .storage import KeyValueStore, MemoryKeyValueStore

logger = logging.getLogger(__name__)

CACHE_KEY_PREFIX = "ical_cache_"
DEFAULT_FRESHNESS_SECONDS = 60 * 60


def cache_key_for(source_key: str) -> str:
    """Storage key for a feed: fixed prefix plus a short hash of its URL."""
    digest = hashlib.sha256(source_key.encode("utf-8")).hexdigest()[:16]
    return f"{CACHE_KEY_PREFIX}{digest}"


@dataclass(frozen=True)
class CacheLookup:
    """Cached events together with their age classification."""

    events: list[CalendarEvent]
    timestamp: float
    is_stale: bool


class FeedCache:
    """Stores parsed occurrences per feed and classifies them as fresh or stale.

    Entries never expire from the store; staleness only decides whether a
    caller should refetch. Unreadable entries are treated as misses.
    """

    def __init__(
        self,
        store: Optional[KeyValueStore] = None,
        freshness_seconds: Optional[int] = None,
        clock: Callable[[], float] = time.time,
    ) -> None:
        """Initialize the cache.

        Args:
            store: Backing store (in-memory when omitted)
            freshness_seconds: Default freshness window; 0/None selects one hour
            clock: Source of epoch seconds
        """
        self.store: KeyValueStore = store if store is not None else MemoryKeyValueStore()
        self.freshness_seconds = freshness_seconds or DEFAULT_FRESHNESS_SECONDS
        self._clock = clock

    def _max_age(self, max_age: Optional[int]) -> int:
        return max_age if max_age else self.freshness_seconds

    async def _load(self, source_key: str) -> Optional[CacheEntry]:
        key = cache_key_for(source_key)
        raw = await self.store.get(key)
        if raw is None:
            return None
        try:
            return CacheEntry.model_validate_json(raw)
        except (ValidationError, ValueError):
            logger.warning("Discarding unreadable cache entry %s", key)
            return None

    async def get_allowing_stale(
        self, source_key: str, max_age: Optional[int] = None
    ) -> Optional[CacheLookup]:
        """Return the cached entry regardless of age, or None on a miss."""
        entry = await self._load(source_key)
        if entry is None:
            return None
        age = self._clock() - entry.timestamp
        return CacheLookup(
            events=entry.events,
            timestamp=entry.timestamp,
            is_stale=age >= self._max_age(max_age),
        )

    async def get(self, source_key: str, max_age: Optional[int] = None) -> Optional[list[CalendarEvent]]:
        """Return cached events only when they are fresh."""
        lookup = await self.get_allowing_stale(source_key, max_age)
        if lookup is None or lookup.is_stale:
            return None
        return lookup.events

    async def put(self, source_key: str, events: list[CalendarEvent]) -> None:
        entry = CacheEntry(events=events, timestamp=self._clock())
        await self.store.set(cache_key_for(source_key), entry.model_dump_json())
        logger.debug("Cached %d events for %s", len(events), cache_key_for(source_key))

    async def reset(self, source_key: Optional[str] = None) -> None:
        """Drop one feed's entry, or every feed entry when no key is given."""
        if source_key is not None:
            await self.store.delete(cache_key_for(source_key))
            return
        for key in await self.store.keys(CACHE_KEY_PREFIX):
            await self.store.delete(key)
