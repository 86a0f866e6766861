"""
In-memory inventory cache.

Holds the most recent successful fetch of each collection (projects, or the
flags of one project) for a fixed TTL. Entries are created lazily, replaced
wholesale on every successful fetch and never merged.

Failure policy: a failed fetch propagates to the caller. The previous entry is
neither returned nor evicted, so the next read simply retries the fetch.

Concurrency: two callers that both miss before either fetch resolves will each
fetch; whichever finishes last wins. Fetches are idempotent reads, so the
duplicate work is harmless in a single low-traffic process.
"""

import logging
import time
from dataclasses import dataclass
from typing import Any, Awaitable, Callable, Dict, Generic, List, Optional, TypeVar

from .models import CollectionKey

logger = logging.getLogger("unleash_mcp.cache")

T = TypeVar("T")

DEFAULT_TTL_MS = 60_000


@dataclass
class CacheEntry(Generic[T]):
    """Last successful fetch for one collection key."""
    data: List[T]
    fetched_at: float  # clock() value at fetch time, in seconds


@dataclass
class CacheLookup(Generic[T]):
    """Result of ``InventoryCache.get_or_fetch``."""
    data: List[T]
    fetched_at: float
    from_cache: bool


class InventoryCache:
    """
    Per-key TTL cache for remote collections.

    The clock is injectable so tests can move time without sleeping; it must
    return seconds (``time.time`` by default, so ``fetched_at`` doubles as a
    wall-clock timestamp for rendering).
    """

    def __init__(
        self,
        ttl_ms: int = DEFAULT_TTL_MS,
        clock: Callable[[], float] = time.time,
    ):
        self.ttl_ms = ttl_ms
        self._clock = clock
        self._entries: Dict[CollectionKey, CacheEntry[Any]] = {}

    def is_fresh(self, entry: CacheEntry[Any]) -> bool:
        age_ms = (self._clock() - entry.fetched_at) * 1000
        return age_ms < self.ttl_ms

    def peek(self, key: CollectionKey) -> Optional[CacheEntry[Any]]:
        """Return the stored entry for ``key`` regardless of freshness."""
        return self._entries.get(key)

    async def get_or_fetch(
        self,
        key: CollectionKey,
        fetch_fn: Callable[[], Awaitable[List[T]]],
    ) -> CacheLookup[T]:
        """Serve ``key`` from cache while fresh, otherwise await ``fetch_fn``."""
        entry = self._entries.get(key)
        if entry is not None and self.is_fresh(entry):
            logger.debug(f"Cache hit for {key} ({len(entry.data)} items)")
            return CacheLookup(data=entry.data, fetched_at=entry.fetched_at, from_cache=True)

        logger.debug(f"Cache {'stale' if entry else 'miss'} for {key}, fetching")
        data = list(await fetch_fn())

        fetched_at = self._clock()
        self._entries[key] = CacheEntry(data=data, fetched_at=fetched_at)
        return CacheLookup(data=data, fetched_at=fetched_at, from_cache=False)

    def __len__(self) -> int:
        return len(self._entries)
