"""Tests for the inventory TTL cache."""

import pytest

from unleash_mcp.cache import DEFAULT_TTL_MS, InventoryCache
from unleash_mcp.models import CollectionKey


class CountingFetch:
    """Async fetch function that records how often it ran."""

    def __init__(self, *results):
        self.results = list(results)
        self.calls = 0

    async def __call__(self):
        self.calls += 1
        result = self.results[min(self.calls, len(self.results)) - 1]
        if isinstance(result, Exception):
            raise result
        return result


# =============================================================================
# Freshness
# =============================================================================


class TestFreshness:
    """Entries are served while younger than the TTL."""

    @pytest.mark.asyncio
    async def test_first_read_fetches(self, clock):
        cache = InventoryCache(clock=clock)
        fetch = CountingFetch(["a"])

        lookup = await cache.get_or_fetch(CollectionKey.projects(), fetch)

        assert lookup.data == ["a"]
        assert lookup.from_cache is False
        assert lookup.fetched_at == clock.now
        assert fetch.calls == 1

    @pytest.mark.asyncio
    async def test_second_read_within_ttl_is_cached(self, clock):
        cache = InventoryCache(clock=clock)
        fetch = CountingFetch(["a"], ["b"])
        key = CollectionKey.projects()

        first = await cache.get_or_fetch(key, fetch)
        clock.advance_ms(DEFAULT_TTL_MS - 1)
        second = await cache.get_or_fetch(key, fetch)

        assert second.from_cache is True
        assert second.data == first.data
        assert second.fetched_at == first.fetched_at
        assert fetch.calls == 1

    @pytest.mark.asyncio
    async def test_read_at_ttl_refetches_once(self, clock):
        cache = InventoryCache(clock=clock)
        fetch = CountingFetch(["a"], ["b"])
        key = CollectionKey.projects()

        await cache.get_or_fetch(key, fetch)
        clock.advance_ms(DEFAULT_TTL_MS)
        lookup = await cache.get_or_fetch(key, fetch)

        assert lookup.from_cache is False
        assert lookup.data == ["b"]
        assert fetch.calls == 2

    @pytest.mark.asyncio
    async def test_custom_ttl(self, clock):
        cache = InventoryCache(ttl_ms=1000, clock=clock)
        fetch = CountingFetch(["a"], ["b"])
        key = CollectionKey.projects()

        await cache.get_or_fetch(key, fetch)
        clock.advance_ms(1500)
        lookup = await cache.get_or_fetch(key, fetch)

        assert lookup.data == ["b"]
        assert fetch.calls == 2


# =============================================================================
# Keys
# =============================================================================


class TestKeys:
    """Each collection key has its own entry."""

    @pytest.mark.asyncio
    async def test_keys_are_independent(self, clock):
        cache = InventoryCache(clock=clock)
        projects = CountingFetch(["p"])
        flags_a = CountingFetch(["fa"])
        flags_b = CountingFetch(["fb"])

        await cache.get_or_fetch(CollectionKey.projects(), projects)
        await cache.get_or_fetch(CollectionKey.flags("a"), flags_a)
        lookup = await cache.get_or_fetch(CollectionKey.flags("b"), flags_b)

        assert lookup.data == ["fb"]
        assert len(cache) == 3
        assert (projects.calls, flags_a.calls, flags_b.calls) == (1, 1, 1)

    def test_population_is_lazy(self, clock):
        cache = InventoryCache(clock=clock)

        assert len(cache) == 0
        assert cache.peek(CollectionKey.projects()) is None

    def test_flags_key_requires_project(self):
        from unleash_mcp.errors import ValidationError

        with pytest.raises(ValidationError):
            CollectionKey.flags("")

    def test_project_ids_compare_exactly(self):
        assert CollectionKey.flags("Team") != CollectionKey.flags("team")
        assert CollectionKey.flags("team") == CollectionKey.flags("team")


# =============================================================================
# Failures
# =============================================================================


class TestFailures:
    """A failed fetch propagates and leaves the previous entry alone."""

    @pytest.mark.asyncio
    async def test_failure_propagates_without_entry(self, clock):
        cache = InventoryCache(clock=clock)
        fetch = CountingFetch(RuntimeError("boom"))

        with pytest.raises(RuntimeError, match="boom"):
            await cache.get_or_fetch(CollectionKey.projects(), fetch)

        assert len(cache) == 0

    @pytest.mark.asyncio
    async def test_failure_keeps_stale_entry_and_retries(self, clock):
        cache = InventoryCache(clock=clock)
        key = CollectionKey.projects()
        fetch = CountingFetch(["old"], RuntimeError("down"), ["new"])

        await cache.get_or_fetch(key, fetch)
        stale_at = clock.now
        clock.advance_ms(DEFAULT_TTL_MS + 1)

        with pytest.raises(RuntimeError):
            await cache.get_or_fetch(key, fetch)

        entry = cache.peek(key)
        assert entry.data == ["old"]
        assert entry.fetched_at == stale_at

        lookup = await cache.get_or_fetch(key, fetch)
        assert lookup.data == ["new"]
        assert lookup.from_cache is False
        assert fetch.calls == 3
