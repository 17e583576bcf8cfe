"""Tests for the TTL caches, in-flight coalescing and retailer decorators."""

import asyncio
import gc

import pytest

from pricecompare.cache import InFlightRegistry, InMemoryCache
from pricecompare.errors import UpstreamError
from pricecompare.retailers.base import CachedRetailer, LimitedRetailer, candidate_cache_key


class FakeClock:
    def __init__(self) -> None:
        self.now = 0.0

    def __call__(self) -> float:
        return self.now


def test_fifo_eviction_ignores_reads():
    """FIFO evicts the oldest insert even if it was just read."""

    cache = InMemoryCache(2, policy="fifo")
    cache.set("a", [1], 60)
    cache.set("b", [2], 60)
    assert cache.get("a") is not None

    cache.set("c", [3], 60)

    assert "a" not in cache
    assert "b" in cache and "c" in cache


def test_lru_eviction_refreshes_on_read():
    """LRU keeps a recently read entry and evicts the stale one."""

    cache = InMemoryCache(2, policy="lru")
    cache.set("a", [1], 60)
    cache.set("b", [2], 60)
    assert cache.get("a") is not None

    cache.set("c", [3], 60)

    assert "b" not in cache
    assert "a" in cache and "c" in cache


def test_entries_expire_after_ttl():
    """An entry is live up to its TTL inclusive and dropped afterwards."""

    clock = FakeClock()
    cache = InMemoryCache(10, clock=clock)
    cache.set("a", [1], 10)

    clock.now = 10.0
    assert cache.get("a").value == [1]

    clock.now = 10.5
    assert cache.get("a") is None
    assert len(cache) == 0


def test_cached_empty_result_is_not_a_miss():
    """A cached empty list comes back as an entry, unlike a missing key."""

    cache = InMemoryCache(10)
    cache.set("k", [], 5)

    entry = cache.get("k")

    assert entry is not None
    assert entry.value == []
    assert cache.get("missing") is None


def test_inflight_coalesces_concurrent_callers():
    """Concurrent callers for one key share a single fetch."""

    registry = InFlightRegistry()
    calls = []

    async def fetch():
        calls.append(1)
        await asyncio.sleep(0.01)
        return ["result"]

    async def scenario():
        first, second = await asyncio.gather(registry.run("k", fetch), registry.run("k", fetch))
        return first, second

    first, second = asyncio.run(scenario())

    assert calls == [1]
    assert first == second == ["result"]
    assert "k" not in registry


def test_inflight_failure_is_retried_by_next_caller():
    """A failed fetch is not remembered; the next caller fetches again."""

    registry = InFlightRegistry()
    attempts = []

    async def flaky():
        attempts.append(1)
        if len(attempts) == 1:
            raise UpstreamError("boom")
        return ["ok"]

    async def scenario():
        with pytest.raises(UpstreamError):
            await registry.run("k", flaky)
        assert len(registry) == 0
        return await registry.run("k", flaky)

    assert asyncio.run(scenario()) == ["ok"]
    assert len(attempts) == 2


def test_failure_after_every_waiter_is_cancelled_is_not_reported_as_unretrieved():
    """A fetch that fails with nobody left waiting does not leak its exception."""

    registry = InFlightRegistry()

    async def scenario():
        reported = []
        loop = asyncio.get_running_loop()
        loop.set_exception_handler(lambda _loop, context: reported.append(context))
        started = asyncio.Event()

        async def fetch():
            started.set()
            await asyncio.sleep(0.01)
            raise UpstreamError("down")

        waiter = asyncio.ensure_future(registry.run("k", fetch))
        await started.wait()
        waiter.cancel()
        with pytest.raises(asyncio.CancelledError):
            await waiter

        await asyncio.sleep(0.05)
        assert "k" not in registry
        gc.collect()
        return reported

    reported = asyncio.run(scenario())

    assert not any("never retrieved" in str(context.get("message", "")) for context in reported)


def test_cached_retailer_makes_one_upstream_call(fake_retailer, product):
    """Concurrent and repeated searches for one normalized term hit upstream once."""

    inner = fake_retailer("dia", {"leche": [product("Leche", 800)]}, delay=0.01)
    cached = CachedRetailer(inner)

    async def scenario():
        results = await asyncio.gather(cached.search("leche"), cached.search("  LECHE "))
        again = await cached.search("leche")
        return results, again

    results, again = asyncio.run(scenario())

    assert inner.calls == ["leche"]
    assert results[0] == results[1] == again
    assert [p.name for p in again] == ["Leche"]


def test_cached_retailer_uses_negative_ttl_for_empty_results(fake_retailer, product):
    """Empty upstream answers are stored with the negative TTL."""

    inner = fake_retailer("dia", {"leche": [product("Leche", 800)]})
    cached = CachedRetailer(inner, ttl=600, negative_ttl=90)

    async def scenario():
        await cached.search("leche")
        await cached.search("caviar")

    asyncio.run(scenario())

    assert cached.cache.get(candidate_cache_key("dia", "leche")).ttl == 600
    assert cached.cache.get(candidate_cache_key("dia", "caviar")).ttl == 90


def test_cached_retailer_does_not_cache_failures(fake_retailer, product):
    """Upstream errors propagate and leave nothing in the cache."""

    inner = fake_retailer("dia", {"leche": [product("Leche", 800)]}, error=UpstreamError("down"))
    cached = CachedRetailer(inner)

    async def scenario():
        with pytest.raises(UpstreamError):
            await cached.search("leche")
        inner.error = None
        return await cached.search("leche")

    assert [p.name for p in asyncio.run(scenario())] == ["Leche"]
    assert inner.calls == ["leche", "leche"]


def test_limited_retailer_bounds_concurrency(fake_retailer):
    """The limiter never lets more calls through than its slots."""

    inner = fake_retailer("dia", delay=0.01)
    limited = LimitedRetailer(inner, 1)

    async def scenario():
        await asyncio.gather(*(limited.search(term) for term in ("a", "b", "c")))

    asyncio.run(scenario())

    assert inner.max_active == 1
    assert limited.retailer == "dia"
    assert sorted(inner.calls) == ["a", "b", "c"]


def test_cache_hits_skip_the_limiter(fake_retailer, product):
    """Cached answers are served without going through the limiter."""

    inner = fake_retailer("jumbo", {"pan": [product("Pan", 500, "jumbo")]}, delay=0.01)
    cached = CachedRetailer(LimitedRetailer(inner, 1))

    async def scenario():
        await cached.search("pan")
        await asyncio.gather(*(cached.search("pan") for _ in range(5)))

    asyncio.run(scenario())

    assert inner.calls == ["pan"]
