"""
Unit Tests for the Read-Through Cache

Time is driven by a fake monotonic clock so expiry is deterministic.
"""
import asyncio

import pytest

from levelgate.services.cache_service import CacheKeys, CacheTTL, ReadThroughCache


class FakeClock:
    def __init__(self, start: float = 1000.0):
        self.now = start

    def __call__(self) -> float:
        return self.now

    def advance(self, seconds: float) -> None:
        self.now += seconds


class CountingCompute:
    """Async compute function that records how often it ran."""

    def __init__(self, value="payload"):
        self.value = value
        self.calls = 0

    async def __call__(self):
        self.calls += 1
        return f"{self.value}-{self.calls}"


@pytest.fixture
def clock() -> FakeClock:
    return FakeClock()


@pytest.fixture
def cache(clock: FakeClock) -> ReadThroughCache:
    return ReadThroughCache(sweep_interval_seconds=30, clock=clock)


class TestGetOrCompute:

    @pytest.mark.asyncio
    async def test_computes_once_within_ttl(self, cache, clock):
        compute = CountingCompute()

        first = await cache.get_or_compute("leaderboard:all", 3, compute)
        clock.advance(2.9)
        second = await cache.get_or_compute("leaderboard:all", 3, compute)

        assert compute.calls == 1
        assert first == second == "payload-1"

    @pytest.mark.asyncio
    async def test_recomputes_after_ttl(self, cache, clock):
        compute = CountingCompute()

        await cache.get_or_compute("leaderboard:all", 3, compute)
        clock.advance(3)
        value = await cache.get_or_compute("leaderboard:all", 3, compute)

        assert compute.calls == 2
        assert value == "payload-2"

    @pytest.mark.asyncio
    async def test_compute_error_propagates_and_is_not_stored(self, cache):
        async def failing():
            raise RuntimeError("store down")

        with pytest.raises(RuntimeError):
            await cache.get_or_compute("dashboard_stats", 5, failing)

        assert "dashboard_stats" not in cache
        assert len(cache) == 0

    @pytest.mark.asyncio
    async def test_falsy_values_are_cached(self, cache):
        calls = []

        async def empty_board():
            calls.append(1)
            return []

        await cache.get_or_compute("leaderboard:1", 3, empty_board)
        await cache.get_or_compute("leaderboard:1", 3, empty_board)

        assert len(calls) == 1


class TestGetSet:

    def test_get_missing_returns_default(self, cache):
        assert cache.get("nope") is None
        assert cache.get("nope", default="fallback") == "fallback"

    def test_entry_expires_at_ttl(self, cache, clock):
        cache.set("game_state", {"level2_open": True}, ttl=2)

        clock.advance(1.99)
        assert cache.get("game_state") == {"level2_open": True}

        clock.advance(0.01)
        assert cache.get("game_state") is None

    def test_set_overwrites_and_restarts_ttl(self, cache, clock):
        cache.set("k", 1, ttl=2)
        clock.advance(1.5)
        cache.set("k", 2, ttl=2)
        clock.advance(1.5)

        assert cache.get("k") == 2

    def test_stats_track_hits_and_misses(self, cache):
        cache.set("k", "v", ttl=10)
        cache.get("k")
        cache.get("k")
        cache.get("missing")

        stats = cache.stats()

        assert stats["hits"] == 2
        assert stats["misses"] == 1
        assert stats["hit_rate"] == "66.67%"
        assert stats["size"] == 1

    def test_stats_on_fresh_cache(self, cache):
        assert cache.stats() == {"hits": 0, "misses": 0, "hit_rate": "0.00%", "size": 0}

    def test_contains_does_not_touch_stats(self, cache):
        cache.set("k", "v", ttl=10)

        assert "k" in cache
        assert "other" not in cache
        assert cache.stats()["hits"] == 0
        assert cache.stats()["misses"] == 0


class TestInvalidation:

    def test_delete_by_prefix_only_removes_matching_keys(self, cache):
        cache.set(CacheKeys.leaderboard(), "all", ttl=10)
        cache.set(CacheKeys.leaderboard(1), "l1", ttl=10)
        cache.set(CacheKeys.leaderboard(2), "l2", ttl=10)
        cache.set(CacheKeys.dashboard_stats(), "stats", ttl=10)
        cache.set("leaderboards_archive", "x", ttl=10)

        removed = cache.delete_by_prefix("leaderboard:")

        assert removed == 3
        assert "leaderboard:all" not in cache
        assert "leaderboard:1" not in cache
        assert "dashboard_stats" in cache
        assert "leaderboards_archive" in cache

    def test_delete_reports_presence(self, cache):
        cache.set("k", "v", ttl=10)

        assert cache.delete("k") is True
        assert cache.delete("k") is False

    def test_sweep_removes_only_expired(self, cache, clock):
        cache.set("short", 1, ttl=2)
        cache.set("long", 2, ttl=30)
        clock.advance(5)

        removed = cache.sweep()

        assert removed == 1
        assert len(cache) == 1
        assert "long" in cache

    def test_clear(self, cache):
        cache.set("a", 1, ttl=10)
        cache.set("b", 2, ttl=10)

        cache.clear()

        assert len(cache) == 0


class TestCacheKeys:

    def test_key_formats(self):
        assert CacheKeys.game_state() == "game_state"
        assert CacheKeys.leaderboard() == "leaderboard:all"
        assert CacheKeys.leaderboard(2) == "leaderboard:2"
        assert CacheKeys.team_progress(7) == "team_progress:7"
        assert CacheKeys.puzzle_list(1) == "puzzles:1"
        assert CacheKeys.dashboard_stats() == "dashboard_stats"

    def test_ttls(self):
        assert CacheTTL.GAME_STATE == 2
        assert CacheTTL.LEADERBOARD == 3
        assert CacheTTL.TEAM_PROGRESS == 2
        assert CacheTTL.PUZZLES == 30
        assert CacheTTL.DASHBOARD_STATS == 5


class TestLifecycle:

    @pytest.mark.asyncio
    async def test_background_sweep_removes_expired_entries(self, clock):
        cache = ReadThroughCache(sweep_interval_seconds=0.01, clock=clock)
        cache.set("short", 1, ttl=1)
        cache.set("long", 2, ttl=100)
        clock.advance(10)

        cache.start()
        try:
            for _ in range(50):
                if len(cache) == 1:
                    break
                await asyncio.sleep(0.01)
            remaining = set(cache._entries)
        finally:
            await cache.shutdown()

        assert remaining == {"long"}

    @pytest.mark.asyncio
    async def test_start_is_idempotent_and_shutdown_stops(self, cache):
        cache.start()
        task = cache._sweep_task
        cache.start()

        assert cache.running is True
        assert cache._sweep_task is task

        cache.set("k", "v", ttl=10)
        await cache.shutdown()

        assert cache.running is False
        assert task.cancelled() or task.done()
        assert len(cache) == 0

    @pytest.mark.asyncio
    async def test_shutdown_without_start(self, cache):
        await cache.shutdown()

        assert cache.running is False
