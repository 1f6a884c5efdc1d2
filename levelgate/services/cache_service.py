"""
Read-Through Cache: short-TTL memoization for read-heavy endpoints

Used in front of leaderboard and dashboard reads that tolerate a few seconds
of staleness. Never used by the access decision engine.

- Absolute expiry per entry (now + ttl), no proactive refresh
- Background sweep on a fixed interval removes expired entries
- Concurrent misses on the same key may both compute (no stampede lock);
  compute functions must be read-only
- One instance per process, constructed in the app lifespan and injected
"""
import asyncio
import logging
import time
from dataclasses import dataclass
from typing import Any, Awaitable, Callable, Dict, Optional

logger = logging.getLogger(__name__)

_MISSING = object()


class CacheKeys:
    """Cache key generators"""

    @staticmethod
    def game_state() -> str:
        return "game_state"

    @staticmethod
    def leaderboard(level: Optional[int] = None) -> str:
        return f"leaderboard:{level or 'all'}"

    @staticmethod
    def team_progress(team_id: int) -> str:
        return f"team_progress:{team_id}"

    @staticmethod
    def puzzle_list(level: Optional[int] = None) -> str:
        return f"puzzles:{level or 'all'}"

    @staticmethod
    def dashboard_stats() -> str:
        return "dashboard_stats"


class CacheTTL:
    """TTL constants (seconds)"""
    GAME_STATE = 2.0
    LEADERBOARD = 3.0
    TEAM_PROGRESS = 2.0
    PUZZLES = 30.0
    DASHBOARD_STATS = 5.0


@dataclass
class CacheEntry:
    value: Any
    expires_at: float


class ReadThroughCache:
    """
    In-memory TTL cache with hit/miss statistics.

    `clock` must be monotonic; tests inject a fake one.
    """

    def __init__(
        self,
        sweep_interval_seconds: float = 30.0,
        clock: Callable[[], float] = time.monotonic
    ):
        self.sweep_interval_seconds = sweep_interval_seconds
        self._clock = clock
        self._entries: Dict[str, CacheEntry] = {}
        self._hits = 0
        self._misses = 0
        self._sweep_task: Optional[asyncio.Task] = None

    # ------------------------------------------------------------------
    # Lookup
    # ------------------------------------------------------------------

    def _lookup(self, key: str) -> Any:
        entry = self._entries.get(key)
        if entry is None:
            self._misses += 1
            return _MISSING

        if self._clock() >= entry.expires_at:
            self._entries.pop(key, None)
            self._misses += 1
            return _MISSING

        self._hits += 1
        return entry.value

    def get(self, key: str, default: Any = None) -> Any:
        """Return the live value for `key`, or `default`."""
        value = self._lookup(key)
        return default if value is _MISSING else value

    def set(self, key: str, value: Any, ttl: float) -> None:
        self._entries[key] = CacheEntry(value=value, expires_at=self._clock() + ttl)

    async def get_or_compute(
        self,
        key: str,
        ttl: float,
        compute_fn: Callable[[], Awaitable[Any]]
    ) -> Any:
        """
        Return the cached value for `key`, or await `compute_fn`, store its
        result for `ttl` seconds and return it.

        Errors from `compute_fn` propagate and nothing is stored.
        """
        value = self._lookup(key)
        if value is not _MISSING:
            return value

        value = await compute_fn()
        self.set(key, value, ttl)
        return value

    # ------------------------------------------------------------------
    # Invalidation
    # ------------------------------------------------------------------

    def delete(self, key: str) -> bool:
        return self._entries.pop(key, None) is not None

    def delete_by_prefix(self, prefix: str) -> int:
        """Delete every key starting with `prefix`. Returns the number removed."""
        doomed = [key for key in list(self._entries) if key.startswith(prefix)]
        for key in doomed:
            self._entries.pop(key, None)
        return len(doomed)

    def clear(self) -> None:
        self._entries.clear()

    def sweep(self) -> int:
        """Remove expired entries. Returns the number removed."""
        now = self._clock()
        expired = [key for key, entry in list(self._entries.items()) if now >= entry.expires_at]
        for key in expired:
            self._entries.pop(key, None)
        return len(expired)

    def stats(self) -> Dict[str, Any]:
        lookups = self._hits + self._misses
        hit_rate = (self._hits / lookups * 100) if lookups else 0.0
        return {
            "hits": self._hits,
            "misses": self._misses,
            "hit_rate": f"{hit_rate:.2f}%",
            "size": len(self._entries),
        }

    def __len__(self) -> int:
        return len(self._entries)

    def __contains__(self, key: str) -> bool:
        # Does not count as a hit or miss
        entry = self._entries.get(key)
        return entry is not None and self._clock() < entry.expires_at

    # ------------------------------------------------------------------
    # Lifecycle
    # ------------------------------------------------------------------

    @property
    def running(self) -> bool:
        return self._sweep_task is not None and not self._sweep_task.done()

    async def _sweep_loop(self) -> None:
        logger.info(f"Starting cache sweep loop with interval {self.sweep_interval_seconds}s")
        while True:
            await asyncio.sleep(self.sweep_interval_seconds)
            try:
                removed = self.sweep()
                if removed:
                    logger.debug(f"Cache sweep removed {removed} expired entries")
            except Exception as e:
                logger.error(f"Cache sweep error: {str(e)}")

    def start(self) -> None:
        """Start the background sweep. Must be called from a running event loop."""
        if self.running:
            return
        self._sweep_task = asyncio.get_running_loop().create_task(self._sweep_loop())

    async def shutdown(self) -> None:
        """Stop the background sweep and drop all entries."""
        task, self._sweep_task = self._sweep_task, None
        if task is not None:
            task.cancel()
            try:
                await task
            except asyncio.CancelledError:
                pass
        self.clear()
        logger.info("Cache shut down")
