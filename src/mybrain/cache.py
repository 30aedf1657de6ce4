"""Summary: Summary cache with stale-while-revalidate serving.

Importance: Decides when cached AI output is served, refreshed in the background, or rebuilt.
Alternatives: Recompute every summary on demand.
"""

from __future__ import annotations

import asyncio
import logging
import time
from typing import Any, Awaitable, Callable

from mybrain.models import CacheEntry, CacheLookup, SummaryKind, SummaryResponse
from mybrain.storage.sqlite_store import SqliteStore, cache_key
from mybrain.tasks import BackgroundTasks


logger = logging.getLogger(__name__)

CACHE_MAX_AGE_SECONDS = 2.5 * 60 * 60

Refresh = Callable[[], Awaitable[Any]]


class SummaryCache:
    """Summary: Keyed cache of summary payloads with derived age and staleness.

    Importance: One process-wide freshness threshold applies to every key.
    Alternatives: Per-source thresholds or explicit expiry times.
    """

    def __init__(
        self,
        store: SqliteStore,
        max_age_seconds: float = CACHE_MAX_AGE_SECONDS,
        clock: Callable[[], float] = time.time,
    ) -> None:
        self._store = store
        self._max_age_ms = int(max_age_seconds * 1000)
        self._clock = clock

    @property
    def max_age_ms(self) -> int:
        return self._max_age_ms

    def now_ms(self) -> int:
        return int(self._clock() * 1000)

    def get(self, scope: str, kind: SummaryKind) -> CacheLookup | None:
        """Summary: Look up a cached payload and compute its freshness.

        Importance: Age is measured at read time against the injected clock.
        Alternatives: Store an is_stale flag and update it on a timer.
        """

        entry = self._store.get_cache_entry(scope, kind)
        if entry is None:
            return None
        now_ms = self.now_ms()
        return CacheLookup(
            payload=entry.payload,
            created_at_ms=entry.created_at_ms,
            age_ms=entry.age_ms(now_ms),
            is_stale=entry.is_stale(now_ms, self._max_age_ms),
        )

    def set(self, scope: str, kind: SummaryKind, payload: Any) -> CacheEntry:
        """Create or replace the entry for ``(scope, kind)``."""

        entry = CacheEntry(scope=scope, kind=kind, payload=payload, created_at_ms=self.now_ms())
        self._store.put_cache_entry(entry)
        return entry


class StaleWhileRevalidate:
    """Summary: Serves cached summaries and schedules refreshes.

    Importance: Stale data is returned immediately rather than blocking the caller.
    Alternatives: Block every stale request on a refresh.
    """

    def __init__(self, cache: SummaryCache, tasks: BackgroundTasks) -> None:
        self._cache = cache
        self._tasks = tasks
        self._in_flight: dict[str, asyncio.Task[Any]] = {}

    @property
    def cache(self) -> SummaryCache:
        return self._cache

    async def fetch(
        self,
        scope: str,
        kind: SummaryKind,
        refresh: Refresh,
        force_refresh: bool = False,
    ) -> SummaryResponse:
        """Summary: Return a summary following the stale-while-revalidate protocol.

        Importance: Fresh hits return directly, stale hits return the old payload and refresh
        in the background, misses and forced refreshes block and propagate errors.
        Alternatives: Always await the refresh.
        """

        cached = None if force_refresh else self._cache.get(scope, kind)
        if cached is not None and not cached.is_stale:
            return SummaryResponse(
                payload=cached.payload, from_cache=True, cache_age_ms=cached.age_ms
            )
        if cached is not None:
            self._revalidate(scope, kind, refresh)
            return SummaryResponse(
                payload=cached.payload,
                from_cache=True,
                is_stale=True,
                cache_age_ms=cached.age_ms,
            )
        payload = await self._refresh(scope, kind, refresh)
        return SummaryResponse(payload=payload)

    def in_flight(self, scope: str, kind: SummaryKind) -> bool:
        task = self._in_flight.get(cache_key(scope, kind))
        return task is not None and not task.done()

    def _revalidate(self, scope: str, kind: SummaryKind, refresh: Refresh) -> None:
        key = cache_key(scope, kind)
        if self.in_flight(scope, kind):
            logger.debug("Refresh already running for %s.", key)
            return
        task = self._tasks.spawn(self._refresh(scope, kind, refresh), name=f"refresh:{key}")
        self._in_flight[key] = task
        task.add_done_callback(lambda done: self._release(key, done))

    def _release(self, key: str, task: asyncio.Task[Any]) -> None:
        if self._in_flight.get(key) is task:
            del self._in_flight[key]

    async def _refresh(self, scope: str, kind: SummaryKind, refresh: Refresh) -> Any:
        payload = await refresh()
        self._cache.set(scope, kind, payload)
        logger.info("Cached %s summary for %s.", kind.value, scope)
        return payload
