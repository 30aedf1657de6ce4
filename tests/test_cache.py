"""Summary: Tests for the summary cache and stale-while-revalidate serving.

Importance: Ensures stale summaries are served immediately and refreshed in the background.
Alternatives: Rely on end-to-end API tests for cache behavior.
"""

from __future__ import annotations

import asyncio

import pytest

from conftest import FakeClock
from mybrain.cache import StaleWhileRevalidate, SummaryCache
from mybrain.models import SummaryKind
from mybrain.storage.sqlite_store import SqliteStore
from mybrain.tasks import BackgroundTasks


MAX_AGE = 100.0


class CountingRefresh:
    """Refresh callable returning a new payload on every call."""

    def __init__(self) -> None:
        self.calls = 0

    async def __call__(self) -> str:
        self.calls += 1
        return f"payload {self.calls}"


def _build(store: SqliteStore, clock: FakeClock, tasks: BackgroundTasks | None = None):
    cache = SummaryCache(store, max_age_seconds=MAX_AGE, clock=clock)
    return cache, StaleWhileRevalidate(cache, tasks or BackgroundTasks())


def test_cache_age_and_staleness(store: SqliteStore, clock: FakeClock) -> None:
    """Summary: Verify entries turn stale once the age threshold passes.

    Importance: Staleness decides between serving and refreshing.
    Alternatives: Expire entries outright.
    """

    cache, _ = _build(store, clock)
    assert cache.get("chat", SummaryKind.TODAY) is None
    cache.set("chat", SummaryKind.TODAY, "hello")
    clock.advance(MAX_AGE)
    lookup = cache.get("chat", SummaryKind.TODAY)
    assert lookup.payload == "hello"
    assert lookup.age_ms == 100_000
    assert lookup.is_stale is False
    clock.advance(1)
    assert cache.get("chat", SummaryKind.TODAY).is_stale is True


@pytest.mark.asyncio
async def test_miss_awaits_refresh_and_caches(store: SqliteStore, clock: FakeClock) -> None:
    """Summary: Verify a miss waits for the refresh and stores its result.

    Importance: The first request has nothing else to return.
    Alternatives: Return an empty placeholder.
    """

    cache, swr = _build(store, clock)
    refresh = CountingRefresh()
    response = await swr.fetch("chat", SummaryKind.TODAY, refresh)
    assert response.payload == "payload 1"
    assert response.from_cache is False
    assert response.to_dict() == {"summary": "payload 1", "from_cache": False}
    assert cache.get("chat", SummaryKind.TODAY).payload == "payload 1"


@pytest.mark.asyncio
async def test_fresh_hit_skips_refresh(store: SqliteStore, clock: FakeClock) -> None:
    """Summary: Verify a fresh entry is served without calling refresh.

    Importance: Fresh digests cost no AI call.
    Alternatives: Refresh on every read.
    """

    _, swr = _build(store, clock)
    refresh = CountingRefresh()
    await swr.fetch("mail", SummaryKind.WEEK, refresh)
    clock.advance(10)
    response = await swr.fetch("mail", SummaryKind.WEEK, refresh)
    assert refresh.calls == 1
    assert response.from_cache is True
    assert response.is_stale is False
    assert response.cache_age_ms == 10_000


@pytest.mark.asyncio
async def test_stale_hit_returns_old_payload_and_refreshes(store: SqliteStore, clock: FakeClock) -> None:
    """Summary: Verify a stale hit serves the old payload and refreshes later.

    Importance: Callers see data immediately; the next read sees the new payload.
    Alternatives: Block until the refresh completes.
    """

    tasks = BackgroundTasks()
    cache, swr = _build(store, clock, tasks)
    refresh = CountingRefresh()
    await swr.fetch("chat", SummaryKind.TODAY, refresh)
    clock.advance(MAX_AGE + 1)

    response = await swr.fetch("chat", SummaryKind.TODAY, refresh)
    assert response.payload == "payload 1"
    assert response.from_cache is True
    assert response.is_stale is True
    assert response.to_dict()["is_stale"] is True

    await tasks.drain()
    assert refresh.calls == 2
    follow_up = await swr.fetch("chat", SummaryKind.TODAY, refresh)
    assert follow_up.payload == "payload 2"
    assert follow_up.is_stale is False


@pytest.mark.asyncio
async def test_stale_hit_does_not_wait_for_refresh(store: SqliteStore, clock: FakeClock) -> None:
    """Summary: Verify a stale read returns before the refresh finishes.

    Importance: Callers never block on a slow model when old data exists.
    Alternatives: Await the refresh on stale reads.
    """

    tasks = BackgroundTasks()
    cache, swr = _build(store, clock, tasks)
    cache.set("workspace", SummaryKind.ACTIONS, "old")
    clock.advance(MAX_AGE + 1)
    release = asyncio.Event()

    async def slow_refresh() -> str:
        await release.wait()
        return "new"

    response = await swr.fetch("workspace", SummaryKind.ACTIONS, slow_refresh)
    assert response.payload == "old"
    assert swr.in_flight("workspace", SummaryKind.ACTIONS)

    release.set()
    await tasks.drain()
    assert not swr.in_flight("workspace", SummaryKind.ACTIONS)
    assert cache.get("workspace", SummaryKind.ACTIONS).payload == "new"


@pytest.mark.asyncio
async def test_concurrent_stale_reads_share_one_refresh(store: SqliteStore, clock: FakeClock) -> None:
    """Summary: Verify only one background refresh runs per key.

    Importance: Repeated stale reads must not stampede the AI provider.
    Alternatives: Let every stale read spawn its own refresh.
    """

    tasks = BackgroundTasks()
    cache, swr = _build(store, clock, tasks)
    cache.set("chat", SummaryKind.WEEK, "old")
    clock.advance(MAX_AGE + 1)
    release = asyncio.Event()
    calls = 0

    async def slow_refresh() -> str:
        nonlocal calls
        calls += 1
        await release.wait()
        return "new"

    for _ in range(3):
        response = await swr.fetch("chat", SummaryKind.WEEK, slow_refresh)
        assert response.is_stale is True
    assert tasks.pending == 1

    release.set()
    await tasks.drain()
    assert calls == 1


@pytest.mark.asyncio
async def test_background_refresh_error_is_reported(store: SqliteStore, clock: FakeClock) -> None:
    """Summary: Verify a failing background refresh reaches the error hook.

    Importance: Background failures are logged, never raised to the reader.
    Alternatives: Drop background errors silently.
    """

    errors: list[tuple[str, BaseException]] = []
    tasks = BackgroundTasks(on_error=lambda name, exc: errors.append((name, exc)))
    cache, swr = _build(store, clock, tasks)
    cache.set("mail", SummaryKind.TODAY, "old")
    clock.advance(MAX_AGE + 1)

    async def broken() -> str:
        raise RuntimeError("model offline")

    response = await swr.fetch("mail", SummaryKind.TODAY, broken)
    assert response.payload == "old"
    await tasks.drain()

    assert len(errors) == 1
    assert errors[0][0] == "refresh:cache.mail.today"
    assert str(errors[0][1]) == "model offline"
    assert cache.get("mail", SummaryKind.TODAY).payload == "old"


@pytest.mark.asyncio
async def test_forced_refresh_bypasses_cache_and_propagates(store: SqliteStore, clock: FakeClock) -> None:
    """Summary: Verify a forced refresh ignores the cache and raises on failure.

    Importance: Users asking for a fresh digest must see errors.
    Alternatives: Fall back to the cached entry.
    """

    cache, swr = _build(store, clock)
    cache.set("chat", SummaryKind.TODAY, "cached")
    refresh = CountingRefresh()
    response = await swr.fetch("chat", SummaryKind.TODAY, refresh, force_refresh=True)
    assert response.payload == "payload 1"
    assert response.from_cache is False

    async def broken() -> str:
        raise RuntimeError("boom")

    with pytest.raises(RuntimeError, match="boom"):
        await swr.fetch("chat", SummaryKind.TODAY, broken, force_refresh=True)
    assert cache.get("chat", SummaryKind.TODAY).payload == "payload 1"


@pytest.mark.asyncio
async def test_cached_entries_survive_a_new_cache_instance(store: SqliteStore, clock: FakeClock) -> None:
    """Summary: Verify cached summaries persist in the store.

    Importance: Digests survive restarts.
    Alternatives: Keep the cache in memory only.
    """

    _, swr = _build(store, clock)
    await swr.fetch("combined", SummaryKind.DAILY_COMBINED, CountingRefresh())

    _, restarted = _build(store, clock)
    refresh = CountingRefresh()
    response = await restarted.fetch("combined", SummaryKind.DAILY_COMBINED, refresh)
    assert response.from_cache is True
    assert response.payload == "payload 1"
    assert refresh.calls == 0
