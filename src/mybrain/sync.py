"""Summary: Incremental sync engine shared by all source adapters.

Importance: Decides each sync window from the watermark and a rolling floor, then stores new records.
Alternatives: Let every provider implement its own windowing and watermark logic.
"""

from __future__ import annotations

import logging
import time
from typing import Awaitable, Callable

from mybrain.models import FetchBatch, Source, SyncResult, SyncWindow
from mybrain.storage.sqlite_store import SqliteStore
from mybrain.time_filters import DAY_SECONDS


logger = logging.getLogger(__name__)

DEFAULT_WINDOW_DAYS = 30
DEFAULT_INCREMENTAL_FETCH_LIMIT = 100
DEFAULT_FULL_FETCH_LIMIT = 500

FetchCandidates = Callable[[SyncWindow], Awaitable[FetchBatch]]


def compute_sync_window(
    source: Source,
    last_sync_at: int | None,
    full_sync: bool,
    now: int,
    window_days: int = DEFAULT_WINDOW_DAYS,
    incremental_fetch_limit: int = DEFAULT_INCREMENTAL_FETCH_LIMIT,
    full_fetch_limit: int = DEFAULT_FULL_FETCH_LIMIT,
) -> SyncWindow:
    """Summary: Choose the sync start time and fetch limit for one pass.

    Importance: The window never reaches further back than the rolling floor, and a stale
    watermark falls back to the floor instead of pinning the window.
    Alternatives: Always sync from the watermark, however old it is.
    """

    floor = now - window_days * DAY_SECONDS
    if not full_sync and last_sync_at is not None and last_sync_at > floor:
        sync_from = last_sync_at
    else:
        sync_from = floor
    is_incremental = sync_from > floor
    return SyncWindow(
        source=source,
        sync_from=sync_from,
        floor=floor,
        is_incremental=is_incremental,
        fetch_limit=incremental_fetch_limit if is_incremental else full_fetch_limit,
        started_at=now,
    )


class IncrementalSyncEngine:
    """Summary: Runs sync passes against the local store.

    Importance: Single place that reads and advances watermarks.
    Alternatives: Track sync state inside each adapter.
    """

    def __init__(
        self,
        store: SqliteStore,
        clock: Callable[[], float] = time.time,
        window_days: int = DEFAULT_WINDOW_DAYS,
        incremental_fetch_limit: int = DEFAULT_INCREMENTAL_FETCH_LIMIT,
        full_fetch_limit: int = DEFAULT_FULL_FETCH_LIMIT,
    ) -> None:
        self._store = store
        self._clock = clock
        self._window_days = window_days
        self._incremental_fetch_limit = incremental_fetch_limit
        self._full_fetch_limit = full_fetch_limit

    def plan(self, source: Source, full_sync: bool = False) -> SyncWindow:
        """Compute the window the next sync pass for ``source`` would use."""

        return compute_sync_window(
            source,
            self._store.get_last_sync_time(source),
            full_sync,
            int(self._clock()),
            window_days=self._window_days,
            incremental_fetch_limit=self._incremental_fetch_limit,
            full_fetch_limit=self._full_fetch_limit,
        )

    async def sync(
        self, source: Source, full_sync: bool, fetch: FetchCandidates
    ) -> SyncResult:
        """Summary: Fetch, filter, store, and advance the watermark for one source.

        Importance: A failed pass leaves the watermark alone so the next pass retries the
        same window; failures are returned, never raised.
        Alternatives: Raise and let opportunistic callers deal with it.
        """

        window = self.plan(source, full_sync)
        logger.info(
            "Syncing %s (%s) from %s.",
            source.value,
            "incremental" if window.is_incremental else "full",
            window.sync_from,
        )
        try:
            batch = await fetch(window)
            fresh = [record for record in batch.records if record.timestamp > window.sync_from]
            stored = self._store.bulk_upsert(source, fresh)
            # Advance even when nothing new arrived so the next window moves forward.
            self._store.set_watermark(source, stored, synced_at=window.started_at)
        except Exception as exc:
            logger.warning("Sync failed for %s: %s", source.value, exc)
            return SyncResult.failure(source, str(exc))
        logger.info(
            "Sync complete for %s: %s new records (%s checked).",
            source.value,
            stored,
            batch.total_checked,
        )
        return SyncResult(
            source=source,
            success=True,
            new_count=stored,
            total_checked=batch.total_checked,
            is_incremental=window.is_incremental,
        )
