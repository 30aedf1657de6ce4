"""Summary: Provider adapter contract shared by chat, mail, and workspace sources.

Importance: Gives the core a uniform get_summary/sync_to_database surface per source.
Alternatives: Special-case every source inside the services layer.
"""

from __future__ import annotations

import asyncio
import logging
import time
from abc import ABC, abstractmethod
from dataclasses import asdict
from datetime import datetime, timezone
from typing import Any, Callable, Generic, TypeVar

from mybrain.errors import NotAuthenticatedError
from mybrain.models import FetchBatch, ProviderSummary, Source, SyncResult, SyncWindow
from mybrain.storage.sqlite_store import SqliteStore
from mybrain.sync import IncrementalSyncEngine
from mybrain.tasks import BackgroundTasks
from mybrain.time_filters import TimeFilter


logger = logging.getLogger(__name__)

ClientT = TypeVar("ClientT")

SESSION_EXPIRED = "Session expired. Please re-authenticate."


class SourceAdapter(ABC, Generic[ClientT]):
    """Summary: Base class for one data source.

    Importance: Owns the connection gate, the opportunistic background sync, and
    expired-session handling so variants only fetch and shape data.
    Alternatives: Duck-typed provider objects returning ad hoc dicts.
    """

    source: Source
    display_name: str

    def __init__(
        self,
        store: SqliteStore,
        engine: IncrementalSyncEngine,
        tasks: BackgroundTasks,
        client: ClientT | None = None,
        clock: Callable[[], float] = time.time,
    ) -> None:
        self._store = store
        self._engine = engine
        self._tasks = tasks
        self._client = client
        self._clock = clock
        self._expired = False

    @property
    def is_connected(self) -> bool:
        return self._client is not None and not self._expired

    @property
    def client(self) -> ClientT:
        if self._client is None or self._expired:
            raise NotAuthenticatedError(f"{self.display_name} not connected")
        return self._client

    def connect(self, client: ClientT) -> None:
        """Attach a client and clear any expired-session flag."""

        self._client = client
        self._expired = False
        logger.info("Connected %s.", self.source.value)

    def disconnect(self) -> None:
        """Summary: Drop the client and forget the sync watermark.

        Importance: The next connection starts again from the full window.
        Alternatives: Keep the watermark and risk skipping records from another account.
        """

        self._client = None
        self._expired = False
        self._store.reset_watermark(self.source)
        logger.info("Disconnected %s.", self.source.value)

    async def get_summary(self, time_filter: TimeFilter | str = TimeFilter.ALL) -> ProviderSummary:
        """Summary: Build the live view used for summarization.

        Importance: Kicks off a background sync first; never raises to the caller.
        Alternatives: Read only from the local store.
        """

        parsed = TimeFilter.parse(time_filter)
        if not self.is_connected:
            return ProviderSummary.not_authenticated(self.source, f"{self.display_name} not connected")
        self._tasks.spawn(self.sync_to_database(), name=f"sync:{self.source.value}")
        try:
            payload = await self.build_view(parsed)
        except NotAuthenticatedError:
            self._mark_expired()
            return ProviderSummary.not_authenticated(self.source, SESSION_EXPIRED)
        except Exception as exc:
            logger.warning("%s summary failed: %s", self.display_name, exc)
            return ProviderSummary.failure(self.source, str(exc))
        payload.setdefault("time_filter", parsed.value)
        payload.setdefault("last_updated", self._iso_now())
        return ProviderSummary.success(self.source, payload)

    async def sync_to_database(self, full_sync: bool = False) -> SyncResult:
        """Summary: Pull new records into the local store.

        Importance: Delegates windowing and watermarks to the sync engine.
        Alternatives: Sync inside get_summary and block on it.
        """

        if not self.is_connected:
            return SyncResult.failure(
                self.source, f"{self.display_name} not connected", authenticated=False
            )
        result = await self._engine.sync(self.source, full_sync, self._fetch_for_sync)
        if not self.is_connected and not result.success:
            return SyncResult.failure(self.source, SESSION_EXPIRED, authenticated=False)
        return result

    def get_from_database(self, time_filter: TimeFilter | str = TimeFilter.ALL) -> dict[str, Any]:
        """Summary: Build an offline view from stored records.

        Importance: Keeps something to show when the source is disconnected.
        Alternatives: Return nothing while offline.
        """

        records = self._store.query(self.source, time_filter, now=self._clock())
        return {
            "authenticated": True,
            "from_database": True,
            "total_records": len(records),
            "records": [asdict(record) for record in records],
            "last_updated": self._iso_now(),
        }

    @abstractmethod
    async def fetch_candidates(self, window: SyncWindow) -> FetchBatch:
        """Summary: Fetch candidate records for a sync window.

        Importance: Adapters may over-fetch; the engine filters by timestamp.
        Alternatives: Have adapters filter and persist themselves.
        """

    @abstractmethod
    async def build_view(self, time_filter: TimeFilter) -> dict[str, Any]:
        """Return the source-specific live payload for a time filter."""

    async def _call(self, func: Callable[..., Any], *args: Any) -> Any:
        return await asyncio.to_thread(func, *args)

    async def _fetch_for_sync(self, window: SyncWindow) -> FetchBatch:
        try:
            return await self.fetch_candidates(window)
        except NotAuthenticatedError:
            self._mark_expired()
            raise

    def _mark_expired(self) -> None:
        if not self._expired:
            self._expired = True
            logger.warning("%s session expired; marking disconnected.", self.display_name)

    def _iso_now(self) -> str:
        return datetime.fromtimestamp(self._clock(), tz=timezone.utc).isoformat()
