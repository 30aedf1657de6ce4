"""Summary: Domain model dataclasses for MyBrain.

Importance: Defines the records, watermarks, and results shared by sync, cache, and providers.
Alternatives: Use Pydantic models or ORM classes directly.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from enum import Enum
from typing import Any, Union


class Source(str, Enum):
    """Summary: Data sources aggregated by MyBrain.

    Importance: Scopes records, watermarks, and cache keys.
    Alternatives: Use free-form provider names.
    """

    CHAT = "chat"
    MAIL = "mail"
    WORKSPACE = "workspace"

    @staticmethod
    def parse(value: "str | Source") -> "Source":
        if isinstance(value, Source):
            return value
        try:
            return Source(value.lower())
        except ValueError as exc:
            raise ValueError(f"Unknown source: {value}") from exc


class SummaryKind(str, Enum):
    """Summary: Kinds of AI summaries that can be cached.

    Importance: Second half of every cache key.
    Alternatives: Cache one summary per source only.
    """

    TODAY = "today"
    WEEK = "week"
    ACTIONS = "actions"
    DAILY_COMBINED = "daily-combined"

    @staticmethod
    def parse(value: "str | SummaryKind") -> "SummaryKind":
        if isinstance(value, SummaryKind):
            return value
        try:
            return SummaryKind(value.lower())
        except ValueError as exc:
            raise ValueError(f"Unknown summary kind: {value}") from exc


@dataclass(frozen=True)
class ChatContainer:
    """Summary: A chat (group or direct conversation) on the chat source.

    Importance: Sync walks containers in activity order and caps how many it scans.
    Alternatives: Store only messages and derive chats on read.
    """

    id: str
    name: str
    is_group: bool
    participant_count: int = 0
    last_message_at: int = 0
    unread_count: int = 0


@dataclass(frozen=True)
class ChatMessage:
    """Summary: A normalized chat message.

    Importance: Unit stored by chat sync and summarized for daily digests.
    Alternatives: Keep raw provider payloads.
    """

    id: str
    chat_id: str
    chat_name: str
    is_group: bool
    sender: str
    body: str
    timestamp: int
    from_me: bool = False
    has_media: bool = False


@dataclass(frozen=True)
class MailMessage:
    """Summary: A normalized email message.

    Importance: Unit stored by mail sync and categorized for summaries.
    Alternatives: Store full MIME messages.
    """

    id: str
    thread_id: str
    from_email: str
    from_name: str
    to_email: str
    subject: str
    snippet: str
    body_preview: str
    timestamp: int
    is_unread: bool = False
    labels: tuple[str, ...] = ()
    category: str = "personal"


@dataclass(frozen=True)
class WorkspacePage:
    """Summary: A normalized workspace page.

    Importance: Unit stored by workspace sync; its edit time is its timestamp.
    Alternatives: Store only page titles and links.
    """

    id: str
    title: str
    parent_id: str | None
    parent_type: str
    url: str
    created_time: int
    last_edited_time: int
    content_preview: str = ""
    properties: dict[str, Any] = field(default_factory=dict)

    @property
    def timestamp(self) -> int:
        return self.last_edited_time


NormalizedRecord = Union[ChatMessage, MailMessage, WorkspacePage]


@dataclass(frozen=True)
class SyncWatermark:
    """Summary: Last successful sync point for a source.

    Importance: Bounds the next incremental pull.
    Alternatives: Track a cursor per container.
    """

    source: Source
    last_sync_at: int
    records_synced: int


@dataclass(frozen=True)
class SyncWindow:
    """Summary: The time window and fetch limit chosen for one sync pass.

    Importance: Handed to adapters so they fetch only what the pass needs.
    Alternatives: Let adapters read the watermark themselves.
    """

    source: Source
    sync_from: int
    floor: int
    is_incremental: bool
    fetch_limit: int
    started_at: int


@dataclass(frozen=True)
class FetchBatch:
    """Candidate records returned by an adapter before window filtering."""

    records: list[NormalizedRecord]
    total_checked: int


@dataclass(frozen=True)
class SyncResult:
    """Summary: Outcome of a sync pass.

    Importance: Sync never raises to opportunistic callers; this carries success or error.
    Alternatives: Raise exceptions and let callers catch them.
    """

    source: Source
    success: bool
    new_count: int = 0
    total_checked: int = 0
    is_incremental: bool = False
    error: str | None = None
    authenticated: bool = True

    @staticmethod
    def failure(source: Source, error: str, authenticated: bool = True) -> "SyncResult":
        return SyncResult(source=source, success=False, error=error, authenticated=authenticated)

    def to_dict(self) -> dict[str, Any]:
        if not self.success:
            return {"error": self.error, "authenticated": self.authenticated}
        return {
            "success": True,
            "new_count": self.new_count,
            "total_checked": self.total_checked,
            "is_incremental": self.is_incremental,
        }


@dataclass(frozen=True)
class CacheEntry:
    """Summary: A cached summary payload with its creation time.

    Importance: Age and staleness are derived from created_at_ms at read time.
    Alternatives: Store an explicit expiry timestamp.
    """

    scope: str
    kind: SummaryKind
    payload: Any
    created_at_ms: int

    def age_ms(self, now_ms: int) -> int:
        return now_ms - self.created_at_ms

    def is_stale(self, now_ms: int, max_age_ms: int) -> bool:
        return self.age_ms(now_ms) > max_age_ms


@dataclass(frozen=True)
class CacheLookup:
    """Result of a cache read: the payload plus derived freshness fields."""

    payload: Any
    created_at_ms: int
    age_ms: int
    is_stale: bool


@dataclass(frozen=True)
class ProviderSummary:
    """Summary: Live view returned by a provider adapter.

    Importance: Common fields (authenticated, error) are required; the payload varies per source.
    Alternatives: Return ad hoc dicts from each provider.
    """

    source: Source
    authenticated: bool
    payload: dict[str, Any] = field(default_factory=dict)
    error: str | None = None

    @property
    def ok(self) -> bool:
        return self.authenticated and self.error is None

    @staticmethod
    def success(source: Source, payload: dict[str, Any]) -> "ProviderSummary":
        return ProviderSummary(source=source, authenticated=True, payload=payload)

    @staticmethod
    def not_authenticated(source: Source, error: str) -> "ProviderSummary":
        return ProviderSummary(source=source, authenticated=False, error=error)

    @staticmethod
    def failure(source: Source, error: str) -> "ProviderSummary":
        return ProviderSummary(source=source, authenticated=True, error=error)

    def to_dict(self) -> dict[str, Any]:
        data: dict[str, Any] = {"source": self.source.value, "authenticated": self.authenticated}
        if self.error is not None:
            data["error"] = self.error
        data.update(self.payload)
        return data


@dataclass(frozen=True)
class SummaryResponse:
    """Summary: Response of a cached summary request.

    Importance: Carries cache provenance so callers can show stale data while refreshing.
    Alternatives: Return only the payload and hide cache state.
    """

    payload: Any = None
    from_cache: bool = False
    is_stale: bool = False
    cache_age_ms: int | None = None
    error: str | None = None
    date_range: str | None = None

    @staticmethod
    def failure(error: str) -> "SummaryResponse":
        return SummaryResponse(error=error)

    def to_dict(self) -> dict[str, Any]:
        if self.error is not None:
            return {"error": self.error}
        data: dict[str, Any] = {"summary": self.payload, "from_cache": self.from_cache}
        if self.from_cache:
            data["cache_age_ms"] = self.cache_age_ms
        if self.is_stale:
            data["is_stale"] = True
        if self.date_range:
            data["date_range"] = self.date_range
        return data
