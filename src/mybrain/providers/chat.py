"""Summary: Chat source adapter and clients.

Importance: Turns chat exports into per-chat digests and incremental message syncs.
Alternatives: Drive a chat web client directly from the core.
"""

from __future__ import annotations

import json
import logging
import time
from abc import ABC, abstractmethod
from collections import defaultdict
from dataclasses import asdict
from datetime import datetime
from pathlib import Path
from typing import Any, Callable

from mybrain.analytics import analyze_chat_messages, format_sender, overall_chat_summary
from mybrain.errors import NotAuthenticatedError
from mybrain.models import ChatContainer, ChatMessage, FetchBatch, Source, SyncWindow
from mybrain.providers.base import SourceAdapter
from mybrain.storage.sqlite_store import SqliteStore
from mybrain.sync import IncrementalSyncEngine
from mybrain.tasks import BackgroundTasks
from mybrain.time_filters import TimeFilter, cutoff_for


logger = logging.getLogger(__name__)

DEFAULT_CONTAINER_CAP = 50
VIEW_CHAT_LIMIT = 30
VIEW_LIST_LIMIT = 10


class ChatClient(ABC):
    """Summary: Abstract interface for a chat account.

    Importance: Hides how chats are obtained from the adapter.
    Alternatives: Pass raw export dicts around.
    """

    @abstractmethod
    def list_chats(self) -> list[ChatContainer]:
        """Return chats, most recently active first."""

    @abstractmethod
    def fetch_messages(self, chat_id: str, limit: int) -> list[ChatMessage]:
        """Return up to ``limit`` messages for a chat, newest first."""

    def count_saved_contacts(self) -> int:
        return 0


class FixtureChatClient(ChatClient):
    """Summary: Loads chats from a local JSON export.

    Importance: Supports offline demos and tests.
    Alternatives: Use SQLite fixtures or generate synthetic chats.
    """

    def __init__(self, fixture_path: Path, clock: Callable[[], float] = time.time) -> None:
        self._fixture_path = fixture_path
        self._clock = clock

    def list_chats(self) -> list[ChatContainer]:
        chats = [self._container(item) for item in self._load().get("chats", [])]
        return sorted(chats, key=lambda chat: chat.last_message_at, reverse=True)

    def fetch_messages(self, chat_id: str, limit: int) -> list[ChatMessage]:
        for item in self._load().get("chats", []):
            if item["id"] == chat_id:
                messages = [self._message(item, raw) for raw in item.get("messages", [])]
                messages.sort(key=lambda message: message.timestamp, reverse=True)
                return messages[:limit]
        return []

    def count_saved_contacts(self) -> int:
        return int(self._load().get("saved_contacts", 0))

    def _load(self) -> dict[str, Any]:
        if not self._fixture_path.exists():
            raise NotAuthenticatedError(f"Chat export not found: {self._fixture_path}")
        return json.loads(self._fixture_path.read_text(encoding="utf-8"))

    def _container(self, item: dict[str, Any]) -> ChatContainer:
        timestamps = [self._timestamp(raw) for raw in item.get("messages", [])]
        return ChatContainer(
            id=item["id"],
            name=item.get("name") or item["id"],
            is_group=bool(item.get("is_group", False)),
            participant_count=int(item.get("participant_count", 0)),
            last_message_at=max(timestamps, default=0),
            unread_count=int(item.get("unread_count", 0)),
        )

    def _message(self, chat: dict[str, Any], raw: dict[str, Any]) -> ChatMessage:
        timestamp = self._timestamp(raw)
        return ChatMessage(
            id=raw.get("id") or f"{chat['id']}_{timestamp}",
            chat_id=chat["id"],
            chat_name=chat.get("name") or chat["id"],
            is_group=bool(chat.get("is_group", False)),
            sender=format_sender(raw.get("sender")),
            body=raw.get("body", ""),
            timestamp=timestamp,
            from_me=bool(raw.get("from_me", False)),
            has_media=bool(raw.get("has_media", False)),
        )

    def _timestamp(self, raw: dict[str, Any]) -> int:
        if "timestamp" in raw:
            return int(raw["timestamp"])
        return int(self._clock() - float(raw.get("minutes_ago", 0)) * 60)


class ChatAdapter(SourceAdapter[ChatClient]):
    """Summary: Chat source adapter.

    Importance: Scans at most ``container_cap`` chats per sync; quieter chats are
    skipped until they become recent enough to make the cut.
    Alternatives: Page through every chat on each sync.
    """

    source = Source.CHAT
    display_name = "Chat"

    def __init__(
        self,
        store: SqliteStore,
        engine: IncrementalSyncEngine,
        tasks: BackgroundTasks,
        client: ChatClient | None = None,
        container_cap: int = DEFAULT_CONTAINER_CAP,
        clock: Callable[[], float] = time.time,
    ) -> None:
        super().__init__(store, engine, tasks, client=client, clock=clock)
        self._container_cap = container_cap

    async def fetch_candidates(self, window: SyncWindow) -> FetchBatch:
        client = self.client
        chats = await self._call(client.list_chats)
        scanned = chats[: self._container_cap]
        if len(chats) > len(scanned):
            logger.info(
                "Skipping %s chats beyond the cap of %s this cycle.",
                len(chats) - len(scanned),
                self._container_cap,
            )
        records: list[ChatMessage] = []
        total_checked = 0
        for chat in scanned:
            self._store.upsert_chat_container(chat)
            messages = await self._call(client.fetch_messages, chat.id, window.fetch_limit)
            total_checked += len(messages)
            records.extend(messages)
        return FetchBatch(records=records, total_checked=total_checked)

    async def build_view(self, time_filter: TimeFilter) -> dict[str, Any]:
        """Summary: Per-chat digests for the most recent chats.

        Importance: Groups and direct chats are ranked by unread count, then activity.
        Alternatives: Return a flat message list.
        """

        client = self.client
        now = self._clock()
        cutoff = cutoff_for(time_filter, now)
        limit = 500 if time_filter is TimeFilter.MONTH else 100
        chats = await self._call(client.list_chats)

        groups: list[dict[str, Any]] = []
        contacts: list[dict[str, Any]] = []
        total_unread = 0
        timestamps: list[int] = []
        for chat in chats[:VIEW_CHAT_LIMIT]:
            total_unread += chat.unread_count
            messages = await self._call(client.fetch_messages, chat.id, limit)
            filtered = [m for m in messages if cutoff is None or m.timestamp >= cutoff]
            if not filtered:
                continue
            timestamps.extend(message.timestamp for message in filtered)
            summary = _chat_summary(chat, filtered, time_filter, now)
            (groups if chat.is_group else contacts).append(summary)

        def rank(summary: dict[str, Any]) -> tuple[int, int]:
            return (-summary["unread_count"], -summary["last_activity"])

        groups.sort(key=rank)
        contacts.sort(key=rank)
        saved_contacts = await self._call(client.count_saved_contacts)
        return {
            "total_unread": total_unread,
            "total_chats": len(chats),
            "total_groups": len(groups),
            "total_contacts": len(contacts),
            "saved_contacts": saved_contacts,
            "overall_summary": overall_chat_summary(groups, contacts, total_unread),
            "chats": groups[:VIEW_LIST_LIMIT] + contacts[:VIEW_LIST_LIMIT],
            "group_summaries": groups[:VIEW_LIST_LIMIT],
            "contact_summaries": contacts[:VIEW_LIST_LIMIT],
            "oldest_message_at": min(timestamps) if timestamps else None,
            "newest_message_at": max(timestamps) if timestamps else None,
        }

    def get_from_database(self, time_filter: TimeFilter | str = TimeFilter.ALL) -> dict[str, Any]:
        messages = self._store.query(Source.CHAT, time_filter, now=self._clock())
        chats = self._store.list_chat_containers()
        by_chat: dict[str, list[dict[str, Any]]] = defaultdict(list)
        for message in messages:
            by_chat[message.chat_id].append(asdict(message))
        return {
            "authenticated": True,
            "from_database": True,
            "total_messages": len(messages),
            "total_chats": len(chats),
            "chats": [{**asdict(chat), "messages": by_chat.get(chat.id, [])} for chat in chats],
            "last_updated": self._iso_now(),
        }


def _chat_summary(
    chat: ChatContainer, messages: list[ChatMessage], time_filter: TimeFilter, now: float
) -> dict[str, Any]:
    analysis = analyze_chat_messages(messages, chat.is_group, now)
    summary: dict[str, Any] = {
        "id": chat.id,
        "name": chat.name,
        "is_group": chat.is_group,
        "unread_count": chat.unread_count,
        "time_filter": time_filter.value,
        "last_activity": messages[0].timestamp if messages else chat.last_message_at,
        "message_count": len(messages),
        "message_excerpts": [
            {
                "text": message.body[:200],
                "sender": message.sender,
                "from_me": message.from_me,
                "time": datetime.fromtimestamp(message.timestamp).strftime("%H:%M"),
            }
            for message in messages
            if len(message.body) > 5
        ][:20],
        **analysis,
    }
    if chat.is_group:
        summary["participant_count"] = chat.participant_count
        summary["active_participants"] = analysis.get("active_senders", [])[:5]
    return summary
