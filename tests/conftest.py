"""Summary: Shared pytest fixtures for MyBrain tests.

Importance: Provides deterministic clocks, AI providers, and in-memory clients.
Alternatives: Duplicate fakes in every test module.
"""

from __future__ import annotations

from pathlib import Path
from typing import Any, Callable

import pytest

from mybrain.ai import AiProvider
from mybrain.config import AppConfig
from mybrain.errors import NotAuthenticatedError, SummarizerError
from mybrain.models import ChatContainer, ChatMessage, MailMessage
from mybrain.providers.chat import ChatClient
from mybrain.providers.mail import MailClient
from mybrain.storage.sqlite_store import SqliteStore


NOW = 1_760_000_000.0


class FakeClock:
    """Summary: Manually advanced clock.

    Importance: Lets cache staleness and sync windows be tested without sleeping.
    Alternatives: Patch time.time globally.
    """

    def __init__(self, now: float = NOW) -> None:
        self.now = now

    def __call__(self) -> float:
        return self.now

    def advance(self, seconds: float) -> None:
        self.now += seconds


class RecordingAiProvider(AiProvider):
    """AI provider that records prompts and can be told to fail."""

    def __init__(self) -> None:
        self.calls: list[tuple[str, str]] = []
        self.fail = False

    def generate_text(self, prompt: str, purpose: str, system: str | None = None) -> tuple[str, int]:
        self.calls.append((purpose, prompt))
        if self.fail:
            raise SummarizerError("AI unavailable")
        return f"summary {len(self.calls)} for {purpose}", 0


class MemoryChatClient(ChatClient):
    """In-memory chat client that records which chats were fetched."""

    def __init__(self, chats: list[ChatContainer], messages: dict[str, list[ChatMessage]]) -> None:
        self.chats = chats
        self.messages = messages
        self.fetched: list[str] = []
        self.expired = False

    def list_chats(self) -> list[ChatContainer]:
        if self.expired:
            raise NotAuthenticatedError("session expired")
        return sorted(self.chats, key=lambda chat: chat.last_message_at, reverse=True)

    def fetch_messages(self, chat_id: str, limit: int) -> list[ChatMessage]:
        self.fetched.append(chat_id)
        items = sorted(self.messages.get(chat_id, []), key=lambda m: m.timestamp, reverse=True)
        return items[:limit]

    def count_saved_contacts(self) -> int:
        return 3


class MemoryMailClient(MailClient):
    """In-memory mailbox honoring the ``after`` bound."""

    def __init__(self, messages: list[MailMessage]) -> None:
        self.messages = messages
        self.fail_with: Exception | None = None

    def list_messages(self, after: int, limit: int) -> list[MailMessage]:
        if self.fail_with is not None:
            raise self.fail_with
        items = [message for message in self.messages if message.timestamp > after]
        return sorted(items, key=lambda m: m.timestamp, reverse=True)[:limit]

    def unread_count(self) -> int:
        return sum(1 for message in self.messages if message.is_unread)


def sample_chat_client() -> MemoryChatClient:
    """Two group chats and one direct chat, all active in the last ten minutes."""

    family = ChatContainer(
        "family", "Family", True, participant_count=5, last_message_at=int(NOW - 60), unread_count=7
    )
    launch = ChatContainer(
        "launch", "Launch Team", True, participant_count=9, last_message_at=int(NOW - 30), unread_count=2
    )
    priya = ChatContainer("priya", "Priya", False, last_message_at=int(NOW - 600), unread_count=0)
    messages = {
        family.id: [
            make_chat_message("f-1", family, NOW - 120, "Dinner on saturday", sender="+1"),
            make_chat_message("f-2", family, NOW - 60, "Saturday dinner works", sender="+2"),
        ],
        launch.id: [make_chat_message("l-1", launch, NOW - 30, "Launch demo confirmed")],
        priya.id: [make_chat_message("p-1", priya, NOW - 600, "Congratulations on the launch")],
    }
    return MemoryChatClient([family, launch, priya], messages)


def make_chat_message(
    message_id: str,
    chat: ChatContainer,
    timestamp: float,
    body: str = "hello there",
    sender: str = "+15550001",
) -> ChatMessage:
    return ChatMessage(
        id=message_id,
        chat_id=chat.id,
        chat_name=chat.name,
        is_group=chat.is_group,
        sender=sender,
        body=body,
        timestamp=int(timestamp),
    )


def make_mail_message(message_id: str, timestamp: float, **overrides: Any) -> MailMessage:
    values: dict[str, Any] = {
        "id": message_id,
        "thread_id": f"thread-{message_id}",
        "from_email": "sender@example.com",
        "from_name": "Sender",
        "to_email": "me@example.com",
        "subject": f"Subject {message_id}",
        "snippet": "snippet",
        "body_preview": "body",
        "timestamp": int(timestamp),
    }
    values.update(overrides)
    return MailMessage(**values)


@pytest.fixture
def clock() -> FakeClock:
    return FakeClock()


@pytest.fixture
def ai_provider() -> RecordingAiProvider:
    return RecordingAiProvider()


@pytest.fixture
def store(tmp_path: Path) -> SqliteStore:
    sqlite_store = SqliteStore(str(tmp_path / "test.db"))
    sqlite_store.initialize()
    return sqlite_store


@pytest.fixture
def make_config(tmp_path: Path) -> Callable[..., AppConfig]:
    """Summary: Factory for isolated AppConfig instances.

    Importance: Ensures tests use isolated storage and no network clients.
    Alternatives: Load AppConfig from environment variables.
    """

    def _build(**overrides: Any) -> AppConfig:
        values: dict[str, Any] = {
            "db_path": str(tmp_path / "test.db"),
            "ai_provider": "mock",
            "openai_api_key": None,
            "openai_model": "gpt-4o-mini",
            "ollama_url": "http://localhost:11434",
            "ollama_model": "llama3",
            "anthropic_api_key": None,
            "anthropic_model": "claude-3-5-haiku-20241022",
            "api_host": "127.0.0.1",
            "api_port": 8000,
            "api_key": "",
            "cache_max_age_seconds": 9000.0,
            "sync_window_days": 30,
            "incremental_fetch_limit": 100,
            "full_fetch_limit": 500,
            "chat_container_cap": 50,
            "chat_fixture_path": None,
            "mail_fixture_path": None,
            "workspace_fixture_path": None,
            "gmail_access_token": None,
            "gmail_api_base_url": "https://gmail.googleapis.com/gmail/v1",
            "notion_token": None,
            "notion_api_base_url": "https://api.notion.com/v1",
            "notion_version": "2022-06-28",
            "log_level": "INFO",
        }
        values.update(overrides)
        return AppConfig(**values)

    return _build
