"""Summary: Tests for source adapters.

Importance: Ensures connection gates, background syncs, and per-source views behave correctly.
Alternatives: Exercise adapters only through the HTTP API.
"""

from __future__ import annotations

from pathlib import Path

import pytest

from conftest import (
    NOW,
    FakeClock,
    MemoryMailClient,
    make_chat_message,
    make_mail_message,
    sample_chat_client,
)
from mybrain.errors import NotAuthenticatedError, ProviderRequestError
from mybrain.models import ChatContainer, Source
from mybrain.providers.base import SESSION_EXPIRED
from mybrain.providers.chat import ChatAdapter, FixtureChatClient
from mybrain.providers.mail import FixtureMailClient, MailAdapter
from mybrain.providers.workspace import FixtureWorkspaceClient, WorkspaceAdapter
from mybrain.storage.sqlite_store import SqliteStore
from mybrain.sync import IncrementalSyncEngine
from mybrain.tasks import BackgroundTasks


DATA_DIR = Path(__file__).resolve().parents[1] / "data"


def _chat_adapter(
    store: SqliteStore, clock: FakeClock, tasks: BackgroundTasks, client=None, container_cap: int = 50
) -> ChatAdapter:
    engine = IncrementalSyncEngine(store, clock=clock)
    return ChatAdapter(store, engine, tasks, client=client, container_cap=container_cap, clock=clock)


def _mail_adapter(store: SqliteStore, clock: FakeClock, tasks: BackgroundTasks, client=None) -> MailAdapter:
    return MailAdapter(store, IncrementalSyncEngine(store, clock=clock), tasks, client=client, clock=clock)


@pytest.mark.asyncio
async def test_disconnected_adapter_returns_not_authenticated(store: SqliteStore, clock: FakeClock) -> None:
    """Summary: Verify a source without a client never touches the network.

    Importance: Disconnected sources report a structured result and spawn no sync.
    Alternatives: Raise and let callers check connectivity first.
    """

    tasks = BackgroundTasks()
    adapter = _chat_adapter(store, clock, tasks)
    view = await adapter.get_summary("week")
    assert view.authenticated is False
    assert view.to_dict() == {"source": "chat", "authenticated": False, "error": "Chat not connected"}
    assert tasks.pending == 0

    result = await adapter.sync_to_database()
    assert result.success is False
    assert result.authenticated is False


@pytest.mark.asyncio
async def test_chat_view_ranks_chats_and_syncs_in_background(store: SqliteStore, clock: FakeClock) -> None:
    """Summary: Verify the chat view ranks by unread and syncs afterwards.

    Importance: Busy chats lead the digest and storage catches up in the background.
    Alternatives: Sync before building the view.
    """

    tasks = BackgroundTasks()
    adapter = _chat_adapter(store, clock, tasks, client=sample_chat_client())

    view = await adapter.get_summary("week")
    assert view.ok
    payload = view.payload
    assert [group["name"] for group in payload["group_summaries"]] == ["Family", "Launch Team"]
    assert [contact["name"] for contact in payload["contact_summaries"]] == ["Priya"]
    assert payload["total_unread"] == 9
    assert payload["total_chats"] == 3
    assert payload["saved_contacts"] == 3
    assert payload["oldest_message_at"] == int(NOW - 600)
    assert payload["newest_message_at"] == int(NOW - 30)
    assert payload["time_filter"] == "week"
    assert payload["group_summaries"][0]["participant_count"] == 5

    await tasks.drain()
    assert store.count_records(Source.CHAT) == 4
    assert store.get_last_sync_time(Source.CHAT) == int(NOW)


@pytest.mark.asyncio
async def test_chats_with_equal_unread_rank_by_activity(store: SqliteStore, clock: FakeClock) -> None:
    """Summary: Verify ties on unread count fall back to last activity.

    Importance: Recently active chats come first among equals.
    Alternatives: Sort alphabetically on ties.
    """

    quiet = ChatContainer("quiet", "Quiet", True, last_message_at=int(NOW - 900), unread_count=2)
    client = sample_chat_client()
    client.chats.append(quiet)
    client.messages[quiet.id] = [make_chat_message("q-1", quiet, NOW - 900, "Anyone around")]
    tasks = BackgroundTasks()
    adapter = _chat_adapter(store, clock, tasks, client=client)

    view = await adapter.get_summary("all")
    assert [group["name"] for group in view.payload["group_summaries"]] == ["Family", "Launch Team", "Quiet"]
    await tasks.drain()


@pytest.mark.asyncio
async def test_chat_sync_scans_only_capped_containers(store: SqliteStore, clock: FakeClock) -> None:
    """Summary: Verify chats beyond the cap are skipped for the cycle.

    Importance: Bounds the cost of each sync on accounts with many chats.
    Alternatives: Page through every chat on each sync.
    """

    client = sample_chat_client()
    adapter = _chat_adapter(store, clock, BackgroundTasks(), client=client, container_cap=2)
    result = await adapter.sync_to_database()
    assert result.success is True
    assert result.new_count == 3
    assert sorted(client.fetched) == ["family", "launch"]
    assert [chat.id for chat in store.list_chat_containers()] == ["launch", "family"]


@pytest.mark.asyncio
async def test_expired_session_flips_adapter_to_disconnected(store: SqliteStore, clock: FakeClock) -> None:
    """Summary: Verify an expired session disconnects the adapter until reconnect.

    Importance: A dead session stops hammering the provider.
    Alternatives: Retry with the expired session.
    """

    tasks = BackgroundTasks()
    client = sample_chat_client()
    client.expired = True
    adapter = _chat_adapter(store, clock, tasks, client=client)

    view = await adapter.get_summary()
    await tasks.drain()
    assert view.authenticated is False
    assert view.error == SESSION_EXPIRED
    assert adapter.is_connected is False
    assert (await adapter.get_summary()).error == "Chat not connected"
    with pytest.raises(NotAuthenticatedError):
        adapter.client

    client.expired = False
    adapter.connect(client)
    assert adapter.is_connected is True


@pytest.mark.asyncio
async def test_sync_reports_expired_session(store: SqliteStore, clock: FakeClock) -> None:
    """Summary: Verify a sync on an expired session returns a failure value.

    Importance: The watermark stays unset until a real sync succeeds.
    Alternatives: Raise NotAuthenticatedError to the caller.
    """

    client = sample_chat_client()
    client.expired = True
    adapter = _chat_adapter(store, clock, BackgroundTasks(), client=client)
    result = await adapter.sync_to_database()
    assert result.to_dict() == {"error": SESSION_EXPIRED, "authenticated": False}
    assert store.get_watermark(Source.CHAT) is None


def test_disconnect_resets_watermark(store: SqliteStore, clock: FakeClock) -> None:
    """Summary: Verify disconnecting clears the source watermark.

    Importance: Reconnecting starts a full window sync.
    Alternatives: Keep the old watermark.
    """

    adapter = _chat_adapter(store, clock, BackgroundTasks(), client=sample_chat_client())
    store.set_watermark(Source.CHAT, 4, synced_at=int(NOW))
    adapter.disconnect()
    assert adapter.is_connected is False
    assert store.get_watermark(Source.CHAT) is None


@pytest.mark.asyncio
async def test_mail_provider_errors_become_failure_views(store: SqliteStore, clock: FakeClock) -> None:
    """Summary: Verify provider errors become error views, and expiry disconnects.

    Importance: Errors are values at the adapter boundary.
    Alternatives: Raise provider errors to the caller.
    """

    tasks = BackgroundTasks()
    client = MemoryMailClient([make_mail_message("m-1", NOW - 60)])
    adapter = _mail_adapter(store, clock, tasks, client=client)

    client.fail_with = ProviderRequestError("Gmail API request failed: 500")
    view = await adapter.get_summary()
    assert view.authenticated is True
    assert view.error == "Gmail API request failed: 500"
    await tasks.drain()
    assert store.get_watermark(Source.MAIL) is None

    client.fail_with = NotAuthenticatedError("Gmail session expired")
    assert (await adapter.get_summary()).error == SESSION_EXPIRED
    await tasks.drain()
    assert adapter.is_connected is False


@pytest.mark.asyncio
async def test_fixture_mail_view_categorizes_messages(store: SqliteStore, clock: FakeClock) -> None:
    """Summary: Verify the fixture mail view counts categories and unread mail.

    Importance: The offline demo matches the live view shape.
    Alternatives: Test only the live client.
    """

    tasks = BackgroundTasks()
    client = FixtureMailClient(DATA_DIR / "mail_messages.json", clock=clock)
    adapter = _mail_adapter(store, clock, tasks, client=client)

    view = await adapter.get_summary("week")
    payload = view.payload
    assert payload["unread_count"] == 2
    assert payload["total_emails_analyzed"] == 4
    assert payload["categorized_counts"]["action_required"] == 1
    assert payload["categorized_counts"]["newsletters"] == 1
    assert payload["categorized_counts"]["personal"] == 1
    assert payload["categorized_counts"]["updates"] == 1
    assert payload["recent_emails"][0]["id"] == "mail-1"
    assert payload["summaries"]["action_required"]["count"] == 1

    await tasks.drain()
    offline = adapter.get_from_database("all")
    assert offline["from_database"] is True
    assert offline["total_records"] == 4
    assert offline["records"][0]["id"] == "mail-1"


@pytest.mark.asyncio
async def test_fixture_workspace_view_includes_journey(store: SqliteStore, clock: FakeClock) -> None:
    """Summary: Verify the fixture workspace view carries a journey summary.

    Importance: Journal databases get a timeline.
    Alternatives: Treat every database alike.
    """

    tasks = BackgroundTasks()
    client = FixtureWorkspaceClient(DATA_DIR / "workspace_pages.json", clock=clock)
    adapter = WorkspaceAdapter(store, IncrementalSyncEngine(store, clock=clock), tasks, client=client, clock=clock)

    view = await adapter.get_summary("week")
    payload = view.payload
    assert payload["total_pages"] == 2
    assert payload["total_databases"] == 1
    assert [page["id"] for page in payload["recent_pages"]] == ["page-1", "page-2"]
    journey = payload["journey_summary"]
    assert journey["title"] == "My Journey"
    assert journey["total_entries"] == 2
    assert journey["timeline"]["this_week"] == 2
    assert [entry["id"] for entry in journey["recent_entries"]] == ["entry-1", "entry-2"]

    await tasks.drain()
    assert store.count_records(Source.WORKSPACE) == 2


@pytest.mark.asyncio
async def test_fixture_chat_offline_view_groups_by_chat(store: SqliteStore, clock: FakeClock) -> None:
    """Summary: Verify the offline chat view groups stored messages by chat.

    Importance: Stored data stays readable without a live session.
    Alternatives: Return a flat message list.
    """

    client = FixtureChatClient(DATA_DIR / "chat_export.json", clock=clock)
    adapter = _chat_adapter(store, clock, BackgroundTasks(), client=client)
    result = await adapter.sync_to_database()
    assert result.new_count == 9

    offline = adapter.get_from_database("week")
    assert offline["total_messages"] == 9
    assert offline["total_chats"] == 3
    family = next(chat for chat in offline["chats"] if chat["name"] == "Family Chat")
    assert len(family["messages"]) == 4
    assert family["messages"][0]["sender"] == "+15550003"


@pytest.mark.asyncio
async def test_missing_fixture_counts_as_not_authenticated(
    store: SqliteStore, clock: FakeClock, tmp_path: Path
) -> None:
    """Summary: Verify a missing fixture behaves like an expired session.

    Importance: Fixture and live clients fail the same way.
    Alternatives: Raise FileNotFoundError.
    """

    tasks = BackgroundTasks()
    client = FixtureChatClient(tmp_path / "missing.json", clock=clock)
    adapter = _chat_adapter(store, clock, tasks, client=client)
    view = await adapter.get_summary()
    await tasks.drain()
    assert view.authenticated is False
    assert view.error == SESSION_EXPIRED
