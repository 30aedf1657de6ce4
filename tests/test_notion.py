"""Summary: Tests for Notion payload parsing.

Importance: Ensures typed Notion pages flatten into stored workspace records.
Alternatives: Record and replay live Notion responses.
"""

from __future__ import annotations

from datetime import datetime, timezone
from typing import Any

import pytest

from conftest import NOW, FakeClock
from mybrain.errors import ProviderRequestError
from mybrain.providers.workspace import (
    NotionApiClient,
    WorkspaceAdapter,
    _extract_block_text,
    _extract_properties,
    _iso_to_epoch,
    _parse_notion_page,
)
from mybrain.storage.sqlite_store import SqliteStore
from mybrain.sync import IncrementalSyncEngine
from mybrain.tasks import BackgroundTasks


def _rich(text: str) -> list[dict[str, str]]:
    return [{"plain_text": text}]


def test_parse_notion_page_flattens_title_and_parent() -> None:
    """Summary: Verify a database entry parses into a WorkspacePage.

    Importance: Title comes from the title-typed property and parent type is simplified.
    Alternatives: Store the raw page object.
    """

    item = {
        "id": "page-9",
        "url": "https://notion.so/page-9",
        "created_time": "2025-10-01T08:00:00.000Z",
        "last_edited_time": "2025-10-09T08:53:20.000Z",
        "parent": {"type": "database_id", "database_id": "db-1"},
        "properties": {
            "Name": {"type": "title", "title": _rich("Weekly review")},
            "Tags": {"type": "multi_select", "multi_select": [{"name": "focus"}, {"name": "health"}]},
        },
    }
    page = _parse_notion_page(item, "preview text")
    assert page.title == "Weekly review"
    assert page.parent_type == "database"
    assert page.parent_id == "db-1"
    assert page.last_edited_time == 1_760_000_000
    assert page.content_preview == "preview text"
    assert page.properties == {"Tags": ["focus", "health"]}


def test_untitled_workspace_page() -> None:
    """Summary: Verify pages without a title property are named Untitled.

    Importance: Digests never show blank titles.
    Alternatives: Skip untitled pages.
    """

    page = _parse_notion_page({"id": "p", "properties": {}}, "")
    assert page.title == "Untitled"
    assert page.parent_type == "workspace"
    assert page.created_time == 0


def test_extract_properties_handles_common_types() -> None:
    """Summary: Verify typed Notion properties flatten to plain values.

    Importance: Themes and filters read plain values.
    Alternatives: Store typed property objects.
    """

    properties = {
        "Status": {"type": "status", "status": {"name": "Done"}},
        "Mood": {"type": "select", "select": {"name": "Calm"}},
        "Empty": {"type": "select", "select": None},
        "When": {"type": "date", "date": {"start": "2025-10-09"}},
        "Notes": {"type": "rich_text", "rich_text": _rich("Felt good")},
        "Done": {"type": "checkbox", "checkbox": True},
        "Score": {"type": "number", "number": 7},
        "Title": {"type": "rich_text", "rich_text": _rich("skipped")},
        "Files": {"type": "files", "files": []},
    }
    assert _extract_properties(properties) == {
        "Status": "Done",
        "Mood": "Calm",
        "Empty": None,
        "When": "2025-10-09",
        "Notes": "Felt good",
        "Done": True,
        "Score": 7,
    }


def test_extract_block_text() -> None:
    """Summary: Verify rich text blocks yield their plain text.

    Importance: Previews are built from block text.
    Alternatives: Render blocks to markdown.
    """

    block = {"type": "paragraph", "paragraph": {"rich_text": _rich("Hello ") + _rich("world")}}
    assert _extract_block_text(block) == "Hello world"
    assert _extract_block_text({"type": "divider", "divider": {}}) == ""


def test_iso_to_epoch_accepts_missing_values() -> None:
    """Summary: Verify missing timestamps map to zero.

    Importance: Partial Notion objects still parse.
    Alternatives: Raise on missing timestamps.
    """

    assert _iso_to_epoch(None) == 0
    assert _iso_to_epoch("2025-10-09T08:53:20+00:00") == 1_760_000_000


def _iso(seconds_ago: float) -> str:
    return datetime.fromtimestamp(NOW - seconds_ago, tz=timezone.utc).isoformat()


def _journey_entry(entry_id: str, title: str, seconds_ago: float) -> dict[str, Any]:
    return {
        "id": entry_id,
        "url": f"https://notion.so/{entry_id}",
        "created_time": _iso(seconds_ago),
        "last_edited_time": _iso(seconds_ago),
        "parent": {"type": "database_id", "database_id": "db-journey"},
        "properties": {"Name": {"type": "title", "title": _rich(title)}},
    }


@pytest.mark.asyncio
async def test_live_journey_insights_carry_entry_previews(
    store: SqliteStore, clock: FakeClock, monkeypatch: pytest.MonkeyPatch
) -> None:
    """Summary: Verify journey insights read block text for this week's entries.

    Importance: Database queries return no body text, so previews come from block children.
    Alternatives: Show entry titles without previews.
    """

    requested: list[str] = []

    def fake_request(method: str, path: str, body: dict[str, Any] | None = None) -> dict[str, Any]:
        requested.append(path)
        if path == "/search" and body["filter"]["value"] == "database":
            return {"results": [{"id": "db-journey", "title": _rich("My Journey"), "url": ""}]}
        if path == "/search":
            return {"results": []}
        if path == "/databases/db-journey/query":
            return {
                "results": [
                    _journey_entry("day-1", "Day one", 3600),
                    _journey_entry("day-2", "Day two", 7200),
                    _journey_entry("old-1", "Long ago", 20 * 86400),
                ]
            }
        if path == "/blocks/day-1/children?page_size=20":
            return {"results": [{"type": "paragraph", "paragraph": {"rich_text": _rich("Learned a lot today")}}]}
        raise ProviderRequestError("Notion API request failed: block fetch")

    client = NotionApiClient("secret", "https://api.notion.com/v1", "2022-06-28")
    monkeypatch.setattr(client, "_request", fake_request)
    tasks = BackgroundTasks()
    adapter = WorkspaceAdapter(store, IncrementalSyncEngine(store, clock=clock), tasks, client=client, clock=clock)

    view = await adapter.get_summary()
    await tasks.drain()
    insights = view.payload["journey_summary"]["recent_insights"]
    assert [insight["title"] for insight in insights] == ["Day one", "Day two"]
    assert insights[0]["preview"] == "Learned a lot today"
    assert insights[1]["preview"] == ""
    assert "/blocks/old-1/children?page_size=20" not in requested
