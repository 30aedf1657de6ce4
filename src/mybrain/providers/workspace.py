"""Summary: Workspace source adapter and clients.

Importance: Tracks recently edited pages and journal-style databases for digests.
Alternatives: Export the workspace manually and summarize the export.
"""

from __future__ import annotations

import json
import logging
import time
import urllib.error
import urllib.request
from abc import ABC, abstractmethod
from dataclasses import replace
from datetime import datetime
from pathlib import Path
from typing import Any, Callable

from mybrain.analytics import journey_summary, workspace_summary
from mybrain.errors import NotAuthenticatedError, ProviderRequestError
from mybrain.models import FetchBatch, Source, SyncWindow, WorkspacePage
from mybrain.providers.base import SourceAdapter
from mybrain.time_filters import WEEK_SECONDS, TimeFilter, cutoff_for


logger = logging.getLogger(__name__)

VIEW_PAGE_LIMIT = 20
JOURNEY_ENTRY_LIMIT = 50
JOURNEY_PREVIEW_ENTRIES = 5
JOURNEY_PREVIEW_BLOCKS = 20
NOTION_MAX_PAGE_SIZE = 100


class WorkspaceClient(ABC):
    """Summary: Abstract interface for a page workspace.

    Importance: Lets the adapter work against Notion or a local fixture.
    Alternatives: Call the Notion API from the adapter.
    """

    @abstractmethod
    def search_pages(self, page_size: int) -> list[WorkspacePage]:
        """Return pages, most recently edited first."""

    @abstractmethod
    def list_databases(self) -> list[dict[str, Any]]:
        """Return databases as ``{"id", "title", "url"}`` dicts."""

    @abstractmethod
    def query_database(self, database_id: str, page_size: int) -> list[WorkspacePage]:
        """Return database entries, most recently edited first."""

    @abstractmethod
    def entry_preview(self, page_id: str) -> str:
        """Return the leading text of a page body, or an empty string."""


class FixtureWorkspaceClient(WorkspaceClient):
    """Summary: Loads pages and databases from a local JSON fixture.

    Importance: Lets the workspace digest run with no Notion token.
    Alternatives: Record Notion API responses.
    """

    def __init__(self, fixture_path: Path, clock: Callable[[], float] = time.time) -> None:
        self._fixture_path = fixture_path
        self._clock = clock

    def search_pages(self, page_size: int) -> list[WorkspacePage]:
        return _newest_first([self._page(item) for item in self._load().get("pages", [])])[:page_size]

    def list_databases(self) -> list[dict[str, Any]]:
        return [
            {"id": item["id"], "title": item.get("title", "Untitled Database"), "url": item.get("url", "")}
            for item in self._load().get("databases", [])
        ]

    def query_database(self, database_id: str, page_size: int) -> list[WorkspacePage]:
        for item in self._load().get("databases", []):
            if item["id"] == database_id:
                entries = [self._page(entry, parent_id=database_id) for entry in item.get("entries", [])]
                return _newest_first(entries)[:page_size]
        return []

    def entry_preview(self, page_id: str) -> str:
        for item in self._load().get("databases", []):
            for entry in item.get("entries", []):
                if entry["id"] == page_id:
                    return entry.get("content_preview", "")
        return ""

    def _load(self) -> dict[str, Any]:
        if not self._fixture_path.exists():
            raise NotAuthenticatedError(f"Workspace fixture not found: {self._fixture_path}")
        return json.loads(self._fixture_path.read_text(encoding="utf-8"))

    def _page(self, item: dict[str, Any], parent_id: str | None = None) -> WorkspacePage:
        edited = self._time(item, "last_edited_time", "edited_minutes_ago")
        return WorkspacePage(
            id=item["id"],
            title=item.get("title") or "Untitled",
            parent_id=item.get("parent_id", parent_id),
            parent_type=item.get("parent_type", "database" if parent_id else "workspace"),
            url=item.get("url", ""),
            created_time=self._time(item, "created_time", "created_minutes_ago", default=edited),
            last_edited_time=edited,
            content_preview=item.get("content_preview", ""),
            properties=item.get("properties", {}),
        )

    def _time(self, item: dict[str, Any], absolute: str, relative: str, default: int | None = None) -> int:
        if absolute in item:
            return int(item[absolute])
        if relative in item:
            return int(self._clock() - float(item[relative]) * 60)
        return default if default is not None else int(self._clock())


class NotionApiClient(WorkspaceClient):
    """Summary: Reads pages and databases via the Notion REST API.

    Importance: Uses an internal integration token; no SDK dependency.
    Alternatives: Use the notion-client package.
    """

    def __init__(self, token: str, base_url: str, notion_version: str) -> None:
        self._token = token
        self._base_url = base_url.rstrip("/")
        self._notion_version = notion_version

    def search_pages(self, page_size: int) -> list[WorkspacePage]:
        """Summary: Search pages sorted by last edit, with a short content preview.

        Importance: Preview failures on single pages are skipped, not fatal.
        Alternatives: Skip previews and store titles only.
        """

        payload = self._request(
            "POST",
            "/search",
            {
                "filter": {"property": "object", "value": "page"},
                "sort": {"direction": "descending", "timestamp": "last_edited_time"},
                "page_size": min(page_size, NOTION_MAX_PAGE_SIZE),
            },
        )
        pages: list[WorkspacePage] = []
        for item in payload.get("results", []):
            try:
                preview = self._content_preview(item["id"])
            except ProviderRequestError as exc:
                logger.debug("No preview for page %s: %s", item.get("id"), exc)
                preview = ""
            pages.append(_parse_notion_page(item, preview))
        return pages

    def list_databases(self) -> list[dict[str, Any]]:
        payload = self._request(
            "POST", "/search", {"filter": {"property": "object", "value": "database"}, "page_size": 20}
        )
        return [
            {
                "id": item["id"],
                "title": _plain_text(item.get("title", [])) or "Untitled Database",
                "url": item.get("url", ""),
            }
            for item in payload.get("results", [])
        ]

    def query_database(self, database_id: str, page_size: int) -> list[WorkspacePage]:
        payload = self._request(
            "POST",
            f"/databases/{database_id}/query",
            {
                "sorts": [{"timestamp": "last_edited_time", "direction": "descending"}],
                "page_size": min(page_size, NOTION_MAX_PAGE_SIZE),
            },
        )
        return [_parse_notion_page(item, "") for item in payload.get("results", [])]

    def entry_preview(self, page_id: str) -> str:
        return self._content_preview(page_id, block_limit=JOURNEY_PREVIEW_BLOCKS)

    def _content_preview(self, page_id: str, block_limit: int = 10) -> str:
        payload = self._request("GET", f"/blocks/{page_id}/children?page_size={block_limit}")
        preview = ""
        for block in payload.get("results", []):
            text = _extract_block_text(block)
            if text:
                preview += text + " "
                if len(preview) > 300:
                    break
        return preview.strip()[:500]

    def _request(self, method: str, path: str, body: dict[str, Any] | None = None) -> dict[str, Any]:
        """Summary: Call the Notion API and decode the JSON response.

        Importance: A 401 becomes NotAuthenticatedError so the adapter can flip to disconnected.
        Alternatives: Use the notion-client package.
        """

        request = urllib.request.Request(
            f"{self._base_url}{path}",
            data=json.dumps(body).encode("utf-8") if body is not None else None,
            headers={
                "Authorization": f"Bearer {self._token}",
                "Notion-Version": self._notion_version,
                "Content-Type": "application/json",
            },
            method=method,
        )
        try:
            with urllib.request.urlopen(request, timeout=10) as response:
                raw = response.read().decode("utf-8")
        except urllib.error.HTTPError as exc:
            if exc.code == 401:
                raise NotAuthenticatedError("Notion session expired") from exc
            error_body = exc.read().decode("utf-8")
            raise ProviderRequestError(f"Notion API request failed: {error_body or exc.reason}") from exc
        except urllib.error.URLError as exc:
            raise ProviderRequestError(f"Notion API request failed: {exc.reason}") from exc
        return json.loads(raw)


class WorkspaceAdapter(SourceAdapter[WorkspaceClient]):
    """Summary: Workspace source adapter.

    Importance: A database whose title mentions "journey" gets a timeline and themes.
    Alternatives: Treat every database the same way.
    """

    source = Source.WORKSPACE
    display_name = "Workspace"

    async def fetch_candidates(self, window: SyncWindow) -> FetchBatch:
        pages = await self._call(self.client.search_pages, window.fetch_limit)
        return FetchBatch(records=pages, total_checked=len(pages))

    async def build_view(self, time_filter: TimeFilter) -> dict[str, Any]:
        client = self.client
        now = self._clock()
        cutoff = cutoff_for(time_filter, now)
        pages = await self._call(client.search_pages, VIEW_PAGE_LIMIT)
        databases = await self._call(client.list_databases)
        in_window = [page for page in pages if cutoff is None or page.last_edited_time >= cutoff]

        journey = None
        journey_db = next((db for db in databases if "journey" in db["title"].lower()), None)
        if journey_db is not None:
            journey = await self._journey(journey_db, now)

        return {
            "total_pages": len(pages),
            "total_databases": len(databases),
            "workspace_summary": workspace_summary(pages, databases, now),
            "journey_summary": journey,
            "recent_pages": [
                {
                    "id": page.id,
                    "title": page.title,
                    "url": page.url,
                    "last_edited": datetime.fromtimestamp(page.last_edited_time).isoformat(),
                    "parent": {"type": page.parent_type, "id": page.parent_id},
                    "content_preview": page.content_preview,
                }
                for page in in_window[:5]
            ],
            "databases": databases[:5],
        }

    async def _journey(self, database: dict[str, Any], now: float) -> dict[str, Any]:
        try:
            entries = await self._call(self.client.query_database, database["id"], JOURNEY_ENTRY_LIMIT)
        except ProviderRequestError as exc:
            logger.warning("Journey database query failed: %s", exc)
            return {
                "title": database["title"],
                "error": str(exc),
                "summary": "Unable to fetch journey summary.",
            }
        if not entries:
            return {"title": database["title"], "summary": "No entries found in this database.", "entries": []}
        entries = await self._with_previews(entries, now)
        summary = journey_summary(entries, now)
        summary["title"] = database["title"]
        summary["recent_entries"] = [
            {"id": entry.id, "title": entry.title, "url": entry.url, "properties": entry.properties}
            for entry in entries[:5]
        ]
        return summary

    async def _with_previews(self, entries: list[WorkspacePage], now: float) -> list[WorkspacePage]:
        """Summary: Fill body previews for this week's leading journey entries.

        Importance: Database queries return properties only, so insights need the page body.
        Alternatives: Fetch block children for every entry.
        """

        week_ago = now - WEEK_SECONDS
        targets = [entry.id for entry in entries if entry.last_edited_time >= week_ago][:JOURNEY_PREVIEW_ENTRIES]
        previewed: list[WorkspacePage] = []
        for entry in entries:
            if entry.id in targets and not entry.content_preview:
                try:
                    preview = await self._call(self.client.entry_preview, entry.id)
                except ProviderRequestError as exc:
                    logger.debug("No preview for journey entry %s: %s", entry.id, exc)
                    preview = ""
                entry = replace(entry, content_preview=preview)
            previewed.append(entry)
        return previewed


def _newest_first(pages: list[WorkspacePage]) -> list[WorkspacePage]:
    return sorted(pages, key=lambda page: page.last_edited_time, reverse=True)


def _parse_notion_page(item: dict[str, Any], content_preview: str) -> WorkspacePage:
    """Summary: Normalize a Notion page object.

    Importance: Title, parent, and typed properties are flattened for storage.
    Alternatives: Store the raw page object.
    """

    parent = item.get("parent") or {}
    parent_type = parent.get("type", "workspace")
    parent_id = parent.get("page_id") or parent.get("database_id")
    return WorkspacePage(
        id=item["id"],
        title=_page_title(item) or "Untitled",
        parent_id=parent_id,
        parent_type={"page_id": "page", "database_id": "database"}.get(parent_type, "workspace"),
        url=item.get("url", ""),
        created_time=_iso_to_epoch(item.get("created_time")),
        last_edited_time=_iso_to_epoch(item.get("last_edited_time")),
        content_preview=content_preview,
        properties=_extract_properties(item.get("properties") or {}),
    )


def _page_title(item: dict[str, Any]) -> str | None:
    for prop in (item.get("properties") or {}).values():
        if prop.get("type") == "title":
            text = _plain_text(prop.get("title", []))
            if text:
                return text
    return None


def _extract_properties(properties: dict[str, Any]) -> dict[str, Any]:
    """Flatten typed Notion properties into plain values, skipping the title."""

    flattened: dict[str, Any] = {}
    for key, value in properties.items():
        kind = value.get("type")
        if kind == "title" or key.lower() in ("name", "title"):
            continue
        if kind == "select":
            flattened[key] = (value.get("select") or {}).get("name")
        elif kind == "multi_select":
            flattened[key] = [option.get("name") for option in value.get("multi_select") or []]
        elif kind == "date":
            flattened[key] = (value.get("date") or {}).get("start")
        elif kind == "rich_text":
            flattened[key] = _plain_text(value.get("rich_text", []))
        elif kind == "status":
            flattened[key] = (value.get("status") or {}).get("name")
        elif kind in ("checkbox", "number", "url"):
            flattened[key] = value.get(kind)
    return flattened


def _extract_block_text(block: dict[str, Any]) -> str:
    content = block.get(block.get("type", "")) or {}
    if "rich_text" in content:
        return _plain_text(content["rich_text"])
    return ""


def _plain_text(fragments: list[dict[str, Any]]) -> str:
    return "".join(fragment.get("plain_text", "") for fragment in fragments)


def _iso_to_epoch(value: str | None) -> int:
    if not value:
        return 0
    return int(datetime.fromisoformat(value.replace("Z", "+00:00")).timestamp())
