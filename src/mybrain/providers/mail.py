"""Summary: Mail source adapter and clients.

Importance: Encapsulates read-only mail access and the categorized mailbox view.
Alternatives: Summarize straight from the Gmail web UI export.
"""

from __future__ import annotations

import base64
import json
import logging
import time
import urllib.error
import urllib.parse
import urllib.request
from abc import ABC, abstractmethod
from datetime import datetime
from email.utils import parsedate_to_datetime
from pathlib import Path
from typing import Any, Callable

from mybrain.analytics import email_category_summaries, extract_email, extract_sender_name, top_counts
from mybrain.classifier import CATEGORIES, EmailCategorizer
from mybrain.errors import NotAuthenticatedError, ProviderRequestError
from mybrain.models import FetchBatch, MailMessage, Source, SyncWindow
from mybrain.providers.base import SourceAdapter
from mybrain.time_filters import WEEK_SECONDS, TimeFilter, cutoff_for


logger = logging.getLogger(__name__)

VIEW_MESSAGE_LIMIT = 30


class MailClient(ABC):
    """Summary: Abstract interface for a mailbox.

    Importance: Standardizes retrieval across Gmail and fixture mailboxes.
    Alternatives: Use provider-specific classes directly in the adapter.
    """

    @abstractmethod
    def list_messages(self, after: int, limit: int) -> list[MailMessage]:
        """Summary: Fetch messages received after an epoch time.

        Importance: Drives both sync and the live view.
        Alternatives: Fetch messages by cursor instead of time.
        """

    @abstractmethod
    def unread_count(self) -> int:
        """Return the number of unread messages in the mailbox."""


class FixtureMailClient(MailClient):
    """Summary: Loads mail messages from a local JSON fixture.

    Importance: Lets the mail digest run with no Google account.
    Alternatives: Use SQLite fixtures or generate synthetic messages.
    """

    def __init__(
        self,
        fixture_path: Path,
        clock: Callable[[], float] = time.time,
        categorizer: EmailCategorizer | None = None,
    ) -> None:
        self._fixture_path = fixture_path
        self._clock = clock
        self._categorizer = categorizer or EmailCategorizer()

    def list_messages(self, after: int, limit: int) -> list[MailMessage]:
        messages = [message for message in self._load() if message.timestamp > after]
        messages.sort(key=lambda message: message.timestamp, reverse=True)
        return messages[:limit]

    def unread_count(self) -> int:
        return sum(1 for message in self._load() if message.is_unread)

    def _load(self) -> list[MailMessage]:
        if not self._fixture_path.exists():
            raise NotAuthenticatedError(f"Mail fixture not found: {self._fixture_path}")
        data = json.loads(self._fixture_path.read_text(encoding="utf-8"))
        return [self._parse(item) for item in data]

    def _parse(self, item: dict[str, Any]) -> MailMessage:
        if "timestamp" in item:
            timestamp = int(item["timestamp"])
        else:
            timestamp = int(self._clock() - float(item.get("minutes_ago", 0)) * 60)
        labels = tuple(item.get("labels", []))
        from_header = item.get("from", "")
        return MailMessage(
            id=item["id"],
            thread_id=item.get("thread_id", item["id"]),
            from_email=extract_email(from_header),
            from_name=extract_sender_name(from_header),
            to_email=item.get("to", ""),
            subject=item.get("subject", ""),
            snippet=item.get("snippet", ""),
            body_preview=item.get("body", "")[:500],
            timestamp=timestamp,
            is_unread="UNREAD" in labels,
            labels=labels,
            category=self._categorizer.categorize(
                from_header, item.get("subject", ""), item.get("snippet", ""), labels
            ),
        )


class GmailApiClient(MailClient):
    """Summary: Reads emails via the Gmail API using an OAuth access token.

    Importance: Enables OAuth-based access without IMAP passwords.
    Alternatives: Use IMAP or the Google client SDK.
    """

    def __init__(
        self,
        access_token: str,
        base_url: str,
        categorizer: EmailCategorizer | None = None,
    ) -> None:
        self._access_token = access_token
        self._base_url = base_url.rstrip("/")
        self._categorizer = categorizer or EmailCategorizer()

    def list_messages(self, after: int, limit: int) -> list[MailMessage]:
        """Summary: Fetch inbox messages newer than ``after``.

        Importance: One list call plus one detail call per message.
        Alternatives: Use the history API for true deltas.
        """

        query = urllib.parse.urlencode({"q": f"in:inbox after:{after}", "maxResults": limit})
        payload = _gmail_api_get(f"{self._base_url}/users/me/messages?{query}", self._access_token)
        messages: list[MailMessage] = []
        for item in payload.get("messages", []):
            message_id = item.get("id")
            if not message_id:
                continue
            detail_url = f"{self._base_url}/users/me/messages/{message_id}?format=full"
            parsed = _parse_gmail_message(
                _gmail_api_get(detail_url, self._access_token), self._categorizer
            )
            if parsed:
                messages.append(parsed)
        return messages

    def unread_count(self) -> int:
        query = urllib.parse.urlencode({"q": "is:unread", "maxResults": 1})
        payload = _gmail_api_get(f"{self._base_url}/users/me/messages?{query}", self._access_token)
        return int(payload.get("resultSizeEstimate", 0))


class MailAdapter(SourceAdapter[MailClient]):
    """Summary: Mail source adapter.

    Importance: Syncs the window into the store and builds a categorized inbox view.
    Alternatives: Summarize the raw inbox listing.
    """

    source = Source.MAIL
    display_name = "Mail"

    async def fetch_candidates(self, window: SyncWindow) -> FetchBatch:
        messages = await self._call(self.client.list_messages, window.sync_from, window.fetch_limit)
        return FetchBatch(records=messages, total_checked=len(messages))

    async def build_view(self, time_filter: TimeFilter) -> dict[str, Any]:
        """Summary: Categorized view of recent mail.

        Importance: Defaults to the last seven days when no narrower filter applies.
        Alternatives: Show the whole mailbox.
        """

        client = self.client
        now = self._clock()
        after = cutoff_for(time_filter, now)
        if after is None:
            after = int(now - WEEK_SECONDS)
        unread = await self._call(client.unread_count)
        messages = await self._call(client.list_messages, after, VIEW_MESSAGE_LIMIT)

        emails = [_email_info(message) for message in messages]
        categorized: dict[str, list[dict[str, Any]]] = {category: [] for category in CATEGORIES}
        for email in emails:
            categorized.setdefault(email["category"], []).append(email)
        senders = top_counts((extract_sender_name(email["from"]) for email in emails), 5)
        return {
            "unread_count": unread,
            "total_emails_analyzed": len(emails),
            "summaries": email_category_summaries(categorized),
            "categorized_counts": {category: len(items) for category, items in categorized.items()},
            "top_senders": [{"name": name, "count": count} for name, count in senders],
            "recent_emails": emails[:5],
        }


def _email_info(message: MailMessage) -> dict[str, Any]:
    sender = f"{message.from_name} <{message.from_email}>" if message.from_name else message.from_email
    return {
        "id": message.id,
        "from": sender,
        "subject": message.subject,
        "date": datetime.fromtimestamp(message.timestamp).isoformat(),
        "snippet": message.snippet,
        "body_preview": message.body_preview,
        "is_unread": message.is_unread,
        "labels": list(message.labels),
        "category": message.category,
    }


def _gmail_api_get(url: str, access_token: str) -> dict[str, Any]:
    """Summary: GET a Gmail API URL and decode the JSON body.

    Importance: A 401 becomes NotAuthenticatedError so the adapter can flip to disconnected.
    Alternatives: Use google-api-python-client.
    """

    request = urllib.request.Request(
        url,
        headers={"Authorization": f"Bearer {access_token}"},
        method="GET",
    )
    try:
        with urllib.request.urlopen(request, timeout=10) as response:
            raw = response.read().decode("utf-8")
    except urllib.error.HTTPError as exc:
        if exc.code == 401:
            raise NotAuthenticatedError("Gmail session expired") from exc
        error_body = exc.read().decode("utf-8")
        raise ProviderRequestError(f"Gmail API request failed: {error_body or exc.reason}") from exc
    except urllib.error.URLError as exc:
        raise ProviderRequestError(f"Gmail API request failed: {exc.reason}") from exc
    return json.loads(raw)


def _parse_gmail_message(
    message: dict[str, Any], categorizer: EmailCategorizer
) -> MailMessage | None:
    """Summary: Parse a Gmail message payload into a MailMessage.

    Importance: Normalizes Gmail payloads into the stored mail model.
    Alternatives: Keep the raw payload JSON in the store.
    """

    message_id = message.get("id")
    if not message_id:
        return None
    payload = message.get("payload") or {}
    headers = _parse_gmail_headers(payload.get("headers", []))
    from_header = headers.get("From", "")
    subject = headers.get("Subject", "")
    snippet = message.get("snippet", "")
    labels = tuple(message.get("labelIds", []))
    body = _extract_gmail_body(payload)
    return MailMessage(
        id=message_id,
        thread_id=message.get("threadId", message_id),
        from_email=extract_email(from_header),
        from_name=extract_sender_name(from_header),
        to_email=headers.get("To", ""),
        subject=subject,
        snippet=snippet,
        body_preview=body[:500],
        timestamp=_gmail_timestamp(message.get("internalDate"), headers.get("Date", "")),
        is_unread="UNREAD" in labels,
        labels=labels,
        category=categorizer.categorize(from_header, subject, snippet, labels),
    )


def _gmail_timestamp(internal_date: str | None, date_header: str) -> int:
    if internal_date:
        try:
            return int(internal_date) // 1000
        except ValueError:
            pass
    try:
        return int(parsedate_to_datetime(date_header).timestamp())
    except (TypeError, ValueError):
        return 0


def _parse_gmail_headers(headers: list[dict[str, Any]]) -> dict[str, str]:
    """Summary: Turn Gmail's header list into a name-to-value dict.

    Importance: Headers with empty values are dropped.
    Alternatives: Use email.message.Message for header access.
    """

    normalized: dict[str, str] = {}
    for header in headers:
        name = header.get("name")
        value = header.get("value")
        if name and value:
            normalized[name] = value
    return normalized


def _extract_gmail_body(payload: dict[str, Any]) -> str:
    """Summary: Join the decoded body parts of a Gmail payload.

    Importance: Plain text parts win over HTML when both exist.
    Alternatives: Keep only Gmail's snippet.
    """

    text_parts: list[str] = []
    fallback_parts: list[str] = []
    for part in _walk_gmail_parts(payload):
        data = (part.get("body") or {}).get("data")
        if not data:
            continue
        decoded = _decode_base64url(data).strip()
        if not decoded:
            continue
        if part.get("mimeType") == "text/plain":
            text_parts.append(decoded)
        else:
            fallback_parts.append(decoded)
    return "\n".join(text_parts or fallback_parts)


def _walk_gmail_parts(payload: dict[str, Any]) -> list[dict[str, Any]]:
    parts: list[dict[str, Any]] = [payload]
    for part in payload.get("parts", []) or []:
        parts.extend(_walk_gmail_parts(part))
    return parts


def _decode_base64url(data: str) -> str:
    padded = data + "=" * (-len(data) % 4)
    return base64.urlsafe_b64decode(padded.encode("utf-8")).decode("utf-8", errors="ignore")
