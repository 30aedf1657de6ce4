"""Summary: Per-source summary services for MyBrain.

Importance: Maps summary kinds onto provider views and routes them through the cache.
Alternatives: Let HTTP handlers call providers and the summarizer directly.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass, replace
from typing import Any

from mybrain.analytics import format_date_range
from mybrain.cache import StaleWhileRevalidate
from mybrain.errors import NotAuthenticatedError, ProviderRequestError
from mybrain.models import ProviderSummary, Source, SummaryKind, SummaryResponse
from mybrain.providers.base import SourceAdapter
from mybrain.summarizer import Summarizer
from mybrain.time_filters import TimeFilter


logger = logging.getLogger(__name__)

INVALID_SOURCE = "Invalid source"

KIND_FILTERS = {
    SummaryKind.TODAY: TimeFilter.TODAY,
    SummaryKind.WEEK: TimeFilter.WEEK,
    SummaryKind.ACTIONS: TimeFilter.ALL,
}


def require_view(view: ProviderSummary) -> dict[str, Any]:
    """Summary: Unwrap a provider view or raise.

    Importance: Refreshes must not cache error or not-authenticated views.
    Alternatives: Cache whatever the provider returned.
    """

    if not view.authenticated:
        raise NotAuthenticatedError(view.error or "Not authenticated")
    if view.error is not None:
        raise ProviderRequestError(view.error)
    return view.to_dict()


@dataclass(frozen=True)
class SummaryService:
    """Summary: Serves today, week, and action summaries per source.

    Importance: Errors come back as structured responses instead of exceptions.
    Alternatives: Raise and let the HTTP layer translate.
    """

    adapters: dict[Source, SourceAdapter[Any]]
    summarizer: Summarizer
    swr: StaleWhileRevalidate

    def adapter(self, source: Source | str) -> SourceAdapter[Any]:
        parsed = Source.parse(source)
        if parsed not in self.adapters:
            raise ValueError(INVALID_SOURCE)
        return self.adapters[parsed]

    async def get_summary(
        self, source: Source | str, kind: SummaryKind | str, force_refresh: bool = False
    ) -> SummaryResponse:
        """Summary: Return a cached or freshly generated summary.

        Importance: Stale entries come back immediately while a refresh runs in the background.
        Alternatives: Always regenerate on request.
        """

        try:
            adapter = self.adapter(source)
        except ValueError:
            return SummaryResponse.failure(INVALID_SOURCE)
        try:
            parsed_kind = SummaryKind.parse(kind)
        except ValueError as exc:
            return SummaryResponse.failure(str(exc))
        if parsed_kind not in KIND_FILTERS:
            return SummaryResponse.failure(f"Unsupported summary kind: {parsed_kind.value}")

        date_ranges: list[str] = []

        async def refresh() -> str:
            view = require_view(await adapter.get_summary(KIND_FILTERS[parsed_kind]))
            if adapter.source is Source.CHAT and parsed_kind is SummaryKind.TODAY:
                oldest, newest = view.get("oldest_message_at"), view.get("newest_message_at")
                if oldest is not None and newest is not None:
                    date_ranges.append(format_date_range(oldest, newest))
            return await self.summarizer.summarize(view, adapter.source, parsed_kind)

        try:
            response = await self.swr.fetch(
                adapter.source.value, parsed_kind, refresh, force_refresh=force_refresh
            )
        except Exception as exc:
            logger.error("%s %s summary failed: %s", adapter.source.value, parsed_kind.value, exc)
            return SummaryResponse.failure(str(exc))
        if date_ranges and not response.from_cache:
            return replace(response, date_range=date_ranges[-1])
        return response

    async def ask_question(self, source: Source | str, question: str) -> dict[str, Any]:
        """Summary: Answer a free-form question over the live view.

        Importance: Uncached; every question hits the provider and the summarizer.
        Alternatives: Answer from the cached summary text.
        """

        try:
            adapter = self.adapter(source)
        except ValueError:
            return {"error": INVALID_SOURCE}
        try:
            view = require_view(await adapter.get_summary())
            answer = await self.summarizer.answer_question(view, adapter.source, question)
        except Exception as exc:
            logger.error("Question on %s failed: %s", adapter.source.value, exc)
            return {"error": str(exc)}
        return {"answer": answer}

    async def topic_details(
        self, topic: str, source: Source | str, chat_name: str | None = None
    ) -> dict[str, Any]:
        """Summary: Explain one topic in a few factual sentences.

        Importance: For chat, narrows the data to the first chat whose name contains ``chat_name``.
        Alternatives: Send the whole view every time.
        """

        try:
            adapter = self.adapter(source)
        except ValueError:
            return {"error": INVALID_SOURCE}
        try:
            view = require_view(await adapter.get_summary())
            relevant: Any = view
            if adapter.source is Source.CHAT and chat_name:
                needle = chat_name.lower()
                match = next(
                    (chat for chat in view.get("chats", []) if needle in (chat.get("name") or "").lower()),
                    None,
                )
                if match is not None:
                    relevant = {"chat": match}
            details = await self.summarizer.topic_details(topic, relevant)
        except Exception as exc:
            logger.error("Topic details on %s failed: %s", adapter.source.value, exc)
            return {"error": str(exc)}
        return {"details": details}
