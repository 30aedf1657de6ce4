"""Summary: Multi-source aggregation and the combined daily summary.

Importance: Fans out to every adapter so one failing source never sinks the others.
Alternatives: Query sources sequentially and stop at the first failure.
"""

from __future__ import annotations

import asyncio
import logging
from typing import Any

from mybrain.cache import StaleWhileRevalidate
from mybrain.models import ProviderSummary, Source, SummaryKind, SummaryResponse
from mybrain.providers.base import SourceAdapter
from mybrain.summarizer import Summarizer
from mybrain.time_filters import TimeFilter


logger = logging.getLogger(__name__)

COMBINED_SCOPE = "combined"


class Aggregator:
    """Summary: Composes provider views across sources.

    Importance: All-settle fan-out; each source's failure is isolated under its own key.
    Alternatives: asyncio.gather without return_exceptions, failing fast.
    """

    def __init__(
        self,
        adapters: dict[Source, SourceAdapter[Any]],
        summarizer: Summarizer,
        swr: StaleWhileRevalidate,
    ) -> None:
        self._adapters = adapters
        self._summarizer = summarizer
        self._swr = swr

    async def get_all_summaries(
        self, time_filter: TimeFilter | str = TimeFilter.ALL
    ) -> dict[str, dict[str, Any]]:
        """Return every source's live view keyed by source name."""

        settled = await self._settle(time_filter)
        return {
            source.value: {"error": str(result)} if isinstance(result, BaseException) else result.to_dict()
            for source, result in settled.items()
        }

    async def get_combined_summary(self, force_refresh: bool = False) -> SummaryResponse:
        """Summary: Daily overview across every connected source.

        Importance: Only authenticated, error-free views reach the summarizer; others become None.
        Alternatives: Summarize each source separately and concatenate.
        """

        async def refresh() -> str:
            settled = await self._settle(TimeFilter.ALL)
            all_data: dict[str, Any] = {}
            for source, result in settled.items():
                usable = isinstance(result, ProviderSummary) and result.ok
                all_data[source.value] = result.to_dict() if usable else None
            return await self._summarizer.summarize_combined(all_data)

        try:
            return await self._swr.fetch(
                COMBINED_SCOPE, SummaryKind.DAILY_COMBINED, refresh, force_refresh=force_refresh
            )
        except Exception as exc:
            logger.error("Combined summary failed: %s", exc)
            return SummaryResponse.failure(str(exc))

    async def _settle(
        self, time_filter: TimeFilter | str
    ) -> dict[Source, ProviderSummary | BaseException]:
        sources = list(self._adapters)
        results = await asyncio.gather(
            *(self._adapters[source].get_summary(time_filter) for source in sources),
            return_exceptions=True,
        )
        for source, result in zip(sources, results):
            if isinstance(result, BaseException):
                logger.warning("%s view raised: %s", source.value, result)
        return dict(zip(sources, results))
