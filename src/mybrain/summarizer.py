"""Summary: AI summarizer that turns provider views into natural-language digests.

Importance: Single place where prompts meet the configured AI provider.
Alternatives: Call the AI provider from each adapter.
"""

from __future__ import annotations

import asyncio
import json
import logging
from typing import Any

from mybrain.ai import AiProvider, estimate_tokens
from mybrain.errors import SummarizerError
from mybrain.models import Source, SummaryKind
from mybrain.prompts import (
    COMBINED_SYSTEM_PROMPT,
    TOPIC_SYSTEM_PROMPT,
    combined_prompt,
    question_prompt,
    summary_prompt,
    system_prompt,
    topic_prompt,
)


logger = logging.getLogger(__name__)


class Summarizer:
    """Summary: Async facade over a blocking AI provider.

    Importance: Runs provider calls in a worker thread so the event loop keeps serving.
    Alternatives: Use an async HTTP client inside each provider.
    """

    def __init__(self, ai_provider: AiProvider) -> None:
        self._ai_provider = ai_provider

    async def summarize(self, data: dict[str, Any], source: Source, kind: SummaryKind) -> str:
        """Summary: Produce a today, week, or actions summary for one source.

        Importance: Output is what the summary cache stores.
        Alternatives: Cache the raw view and summarize on read.
        """

        prompt = f"{summary_prompt(source, kind)}\n\nHere is the data:\n{_dump(data)}"
        return await self._generate(prompt, f"{source.value}-{kind.value}", system_prompt(source))

    async def summarize_combined(self, all_data: dict[str, Any]) -> str:
        """Produce the daily overview across every connected source."""

        prompt = f"{combined_prompt()}\n\nData:\n{_dump(all_data)}"
        return await self._generate(prompt, "daily-combined", COMBINED_SYSTEM_PROMPT)

    async def answer_question(self, data: dict[str, Any], source: Source, question: str) -> str:
        prompt = f"{question_prompt(source, question)}\n\nHere is the data:\n{_dump(data)}"
        return await self._generate(prompt, f"{source.value}-question", system_prompt(source))

    async def topic_details(self, topic: str, data: Any) -> str:
        prompt = f"{topic_prompt(topic)}\n\n{_dump(data)}"
        return await self._generate(prompt, "topic-details", TOPIC_SYSTEM_PROMPT)

    async def _generate(self, prompt: str, purpose: str, system: str) -> str:
        try:
            text, latency_ms = await asyncio.to_thread(
                self._ai_provider.generate_text, prompt, purpose, system
            )
        except SummarizerError:
            logger.error("Summarizer call failed for %s.", purpose)
            raise
        except Exception as exc:
            logger.error("Summarizer call failed for %s: %s", purpose, exc)
            raise SummarizerError(str(exc)) from exc
        logger.info(
            "Generated %s in %sms (~%s prompt tokens).", purpose, latency_ms, estimate_tokens(prompt)
        )
        return text


def _dump(data: Any) -> str:
    return json.dumps(data, indent=2, default=str)
