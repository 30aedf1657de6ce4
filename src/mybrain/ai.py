"""Summary: Text-generation backends used by the summarizer.

Importance: Digests can move between a local model, a cloud model, or the offline mock.
Alternatives: Hardwire one vendor's SDK into the summarizer.
"""

from __future__ import annotations

import json
import time
import urllib.error
import urllib.request
from abc import ABC, abstractmethod
from dataclasses import dataclass
from typing import Any

from mybrain.config import AppConfig
from mybrain.errors import SummarizerError


DEFAULT_SYSTEM_PROMPT = "You are a helpful assistant."


class AiProvider(ABC):
    """Summary: Contract every text-generation backend implements.

    Importance: The summarizer only ever sees this interface.
    Alternatives: Duck-type providers and hope they agree on a signature.
    """

    @abstractmethod
    def generate_text(
        self, prompt: str, purpose: str, system: str | None = None
    ) -> tuple[str, int]:
        """Summary: Produce text for a prompt tagged with a purpose.

        Importance: Returns the text and the call latency so usage can be logged.
        Alternatives: Return raw provider payloads.
        """


class MockAiProvider(AiProvider):
    """Summary: Offline provider that echoes the prompt.

    Importance: Fixture-backed demos and tests run with no model installed.
    Alternatives: Require Ollama for local development.
    """

    def generate_text(
        self, prompt: str, purpose: str, system: str | None = None
    ) -> tuple[str, int]:
        """Summary: Echo the purpose and the head of the prompt.

        Importance: Output is stable, so cache and service tests can assert on it.
        Alternatives: Load canned digests from disk.
        """

        started = time.time()
        response = f"[mock:{purpose}] {prompt[:240]}"
        latency_ms = int((time.time() - started) * 1000)
        return response, latency_ms


class OllamaProvider(AiProvider):
    """Summary: Provider backed by an Ollama server.

    Importance: Keeps chat and mail content on the local machine.
    Alternatives: Embed a model through llama.cpp bindings.
    """

    def __init__(self, base_url: str, model: str) -> None:
        self._base_url = base_url.rstrip("/")
        self._model = model

    def generate_text(
        self, prompt: str, purpose: str, system: str | None = None
    ) -> tuple[str, int]:
        """Summary: Call Ollama's generate endpoint without streaming.

        Importance: One request per digest keeps latency accounting simple.
        Alternatives: Stream tokens and join them.
        """

        payload = json.dumps(
            {
                "model": self._model,
                "prompt": prompt,
                "system": system or DEFAULT_SYSTEM_PROMPT,
                "stream": False,
            }
        )
        request = urllib.request.Request(
            url=f"{self._base_url}/api/generate",
            data=payload.encode("utf-8"),
            headers={"Content-Type": "application/json"},
            method="POST",
        )
        started = time.time()
        raw = _post_json(request, "Ollama")
        latency_ms = int((time.time() - started) * 1000)
        return raw.get("response", ""), latency_ms


class OpenAiProvider(AiProvider):
    """Summary: Provider backed by OpenAI chat completions.

    Importance: Optional cloud backend when an API key is configured.
    Alternatives: Use the official openai package.
    """

    def __init__(self, api_key: str, model: str) -> None:
        self._api_key = api_key
        self._model = model

    def generate_text(
        self, prompt: str, purpose: str, system: str | None = None
    ) -> tuple[str, int]:
        """Summary: Send the prompt as a single user turn.

        Importance: The system prompt carries the per-source instructions.
        Alternatives: Use the responses API.
        """

        payload = {
            "model": self._model,
            "messages": [
                {"role": "system", "content": system or f"You are MyBrain. Task: {purpose}."},
                {"role": "user", "content": prompt},
            ],
            "temperature": 0.2,
        }
        request = urllib.request.Request(
            url="https://api.openai.com/v1/chat/completions",
            data=json.dumps(payload).encode("utf-8"),
            headers={
                "Content-Type": "application/json",
                "Authorization": f"Bearer {self._api_key}",
            },
            method="POST",
        )
        started = time.time()
        raw = _post_json(request, "OpenAI")
        latency_ms = int((time.time() - started) * 1000)
        content = raw["choices"][0]["message"]["content"]
        return content, latency_ms


class AnthropicProvider(AiProvider):
    """Summary: AI provider using Anthropic's messages API.

    Importance: Matches the summarizer model family the digests were tuned against.
    Alternatives: Use the official SDK.
    """

    def __init__(self, api_key: str, model: str, max_tokens: int = 1024) -> None:
        self._api_key = api_key
        self._model = model
        self._max_tokens = max_tokens

    def generate_text(
        self, prompt: str, purpose: str, system: str | None = None
    ) -> tuple[str, int]:
        """Summary: Generate text using the Anthropic messages endpoint.

        Importance: Returns the first text block of the response.
        Alternatives: Stream the response and join deltas.
        """

        payload = {
            "model": self._model,
            "max_tokens": self._max_tokens,
            "system": system or DEFAULT_SYSTEM_PROMPT,
            "messages": [{"role": "user", "content": prompt}],
        }
        request = urllib.request.Request(
            url="https://api.anthropic.com/v1/messages",
            data=json.dumps(payload).encode("utf-8"),
            headers={
                "Content-Type": "application/json",
                "x-api-key": self._api_key,
                "anthropic-version": "2023-06-01",
            },
            method="POST",
        )
        started = time.time()
        raw = _post_json(request, "Anthropic")
        latency_ms = int((time.time() - started) * 1000)
        blocks = [block.get("text", "") for block in raw.get("content", []) if block.get("type") == "text"]
        if not blocks:
            raise SummarizerError(f"Anthropic returned no text for {purpose}")
        return blocks[0], latency_ms


@dataclass(frozen=True)
class AiProviderFactory:
    """Summary: Picks the provider named by ``ai_provider``.

    Importance: Missing API keys fail at startup instead of on the first digest.
    Alternatives: Construct providers inside build_context.
    """

    config: AppConfig

    def build(self) -> AiProvider:
        """Summary: Build the configured provider, defaulting to the mock.

        Importance: Unknown provider names fall back to offline mode.
        Alternatives: Raise on unknown provider names.
        """

        if self.config.ai_provider == "ollama":
            return OllamaProvider(self.config.ollama_url, self.config.ollama_model)
        if self.config.ai_provider == "openai":
            if not self.config.openai_api_key:
                raise ValueError("OPENAI_API_KEY is required for openai provider")
            return OpenAiProvider(self.config.openai_api_key, self.config.openai_model)
        if self.config.ai_provider == "anthropic":
            if not self.config.anthropic_api_key:
                raise ValueError("ANTHROPIC_API_KEY is required for anthropic provider")
            return AnthropicProvider(self.config.anthropic_api_key, self.config.anthropic_model)
        return MockAiProvider()


def estimate_tokens(text: str) -> int:
    """Summary: Rough token count at four characters per token.

    Importance: Logged next to each summarizer call to spot oversized prompts.
    Alternatives: Count tokens with a real tokenizer.
    """

    return max(1, len(text) // 4)


def _post_json(request: urllib.request.Request, label: str) -> dict[str, Any]:
    try:
        with urllib.request.urlopen(request, timeout=60) as response:
            return json.loads(response.read().decode("utf-8"))
    except urllib.error.URLError as exc:
        raise SummarizerError(f"{label} request failed: {exc}") from exc
