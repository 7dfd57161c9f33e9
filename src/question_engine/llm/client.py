from __future__ import annotations

import logging
from typing import Protocol

from question_engine.http import HttpClientFactory, transient_retry

logger = logging.getLogger(__name__)


class LLMProvider(Protocol):
    async def complete(self, prompt: str, *, max_tokens: int, temperature: float) -> str: ...


class AnthropicLLM:
    """Anthropic Messages API client returning the first text block."""

    api_version = "2023-06-01"

    def __init__(self, *, api_key: str, model: str, base_url: str = "https://api.anthropic.com"):
        self.model = model
        self._client = HttpClientFactory.client(
            base_url=base_url,
            headers={
                "x-api-key": api_key,
                "anthropic-version": self.api_version,
                "content-type": "application/json",
            },
            read_timeout=120.0,
        )

    async def aclose(self) -> None:
        await self._client.aclose()

    @transient_retry()
    async def complete(self, prompt: str, *, max_tokens: int, temperature: float) -> str:
        r = await self._client.post(
            "/v1/messages",
            json={
                "model": self.model,
                "max_tokens": max_tokens,
                "temperature": temperature,
                "messages": [{"role": "user", "content": prompt}],
            },
        )
        r.raise_for_status()
        data = r.json()
        usage = data.get("usage") or {}
        logger.debug(
            "LLM completion tokens in=%s out=%s", usage.get("input_tokens"), usage.get("output_tokens")
        )
        for block in data.get("content") or []:
            if block.get("type") == "text":
                return block.get("text") or ""
        return ""


class UnconfiguredLLM:
    """Stand-in when no API key is set; every call fails like an outage would."""

    async def complete(self, prompt: str, *, max_tokens: int, temperature: float) -> str:
        raise RuntimeError("LLM provider not configured. Set QUESTION_ENGINE_ANTHROPIC_API_KEY.")

    async def aclose(self) -> None:
        return None


def build_llm(*, api_key: str | None, model: str, base_url: str) -> LLMProvider:
    if api_key:
        return AnthropicLLM(api_key=api_key, model=model, base_url=base_url)
    return UnconfiguredLLM()
