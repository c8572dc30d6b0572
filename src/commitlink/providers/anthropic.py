"""
Anthropic Claude provider — Messages API via httpx.

Uses https://docs.anthropic.com/en/api/messages. No SDK dependency.
"""

from __future__ import annotations

from typing import Any

from commitlink.core.constants import DEFAULT_ANTHROPIC_MODEL
from commitlink.providers.base import SYSTEM_PROMPT, BaseProvider, ProviderRegistry

_API_URL = "https://api.anthropic.com/v1/messages"
_API_VERSION = "2023-06-01"


@ProviderRegistry.register("anthropic")
class AnthropicProvider(BaseProvider):
    """Anthropic Claude API provider."""

    provider_name = "anthropic"
    display_name = "Claude (Anthropic)"
    default_model = DEFAULT_ANTHROPIC_MODEL

    async def generate(self, prompt: str, system: str = SYSTEM_PROMPT) -> str:
        data = await self._post_json(
            _API_URL,
            self._build_payload(prompt, system),
            headers=self._headers(),
        )
        text = self._parse_response(data)
        if text is None:
            raise self._missing_text(data)
        return text

    def _headers(self) -> dict[str, str]:
        return {
            "x-api-key": self._api_key,
            "anthropic-version": _API_VERSION,
            "content-type": "application/json",
        }

    def _build_payload(self, prompt: str, system: str) -> dict[str, Any]:
        payload: dict[str, Any] = {
            "model": self._model,
            "max_tokens": self._max_tokens,
            "temperature": self._temperature,
            "messages": [{"role": "user", "content": prompt}],
        }
        if system:
            payload["system"] = system
        return payload

    @staticmethod
    def _parse_response(data: dict[str, Any]) -> str | None:
        blocks = data.get("content")
        if not isinstance(blocks, list):
            return None
        texts = [
            block["text"]
            for block in blocks
            if isinstance(block, dict)
            and block.get("type") == "text"
            and isinstance(block.get("text"), str)
        ]
        if not texts:
            return None
        return "\n".join(texts)
