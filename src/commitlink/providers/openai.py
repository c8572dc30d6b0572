"""
OpenAI GPT provider — Chat Completions API via httpx.

Uses https://platform.openai.com/docs/api-reference/chat. No SDK dependency.
"""

from __future__ import annotations

from typing import Any

from commitlink.core.constants import DEFAULT_OPENAI_MODEL
from commitlink.providers.base import SYSTEM_PROMPT, BaseProvider, ProviderRegistry

_API_URL = "https://api.openai.com/v1/chat/completions"


@ProviderRegistry.register("openai")
class OpenAIProvider(BaseProvider):
    """OpenAI GPT API provider."""

    provider_name = "openai"
    display_name = "OpenAI"
    default_model = DEFAULT_OPENAI_MODEL

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
            "Authorization": f"Bearer {self._api_key}",
            "Content-Type": "application/json",
        }

    def _build_payload(self, prompt: str, system: str) -> dict[str, Any]:
        messages: list[dict[str, str]] = []
        if system:
            messages.append({"role": "system", "content": system})
        messages.append({"role": "user", "content": prompt})
        return {
            "model": self._model,
            "messages": messages,
            "temperature": self._temperature,
            "max_tokens": self._max_tokens,
        }

    @staticmethod
    def _parse_response(data: dict[str, Any]) -> str | None:
        choices = data.get("choices")
        if not isinstance(choices, list) or not choices:
            return None
        choice = choices[0]
        if not isinstance(choice, dict):
            return None
        message = choice.get("message")
        if not isinstance(message, dict):
            return None
        content = message.get("content")
        return content if isinstance(content, str) else None
