"""
Google Gemini provider — Generative Language API via httpx.

Uses ``models/{model}:generateContent``
(https://ai.google.dev/api/generate-content). No SDK dependency.
"""

from __future__ import annotations

from typing import Any

from commitlink.core.constants import DEFAULT_GEMINI_MODEL
from commitlink.providers.base import SYSTEM_PROMPT, BaseProvider, ProviderRegistry

_API_BASE = "https://generativelanguage.googleapis.com/v1beta/models"


@ProviderRegistry.register("gemini")
class GeminiProvider(BaseProvider):
    """Google Gemini API provider."""

    provider_name = "gemini"
    display_name = "Gemini"
    default_model = DEFAULT_GEMINI_MODEL

    async def generate(self, prompt: str, system: str = SYSTEM_PROMPT) -> str:
        data = await self._post_json(
            f"{_API_BASE}/{self._model}:generateContent",
            self._build_payload(prompt, system),
            params={"key": self._api_key},
            headers={"Content-Type": "application/json"},
        )
        text = self._parse_response(data)
        if text is None:
            raise self._missing_text(data)
        return text

    def _build_payload(self, prompt: str, system: str) -> dict[str, Any]:
        payload: dict[str, Any] = {
            "contents": [{"role": "user", "parts": [{"text": prompt}]}],
            "generationConfig": {
                "maxOutputTokens": self._max_tokens,
                "temperature": self._temperature,
            },
        }
        if system:
            payload["systemInstruction"] = {"parts": [{"text": system}]}
        return payload

    @staticmethod
    def _parse_response(data: dict[str, Any]) -> str | None:
        candidates = data.get("candidates")
        if not isinstance(candidates, list) or not candidates:
            return None
        content = candidates[0].get("content") if isinstance(candidates[0], dict) else None
        if not isinstance(content, dict):
            return None
        texts = [
            part["text"]
            for part in content.get("parts", [])
            if isinstance(part, dict) and isinstance(part.get("text"), str)
        ]
        if not texts:
            return None
        return "".join(texts)
