"""Unit tests for the text-generation providers (httpx.MockTransport, no network)."""

from __future__ import annotations

import json
from collections.abc import Callable

import httpx
import pytest

import commitlink.providers  # noqa: F401  (registers built-in providers)
from commitlink.core.exceptions import (
    AuthenticationError,
    NetworkError,
    ProviderError,
    ProviderResponseError,
)
from commitlink.providers.anthropic import AnthropicProvider
from commitlink.providers.base import ProviderRegistry, truncate_body
from commitlink.providers.google import GeminiProvider
from commitlink.providers.openai import OpenAIProvider

Handler = Callable[[httpx.Request], httpx.Response]


def _client(handler: Handler) -> httpx.AsyncClient:
    return httpx.AsyncClient(transport=httpx.MockTransport(handler))


# ---------------------------------------------------------------------------
# Registry
# ---------------------------------------------------------------------------


class TestProviderRegistry:
    def test_builtins_registered(self) -> None:
        names = ProviderRegistry.list_all()
        assert {"gemini", "openai", "anthropic"} <= set(names)

    def test_get_returns_class(self) -> None:
        assert ProviderRegistry.get("openai") is OpenAIProvider

    def test_unknown_raises_key_error(self) -> None:
        with pytest.raises(KeyError):
            ProviderRegistry.get("llama-local")


# ---------------------------------------------------------------------------
# Gemini
# ---------------------------------------------------------------------------


class TestGeminiProvider:
    @pytest.mark.asyncio
    async def test_request_shape_and_parse(self) -> None:
        seen: dict = {}

        def handler(request: httpx.Request) -> httpx.Response:
            seen["url"] = str(request.url)
            seen["body"] = json.loads(request.content)
            return httpx.Response(
                200,
                json={"candidates": [{"content": {"parts": [{"text": "feat: add"}, {"text": " x"}]}}]},
            )

        provider = GeminiProvider("g-key", client=_client(handler))
        text = await provider.generate("PROMPT", "SYS")

        assert text == "feat: add x"
        assert ":generateContent" in seen["url"]
        assert "gemini-2.0-flash" in seen["url"]
        assert "key=g-key" in seen["url"]
        assert seen["body"]["contents"][0]["parts"][0]["text"] == "PROMPT"
        assert seen["body"]["systemInstruction"]["parts"][0]["text"] == "SYS"

    @pytest.mark.asyncio
    async def test_missing_candidates_is_response_error(self) -> None:
        provider = GeminiProvider(
            "g-key", client=_client(lambda r: httpx.Response(200, json={"candidates": []}))
        )
        with pytest.raises(ProviderResponseError):
            await provider.generate("p")


# ---------------------------------------------------------------------------
# OpenAI
# ---------------------------------------------------------------------------


class TestOpenAIProvider:
    @pytest.mark.asyncio
    async def test_bearer_header_and_parse(self) -> None:
        seen: dict = {}

        def handler(request: httpx.Request) -> httpx.Response:
            seen["auth"] = request.headers.get("authorization")
            seen["body"] = json.loads(request.content)
            return httpx.Response(
                200, json={"choices": [{"message": {"role": "assistant", "content": "fix: y"}}]}
            )

        provider = OpenAIProvider("sk-test", "gpt-4o-mini", client=_client(handler))
        assert await provider.generate("PROMPT") == "fix: y"
        assert seen["auth"] == "Bearer sk-test"
        assert seen["body"]["model"] == "gpt-4o-mini"
        assert seen["body"]["messages"][-1] == {"role": "user", "content": "PROMPT"}

    @pytest.mark.asyncio
    async def test_null_content_is_response_error(self) -> None:
        provider = OpenAIProvider(
            "sk-test",
            client=_client(
                lambda r: httpx.Response(200, json={"choices": [{"message": {"content": None}}]})
            ),
        )
        with pytest.raises(ProviderResponseError):
            await provider.generate("p")

    @pytest.mark.asyncio
    @pytest.mark.parametrize("status", [401, 403])
    async def test_auth_failure(self, status: int) -> None:
        provider = OpenAIProvider(
            "sk-bad", client=_client(lambda r: httpx.Response(status, text="nope"))
        )
        with pytest.raises(AuthenticationError) as exc_info:
            await provider.generate("p")
        assert exc_info.value.status_code == status
        assert "sk-bad" not in str(exc_info.value)

    @pytest.mark.asyncio
    async def test_server_error_truncates_body(self) -> None:
        body = "x" * 1000
        provider = OpenAIProvider(
            "sk-test", client=_client(lambda r: httpx.Response(500, text=body))
        )
        with pytest.raises(ProviderError) as exc_info:
            await provider.generate("p")
        assert exc_info.value.status_code == 500
        assert "500" in str(exc_info.value)
        assert len(str(exc_info.value)) < 300

    @pytest.mark.asyncio
    async def test_transport_error_is_network_error(self) -> None:
        def handler(request: httpx.Request) -> httpx.Response:
            raise httpx.ConnectError("unreachable", request=request)

        provider = OpenAIProvider("sk-test", client=_client(handler))
        with pytest.raises(NetworkError):
            await provider.generate("p")

    @pytest.mark.asyncio
    async def test_non_json_success_is_response_error(self) -> None:
        provider = OpenAIProvider(
            "sk-test", client=_client(lambda r: httpx.Response(200, text="<html>"))
        )
        with pytest.raises(ProviderResponseError):
            await provider.generate("p")

    @pytest.mark.asyncio
    async def test_undecodable_body_is_response_error(self) -> None:
        def handler(request: httpx.Request) -> httpx.Response:
            return httpx.Response(
                200,
                headers={"Content-Encoding": "gzip"},
                stream=httpx.ByteStream(b"plain bytes, not gzip"),
            )

        provider = OpenAIProvider("sk-test", client=_client(handler))
        with pytest.raises(ProviderResponseError, match="DecodingError"):
            await provider.generate("p")

    @pytest.mark.asyncio
    async def test_redirect_loop_is_response_error(self) -> None:
        def handler(request: httpx.Request) -> httpx.Response:
            return httpx.Response(307, headers={"Location": str(request.url)})

        client = httpx.AsyncClient(transport=httpx.MockTransport(handler), follow_redirects=True)
        provider = OpenAIProvider("sk-test", client=client)
        with pytest.raises(ProviderResponseError, match="TooManyRedirects"):
            await provider.generate("p")


# ---------------------------------------------------------------------------
# Anthropic
# ---------------------------------------------------------------------------


class TestAnthropicProvider:
    @pytest.mark.asyncio
    async def test_headers_and_text_blocks(self) -> None:
        seen: dict = {}

        def handler(request: httpx.Request) -> httpx.Response:
            seen["key"] = request.headers.get("x-api-key")
            seen["version"] = request.headers.get("anthropic-version")
            return httpx.Response(
                200,
                json={
                    "content": [
                        {"type": "text", "text": "docs: update"},
                        {"type": "tool_use", "id": "t1"},
                    ]
                },
            )

        provider = AnthropicProvider("ak-test", client=_client(handler))
        assert await provider.generate("p") == "docs: update"
        assert seen["key"] == "ak-test"
        assert seen["version"] == "2023-06-01"

    @pytest.mark.asyncio
    async def test_no_text_block_is_response_error(self) -> None:
        provider = AnthropicProvider(
            "ak-test", client=_client(lambda r: httpx.Response(200, json={"content": []}))
        )
        with pytest.raises(ProviderResponseError):
            await provider.generate("p")


class TestTruncateBody:
    def test_short_body_unchanged(self) -> None:
        assert truncate_body("  short  ") == "short"

    def test_long_body_cut(self) -> None:
        out = truncate_body("a" * 500)
        assert out == "a" * 200 + "..."
