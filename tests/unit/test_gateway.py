"""Unit tests for TextGateway and output normalisation."""

from __future__ import annotations

import asyncio

import httpx
import pytest

from commitlink.core.cancellation import CancellationToken
from commitlink.core.config import ProviderConfig
from commitlink.core.exceptions import CancelledError, ConfigurationError, ProviderError
from commitlink.providers import TextGateway
from commitlink.providers.normalize import clean_generated_text, strip_fences


def _openai_reply(text: str) -> httpx.Response:
    return httpx.Response(200, json={"choices": [{"message": {"content": text}}]})


class _Recorder:
    """MockTransport handler that records requests and replies from a queue."""

    def __init__(self, *replies: httpx.Response) -> None:
        self.requests: list[httpx.Request] = []
        self._replies = list(replies)

    def __call__(self, request: httpx.Request) -> httpx.Response:
        self.requests.append(request)
        return self._replies.pop(0)


def _gateway(cfg: ProviderConfig, recorder: _Recorder) -> TextGateway:
    client = httpx.AsyncClient(transport=httpx.MockTransport(recorder))
    return TextGateway(cfg, client=client)


# ---------------------------------------------------------------------------
# normalisation
# ---------------------------------------------------------------------------


class TestCleanGeneratedText:
    def test_plain_text_trimmed(self) -> None:
        assert clean_generated_text("  feat: add x \n") == "feat: add x"

    def test_fenced_with_language(self) -> None:
        text = "```text\nfeat: add x\n\nbody line\n```"
        assert clean_generated_text(text) == "feat: add x\n\nbody line"

    def test_bare_fence(self) -> None:
        assert clean_generated_text("```\nfix: y\n```\n") == "fix: y"

    def test_collapses_blank_runs(self) -> None:
        assert clean_generated_text("a\n\n\n\n\nb") == "a\n\nb"

    def test_crlf_normalised(self) -> None:
        assert clean_generated_text("a\r\n\r\n\r\n\r\nb") == "a\n\nb"

    def test_inline_code_at_end_preserved(self) -> None:
        assert clean_generated_text("chore: bump `pydantic`") == "chore: bump `pydantic`"

    @pytest.mark.parametrize(
        "text",
        ["fix: handle save crash`", "fix: handle save crash``", "fix: handle save crash `\n"],
    )
    def test_stray_trailing_backticks_removed(self, text: str) -> None:
        assert clean_generated_text(text) == "fix: handle save crash"

    def test_single_line_fence_keeps_word(self) -> None:
        # No newline after the opening fence: the word is content, not a language tag
        assert strip_fences("```feat: x```") == "feat: x"

    def test_same_result_for_every_backend_shape(self) -> None:
        variants = ["```\nmsg\n```", "msg", "\n\nmsg\n\n", "```md\nmsg\n```"]
        assert {clean_generated_text(v) for v in variants} == {"msg"}


# ---------------------------------------------------------------------------
# gateway
# ---------------------------------------------------------------------------


class TestTextGateway:
    @pytest.mark.asyncio
    async def test_generate_cleans_output(self) -> None:
        rec = _Recorder(_openai_reply("```\nfeat: add gateway\n```"))
        cfg = ProviderConfig(name="openai", api_key="sk-test")
        async with _gateway(cfg, rec) as gw:
            assert await gw.generate("prompt") == "feat: add gateway"
        assert len(rec.requests) == 1

    @pytest.mark.asyncio
    async def test_missing_key_is_configuration_error(self) -> None:
        rec = _Recorder()
        cfg = ProviderConfig(name="openai")
        async with _gateway(cfg, rec) as gw:
            with pytest.raises(ConfigurationError):
                await gw.generate("prompt")
        assert rec.requests == []

    @pytest.mark.asyncio
    async def test_blank_key_is_configuration_error(self) -> None:
        cfg = ProviderConfig(name="gemini", api_key="   ")
        async with _gateway(cfg, _Recorder()) as gw:
            with pytest.raises(ConfigurationError):
                await gw.generate("prompt")

    @pytest.mark.asyncio
    async def test_unknown_selector_is_configuration_error(self) -> None:
        cfg = ProviderConfig(name="mistral", api_key="k")
        async with _gateway(cfg, _Recorder()) as gw:
            with pytest.raises(ConfigurationError, match="Unsupported AI provider"):
                await gw.generate("prompt")

    @pytest.mark.asyncio
    async def test_cancelled_before_call_sends_nothing(self) -> None:
        rec = _Recorder(_openai_reply("unused"))
        cfg = ProviderConfig(name="openai", api_key="sk-test")
        token = CancellationToken()
        token.cancel()
        async with _gateway(cfg, rec) as gw:
            with pytest.raises(CancelledError):
                await gw.generate("prompt", token)
        assert rec.requests == []

    @pytest.mark.asyncio
    async def test_cancel_during_request(self) -> None:
        token = CancellationToken()

        async def slow_handler(request: httpx.Request) -> httpx.Response:
            token.cancel()
            await asyncio.sleep(5)
            return _openai_reply("too late")

        client = httpx.AsyncClient(transport=httpx.MockTransport(slow_handler))
        cfg = ProviderConfig(name="openai", api_key="sk-test")
        async with TextGateway(cfg, client=client) as gw:
            with pytest.raises(CancelledError):
                await asyncio.wait_for(gw.generate("prompt", token), timeout=2)

    @pytest.mark.asyncio
    async def test_selector_read_at_call_time(self) -> None:
        hosts: list[str] = []

        def handler(request: httpx.Request) -> httpx.Response:
            hosts.append(request.url.host)
            if request.url.host == "api.anthropic.com":
                return httpx.Response(200, json={"content": [{"type": "text", "text": "b"}]})
            return _openai_reply("a")

        client = httpx.AsyncClient(transport=httpx.MockTransport(handler))
        cfg = ProviderConfig(name="openai", api_key="k")
        async with TextGateway(cfg, client=client) as gw:
            assert await gw.generate("p") == "a"
            cfg.name = "anthropic"
            assert await gw.generate("p") == "b"
        assert hosts == ["api.openai.com", "api.anthropic.com"]

    @pytest.mark.asyncio
    async def test_provider_error_propagates(self) -> None:
        rec = _Recorder(httpx.Response(429, text="rate limited"))
        cfg = ProviderConfig(name="openai", api_key="sk-test")
        async with _gateway(cfg, rec) as gw:
            with pytest.raises(ProviderError, match="429"):
                await gw.generate("prompt")
