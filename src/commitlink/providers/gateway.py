"""
TextGateway — one ``generate(prompt, cancellation)`` call over every backend.

The gateway reads the backend selector from the config on every call, so a
config change between runs takes effect without rebuilding anything. For
each call it:

  1. checks the cancellation token,
  2. resolves the provider class from ``ProviderRegistry``,
  3. requires a non-empty API key,
  4. issues the request, racing it against the token,
  5. normalises the text with ``clean_generated_text``.

Provider instances are cached per (backend, model, key) and share one
``httpx.AsyncClient`` owned by the gateway.
"""

from __future__ import annotations

import hashlib

import httpx
import structlog

from commitlink.core.cancellation import CancellationToken, ensure_token
from commitlink.core.config import ProviderConfig
from commitlink.core.exceptions import ConfigurationError
from commitlink.providers.base import SYSTEM_PROMPT, BaseProvider, ProviderRegistry
from commitlink.providers.normalize import clean_generated_text

logger = structlog.get_logger()


class TextGateway:
    """Uniform request/response contract over the registered backends."""

    def __init__(
        self,
        config: ProviderConfig,
        *,
        client: httpx.AsyncClient | None = None,
    ) -> None:
        self._config = config
        self._client = client
        self._owns_client = client is None
        self._providers: dict[tuple[str, str, str], BaseProvider] = {}

    async def __aenter__(self) -> TextGateway:
        return self

    async def __aexit__(self, *_: object) -> None:
        await self.aclose()

    @property
    def provider_name(self) -> str:
        return self._config.name

    async def generate(
        self,
        prompt: str,
        cancellation: CancellationToken | None = None,
        *,
        system: str = SYSTEM_PROMPT,
    ) -> str:
        """Generate text for *prompt* with the configured backend.

        Raises ConfigurationError, CancelledError, ProviderError (and its
        AuthenticationError subclass), NetworkError or ProviderResponseError.
        """
        token = ensure_token(cancellation)
        token.raise_if_cancelled()

        provider = self._provider()
        log = logger.bind(provider=provider.provider_name, model=provider.model)
        log.debug("generation_started", prompt_chars=len(prompt))

        raw = await token.guard(provider.generate(prompt, system))
        token.raise_if_cancelled()

        text = clean_generated_text(raw)
        log.debug("generation_finished", text_chars=len(text))
        return text

    async def aclose(self) -> None:
        self._providers.clear()
        if self._client is not None and self._owns_client:
            await self._client.aclose()
        self._client = None

    # ------------------------------------------------------------------
    # Private helpers
    # ------------------------------------------------------------------

    def _provider(self) -> BaseProvider:
        name = self._config.name
        try:
            provider_cls = ProviderRegistry.get(name)
        except KeyError as exc:
            available = ", ".join(sorted(ProviderRegistry.list_all()))
            raise ConfigurationError(
                f"Unsupported AI provider: {name!r}. Supported: {available}"
            ) from exc

        api_key = self._config.api_key_value()
        if not api_key:
            raise ConfigurationError(
                "No API key configured for the text-generation backend. "
                "Set [provider].api_key or COMMITLINK_API_KEY."
            )

        model = self._config.model_for(name)
        key_id = hashlib.sha256(api_key.encode()).hexdigest()[:12]
        cache_key = (name, model, key_id)
        if cache_key not in self._providers:
            self._providers[cache_key] = provider_cls(
                api_key,
                model,
                max_tokens=self._config.max_tokens,
                temperature=self._config.temperature,
                timeout=self._config.timeout_seconds,
                client=self._http_client(),
            )
        return self._providers[cache_key]

    def _http_client(self) -> httpx.AsyncClient:
        if self._client is None:
            self._client = httpx.AsyncClient(timeout=self._config.timeout_seconds)
            self._owns_client = True
        return self._client
