"""
BaseProvider — abstract interface for text-generation backends.

A provider turns one prompt into one block of text through one HTTP call.
It knows its backend's request and response shapes and nothing else:
backend selection, API-key checks, cancellation and output cleanup live in
the gateway (``commitlink.providers.gateway``).

Provider registry:
  Use @ProviderRegistry.register("name") to register a provider class.
  Retrieve with: ProviderRegistry.get("name")
"""

from __future__ import annotations

from abc import ABC, abstractmethod
from typing import Any

import httpx
import structlog

from commitlink.core.constants import (
    DEFAULT_MAX_TOKENS,
    DEFAULT_PROVIDER_TIMEOUT_SECONDS,
    DEFAULT_TEMPERATURE,
    ERROR_BODY_MAX_CHARS,
)
from commitlink.core.exceptions import (
    AuthenticationError,
    NetworkError,
    ProviderError,
    ProviderResponseError,
)

logger = structlog.get_logger()

SYSTEM_PROMPT = "You are a helpful assistant that writes semantic Git commit messages."


def truncate_body(text: str, limit: int = ERROR_BODY_MAX_CHARS) -> str:
    text = text.strip()
    if len(text) > limit:
        return text[:limit] + "..."
    return text


# ---------------------------------------------------------------------------
# Provider ABC
# ---------------------------------------------------------------------------


class BaseProvider(ABC):
    """Abstract text-generation backend."""

    #: Registry key and config selector (e.g. "gemini", "openai")
    provider_name: str = ""

    #: Human-readable name shown in CLI output
    display_name: str = ""

    #: Model used when the config leaves it empty
    default_model: str = ""

    def __init__(
        self,
        api_key: str,
        model: str = "",
        *,
        max_tokens: int = DEFAULT_MAX_TOKENS,
        temperature: float = DEFAULT_TEMPERATURE,
        timeout: float = DEFAULT_PROVIDER_TIMEOUT_SECONDS,
        client: httpx.AsyncClient | None = None,
    ) -> None:
        self._api_key = api_key
        self._model = model or self.default_model
        self._max_tokens = max_tokens
        self._temperature = temperature
        self._timeout = timeout
        self._client = client
        self._owns_client = client is None

    @property
    def model(self) -> str:
        return self._model

    @abstractmethod
    async def generate(self, prompt: str, system: str = SYSTEM_PROMPT) -> str:
        """Send *prompt* and return the raw generated text."""

    async def close(self) -> None:
        """Close the HTTP client if this provider created it."""
        if self._client is not None and self._owns_client:
            await self._client.aclose()
            self._client = None

    # ------------------------------------------------------------------
    # Shared HTTP handling
    # ------------------------------------------------------------------

    def _ensure_client(self) -> httpx.AsyncClient:
        if self._client is None:
            self._client = httpx.AsyncClient(timeout=self._timeout)
            self._owns_client = True
        return self._client

    async def _post_json(
        self,
        url: str,
        payload: dict[str, Any],
        *,
        headers: dict[str, str] | None = None,
        params: dict[str, str] | None = None,
    ) -> dict[str, Any]:
        """POST *payload* and return the decoded JSON object.

        Maps transport failures to NetworkError, 401/403 to
        AuthenticationError, other non-2xx to ProviderError, and redirect
        loops or an undecodable body to ProviderResponseError.
        """
        client = self._ensure_client()
        try:
            resp = await client.post(url, json=payload, headers=headers, params=params)
        except httpx.TransportError as exc:
            logger.warning("provider_unreachable", provider=self.provider_name, error=str(exc))
            raise NetworkError(
                f"{self.display_name}: cannot reach the API ({type(exc).__name__})"
            ) from exc
        except httpx.HTTPError as exc:
            logger.warning("provider_request_failed", provider=self.provider_name, error=str(exc))
            raise ProviderResponseError(
                f"{self.display_name}: unusable response ({type(exc).__name__})"
            ) from exc

        if resp.status_code in (401, 403):
            raise AuthenticationError(
                f"{self.display_name} rejected the API key (HTTP {resp.status_code}). "
                "Check that the key is valid and has access to the selected model.",
                status_code=resp.status_code,
            )
        if not resp.is_success:
            logger.warning(
                "provider_http_error", provider=self.provider_name, status=resp.status_code
            )
            raise ProviderError(
                f"{self.display_name} API error: {resp.status_code} {truncate_body(resp.text)}",
                status_code=resp.status_code,
            )

        try:
            data = resp.json()
        except ValueError as exc:
            raise ProviderResponseError(
                f"{self.display_name} returned a non-JSON response"
            ) from exc
        if not isinstance(data, dict):
            raise ProviderResponseError(f"{self.display_name} returned an unexpected payload")
        return data

    def _missing_text(self, data: dict[str, Any]) -> ProviderResponseError:
        logger.error(
            "provider_response_malformed",
            provider=self.provider_name,
            keys=sorted(data.keys()),
        )
        return ProviderResponseError(f"Received invalid response from {self.display_name}.")


# ---------------------------------------------------------------------------
# Provider registry
# ---------------------------------------------------------------------------


class _ProviderRegistryMeta(type):
    _registry: dict[str, type[BaseProvider]] = {}


class ProviderRegistry(metaclass=_ProviderRegistryMeta):
    """Global registry of available text-generation backends."""

    @classmethod
    def register(cls, name: str) -> Any:
        """Decorator: @ProviderRegistry.register("gemini")"""

        def decorator(provider_cls: type[BaseProvider]) -> type[BaseProvider]:
            cls._registry[name] = provider_cls
            return provider_cls

        return decorator

    @classmethod
    def get(cls, name: str) -> type[BaseProvider]:
        if name not in cls._registry:
            available = ", ".join(sorted(cls._registry.keys())) or "(none)"
            raise KeyError(f"Unknown provider: {name!r}. Available: {available}")
        return cls._registry[name]

    @classmethod
    def list_all(cls) -> dict[str, type[BaseProvider]]:
        return dict(cls._registry)
