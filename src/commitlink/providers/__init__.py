"""
Text-generation backends — direct API integration via httpx.

Each provider turns one prompt into one block of text. ``TextGateway`` picks
the provider named in the config, enforces API-key and cancellation rules,
and normalises the output.

Importing this package registers the built-in providers so that
ProviderRegistry.get("gemini") works without explicit imports.
"""

# Auto-register built-in providers
from commitlink.providers import anthropic as _anthropic  # noqa: F401
from commitlink.providers import google as _google  # noqa: F401
from commitlink.providers import openai as _openai  # noqa: F401
from commitlink.providers.base import BaseProvider, ProviderRegistry  # noqa: F401
from commitlink.providers.gateway import TextGateway  # noqa: F401
