"""Secrets kept in the OS keychain and referenced from config.toml.

With ``config init --use-keyring`` the backend API key and the GitHub token
are written to the keychain, and ``config.toml`` holds a placeholder of the
form ``keyring:<service>:<entry>`` in their place. ``load_config`` swaps the
placeholders back for the secrets before validation.
"""

from __future__ import annotations

from typing import NamedTuple

import keyring
import keyring.errors
import structlog
from keyring.backends import fail, null

from commitlink.core.exceptions import ConfigurationError

logger = structlog.get_logger()

SERVICE_NAME = "commitlink"
KEYRING_PREFIX = "keyring:"


class KeyringRef(NamedTuple):
    service: str
    entry: str

    @property
    def placeholder(self) -> str:
        return f"{KEYRING_PREFIX}{self.service}:{self.entry}"

    @classmethod
    def parse(cls, value: str) -> KeyringRef | None:
        """Split ``keyring:<service>:<entry>``; None when either part is missing."""
        service, sep, entry = value.removeprefix(KEYRING_PREFIX).partition(":")
        if not (sep and service and entry):
            return None
        return cls(service, entry)


def is_keyring_placeholder(value: object) -> bool:
    return isinstance(value, str) and value.startswith(KEYRING_PREFIX)


def is_keyring_available() -> bool:
    """False when keyring resolved to a backend that cannot hold secrets."""
    try:
        backend = keyring.get_keyring()
    except keyring.errors.KeyringError:
        return False
    return not isinstance(backend, (fail.Keyring, null.Keyring))


def store_token(key: str, token: str) -> str:
    """Write *token* under *key* and return the placeholder for config.toml."""
    ref = KeyringRef(SERVICE_NAME, key)
    try:
        keyring.set_password(ref.service, ref.entry, token)
    except keyring.errors.KeyringError as exc:
        raise ConfigurationError(f"Cannot store {key} in the OS keychain: {exc}") from exc
    logger.debug("keyring_token_stored", key=key)
    return ref.placeholder


def retrieve_token(placeholder: str) -> str | None:
    """Look up the secret behind *placeholder*.

    None means the value is not a placeholder, is malformed, the keychain
    refused the lookup, or nothing is stored there.
    """
    if not is_keyring_placeholder(placeholder):
        return None
    ref = KeyringRef.parse(placeholder)
    if ref is None:
        logger.warning("keyring_placeholder_malformed", placeholder=placeholder)
        return None
    try:
        return keyring.get_password(ref.service, ref.entry)
    except keyring.errors.KeyringError as exc:
        logger.warning(
            "keyring_retrieve_failed", service=ref.service, entry=ref.entry, error=str(exc)
        )
        return None
