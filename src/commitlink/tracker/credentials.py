"""
GitHub credential resolution.

``CredentialResolver`` walks an ordered list of async resolver functions and
returns the first non-empty token:

  1. the interactive-session provider, asked for an *existing* session
     without prompting (``gh auth token``),
  2. the statically configured token (``[issues].token`` / GITHUB_TOKEN).

Resolution never prompts. Interactive sign-in (``gh auth login``) only
happens through ``sign_in()``, which the CLI calls for an explicit
``commitlink auth login``.
"""

from __future__ import annotations

import asyncio
import shutil
from collections.abc import Awaitable, Callable, Sequence
from typing import Protocol

import structlog

from commitlink.core.constants import GITHUB_SCOPES

logger = structlog.get_logger()

TokenSource = Callable[[], Awaitable[str | None]]


class SessionProvider(Protocol):
    """An external sign-in session source (editor account, CLI login, ...)."""

    async def get_session(self, prompt_if_absent: bool) -> str | None: ...


def _gh_command(*args: str) -> list[str]:
    """Return a GitHub CLI command preferring the absolute path when available."""
    gh_path = shutil.which("gh")
    return [gh_path or "gh", *args]


class GhCliSessionProvider:
    """Session provider backed by the GitHub CLI's stored login."""

    def __init__(self, hostname: str = "github.com") -> None:
        self._hostname = hostname

    async def get_session(self, prompt_if_absent: bool) -> str | None:
        token = await self._stored_token()
        if token or not prompt_if_absent:
            return token

        logger.info("gh_login_started", hostname=self._hostname)
        proc = await asyncio.create_subprocess_exec(
            *_gh_command(
                "auth",
                "login",
                "--hostname",
                self._hostname,
                "--web",
                "--scopes",
                ",".join(GITHUB_SCOPES),
            )
        )
        await proc.wait()
        if proc.returncode != 0:
            logger.warning("gh_login_failed", returncode=proc.returncode)
            return None
        return await self._stored_token()

    async def _stored_token(self) -> str | None:
        try:
            proc = await asyncio.create_subprocess_exec(
                *_gh_command("auth", "token", "--hostname", self._hostname),
                stdout=asyncio.subprocess.PIPE,
                stderr=asyncio.subprocess.PIPE,
            )
        except OSError:
            logger.debug("gh_cli_unavailable")
            return None
        stdout, _ = await proc.communicate()
        if proc.returncode != 0:
            return None
        token = stdout.decode("utf-8", errors="replace").strip()
        return token or None


class CredentialResolver:
    """Ordered credential sources, first success wins."""

    def __init__(
        self,
        session_provider: SessionProvider | None = None,
        static_token: str = "",
        *,
        sources: Sequence[tuple[str, TokenSource]] | None = None,
    ) -> None:
        self._session_provider = session_provider
        self._static_token = static_token.strip()
        if sources is None:
            sources = [
                ("session", self._from_session),
                ("static", self._from_static),
            ]
        self._sources = list(sources)
        self.last_source: str | None = None

    async def resolve_token(self) -> str | None:
        """Return a usable token, or None when no source has one."""
        self.last_source = None
        for name, source in self._sources:
            try:
                token = await source()
            except Exception as exc:  # noqa: BLE001
                logger.warning("credential_source_failed", source=name, error=str(exc))
                continue
            if token:
                self.last_source = name
                logger.debug("credential_resolved", source=name)
                return token
        logger.info("credential_unavailable")
        return None

    async def sign_in(self) -> str | None:
        """Run the interactive sign-in flow. Only for explicit user action."""
        if self._session_provider is None:
            return None
        token = await self._session_provider.get_session(prompt_if_absent=True)
        if token:
            self.last_source = "session"
        return token

    async def _from_session(self) -> str | None:
        if self._session_provider is None:
            return None
        return await self._session_provider.get_session(prompt_if_absent=False)

    async def _from_static(self) -> str | None:
        return self._static_token or None
