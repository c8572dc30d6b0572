"""
Git diff source.

Staged changes win: ``git diff --cached`` is used when it is non-empty,
otherwise the unstaged working-tree diff (``git diff``). Any git failure is
raised as ``DiffUnavailableError``.
"""

from __future__ import annotations

import asyncio
import re
import shutil
from pathlib import Path
from typing import Protocol

import structlog

from commitlink.core.exceptions import DiffUnavailableError

logger = structlog.get_logger()

# https://github.com/owner/repo(.git) | git@github.com:owner/repo(.git) | ssh://git@github.com/owner/repo
_GITHUB_REMOTE = re.compile(
    r"github\.com[:/](?P<owner>[A-Za-z0-9_.-]+)/(?P<repo>[A-Za-z0-9_.-]+?)(?:\.git)?/?$"
)


class DiffSource(Protocol):
    """Anything that can hand the pipeline the pending change as text."""

    async def get_change(self, root: Path) -> str: ...


def parse_github_remote(url: str) -> str | None:
    """Return ``owner/repo`` for a GitHub remote URL, else None."""
    match = _GITHUB_REMOTE.search(url.strip())
    if match is None:
        return None
    return f"{match['owner']}/{match['repo']}"


class GitDiffSource:
    """Reads the pending change from a git working tree."""

    def __init__(self, git: str | None = None) -> None:
        self._git = git or shutil.which("git") or "git"

    async def get_change(self, root: Path) -> str:
        staged = await self._run(root, "diff", "--cached")
        if staged.strip():
            logger.debug("diff_collected", source="staged", chars=len(staged))
            return staged
        unstaged = await self._run(root, "diff")
        logger.debug("diff_collected", source="working_tree", chars=len(unstaged))
        return unstaged

    async def remote_repository(self, root: Path, remote: str = "origin") -> str | None:
        """Return ``owner/repo`` of the GitHub *remote*, or None."""
        try:
            url = await self._run(root, "remote", "get-url", remote)
        except DiffUnavailableError:
            return None
        return parse_github_remote(url)

    async def _run(self, root: Path, *args: str) -> str:
        try:
            proc = await asyncio.create_subprocess_exec(
                self._git,
                *args,
                cwd=str(root),
                stdout=asyncio.subprocess.PIPE,
                stderr=asyncio.subprocess.PIPE,
            )
        except OSError as exc:
            raise DiffUnavailableError(f"Cannot run git: {exc}") from exc

        stdout, stderr = await proc.communicate()
        err = stderr.decode("utf-8", errors="replace").strip()
        if err:
            logger.debug("git_stderr", command=" ".join(args), stderr=err)
        if proc.returncode != 0:
            raise DiffUnavailableError(f"git {' '.join(args)} failed: {err or proc.returncode}")
        return stdout.decode("utf-8", errors="replace")
