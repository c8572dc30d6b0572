"""
Cooperative cancellation for a single pipeline run.

One ``CancellationToken`` is created per run and passed by reference to
every call that suspends (backend requests, tracker requests, subprocesses).
Each suspend point calls ``raise_if_cancelled()`` before it starts, and
long network calls go through ``guard()`` so a cancel that lands while the
request is in flight abandons it instead of waiting for the response.

Cancellation is cooperative: nothing is interrupted between suspend points.
"""

from __future__ import annotations

import asyncio
import contextlib
from collections.abc import Awaitable
from typing import TypeVar

from commitlink.core.exceptions import CancelledError

T = TypeVar("T")


class CancellationToken:
    """Cancelled flag plus a lazily created asyncio event for awaiting it."""

    def __init__(self) -> None:
        self._cancelled = False
        self._event: asyncio.Event | None = None
        self._reason = ""

    @property
    def is_cancelled(self) -> bool:
        return self._cancelled

    @property
    def reason(self) -> str:
        return self._reason

    def cancel(self, reason: str = "cancelled by user") -> None:
        if self._cancelled:
            return
        self._cancelled = True
        self._reason = reason
        if self._event is not None:
            self._event.set()

    def raise_if_cancelled(self) -> None:
        if self._cancelled:
            raise CancelledError(self._reason)

    async def wait(self) -> None:
        """Block until ``cancel()`` is called."""
        if self._event is None:
            self._event = asyncio.Event()
            if self._cancelled:
                self._event.set()
        await self._event.wait()

    async def guard(self, awaitable: Awaitable[T]) -> T:
        """Await *awaitable*, abandoning it if the token fires first.

        Raises CancelledError when cancellation wins the race. The
        abandoned task is cancelled and awaited so no request leaks.
        """
        self.raise_if_cancelled()
        work = asyncio.ensure_future(awaitable)
        waiter = asyncio.ensure_future(self.wait())
        try:
            done, _ = await asyncio.wait({work, waiter}, return_when=asyncio.FIRST_COMPLETED)
        finally:
            waiter.cancel()
        if work in done:
            return work.result()

        work.cancel()
        with contextlib.suppress(asyncio.CancelledError, Exception):
            await work
        raise CancelledError(self._reason)


def ensure_token(token: CancellationToken | None) -> CancellationToken:
    """Return *token*, or a fresh never-cancelled one."""
    return token if token is not None else CancellationToken()
