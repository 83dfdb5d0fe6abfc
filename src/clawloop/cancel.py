"""Cooperative cancellation shared by an agent run and its tool calls."""

from __future__ import annotations

import asyncio
import contextlib
import logging
from collections.abc import Awaitable
from typing import TypeVar

logger = logging.getLogger(__name__)

T = TypeVar("T")


class CancellationToken:
    """A one-shot cancellation signal.

    One token is threaded through a whole agent run: the loop checks it
    before every provider call and every tool execution, and tools receive
    it so long-running work can stop early. Cancellation surfaces as
    ``asyncio.CancelledError`` so it is never absorbed by ``except Exception``.
    """

    def __init__(self) -> None:
        self._event = asyncio.Event()
        self._timer: asyncio.TimerHandle | None = None

    @classmethod
    def with_timeout(cls, seconds: float) -> CancellationToken:
        """Create a token that cancels itself after ``seconds``.

        Must be called from a running event loop.
        """
        token = cls()
        loop = asyncio.get_running_loop()
        token._timer = loop.call_later(seconds, token.cancel)
        return token

    @property
    def cancelled(self) -> bool:
        return self._event.is_set()

    def cancel(self) -> None:
        if self._event.is_set():
            return
        logger.debug("Cancellation requested")
        self._event.set()
        if self._timer is not None:
            self._timer.cancel()
            self._timer = None

    def raise_if_cancelled(self) -> None:
        if self._event.is_set():
            raise asyncio.CancelledError("operation cancelled")

    async def wait(self) -> None:
        """Block until the token is cancelled."""
        await self._event.wait()

    async def guard(self, aw: Awaitable[T]) -> T:
        """Await ``aw``, abandoning it if the token fires first.

        The inner task is cancelled and awaited before
        ``asyncio.CancelledError`` is raised, so nothing is left running.
        """
        self.raise_if_cancelled()
        task = asyncio.ensure_future(aw)
        waiter = asyncio.ensure_future(self._event.wait())
        try:
            await asyncio.wait({task, waiter}, return_when=asyncio.FIRST_COMPLETED)
        finally:
            waiter.cancel()
            if not task.done():
                task.cancel()
                with contextlib.suppress(asyncio.CancelledError):
                    await task

        if task.cancelled():
            raise asyncio.CancelledError("operation cancelled")
        return task.result()
