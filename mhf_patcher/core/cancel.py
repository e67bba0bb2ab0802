"""Cooperative cancellation for the download phase."""

from __future__ import annotations

import asyncio
import contextlib
from collections.abc import Awaitable
from typing import TypeVar

T = TypeVar("T")


class OperationCancelled(Exception):
    """Raised by CancellationToken.race when the token fires first."""


class CancellationToken:
    """A one-shot cancellation signal shared by a whole patch run.

    The token is checked only at suspension points that are explicitly
    raced against it; work that is not raced always runs to completion.
    Methods must be called from the event loop thread, except
    cancel_threadsafe.
    """

    def __init__(self) -> None:
        self._event = asyncio.Event()

    @property
    def cancelled(self) -> bool:
        """Whether cancel has been called."""
        return self._event.is_set()

    def cancel(self) -> None:
        """Fire the token. Calling it more than once is harmless."""
        self._event.set()

    def cancel_threadsafe(self, loop: asyncio.AbstractEventLoop) -> None:
        """Fire the token from a thread other than the loop's."""
        loop.call_soon_threadsafe(self._event.set)

    async def wait(self) -> None:
        """Suspend until the token fires."""
        await self._event.wait()

    async def race(self, awaitable: Awaitable[T]) -> T:
        """Await something unless the token fires first.

        Args:
            awaitable: Work to run

        Returns:
            The awaitable's result

        Raises:
            OperationCancelled: If the token fired before the work finished.
                The pending work is cancelled.
        """
        work = asyncio.ensure_future(awaitable)
        if self.cancelled:
            work.cancel()
            with contextlib.suppress(asyncio.CancelledError):
                await work
            raise OperationCancelled()

        waiter = asyncio.ensure_future(self._event.wait())
        try:
            done, _ = await asyncio.wait(
                {work, waiter}, return_when=asyncio.FIRST_COMPLETED
            )
        except asyncio.CancelledError:
            work.cancel()
            raise
        finally:
            waiter.cancel()

        if work in done:
            return work.result()

        work.cancel()
        with contextlib.suppress(asyncio.CancelledError):
            result = await work
            # Work that finished before the cancel landed may hold a response
            aclose = getattr(result, "aclose", None)
            if aclose is not None:
                await aclose()
        raise OperationCancelled()
