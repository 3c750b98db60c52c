"""Caller-controlled cancellation for orchestrated LLM requests."""

import asyncio
from typing import Awaitable, Callable, Optional, TypeVar

from jobfit.utils.errors import RequestCancelledError

T = TypeVar("T")


class CancellationToken:
    """Cooperative cancellation signal shared by one orchestrated request.

    The retry executor checks the token before each attempt and races both
    the attempt and any backoff sleep against it.
    """

    def __init__(self) -> None:
        self._event = asyncio.Event()
        self.reason: Optional[str] = None

    @property
    def cancelled(self) -> bool:
        return self._event.is_set()

    def cancel(self, reason: Optional[str] = None) -> None:
        self.reason = reason
        self._event.set()

    def raise_if_cancelled(self) -> None:
        if self.cancelled:
            raise RequestCancelledError(details={"reason": self.reason})

    async def run(self, awaitable: Awaitable[T]) -> T:
        """Await ``awaitable`` unless the token fires first.

        Raises:
            RequestCancelledError: If cancelled before the awaitable finished
        """
        if self.cancelled:
            if asyncio.iscoroutine(awaitable):
                awaitable.close()
            self.raise_if_cancelled()
        task = asyncio.ensure_future(awaitable)
        waiter = asyncio.ensure_future(self._event.wait())
        try:
            done, _ = await asyncio.wait({task, waiter}, return_when=asyncio.FIRST_COMPLETED)
        except asyncio.CancelledError:
            task.cancel()
            raise
        finally:
            waiter.cancel()

        if task in done:
            return task.result()

        task.cancel()
        try:
            await task
        except (asyncio.CancelledError, Exception):
            pass
        raise RequestCancelledError(details={"reason": self.reason})

    async def sleep(
        self,
        seconds: float,
        sleep: Callable[[float], Awaitable[None]] = asyncio.sleep,
    ) -> None:
        """Sleep for ``seconds``, waking early (and raising) on cancellation."""
        await self.run(sleep(seconds))
