"""Progress reporting for long-running orchestrated requests.

A ``ProgressReporter`` fans each event out to its subscribers in emission
order. It is itself a valid progress callback, so it can be handed straight
to the retry executor.
"""

import asyncio
import logging
from dataclasses import dataclass
from typing import AsyncIterator, Callable, Optional

logger = logging.getLogger(__name__)

ProgressCallback = Callable[[str, int, int], None]


@dataclass(frozen=True)
class ProgressEvent:
    message: str
    step: int
    total_steps: int


ProgressListener = Callable[[ProgressEvent], None]


class ProgressReporter:
    """Observer hub for progress events."""

    def __init__(self, callback: Optional[ProgressCallback] = None):
        """Initialize the reporter.

        Args:
            callback: Optional plain ``(message, step, total)`` callback to
                subscribe immediately
        """
        self._listeners: list[ProgressListener] = []
        if callback is not None:
            self.subscribe(lambda event: callback(event.message, event.step, event.total_steps))

    def subscribe(self, listener: ProgressListener) -> Callable[[], None]:
        """Register a listener; returns a function that unsubscribes it."""
        self._listeners.append(listener)

        def unsubscribe() -> None:
            if listener in self._listeners:
                self._listeners.remove(listener)

        return unsubscribe

    def emit(self, message: str, step: int, total_steps: int) -> None:
        event = ProgressEvent(message=message, step=step, total_steps=total_steps)
        for listener in list(self._listeners):
            try:
                listener(event)
            except Exception as e:
                logger.warning(f"[PROGRESS] Listener failed on '{message}': {e}")

    __call__ = emit


class ProgressStream:
    """Async iterator over progress events, for callers that prefer a stream.

    Usage:
        stream = ProgressStream(reporter)
        task = asyncio.create_task(pipeline.run(text, on_progress=reporter))
        task.add_done_callback(lambda _: stream.close())
        async for event in stream:
            ...
    """

    _CLOSED = object()

    def __init__(self, reporter: ProgressReporter):
        self._queue: asyncio.Queue = asyncio.Queue()
        self._unsubscribe = reporter.subscribe(self._queue.put_nowait)

    def close(self) -> None:
        self._unsubscribe()
        self._queue.put_nowait(self._CLOSED)

    async def __aiter__(self) -> AsyncIterator[ProgressEvent]:
        while True:
            item = await self._queue.get()
            if item is self._CLOSED:
                return
            yield item


def as_reporter(on_progress: Optional[ProgressCallback]) -> ProgressReporter:
    """Wrap a plain callback (or an existing reporter) as a ProgressReporter."""
    if isinstance(on_progress, ProgressReporter):
        return on_progress
    return ProgressReporter(on_progress)
