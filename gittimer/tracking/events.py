"""Typed event channel between the repository watcher and its consumers.

Events are queued in FIFO order and delivered by a single dispatcher task to
every subscriber in registration order. A subscriber finishes handling one
event before the next event is delivered, so a branch change is fully
processed before the commit event produced by the same reconciliation.
"""

from __future__ import annotations

import asyncio
import inspect
import logging
from typing import Any, Awaitable, Callable, Optional, Union

from gittimer.tracking.models import BranchChangeEvent, CommitEvent

logger = logging.getLogger(__name__)

GitEvent = Union[BranchChangeEvent, CommitEvent]
EventHandler = Callable[[GitEvent], Union[None, Awaitable[None]]]


class EventChannel:
    """FIFO event queue with an ordered subscriber list."""

    def __init__(self):
        self._subscribers: list[EventHandler] = []
        self._queue: Optional[asyncio.Queue] = None
        self._dispatcher: Optional[asyncio.Task] = None
        self._closed = False

    @property
    def closed(self) -> bool:
        return self._closed

    def subscribe(self, handler: EventHandler) -> Callable[[], None]:
        """Register a handler and return a callable that removes it."""
        self._subscribers.append(handler)

        def unsubscribe() -> None:
            if handler in self._subscribers:
                self._subscribers.remove(handler)

        return unsubscribe

    def publish(self, event: GitEvent) -> None:
        """Queue an event for delivery. Ignored once the channel is closed."""
        if self._closed:
            logger.debug(f"Dropping {type(event).__name__} on closed channel")
            return
        self._ensure_dispatcher()
        self._queue.put_nowait(event)

    async def join(self) -> None:
        """Wait until every queued event has been delivered."""
        if self._queue is not None:
            await self._queue.join()

    def close(self) -> None:
        """Stop delivery synchronously; queued events are discarded."""
        self._closed = True
        if self._dispatcher is not None:
            self._dispatcher.cancel()
            self._dispatcher = None
        self._subscribers.clear()

    def _ensure_dispatcher(self) -> None:
        if self._queue is None:
            self._queue = asyncio.Queue()
        if self._dispatcher is None or self._dispatcher.done():
            self._dispatcher = asyncio.get_running_loop().create_task(self._dispatch())

    async def _dispatch(self) -> None:
        while True:
            event = await self._queue.get()
            try:
                for handler in list(self._subscribers):
                    await self._deliver(handler, event)
            finally:
                self._queue.task_done()

    async def _deliver(self, handler: EventHandler, event: GitEvent) -> None:
        try:
            result: Any = handler(event)
            if inspect.isawaitable(result):
                await result
        except asyncio.CancelledError:
            raise
        except Exception as e:
            logger.error(
                f"Event handler {getattr(handler, '__qualname__', handler)} failed "
                f"for {type(event).__name__}: {e}"
            )
