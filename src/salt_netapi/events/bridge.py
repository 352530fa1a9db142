"""
Async/Sync Bridge for Event Consumers.

Listeners are called on the stream's reader thread. `AsyncEventQueue` is a
listener that hands every event over to an asyncio event loop with
`loop.call_soon_threadsafe`, so coroutines can consume the stream with
`await queue.get()` or `async for event in queue`.
"""
import asyncio
import logging
from typing import Optional

from salt_netapi.events.models import CloseReason, Event

logger = logging.getLogger(__name__)

# Marks the end of the stream inside the queue
_CLOSED = object()


class AsyncEventQueue:
    loop: asyncio.AbstractEventLoop
    queue: asyncio.Queue
    close_reason: Optional[CloseReason]

    def __init__(self, loop: Optional[asyncio.AbstractEventLoop] = None, maxsize: int = 0):
        # Must be created on the loop that consumes it unless `loop` is given
        self.loop = loop or asyncio.get_running_loop()
        self.queue = asyncio.Queue(maxsize=maxsize)
        self.close_reason = None
        self._finished = False

    def notify(self, event: Event) -> None:
        self._hand_over(event)

    def event_stream_closed(self, reason: Optional[CloseReason]) -> None:
        self.close_reason = reason
        self._hand_over(_CLOSED)

    async def get(self) -> Optional[Event]:
        """Returns the next event, or None once the stream has closed."""
        if self._finished:
            return None
        item = await self.queue.get()
        self.queue.task_done()
        if item is _CLOSED:
            self._finished = True
            return None
        return item

    def __aiter__(self):
        return self

    async def __anext__(self) -> Event:
        event = await self.get()
        if event is None:
            raise StopAsyncIteration
        return event

    def _hand_over(self, item):
        try:
            self.loop.call_soon_threadsafe(self._put, item)
        except RuntimeError as e:
            # The consuming loop is gone; nobody is left to read the item
            logger.debug(f"Dropping stream item, event loop closed: {e}")

    def _put(self, item):
        try:
            self.queue.put_nowait(item)
        except asyncio.QueueFull:
            logger.warning(f"Async event queue full (maxsize={self.queue.maxsize}), dropping {item!r}")
