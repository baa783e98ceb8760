import asyncio
import logging
from typing import Optional

from tickwatch.events import MarketEvent


log = logging.getLogger(__name__)


__all__ = ["EventChannel"]


_CLOSED = object()


class EventChannel:
    """
    Unbounded single-producer, single-consumer queue of market events.

    The provider pushes; one consumer pulls, either with ``async for`` or
    ``await get()``. Pushing never blocks. Events are delivered in push
    order, including any buffered before the consumer started listening.
    Once closed, already-buffered events are still delivered and then
    iteration ends.
    """

    def __init__(self) -> None:
        self._queue: asyncio.Queue = asyncio.Queue()
        self._closed = False
        self._drained = False

    @property
    def closed(self) -> bool:
        return self._closed

    def push(self, event: MarketEvent) -> bool:
        """
        Buffer an event for the consumer.

        Returns:
            False if the channel is closed and the event was dropped.
        """
        if self._closed:
            log.debug("Dropping %s pushed to closed channel", type(event).__name__)
            return False
        self._queue.put_nowait(event)
        return True

    def close(self) -> None:
        """Close the send side. Idempotent."""
        if self._closed:
            return
        self._closed = True
        self._queue.put_nowait(_CLOSED)

    def clear(self) -> int:
        """Discard buffered events without closing. Returns how many were dropped."""
        dropped = 0
        while not self._queue.empty():
            item = self._queue.get_nowait()
            if item is _CLOSED:
                # Nothing is pushed after the close marker, so it is the last item
                self._queue.put_nowait(item)
                break
            dropped += 1
        return dropped

    async def get(self) -> Optional[MarketEvent]:
        """Wait for the next event; None once the channel is closed and drained."""
        if self._drained:
            return None
        item = await self._queue.get()
        if item is _CLOSED:
            self._drained = True
            return None
        return item

    def __aiter__(self) -> "EventChannel":
        return self

    async def __anext__(self) -> MarketEvent:
        item = await self.get()
        if item is None:
            raise StopAsyncIteration
        return item

    def __len__(self) -> int:
        """Number of events buffered and not yet delivered."""
        return self._queue.qsize() - (1 if self._closed and not self._drained else 0)

    def __repr__(self) -> str:
        return f"EventChannel(pending={len(self)}, closed={self._closed})"
