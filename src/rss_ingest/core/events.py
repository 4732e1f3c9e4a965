"""Boundary channel carrying new-entry notifications to consumers."""

import asyncio
from dataclasses import dataclass, field
from typing import AsyncIterator, Awaitable, List, TypeVar

from ..errors import ChannelClosed
from .models import FeedEntry


T = TypeVar("T")


@dataclass(frozen=True)
class NewEntries:
    """Entries of one feed that were announced for the first time."""

    feed_id: str
    entries: List[FeedEntry] = field(default_factory=list)


class EventChannel:
    """
    Bounded queue of NewEntries messages.

    Sending suspends while the queue is full instead of dropping. Entries
    are already persisted when an event is sent. Closing the channel fails
    every blocked sender with ChannelClosed and wakes every blocked
    receiver; events queued before the close can still be received.
    """

    def __init__(self, capacity: int = 64):
        self._queue: "asyncio.Queue[NewEntries]" = asyncio.Queue(maxsize=capacity)
        self._closed = asyncio.Event()

    @property
    def closed(self) -> bool:
        return self._closed.is_set()

    async def send(self, event: NewEntries) -> None:
        """
        Queue an event, waiting for room if the channel is full.

        Raises:
            ChannelClosed: If the channel is closed before or while waiting
        """
        if self.closed:
            raise ChannelClosed()
        await self._until_closed(self._queue.put(event))

    async def receive(self) -> NewEntries:
        """
        Wait for the next event.

        Raises:
            ChannelClosed: Once the channel is closed and drained
        """
        if not self._queue.empty():
            return self._queue.get_nowait()
        if self.closed:
            raise ChannelClosed()
        return await self._until_closed(self._queue.get())

    def close(self) -> None:
        """Reject further sends; already queued events stay receivable."""
        self._closed.set()

    async def _until_closed(self, operation: Awaitable[T]) -> T:
        op_task = asyncio.ensure_future(operation)
        closed_task = asyncio.ensure_future(self._closed.wait())
        try:
            done, _ = await asyncio.wait({op_task, closed_task}, return_when=asyncio.FIRST_COMPLETED)
        finally:
            closed_task.cancel()
            if not op_task.done():
                op_task.cancel()

        # A completed operation wins over a simultaneous close
        if op_task in done:
            return op_task.result()
        raise ChannelClosed()

    def __aiter__(self) -> AsyncIterator[NewEntries]:
        return self._iterate()

    async def _iterate(self) -> AsyncIterator[NewEntries]:
        while True:
            try:
                yield await self.receive()
            except ChannelClosed:
                return
