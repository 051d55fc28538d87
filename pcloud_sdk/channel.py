"""
Bounded, closable queue connecting the stages of a change stream.

A ``Channel`` has one producing task and one consuming task. The producer
suspends in ``send`` while the channel is full, which is how a slow consumer
throttles the poll loop. Either side can end the channel:

- the consumer calls ``close()``: buffered items are discarded and every
  later ``send`` returns False, so the producer stops at its next write;
- the producer calls ``finish()``: the consumer drains what is buffered and
  then sees end-of-stream.
"""

import asyncio
from collections import deque
from typing import Deque, Generic, Optional, TypeVar


T = TypeVar("T")


class Channel(Generic[T]):
    """Single-producer, single-consumer bounded async queue."""

    def __init__(self, capacity: int):
        if capacity <= 0:
            raise ValueError(f"capacity must be positive, got {capacity}")
        self.capacity = capacity
        self._items: Deque[T] = deque()
        self._closed = False
        self._finished = False
        self._changed = asyncio.Condition()

    def __len__(self) -> int:
        return len(self._items)

    @property
    def closed(self) -> bool:
        """True once the consumer has closed the channel."""
        return self._closed

    @property
    def finished(self) -> bool:
        """True once the producer will send nothing more."""
        return self._finished

    async def send(self, item: T) -> bool:
        """
        Append an item, waiting while the channel is full.

        Returns:
            True if the item was queued, False if the consumer closed the
            channel (the item is dropped)
        """
        async with self._changed:
            await self._changed.wait_for(
                lambda: self._closed or len(self._items) < self.capacity
            )
            if self._closed:
                return False
            if self._finished:
                raise RuntimeError("send() on a finished channel")
            self._items.append(item)
            self._changed.notify_all()
            return True

    async def recv(self) -> Optional[T]:
        """
        Take the next item, waiting until one is available.

        Returns:
            The next item, or None once the channel is finished and drained
            or has been closed
        """
        async with self._changed:
            await self._changed.wait_for(
                lambda: self._items or self._finished or self._closed
            )
            if self._closed or not self._items:
                return None
            item = self._items.popleft()
            self._changed.notify_all()
            return item

    async def close(self):
        """Consumer side: stop receiving and reject further sends."""
        async with self._changed:
            self._closed = True
            self._items.clear()
            self._changed.notify_all()

    async def finish(self):
        """Producer side: no more items will be sent."""
        async with self._changed:
            self._finished = True
            self._changed.notify_all()

    def __aiter__(self):
        return self

    async def __anext__(self) -> T:
        item = await self.recv()
        if item is None:
            raise StopAsyncIteration
        return item
