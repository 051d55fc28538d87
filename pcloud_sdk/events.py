"""
Change-event streaming for the pCloud SDK.

The diff endpoint answers "what changed after cursor X" one page at a time.
This module turns it into a continuous sequence of events:

- ``ChangeFetcher`` performs one diff call and classifies failures as a
  retryable timeout or a fatal error.
- ``EventStream`` runs a poll loop in its own task, advancing the cursor
  after every batch and publishing events into a bounded channel.
- ``FilterStage`` consumes any stream and republishes the elements that
  match a predicate.

Stages are connected only through ``Channel`` objects. A consumer that stops
pulling fills the channel, which suspends the producer on its next write.
"""

import asyncio
import logging
from enum import Enum
from typing import Any, AsyncIterator, Callable, Generic, Optional, TypeVar

from .channel import Channel
from .exceptions import (
    PCloudError, ChangeFetchError, ChangeFetchTimeout, RequestTimeoutError, ResponseFormatError
)
from .models import ChangeBatch, ChangeEvent, EventKind, StreamConfig
from .utils import DEFAULT_QUEUE_CAPACITY, queue_capacity


logger = logging.getLogger(__name__)

T = TypeVar("T")


class ChangeFetcher:
    """
    Performs single diff calls through an ``AsyncPCloudClient``.

    ``fetch`` returns a ``ChangeBatch`` or raises ``ChangeFetchTimeout``
    (poll again with the same cursor) or ``ChangeFetchError`` (give up).
    """

    def __init__(self, client):
        self.client = client

    async def fetch(self, config: StreamConfig) -> ChangeBatch:
        cursor = config.start_cursor
        params = config.to_params()
        logger.debug("Polling diff with %s", params)

        try:
            data = await self.client.call(
                "diff", params=params, timeout=config.request_timeout, retry=False
            )
            batch = ChangeBatch.from_dict(data)
        except RequestTimeoutError as e:
            raise ChangeFetchTimeout(cursor=cursor) from e
        except PCloudError as e:
            raise ChangeFetchError(cause=e, cursor=cursor) from e
        except (KeyError, ValueError, TypeError) as e:
            cause = ResponseFormatError(f"Unexpected diff response: {e!r}")
            raise ChangeFetchError(cause=cause, cursor=cursor) from e

        if batch.events:
            logger.debug("Received %d events since %s", len(batch.events), cursor)
        return self.drop_seen(batch, cursor)

    @staticmethod
    def drop_seen(batch: ChangeBatch, cursor: Optional[int]) -> ChangeBatch:
        """Remove events the server repeated from before the request cursor."""
        if cursor is None:
            return batch

        fresh = []
        for event in batch.events:
            if event.cursor <= cursor:
                logger.warning(
                    "Skipping event %d (%s): not after requested cursor %d",
                    event.cursor, event.kind.value, cursor,
                )
                continue
            fresh.append(event)

        batch.events = fresh
        return batch


class StreamCloseReason(Enum):
    """Why a stream stopped."""
    FATAL = "fatal"
    CONSUMER_CLOSED = "consumer_closed"
    SOURCE_EXHAUSTED = "source_exhausted"


class _Stage(Generic[T]):
    """Handle shared by all stages: pull items, close, await the worker task."""

    def __init__(self, capacity: int):
        self._channel: Channel[T] = Channel(capacity)
        self._task: Optional[asyncio.Task] = None
        self.close_reason: Optional[StreamCloseReason] = None
        self.error: Optional[Exception] = None

    def _spawn(self, name: str):
        self._task = asyncio.get_running_loop().create_task(self._run(), name=name)

    async def _run(self):
        raise NotImplementedError

    @property
    def capacity(self) -> int:
        return self._channel.capacity

    @property
    def buffered(self) -> int:
        """Number of items waiting to be pulled."""
        return len(self._channel)

    @property
    def done(self) -> bool:
        """True once the worker task has stopped."""
        return self._task is not None and self._task.done()

    async def recv(self) -> Optional[T]:
        """Wait for the next item. Returns None at end-of-stream."""
        return await self._channel.recv()

    def __aiter__(self) -> AsyncIterator[T]:
        return self

    async def __anext__(self) -> T:
        item = await self._channel.recv()
        if item is None:
            raise StopAsyncIteration
        return item

    async def aclose(self):
        """
        Stop consuming.

        The worker notices at its next write (a filter also at the next
        element it receives) and exits. Work already in flight is allowed
        to complete, its results are discarded.
        """
        await self._channel.close()

    async def wait_closed(self):
        """Wait until the worker task has stopped."""
        if self._task is not None:
            await asyncio.shield(self._task)

    async def __aenter__(self):
        return self

    async def __aexit__(self, exc_type, exc_val, exc_tb):
        await self.aclose()


class EventStream(_Stage[ChangeEvent]):
    """
    Reconnecting stream of change events.

    Polls the diff endpoint in a loop, starting from ``config.start_cursor``
    (or ``start_after`` / ``last_n`` for the very first call), and publishes
    every new event in strictly increasing cursor order. Timeouts are retried
    with the same cursor; any other failure ends the stream and is kept in
    ``error``.
    """

    def __init__(self, fetcher, config: StreamConfig, capacity: Optional[int] = None):
        super().__init__(capacity or queue_capacity(config.page_limit))
        self.fetcher = fetcher
        self.config = config
        self.cursor: Optional[int] = config.start_cursor
        self.polls = 0

    @classmethod
    def start(cls, fetcher, config: StreamConfig, capacity: Optional[int] = None) -> "EventStream":
        """Create a stream and start its poll loop on the running event loop."""
        stream = cls(fetcher, config, capacity)
        stream._spawn(f"pcloud-events-{config.start_cursor}")
        return stream

    async def _run(self):
        try:
            await self._poll_loop()
        finally:
            await self._channel.finish()

    async def _poll_loop(self):
        while not self._channel.closed:
            request = self.config.with_cursor(self.cursor)
            self.polls += 1

            try:
                batch = await self.fetcher.fetch(request)
            except ChangeFetchTimeout:
                logger.debug("Diff poll at cursor %s timed out, polling again", self.cursor)
                await asyncio.sleep(0)
                continue
            except ChangeFetchError as e:
                logger.warning("Change stream stopped at cursor %s: %s", self.cursor, e)
                self.error = e
                self.close_reason = StreamCloseReason.FATAL
                return

            if not await self._publish(batch):
                break

            # Yield once per cycle so an always-ready fetcher cannot starve the loop.
            await asyncio.sleep(0)

        logger.debug("Change stream closed by consumer at cursor %s", self.cursor)
        self.close_reason = StreamCloseReason.CONSUMER_CLOSED

    async def _publish(self, batch: ChangeBatch) -> bool:
        """
        Send the batch's new events and advance the cursor.

        Returns False if the consumer closed the channel, without advancing
        the cursor.
        """
        last = self.cursor

        for event in batch.events:
            if last is not None and event.cursor <= last:
                logger.debug("Dropping duplicate event %d at cursor %d", event.cursor, last)
                continue
            if not await self._channel.send(event):
                return False
            logger.debug("Published event %d -> %s", event.cursor, event.kind.value)
            last = event.cursor

        if last is not None and batch.high_water_cursor < last:
            logger.warning(
                "Diff returned cursor %d behind %d, keeping the newer one",
                batch.high_water_cursor, last,
            )
            self.cursor = last
        else:
            self.cursor = batch.high_water_cursor
        return True


class FilterStage(_Stage[T]):
    """
    Forwards the elements of ``source`` for which ``predicate`` holds.

    Runs as its own task. When its consumer closes, it stops draining
    ``source`` at the next element it receives; the upstream stage then
    fills up and stalls on its own. A predicate that raises ends the stage
    with ``close_reason`` FATAL and the exception kept in ``error``.
    """

    def __init__(self, source, predicate: Callable[[T], bool], capacity: int = DEFAULT_QUEUE_CAPACITY):
        super().__init__(capacity)
        self.source = source
        self.predicate = predicate
        self.forwarded = 0
        self.dropped = 0

    @classmethod
    def start(cls, source, predicate: Callable[[T], bool], capacity: int = DEFAULT_QUEUE_CAPACITY) -> "FilterStage[T]":
        stage = cls(source, predicate, capacity)
        stage._spawn("pcloud-filter")
        return stage

    async def _run(self):
        try:
            async for item in self.source:
                # Rejected items never reach send(), which would report the close.
                if self._channel.closed:
                    self.close_reason = StreamCloseReason.CONSUMER_CLOSED
                    return

                try:
                    matched = self.predicate(item)
                except Exception as e:
                    logger.exception("Filter predicate failed, ending stage")
                    self.error = e
                    self.close_reason = StreamCloseReason.FATAL
                    return

                if not matched:
                    self.dropped += 1
                    continue
                if not await self._channel.send(item):
                    self.close_reason = StreamCloseReason.CONSUMER_CLOSED
                    return
                self.forwarded += 1

            self.close_reason = StreamCloseReason.SOURCE_EXHAUSTED
        finally:
            await self._channel.finish()


def filter_stream(source, predicate: Callable[[T], bool], capacity: int = DEFAULT_QUEUE_CAPACITY) -> FilterStage[T]:
    """
    Start a filter stage over ``source``.

    Args:
        source: Any async iterable, typically an ``EventStream`` or another stage
        predicate: Elements for which this returns True are forwarded
        capacity: Size of the stage's output channel

    Returns:
        The running ``FilterStage``
    """
    return FilterStage.start(source, predicate, capacity)


def kinds_predicate(*kinds: EventKind) -> Callable[[Any], bool]:
    """Predicate matching change events of the given kinds."""
    wanted = frozenset(kinds)

    def predicate(event: ChangeEvent) -> bool:
        return event.kind in wanted

    return predicate
