"""
Event Channel

Bounded, ordered channel of inbound feed events. The historical loader
and the live transport both publish here; a single aggregation loop
consumes, so series mutations never interleave.
"""

import asyncio
import logging

from schemas.feed_events import FeedEvent

logger = logging.getLogger(__name__)


class EventChannel:
    """
    FIFO of feed events with backpressure.

    When the channel is full, publishers wait; nothing is dropped.

    Example usage:
        channel = EventChannel(maxsize=1000)
        await channel.publish(TickReceived(payload=message))

        event = await channel.get()
        try:
            ...
        finally:
            channel.task_done()
    """

    def __init__(self, maxsize: int = 1000):
        self._queue: asyncio.Queue[FeedEvent] = asyncio.Queue(maxsize=maxsize)
        self.published = 0

    async def publish(self, event: FeedEvent) -> None:
        if self._queue.full():
            logger.warning(f"Event channel full ({self._queue.maxsize}), waiting for the aggregation loop")
        await self._queue.put(event)
        self.published += 1

    async def get(self) -> FeedEvent:
        return await self._queue.get()

    def size(self) -> int:
        return self._queue.qsize()

    async def join(self) -> None:
        """Wait until every published event has been marked done"""
        await self._queue.join()

    def task_done(self) -> None:
        self._queue.task_done()
