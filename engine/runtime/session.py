"""
Feed Session

Owns everything that lives for one live attachment: the transport
handle, the aggregator state and the series handle. Built on attach,
torn down on detach; nothing outlives it.
"""

import logging
from dataclasses import replace
from typing import Any, Optional, Protocol

from dataflow.candle_aggregation.aggregator import LiveCandleAggregator
from dataflow.candle_aggregation.bucketer import to_local_display_time
from dataflow.errors import SeriesOrderError
from dataflow.series.sink import SeriesSink
from schemas.market_data import Candle, CandleTransition

logger = logging.getLogger(__name__)


class Transport(Protocol):
    """What a session needs from the live feed transport"""

    async def open(self) -> None: ...

    def detach(self) -> None: ...

    async def close(self) -> None: ...


class FeedSession:
    """
    One live attachment of the feed to the series.

    Ticks are folded through the aggregator, shifted to display time and
    written to the sink. A candle the sink refuses (older than its tail)
    is counted in `rejected` and not written. Once detached, no tick
    reaches the aggregator or the sink.

    Example usage:
        session = FeedSession(transport, LiveCandleAggregator("BTC/USD", 60), sink)
        await session.open()

        candle = session.handle_tick(payload)

        session.detach()
        await session.close()
    """

    def __init__(
        self,
        transport: Transport,
        aggregator: LiveCandleAggregator,
        sink: SeriesSink,
        utc_offset: Optional[int] = None,
    ):
        self.transport = transport
        self.aggregator = aggregator
        self.sink = sink
        self.utc_offset = utc_offset
        self._closed = False

        # Metrics
        self.upserts = 0
        self.rejected = 0

    @property
    def closed(self) -> bool:
        return self._closed

    async def open(self) -> None:
        """Open the transport (handshake + subscribe)"""
        await self.transport.open()

    def handle_tick(self, payload: dict) -> Optional[Candle]:
        """
        Fold one raw feed event into the series.

        Returns:
            The display-time candle written to the series, or None when
            the event was ignored or could not be applied
        """
        if self._closed:
            logger.debug("Session closed - dropping event")
            return None

        transition = self.aggregator.handle_event(payload)
        if transition is None:
            return None

        display = replace(
            transition.candle,
            bucket_start=to_local_display_time(transition.candle.bucket_start, self.utc_offset),
        )
        try:
            self.sink.apply(CandleTransition(kind=transition.kind, candle=display))
        except SeriesOrderError as e:
            self.rejected += 1
            logger.warning(f"Live candle not applied to series: {e}")
            return None

        self.upserts += 1
        return display

    def detach(self) -> None:
        """Synchronously stop tick delivery into this session"""
        if self._closed:
            return
        self._closed = True
        self.transport.detach()

    async def close(self) -> None:
        """Detach and release the transport"""
        self.detach()
        await self.transport.close()

    def get_metrics(self) -> dict[str, Any]:
        return {
            "upserts": self.upserts,
            "rejected": self.rejected,
            "ticks_processed": self.aggregator.ticks_processed,
            "last_update_timestamp": self.aggregator.last_update_timestamp,
        }
