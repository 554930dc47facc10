"""
Live Candle Aggregator

Folds price ticks into a single in-progress candle.

A tick whose bucket differs from the held candle's starts a new candle;
the previous one is abandoned, never explicitly closed.
"""

import logging
from typing import Optional

from dataflow.candle_aggregation.bucketer import bucket_start
from schemas.market_data import Candle, CandleTransition, Tick

logger = logging.getLogger(__name__)


class CandleBuilder:
    """Builds a candle from incoming ticks"""

    def __init__(self, start_time: int, price: float):
        self.start_time = start_time
        self.open = price
        self.high = price
        self.low = price
        self.close = price
        self.tick_count = 1

    def add_price(self, price: float) -> None:
        """Add a tick price to this candle"""
        self.high = max(self.high, price)
        self.low = min(self.low, price)
        self.close = price
        self.tick_count += 1

    def build(self) -> Candle:
        """Snapshot of the candle as it stands"""
        return Candle(
            bucket_start=self.start_time,
            open=self.open,
            high=self.high,
            low=self.low,
            close=self.close,
        )


class LiveCandleAggregator:
    """
    Maintains exactly zero or one in-progress candle for one symbol.

    Ticks are processed strictly in arrival order. A tick for a bucket
    older than the in-progress one reopens that old bucket unless
    reject_stale_ticks is set, in which case it is dropped.
    """

    def __init__(self, symbol: str, interval_seconds: int, reject_stale_ticks: bool = False):
        if interval_seconds <= 0:
            raise ValueError(f"Interval must be positive, got {interval_seconds}")
        self.symbol = symbol
        self.interval_seconds = interval_seconds
        self.reject_stale_ticks = reject_stale_ticks
        self._builder: Optional[CandleBuilder] = None
        self.last_update_timestamp: Optional[int] = None
        self.last_price: Optional[float] = None
        self.ticks_processed = 0

    @property
    def current(self) -> Optional[Candle]:
        """The in-progress candle, if any"""
        return self._builder.build() if self._builder else None

    def reset(self) -> None:
        """Forget the in-progress candle"""
        self._builder = None
        self.last_update_timestamp = None
        self.last_price = None

    def ingest(self, tick: Tick, interval_seconds: Optional[int] = None) -> Optional[CandleTransition]:
        """
        Fold one tick into the in-progress candle.

        Returns:
            The transition to apply to the series, or None when a stale
            tick is rejected
        """
        interval = interval_seconds or self.interval_seconds
        bucket = bucket_start(tick.timestamp, interval)
        existing = self._builder

        if existing is not None and existing.start_time != bucket:
            if bucket < existing.start_time:
                if self.reject_stale_ticks:
                    logger.warning(
                        f"Dropping stale tick for {self.symbol}: bucket {bucket} "
                        f"is older than in-progress bucket {existing.start_time}"
                    )
                    return None
                logger.warning(
                    f"Out-of-order tick for {self.symbol} reopens bucket {bucket} "
                    f"(in-progress was {existing.start_time})"
                )
            existing = None

        if existing is None:
            self._builder = CandleBuilder(bucket, tick.price)
            kind = "new_bucket"
            logger.info(f"New candle: {self.symbol} bucket={bucket} open={tick.price:.2f}")
        else:
            existing.add_price(tick.price)
            kind = "update"

        self.last_update_timestamp = tick.timestamp
        self.last_price = tick.price
        self.ticks_processed += 1
        return CandleTransition(kind=kind, candle=self._builder.build())

    def handle_event(self, payload: dict) -> Optional[CandleTransition]:
        """
        Fold a raw feed event into the in-progress candle.

        Events that are not price events for this symbol are ignored and
        leave all state untouched.
        """
        if payload.get("event") != "price" or payload.get("symbol") != self.symbol:
            logger.debug(f"Ignoring event: {payload.get('event')} {payload.get('symbol')}")
            return None

        try:
            tick = Tick.from_dict(payload)
        except ValueError as e:
            logger.warning(f"Failed to parse tick: {e}")
            return None

        logger.debug(f"Received tick: {tick.symbol} @ {tick.price}")
        return self.ingest(tick)
