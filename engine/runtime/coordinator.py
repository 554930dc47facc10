"""
Feed Coordinator

Sequences the historical load and the live feed attachment for one
symbol, and exposes the feed status.

Status lifecycle:
    LOADING -> LIVE_ATTACHING -> LIVE
    LOADING -> ERROR                      (terminal until reload)
    LIVE_ATTACHING / LIVE -> CONNECTION_ERROR -> DISCONNECTED
    LIVE_ATTACHING / LIVE -> DISCONNECTED (no automatic reconnect)
"""

import asyncio
import logging
from enum import Enum
from typing import Any, Callable, Dict, Optional

from dataflow.adapters.nats_client import NatsClient
from dataflow.candle_aggregation.aggregator import LiveCandleAggregator
from dataflow.errors import (
    ChartDataError,
    DataUnavailableError,
    FetchError,
    InvalidTransitionError,
    TransportFaultError,
)
from dataflow.historical.client import TwelveDataClient
from dataflow.historical.normalizer import normalize
from dataflow.ingestion.price_feed import PriceFeedClient
from dataflow.series.publisher import SeriesPublisher
from dataflow.series.sink import SeriesSink
from engine.config.loader import ChartConfig
from schemas.feed_events import (
    FeedEvent,
    HistoricalLoaded,
    TickReceived,
    TransportClosed,
    TransportError,
)
from .events import EventChannel
from .session import FeedSession, Transport

logger = logging.getLogger(__name__)

TransportFactory = Callable[[str, Callable], Transport]


class FeedStatus(str, Enum):
    """Feed lifecycle status"""
    LOADING = "loading"
    LIVE_ATTACHING = "live_attaching"
    LIVE = "live"
    DISCONNECTED = "disconnected"
    CONNECTION_ERROR = "connection_error"
    ERROR = "error"

    @property
    def label(self) -> str:
        return _LABELS[self]


_LABELS = {
    FeedStatus.LOADING: "Loading historical data...",
    FeedStatus.LIVE_ATTACHING: "Connecting to live data...",
    FeedStatus.LIVE: "Live",
    FeedStatus.DISCONNECTED: "Disconnected",
    FeedStatus.CONNECTION_ERROR: "Connection error",
    FeedStatus.ERROR: "Error",
}

_TRANSITIONS = {
    FeedStatus.LOADING: {FeedStatus.LIVE_ATTACHING, FeedStatus.ERROR},
    FeedStatus.LIVE_ATTACHING: {FeedStatus.LIVE, FeedStatus.CONNECTION_ERROR, FeedStatus.DISCONNECTED},
    FeedStatus.LIVE: {FeedStatus.CONNECTION_ERROR, FeedStatus.DISCONNECTED},
    FeedStatus.CONNECTION_ERROR: {FeedStatus.DISCONNECTED},
    FeedStatus.DISCONNECTED: set(),
    FeedStatus.ERROR: set(),
}


_FOLDING = {FeedStatus.LIVE, FeedStatus.CONNECTION_ERROR}


def error_message_for(error: ChartDataError) -> str:
    """Message to surface for a historical failure"""
    if isinstance(error, DataUnavailableError):
        return error.message or error.code or "No data available"
    if isinstance(error, FetchError):
        return str(error) or "Network error"
    return str(error)


class FeedCoordinator:
    """
    Coordinates the historical load and live feed for a single symbol.

    The coordinator:
    1. Fetches and normalizes the historical snapshot
    2. Replaces the series wholesale (live ingestion is gated on this)
    3. Opens a FeedSession on the live transport
    4. Folds every tick into the series from a single aggregation loop

    Example usage:
        sink = SeriesSink()
        coordinator = FeedCoordinator(
            config=config,
            sink=sink,
            historical_client=TwelveDataClient(config.historical_config()),
            transport_factory=lambda symbol, on_event: PriceFeedClient(
                config.feed_config(), symbol, on_event
            ),
        )

        await coordinator.start()
    """

    def __init__(
        self,
        config: ChartConfig,
        sink: SeriesSink,
        historical_client: TwelveDataClient,
        transport_factory: TransportFactory,
        publisher: Optional[SeriesPublisher] = None,
        utc_offset: Optional[int] = None,
    ):
        """
        Initialize coordinator for a symbol.

        Args:
            config: Validated chart configuration
            sink: Series the render surface reads from
            historical_client: Source of the historical snapshot
            transport_factory: Builds a live transport from (symbol, on_event)
            publisher: Optional NATS fan-out
            utc_offset: Fixed display offset in seconds; local offset when None
        """
        self.config = config
        self.symbol = config.symbol
        self.sink = sink
        self.historical_client = historical_client
        self.transport_factory = transport_factory
        self.publisher = publisher
        self.utc_offset = utc_offset

        self._status = FeedStatus.LOADING
        self._error_message: Optional[str] = None
        self._historical_close: Optional[float] = None
        self._session: Optional[FeedSession] = None
        self._channel: Optional[EventChannel] = None
        self._loop_task: Optional[asyncio.Task] = None
        self._load_task: Optional[asyncio.Task] = None
        self._runs = 0

    @classmethod
    def from_config(cls, config: ChartConfig, nats_client: Optional[NatsClient] = None) -> "FeedCoordinator":
        """Wire the production collaborators for a config"""
        feed_config = config.feed_config()
        publisher = SeriesPublisher(nats_client, config.symbol) if nats_client else None
        return cls(
            config=config,
            sink=SeriesSink(),
            historical_client=TwelveDataClient(config.historical_config()),
            transport_factory=lambda symbol, on_event: PriceFeedClient(feed_config, symbol, on_event),
            publisher=publisher,
        )

    # ------------------------------------------------------------------
    # Read surface
    # ------------------------------------------------------------------

    @property
    def status(self) -> FeedStatus:
        return self._status

    @property
    def status_label(self) -> str:
        return self._status.label

    @property
    def error_message(self) -> Optional[str]:
        return self._error_message

    @property
    def session(self) -> Optional[FeedSession]:
        return self._session

    @property
    def current_price(self) -> Optional[float]:
        """Last tick price, or the last historical close before any tick"""
        if self._session and self._session.aggregator.last_price is not None:
            return self._session.aggregator.last_price
        return self._historical_close

    @property
    def last_update_timestamp(self) -> Optional[int]:
        if self._session:
            return self._session.aggregator.last_update_timestamp
        return None

    # ------------------------------------------------------------------
    # Lifecycle
    # ------------------------------------------------------------------

    async def start(self) -> None:
        """Begin a run: load the historical snapshot, then attach live"""
        if self._loop_task and not self._loop_task.done():
            logger.debug(f"Coordinator for {self.symbol} already running")
            return

        self._runs += 1
        self._status = FeedStatus.LOADING
        self._error_message = None
        self._channel = EventChannel(self.config.feed.queue_size)
        logger.info(f"Starting coordinator for {self.symbol} (run {self._runs})...")
        await self._publish_status()

        self._loop_task = asyncio.create_task(self._run(self._channel))
        self._load_task = asyncio.create_task(self._load_historical(self._channel))

    async def stop(self) -> None:
        """Tear down the session and the aggregation loop"""
        logger.info(f"Stopping coordinator for {self.symbol}")

        session = self._session
        if session:
            session.detach()

        for task in (self._load_task, self._loop_task):
            if task and not task.done():
                task.cancel()
                try:
                    await task
                except asyncio.CancelledError:
                    pass
        self._load_task = None
        self._loop_task = None

        if session:
            await session.close()
        self._session = None

    async def reload(self) -> None:
        """User-triggered recovery: drop everything and start a new run"""
        logger.info(f"Reloading {self.symbol}")
        await self.stop()
        await self.start()

    async def wait_for_status(self, *statuses: FeedStatus, timeout: float = 5.0) -> FeedStatus:
        """Block until the status is one of `statuses`"""
        async def _wait():
            while self._status not in statuses:
                await asyncio.sleep(0.01)

        await asyncio.wait_for(_wait(), timeout)
        return self._status

    async def drain(self) -> None:
        """Wait until every queued event has been processed"""
        if self._channel:
            await self._channel.join()

    # ------------------------------------------------------------------
    # Historical phase
    # ------------------------------------------------------------------

    async def _load_historical(self, channel: EventChannel) -> None:
        try:
            records = await self.historical_client.fetch_time_series(
                self.symbol, self.config.interval, self.config.output_size
            )
            series = normalize(records, self.utc_offset)
        except ChartDataError as e:
            message = error_message_for(e)
            logger.error(f"Historical load failed for {self.symbol}: {message}")
            self._error_message = message
            await self._transition(FeedStatus.ERROR)
            return
        except Exception as e:
            logger.error(f"Historical load crashed for {self.symbol}: {e}", exc_info=True)
            self._error_message = str(e) or type(e).__name__
            await self._transition(FeedStatus.ERROR)
            return

        await channel.publish(HistoricalLoaded(series=series))

    # ------------------------------------------------------------------
    # Aggregation loop
    # ------------------------------------------------------------------

    async def _run(self, channel: EventChannel) -> None:
        while True:
            event = await channel.get()
            try:
                await self._dispatch(event)
            except Exception as e:
                logger.error(f"Failed to handle {type(event).__name__}: {e}", exc_info=True)
            finally:
                channel.task_done()

    async def _dispatch(self, event: FeedEvent) -> None:
        if isinstance(event, TickReceived):
            await self._handle_tick(event)
        elif isinstance(event, HistoricalLoaded):
            await self._handle_historical(event)
        elif isinstance(event, TransportError):
            await self._handle_transport_error(event)
        elif isinstance(event, TransportClosed):
            await self._handle_transport_closed(event)
        else:
            logger.warning(f"Unknown event: {event!r}")

    async def _handle_historical(self, event: HistoricalLoaded) -> None:
        series = event.series
        self.sink.replace_all(series.candles, series.volumes)
        self._historical_close = series.last_close
        if self.publisher:
            await self.publisher.publish_replace(series.candles, series.volumes)

        await self._transition(FeedStatus.LIVE_ATTACHING)
        await self._attach()

    async def _attach(self) -> None:
        aggregator = LiveCandleAggregator(
            self.symbol,
            self.config.interval_seconds,
            reject_stale_ticks=self.config.reject_stale_ticks,
        )
        transport = self.transport_factory(self.symbol, self._channel.publish)
        self._session = FeedSession(transport, aggregator, self.sink, self.utc_offset)

        try:
            await self._session.open()
        except TransportFaultError as e:
            logger.warning(f"Live feed attach failed for {self.symbol}: {e}")
            await self._session.close()
            await self._transition(FeedStatus.CONNECTION_ERROR)
            return

        await self._transition(FeedStatus.LIVE)

    async def _handle_tick(self, event: TickReceived) -> None:
        session = self._session
        # ticks keep flowing after a transport error until the close arrives
        if session is None or session.closed or self._status not in _FOLDING:
            logger.debug(f"Dropping tick while {self._status.value}")
            return

        candle = session.handle_tick(event.payload)
        if candle is not None and self.publisher:
            await self.publisher.publish_upsert(candle)

    async def _handle_transport_error(self, event: TransportError) -> None:
        logger.warning(f"Live feed error for {self.symbol}: {event.error}")
        if FeedStatus.CONNECTION_ERROR in _TRANSITIONS[self._status]:
            await self._transition(FeedStatus.CONNECTION_ERROR)

    async def _handle_transport_closed(self, event: TransportClosed) -> None:
        logger.info(f"Live feed closed for {self.symbol}: code={event.code} reason={event.reason!r}")
        if self._session:
            self._session.detach()
        if FeedStatus.DISCONNECTED in _TRANSITIONS[self._status]:
            await self._transition(FeedStatus.DISCONNECTED)

    # ------------------------------------------------------------------
    # Status
    # ------------------------------------------------------------------

    async def _transition(self, status: FeedStatus) -> None:
        if status not in _TRANSITIONS[self._status]:
            raise InvalidTransitionError(f"{self._status.value} -> {status.value}")
        logger.info(f"{self.symbol}: {self._status.label} -> {status.label}")
        self._status = status
        await self._publish_status()

    async def _publish_status(self) -> None:
        if self.publisher:
            await self.publisher.publish_status(self._status.value, self._status.label, self._error_message)

    def get_metrics(self) -> Dict[str, Any]:
        """
        Get coordinator metrics.

        Returns:
            Dictionary with coordinator statistics
        """
        return {
            "symbol": self.symbol,
            "status": self._status.value,
            "runs": self._runs,
            "candles": len(self.sink),
            "queued_events": self._channel.size() if self._channel else 0,
            "session": self._session.get_metrics() if self._session else None,
            "publisher": self.publisher.get_metrics() if self.publisher else None,
        }
