"""
Price Feed Client

WebSocket client for the TwelveData quotes/price stream.

After the connect handshake the client:
1. Sends a subscribe command naming the symbol
2. Sends {"action": "heartbeat"} every heartbeat_seconds while open
3. Forwards every JSON frame as a TickReceived event
4. Reports closure / failure as TransportClosed / TransportError events

There is no reconnect; a closed client stays closed.
"""

import asyncio
import json
import logging
from dataclasses import dataclass
from typing import Any, Awaitable, Callable, Optional

import websockets
from websockets.exceptions import ConnectionClosed, ConnectionClosedError
from websockets.protocol import State

from dataflow.errors import TransportClosedError, TransportFaultError
from schemas.feed_events import FeedEvent, TickReceived, TransportClosed, TransportError

logger = logging.getLogger(__name__)

EventHandler = Callable[[FeedEvent], Awaitable[None]]


@dataclass
class FeedConfig:
    """Live feed configuration"""
    url: str = "wss://ws.twelvedata.com/v1/quotes/price"
    api_key: str = "demo"
    heartbeat_seconds: float = 10.0

    @property
    def connect_url(self) -> str:
        separator = "&" if "?" in self.url else "?"
        return f"{self.url}{separator}apikey={self.api_key}"


class PriceFeedClient:
    """
    Live price transport for one symbol.

    Example usage:
        client = PriceFeedClient(FeedConfig(api_key="..."), "BTC/USD", channel.publish)
        await client.open()
        ...
        await client.close()
    """

    def __init__(
        self,
        config: FeedConfig,
        symbol: str,
        on_event: EventHandler,
        connect: Optional[Callable[..., Awaitable[Any]]] = None,
    ):
        self.config = config
        self.symbol = symbol
        self._on_event = on_event
        self._connect = connect or websockets.connect
        self._ws = None
        self._reader_task: Optional[asyncio.Task] = None
        self._heartbeat_task: Optional[asyncio.Task] = None
        self._detached = False

        # Metrics
        self.messages_received = 0
        self.heartbeats_sent = 0

    @property
    def is_open(self) -> bool:
        """Check if the connection reports itself open"""
        return self._ws is not None and getattr(self._ws, "state", None) is State.OPEN

    async def open(self) -> None:
        """
        Connect, subscribe and start the reader and heartbeat tasks.

        Raises:
            TransportClosedError: If the client was already detached
            TransportFaultError: If the handshake or subscribe fails
        """
        if self._detached:
            raise TransportClosedError(f"Price feed for {self.symbol} is closed")

        logger.info(f"Connecting to price feed for {self.symbol}...")
        try:
            self._ws = await self._connect(self.config.connect_url, ping_interval=None)
            await self._subscribe()
        except Exception as e:
            logger.error(f"Failed to connect to price feed: {e}")
            raise TransportFaultError(str(e) or "Connection error") from e

        self._reader_task = asyncio.create_task(self._read_loop())
        self._heartbeat_task = asyncio.create_task(self._heartbeat_loop())
        logger.info(f"Price feed connected: {self.symbol}")

    async def _subscribe(self) -> None:
        payload = {"action": "subscribe", "params": {"symbols": self.symbol}}
        await self._ws.send(json.dumps(payload))
        logger.info(f"Subscribed to {self.symbol}")

    async def _heartbeat_loop(self) -> None:
        """Send keep-alives on a fixed period while the connection is open"""
        while not self._detached:
            await asyncio.sleep(self.config.heartbeat_seconds)
            if not self.is_open:
                continue
            try:
                await self._ws.send(json.dumps({"action": "heartbeat"}))
            except ConnectionClosed:
                return
            self.heartbeats_sent += 1
            logger.debug("Heartbeat sent")

    async def _read_loop(self) -> None:
        """Forward inbound frames until the connection ends"""
        try:
            async for message in self._ws:
                if self._detached:
                    return
                try:
                    payload = json.loads(message)
                except ValueError as e:
                    logger.warning(f"Price feed: invalid JSON: {e}")
                    continue
                if not isinstance(payload, dict):
                    continue
                self.messages_received += 1
                await self._on_event(TickReceived(payload=payload))
        except ConnectionClosedError as e:
            if self._detached:
                return
            logger.warning(f"Price feed connection error: {e}")
            await self._on_event(TransportError(error=str(e)))
            frame = e.rcvd or e.sent
            await self._closed(frame.code if frame else None, frame.reason if frame else "")
            return
        except asyncio.CancelledError:
            raise
        except Exception as e:
            if self._detached:
                return
            logger.error(f"Price feed failed: {e}")
            await self._on_event(TransportError(error=str(e)))
            await self._closed(None, str(e))
            return

        if not self._detached:
            await self._closed(getattr(self._ws, "close_code", None), getattr(self._ws, "close_reason", "") or "")

    async def _closed(self, code: Optional[int], reason: str) -> None:
        logger.info(f"Price feed closed: code={code} reason={reason!r}")
        self._stop_heartbeat()
        await self._on_event(TransportClosed(code=code, reason=reason or ""))

    def _stop_heartbeat(self) -> None:
        if self._heartbeat_task:
            self._heartbeat_task.cancel()

    def detach(self) -> None:
        """
        Stop delivering events immediately.

        Synchronous so that no frame read after teardown is requested
        can reach the event handler.
        """
        self._detached = True
        self._stop_heartbeat()
        if self._reader_task:
            self._reader_task.cancel()

    async def close(self) -> None:
        """Detach and close the underlying connection"""
        self.detach()
        for task in (self._reader_task, self._heartbeat_task):
            if task:
                try:
                    await task
                except asyncio.CancelledError:
                    pass
        if self._ws is not None:
            try:
                await self._ws.close()
            except Exception as e:
                logger.debug(f"Error while closing price feed: {e}")
        logger.info(f"Price feed closed for {self.symbol}")
