import asyncio
import json

import pytest
from websockets.protocol import State

from dataflow.errors import TransportFaultError
from engine.config.loader import ChartConfig
from schemas.feed_events import TickReceived

BASE_TS = 1704067200  # 2024-01-01 00:00:00 UTC


def price_event(timestamp, price, symbol="BTC/USD", event="price"):
    return {"event": event, "symbol": symbol, "timestamp": timestamp, "price": price}


def record(datetime_, open_, high, low, close, volume="10"):
    return {
        "datetime": datetime_,
        "open": open_,
        "high": high,
        "low": low,
        "close": close,
        "volume": volume,
    }


# Newest first, as the provider returns them
HISTORICAL_RECORDS = [
    record("2024-01-01 00:02:00", "102", "104", "101", "103", "12"),
    record("2024-01-01 00:01:00", "101", "103", "100", "102", "11"),
    record("2024-01-01 00:00:00", "100", "102", "99", "101", "10"),
]


class FakeHistoricalClient:
    """Returns queued responses; exceptions in the queue are raised"""

    def __init__(self, *responses):
        self.responses = list(responses)
        self.calls = []

    async def fetch_time_series(self, symbol, interval, output_size):
        self.calls.append((symbol, interval, output_size))
        response = self.responses.pop(0) if len(self.responses) > 1 else self.responses[0]
        if isinstance(response, Exception):
            raise response
        return response


class FakeTransport:
    def __init__(self, symbol, on_event, fail=False):
        self.symbol = symbol
        self.on_event = on_event
        self.fail = fail
        self.opened = False
        self.detached = False
        self.closed = False

    async def open(self):
        if self.fail:
            raise TransportFaultError("handshake refused")
        self.opened = True

    def detach(self):
        self.detached = True

    async def close(self):
        self.detach()
        self.closed = True

    async def push(self, payload):
        await self.on_event(TickReceived(payload=payload))


class TransportRecorder:
    """transport_factory that remembers every transport it built"""

    def __init__(self, fail=False):
        self.fail = fail
        self.transports = []

    def __call__(self, symbol, on_event):
        transport = FakeTransport(symbol, on_event, fail=self.fail)
        self.transports.append(transport)
        return transport

    @property
    def last(self):
        return self.transports[-1]


_END = object()


class FakeWebSocket:
    """Minimal stand-in for a websockets client connection"""

    def __init__(self):
        self.sent = []
        self.state = State.OPEN
        self.close_code = None
        self.close_reason = ""
        self._inbound = asyncio.Queue()

    async def send(self, data):
        self.sent.append(json.loads(data))

    def feed(self, item):
        self._inbound.put_nowait(item)

    def end(self, code=1000, reason=""):
        self.close_code = code
        self.close_reason = reason
        self._inbound.put_nowait(_END)

    def __aiter__(self):
        return self

    async def __anext__(self):
        item = await self._inbound.get()
        if item is _END:
            self.state = State.CLOSED
            raise StopAsyncIteration
        if isinstance(item, Exception):
            self.state = State.CLOSED
            raise item
        return item

    async def close(self):
        self.state = State.CLOSED


class FakeNatsClient:
    def __init__(self, connected=True, fail=False):
        self.connected = connected
        self.fail = fail
        self.published = []

    @property
    def is_connected(self):
        return self.connected

    async def publish_json(self, subject, data):
        if self.fail:
            raise RuntimeError("publish failed")
        self.published.append((subject, json.loads(data)))


@pytest.fixture(autouse=True)
def clean_env(monkeypatch):
    for name in ("CHART_SYMBOL", "CHART_INTERVAL", "TWELVEDATA_API_KEY", "NATS_SERVERS", "NATS_CLIENT_NAME"):
        monkeypatch.delenv(name, raising=False)


@pytest.fixture
def chart_config():
    return ChartConfig(symbol="BTC/USD", interval="1min", output_size=3)
