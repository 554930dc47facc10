import pytest

from dataflow.adapters.nats_client import NatsClient, NatsConfig, Topics
from dataflow.series.publisher import SeriesPublisher
from schemas.market_data import Candle

from tests.conftest import FakeNatsClient


def test_topics_sanitize_symbol():
    assert Topics.series_replace("BTC/USD") == "series.BTC_USD.replace"
    assert Topics.series_upsert("EUR/USD") == "series.EUR_USD.upsert"
    assert Topics.feed_status("BRK A") == "feed.BRK_A.status"


def test_nats_config_from_env(monkeypatch):
    monkeypatch.setenv("NATS_SERVERS", "nats://a:4222,,nats://b:4222 ")

    config = NatsConfig.from_env()

    assert config.servers == ["nats://a:4222", "nats://b:4222"]
    assert config.name == "live-candle-chart"


@pytest.mark.asyncio
async def test_publish_upsert():
    nats_client = FakeNatsClient()
    publisher = SeriesPublisher(nats_client, "BTC/USD")

    await publisher.publish_upsert(Candle(bucket_start=60, open=1.0, high=2.0, low=0.5, close=1.5))

    assert nats_client.published == [
        ("series.BTC_USD.upsert", {
            "symbol": "BTC/USD",
            "candle": {"time": 60, "open": 1.0, "high": 2.0, "low": 0.5, "close": 1.5},
        }),
    ]
    assert publisher.get_metrics() == {"published": 1, "failed": 0}


@pytest.mark.asyncio
async def test_publish_skipped_when_disconnected():
    nats_client = FakeNatsClient(connected=False)
    publisher = SeriesPublisher(nats_client, "BTC/USD")

    await publisher.publish_status("live", "Live")

    assert nats_client.published == []


@pytest.mark.asyncio
async def test_publish_failure_is_contained():
    publisher = SeriesPublisher(FakeNatsClient(fail=True), "BTC/USD")

    await publisher.publish_status("error", "Error", "No data available")

    assert publisher.get_metrics() == {"published": 0, "failed": 1}


class FakeConnection:
    def __init__(self):
        self.is_connected = True
        self.published = []
        self.drained = False

    async def publish(self, subject, data):
        self.published.append((subject, data))

    async def drain(self):
        self.drained = True
        self.is_connected = False


@pytest.mark.asyncio
async def test_nats_client_publishes_encoded_json(monkeypatch):
    connection = FakeConnection()
    connect_kwargs = {}

    async def fake_connect(**kwargs):
        connect_kwargs.update(kwargs)
        return connection

    monkeypatch.setattr("nats.connect", fake_connect)
    client = NatsClient(NatsConfig(servers=["nats://a:4222"]))

    with pytest.raises(RuntimeError):
        await client.publish_json("series.BTC_USD.upsert", "{}")

    await client.connect()
    await client.publish_json("series.BTC_USD.upsert", '{"a": 1}')
    await client.close()

    assert connect_kwargs["servers"] == ["nats://a:4222"]
    assert connect_kwargs["name"] == "live-candle-chart"
    assert connection.published == [("series.BTC_USD.upsert", b'{"a": 1}')]
    assert connection.drained
    assert not client.is_connected
