"""
NATS Client Adapter

Thin publishing wrapper over nats-py for the series fan-out. Reconnects
are left to nats-py; publishes while disconnected raise and are
accounted for by the caller.
"""

import logging
import os
from dataclasses import dataclass, field
from typing import Optional

import nats
from nats.aio.client import Client as NatsConnection

logger = logging.getLogger(__name__)


@dataclass
class NatsConfig:
    """Where to publish, and under which client name"""
    servers: list[str] = field(default_factory=lambda: ["nats://localhost:4222"])
    name: str = "live-candle-chart"
    reconnect_time_wait: float = 2.0

    @classmethod
    def from_env(cls, prefix: str = "NATS") -> "NatsConfig":
        """Read {prefix}_SERVERS (comma separated) and {prefix}_CLIENT_NAME"""
        servers = os.getenv(f"{prefix}_SERVERS", "nats://localhost:4222")
        return cls(
            servers=[s.strip() for s in servers.split(",") if s.strip()],
            name=os.getenv(f"{prefix}_CLIENT_NAME", "live-candle-chart"),
        )


class NatsClient:
    """
    Publish-only NATS connection for chart topics.

    Example usage:
        client = NatsClient(NatsConfig(servers=["nats://localhost:4222"]))
        await client.connect()
        await client.publish_json(Topics.series_upsert("BTC/USD"), payload)
        await client.close()
    """

    def __init__(self, config: Optional[NatsConfig] = None):
        self.config = config or NatsConfig()
        self._nc: Optional[NatsConnection] = None

    @property
    def is_connected(self) -> bool:
        return self._nc is not None and self._nc.is_connected

    async def connect(self) -> None:
        if self._nc is not None:
            return

        async def on_error(e):
            logger.error(f"NATS error: {e}")

        self._nc = await nats.connect(
            servers=self.config.servers,
            name=self.config.name,
            reconnect_time_wait=self.config.reconnect_time_wait,
            error_cb=on_error,
        )
        logger.info(f"Connected to NATS: {self.config.servers}")

    async def close(self) -> None:
        """Flush pending publishes and disconnect"""
        if self._nc is None:
            return
        await self._nc.drain()
        self._nc = None
        logger.info("NATS connection closed")

    async def publish_json(self, subject: str, data: str) -> None:
        """
        Publish a JSON document.

        Raises:
            RuntimeError: If the connection is not up
        """
        if not self.is_connected:
            raise RuntimeError("NATS client not connected")
        await self._nc.publish(subject, data.encode("utf-8"))
        logger.debug(f"Published to {subject}: {len(data)} chars")


# Topic helpers
class Topics:
    """NATS topic name builders"""

    @staticmethod
    def _sanitize(name: str) -> str:
        """
        Sanitize a name for use in NATS topics.

        Topic segments keep only alphanumerics, hyphens and underscores;
        anything else (spaces, "/" in "BTC/USD") becomes an underscore.
        """
        return "".join(c if c.isalnum() or c in "-_" else "_" for c in name)

    @staticmethod
    def series_replace(symbol: str) -> str:
        """Full series replacement topic"""
        return f"series.{Topics._sanitize(symbol)}.replace"

    @staticmethod
    def series_upsert(symbol: str) -> str:
        """Tail upsert topic"""
        return f"series.{Topics._sanitize(symbol)}.upsert"

    @staticmethod
    def feed_status(symbol: str) -> str:
        """Feed lifecycle status topic"""
        return f"feed.{Topics._sanitize(symbol)}.status"
