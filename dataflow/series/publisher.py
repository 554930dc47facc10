"""
Series Publisher

Fans series mutations and feed status out to NATS for remote render
surfaces. Publish failures are logged and never touch the series.
"""

import json
import logging
from typing import Sequence

from dataflow.adapters.nats_client import NatsClient, Topics
from schemas.market_data import Candle, VolumeBar

logger = logging.getLogger(__name__)


class SeriesPublisher:
    """Publishes replace/upsert/status events for one symbol"""

    def __init__(self, nats_client: NatsClient, symbol: str):
        self.nats = nats_client
        self.symbol = symbol

        # Metrics
        self._published = 0
        self._failed = 0

    async def _publish(self, topic: str, payload: str) -> None:
        if not self.nats.is_connected:
            logger.debug(f"NATS not connected - skipping publish to {topic}")
            return
        try:
            await self.nats.publish_json(topic, payload)
            self._published += 1
        except Exception as e:
            self._failed += 1
            logger.error(f"Failed to publish to {topic}: {e}")

    async def publish_replace(self, candles: Sequence[Candle], volumes: Sequence[VolumeBar]) -> None:
        """Publish a full series replacement"""
        payload = json.dumps({
            "symbol": self.symbol,
            "candles": [c.to_dict() for c in candles],
            "volumes": [v.to_dict() for v in volumes],
        })
        await self._publish(Topics.series_replace(self.symbol), payload)

    async def publish_upsert(self, candle: Candle) -> None:
        """Publish one tail upsert"""
        payload = json.dumps({"symbol": self.symbol, "candle": candle.to_dict()})
        await self._publish(Topics.series_upsert(self.symbol), payload)
        logger.debug(
            f"Published upsert: {self.symbol} O={candle.open:.2f} H={candle.high:.2f} "
            f"L={candle.low:.2f} C={candle.close:.2f}"
        )

    async def publish_status(self, status: str, label: str, error: str = None) -> None:
        """Publish a feed status change"""
        payload = json.dumps({
            "symbol": self.symbol,
            "status": status,
            "label": label,
            "error": error,
        })
        await self._publish(Topics.feed_status(self.symbol), payload)

    def get_metrics(self) -> dict:
        return {"published": self._published, "failed": self._failed}
