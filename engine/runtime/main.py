"""
Live Chart Feed - Main Entry Point

Runs the feed coordinator headless for one symbol: loads the historical
snapshot, attaches the live price feed and keeps the series current.
Series updates reach render surfaces over NATS when enabled.
"""

import asyncio
import logging
import os
from pathlib import Path

from dataflow.adapters.nats_client import NatsClient
from engine.config.loader import ConfigLoader
from engine.runtime.coordinator import FeedCoordinator

logging.basicConfig(
    level=os.getenv("LOG_LEVEL", "INFO").upper(),
    format="%(asctime)s [%(levelname)s] %(name)s: %(message)s",
)
logger = logging.getLogger(__name__)


async def main():
    """
    Main entry point for the feed coordinator.

    Environment Variables:
        CONFIG_DIR: Config directory path (default: "config")
        CHART_SYMBOL / CHART_INTERVAL: Override the configured symbol / interval
        TWELVEDATA_API_KEY: API key for both historical and live endpoints
        NATS_SERVERS: NATS server URLs; enables fan-out when set
        METRICS_INTERVAL: Seconds between metrics log lines (default: 60)
    """
    config_dir = Path(os.getenv("CONFIG_DIR", "config"))
    metrics_interval = float(os.getenv("METRICS_INTERVAL", "60"))

    config = ConfigLoader(config_dir).load()

    logger.info("=" * 60)
    logger.info("Live Chart Feed Starting")
    logger.info("=" * 60)
    logger.info(f"Symbol: {config.symbol}")
    logger.info(f"Interval: {config.interval} ({config.interval_seconds}s)")

    nats_client = None
    if config.nats.enabled:
        logger.info("Connecting to NATS...")
        nats_client = NatsClient(config.nats_config())
        try:
            await nats_client.connect()
        except Exception as e:
            logger.warning(f"Failed to connect to NATS: {e}. Running without fan-out.")
            nats_client = None

    coordinator = FeedCoordinator.from_config(config, nats_client)

    try:
        await coordinator.start()

        logger.info("Press Ctrl+C to stop")

        while True:
            await asyncio.sleep(metrics_interval)

            metrics = coordinator.get_metrics()
            logger.info(
                f"Metrics [{config.symbol}]: status={metrics['status']} "
                f"candles={metrics['candles']} price={coordinator.current_price}"
            )

    except KeyboardInterrupt:
        logger.info("Shutting down...")
    finally:
        await coordinator.stop()
        if nats_client:
            await nats_client.close()

        logger.info("Coordinator stopped")


def run() -> None:
    """Console script entry point"""
    try:
        asyncio.run(main())
    except KeyboardInterrupt:
        pass


if __name__ == "__main__":
    run()
