"""
Query API

FastAPI service exposing the live chart series to a render surface.

HTTP Endpoints:
- GET  /          - Health check
- GET  /health    - Detailed health status
- GET  /status    - Feed status, error message and current price
- GET  /series    - Candles and volume bars, oldest first
- POST /reload    - User-triggered reload (historical + live)
"""

import logging
import os
from contextlib import asynccontextmanager
from datetime import datetime
from pathlib import Path
from typing import Optional

from fastapi import FastAPI, HTTPException, Query, Request
from pydantic import BaseModel
import uvicorn

from dataflow.adapters.nats_client import NatsClient
from engine.config.loader import ConfigLoader
from engine.runtime.coordinator import FeedCoordinator

# Configure logging
logging.basicConfig(
    level=os.getenv("LOG_LEVEL", "INFO").upper(),
    format="%(asctime)s [%(levelname)s] %(name)s: %(message)s",
)
logger = logging.getLogger(__name__)


# Response models (Pydantic)
class CandlePoint(BaseModel):
    """Single candle in display time"""
    time: int
    open: float
    high: float
    low: float
    close: float


class VolumePoint(BaseModel):
    """Single volume bar in display time"""
    time: int
    value: float
    direction: str


class SeriesResponse(BaseModel):
    """Response containing the chart series"""
    symbol: str
    interval: str
    count: int
    candles: list[CandlePoint]
    volumes: list[VolumePoint]


class StatusResponse(BaseModel):
    """Feed status"""
    symbol: str
    status: str
    label: str
    error: Optional[str] = None
    current_price: Optional[float] = None
    last_update_timestamp: Optional[int] = None


def _coordinator(request: Request) -> FeedCoordinator:
    coordinator = getattr(request.app.state, "coordinator", None)
    if coordinator is None:
        raise HTTPException(status_code=503, detail="Feed coordinator unavailable")
    return coordinator


def create_app(coordinator: Optional[FeedCoordinator] = None) -> FastAPI:
    """
    Build the API.

    Args:
        coordinator: Pre-built coordinator; when None the lifespan builds
            one from config and owns its start/stop
    """

    @asynccontextmanager
    async def lifespan(app: FastAPI):
        """Application lifespan handler for the feed coordinator"""
        nats_client = None
        owned = app.state.coordinator is None

        # Startup
        logger.info("Starting Query API...")
        if owned:
            config = ConfigLoader(Path(os.getenv("CONFIG_DIR", "config"))).load()

            if config.nats.enabled:
                nats_client = NatsClient(config.nats_config())
                try:
                    await nats_client.connect()
                    logger.info("NATS connection established")
                except Exception as e:
                    logger.warning(f"Failed to connect to NATS: {e}. Running in standalone mode.")
                    nats_client = None

            app.state.coordinator = FeedCoordinator.from_config(config, nats_client)
            app.state.nats_client = nats_client
            await app.state.coordinator.start()

        yield

        # Shutdown
        if owned:
            await app.state.coordinator.stop()
            if nats_client:
                await nats_client.close()
        logger.info("Query API shutdown complete")

    app = FastAPI(
        title="Live Candle Chart - Query API",
        description="Live OHLC series built from historical data and a price tick stream",
        version="1.0.0",
        lifespan=lifespan,
    )
    app.state.coordinator = coordinator
    app.state.nats_client = None

    @app.get("/")
    async def root():
        """Health check endpoint"""
        return {
            "status": "running",
            "service": "query-api",
            "timestamp": datetime.now().isoformat(),
        }

    @app.get("/health")
    async def health(request: Request):
        """Detailed health status"""
        coordinator = getattr(request.app.state, "coordinator", None)
        nats_client = getattr(request.app.state, "nats_client", None)
        return {
            "status": "healthy",
            "service": "query-api",
            "feed_status": coordinator.status.value if coordinator else None,
            "nats_connected": nats_client.is_connected if nats_client else False,
            "timestamp": datetime.now().isoformat(),
        }

    @app.get("/status")
    async def status(request: Request) -> StatusResponse:
        """Feed status, surfaced error message and current price"""
        coordinator = _coordinator(request)
        return StatusResponse(
            symbol=coordinator.symbol,
            status=coordinator.status.value,
            label=coordinator.status_label,
            error=coordinator.error_message,
            current_price=coordinator.current_price,
            last_update_timestamp=coordinator.last_update_timestamp,
        )

    @app.get("/series")
    async def series(
        request: Request,
        limit: Optional[int] = Query(default=None, ge=1, le=5000, description="Number of most recent points"),
    ) -> SeriesResponse:
        """
        Fetch the chart series.

        Raises:
            503: No series has been loaded yet
        """
        coordinator = _coordinator(request)
        sink = coordinator.sink
        if not sink.loaded:
            detail = coordinator.error_message or coordinator.status_label
            raise HTTPException(status_code=503, detail=f"Series not loaded: {detail}")

        snapshot = sink.snapshot(limit)
        logger.debug(f"Serving {snapshot['count']} candles for {coordinator.symbol} (limit={limit})")

        return SeriesResponse(
            symbol=coordinator.symbol,
            interval=coordinator.config.interval,
            count=snapshot["count"],
            candles=[CandlePoint(**c) for c in snapshot["candles"]],
            volumes=[VolumePoint(**v) for v in snapshot["volumes"]],
        )

    @app.post("/reload")
    async def reload(request: Request):
        """Drop the current run and start again from the historical load"""
        coordinator = _coordinator(request)
        await coordinator.reload()
        return {
            "status": "success",
            "message": "Reload started",
            "feed_status": coordinator.status.value,
        }

    return app


app = create_app()


def run() -> None:
    """Console script entry point"""
    port = int(os.getenv("PORT", "8001"))
    host = os.getenv("HOST", "0.0.0.0")

    logger.info(f"Starting Query API on {host}:{port}")
    uvicorn.run(app, host=host, port=port)


if __name__ == "__main__":
    run()
