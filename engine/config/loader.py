"""
Config Loader

Loads the chart configuration from YAML, applies environment overrides
and validates the result with pydantic.
"""

import yaml
import os
from pathlib import Path
from typing import List, Optional
from pydantic import BaseModel, Field, ValidationError, field_validator
import logging

from dataflow.adapters.nats_client import NatsConfig
from dataflow.candle_aggregation.bucketer import INTERVALS, interval_seconds
from dataflow.historical.client import HistoricalConfig
from dataflow.ingestion.price_feed import FeedConfig

logger = logging.getLogger(__name__)


class HistoricalSettings(BaseModel):
    """Historical source settings"""
    base_url: str = "https://api.twelvedata.com"
    api_key: str = "demo"
    timeout: Optional[float] = None


class FeedSettings(BaseModel):
    """Live feed settings"""
    url: str = "wss://ws.twelvedata.com/v1/quotes/price"
    api_key: str = "demo"
    heartbeat_seconds: float = Field(default=10.0, gt=0)
    queue_size: int = Field(default=1000, ge=1)


class NatsSettings(BaseModel):
    """Optional NATS fan-out settings"""
    enabled: bool = False
    servers: List[str] = Field(default_factory=lambda: ["nats://localhost:4222"])
    name: str = "live-candle-chart"


class ChartConfig(BaseModel):
    """Complete configuration for one live chart"""
    symbol: str = "BTC/USD"
    interval: str = "1min"
    output_size: int = Field(default=5000, ge=1, le=5000)
    reject_stale_ticks: bool = False
    historical: HistoricalSettings = Field(default_factory=HistoricalSettings)
    feed: FeedSettings = Field(default_factory=FeedSettings)
    nats: NatsSettings = Field(default_factory=NatsSettings)

    @field_validator("interval")
    @classmethod
    def _known_interval(cls, value: str) -> str:
        if value not in INTERVALS:
            raise ValueError(f"must be one of: {list(INTERVALS.keys())}")
        return value

    @field_validator("symbol")
    @classmethod
    def _non_empty_symbol(cls, value: str) -> str:
        if not value.strip():
            raise ValueError("symbol must not be empty")
        return value.strip()

    @property
    def interval_seconds(self) -> int:
        """Bucket width in seconds"""
        return interval_seconds(self.interval)

    def historical_config(self) -> HistoricalConfig:
        return HistoricalConfig(
            base_url=self.historical.base_url,
            api_key=self.historical.api_key,
            timeout=self.historical.timeout,
        )

    def feed_config(self) -> FeedConfig:
        return FeedConfig(
            url=self.feed.url,
            api_key=self.feed.api_key,
            heartbeat_seconds=self.feed.heartbeat_seconds,
        )

    def nats_config(self) -> NatsConfig:
        return NatsConfig(servers=list(self.nats.servers), name=self.nats.name)


class ConfigLoader:
    """
    Loads chart configs from YAML.

    The loader:
    1. Reads {config_dir}/{name}.yaml (defaults when the file is absent)
    2. Applies environment overrides
    3. Validates everything into a ChartConfig

    Example usage:
        loader = ConfigLoader(Path("config"))
        config = loader.load()

        # config.symbol, config.interval_seconds, config.feed_config(), ...
    """

    def __init__(self, config_dir: Path):
        """
        Initialize loader with config directory.

        Args:
            config_dir: Directory holding chart YAML files
        """
        self.config_dir = Path(config_dir)
        logger.info(f"Initialized ConfigLoader with config_dir: {config_dir}")

    def load(self, name: str = "chart") -> ChartConfig:
        """
        Load and validate a chart config.

        Args:
            name: File stem inside the config directory

        Returns:
            Validated ChartConfig

        Raises:
            ValueError: If the YAML is invalid or validation fails
        """
        yaml_file = self.config_dir / f"{name}.yaml"
        raw = {}

        if yaml_file.exists():
            try:
                with open(yaml_file) as f:
                    raw = yaml.safe_load(f) or {}
            except yaml.YAMLError as e:
                logger.error(f"Failed to load {yaml_file}: {e}")
                raise ValueError(f"Failed to load {yaml_file}: {e}")
            if not isinstance(raw, dict):
                raise ValueError(f"Failed to load {yaml_file}: expected a mapping")
            logger.info(f"Loaded {yaml_file.name}")
        else:
            logger.warning(f"No config file at {yaml_file}, using defaults")

        raw = self._apply_env_overrides(raw)

        try:
            config = ChartConfig(**raw)
        except ValidationError as e:
            logger.error(f"Invalid config in {yaml_file}: {e}")
            raise ValueError(f"Invalid config in {yaml_file}: {e}")

        logger.info(
            f"Chart config: symbol={config.symbol} interval={config.interval} "
            f"output_size={config.output_size} nats={'on' if config.nats.enabled else 'off'}"
        )
        return config

    def _apply_env_overrides(self, raw: dict) -> dict:
        """Environment variables win over file values"""
        raw = dict(raw)

        symbol = os.getenv("CHART_SYMBOL")
        if symbol:
            raw["symbol"] = symbol

        interval = os.getenv("CHART_INTERVAL")
        if interval:
            raw["interval"] = interval

        api_key = os.getenv("TWELVEDATA_API_KEY")
        if api_key:
            for section in ("historical", "feed"):
                raw[section] = {**(raw.get(section) or {}), "api_key": api_key}

        if os.getenv("NATS_SERVERS"):
            nats_env = NatsConfig.from_env()
            raw["nats"] = {
                **(raw.get("nats") or {}),
                "enabled": True,
                "servers": nats_env.servers,
                "name": nats_env.name,
            }

        return raw
