"""
Market Data Types

Core market data types used by the live candle chart engine.
These types travel through the aggregation loop, the series sink,
the query API and NATS fan-out.
"""

from dataclasses import dataclass, field
from enum import Enum
from typing import List, Literal, Optional
import json


@dataclass
class Tick:
    """Single price observation from the live feed"""
    symbol: str
    timestamp: int  # UTC seconds
    price: float

    def to_dict(self) -> dict:
        """Convert to dictionary for JSON serialization"""
        return {
            "symbol": self.symbol,
            "timestamp": self.timestamp,
            "price": self.price,
        }

    def to_json(self) -> str:
        """Serialize to JSON string"""
        return json.dumps(self.to_dict())

    @classmethod
    def from_dict(cls, data: dict) -> "Tick":
        """
        Create Tick from a feed price event.

        Raises:
            ValueError: If timestamp or price is missing or not numeric
        """
        try:
            timestamp = int(data["timestamp"])
            price = float(data["price"])
        except (KeyError, TypeError, ValueError) as e:
            raise ValueError(f"Invalid price event: {e}")
        return cls(symbol=data.get("symbol", ""), timestamp=timestamp, price=price)

    @classmethod
    def from_json(cls, json_str: str) -> "Tick":
        """Deserialize from JSON string"""
        return cls.from_dict(json.loads(json_str))


@dataclass
class Candle:
    """OHLC candle for one bucket"""
    bucket_start: int  # seconds, aligned to the interval
    open: float
    high: float
    low: float
    close: float

    def is_consistent(self) -> bool:
        """Check low <= min(open, close) <= max(open, close) <= high"""
        return self.low <= min(self.open, self.close) and max(self.open, self.close) <= self.high

    def to_dict(self) -> dict:
        """Convert to dictionary for JSON serialization"""
        return {
            "time": self.bucket_start,
            "open": self.open,
            "high": self.high,
            "low": self.low,
            "close": self.close,
        }

    def to_json(self) -> str:
        """Serialize to JSON string"""
        return json.dumps(self.to_dict())

    @classmethod
    def from_dict(cls, data: dict) -> "Candle":
        """Create Candle from dictionary"""
        return cls(
            bucket_start=int(data["time"]),
            open=float(data["open"]),
            high=float(data["high"]),
            low=float(data["low"]),
            close=float(data["close"]),
        )

    @classmethod
    def from_json(cls, json_str: str) -> "Candle":
        """Deserialize from JSON string"""
        return cls.from_dict(json.loads(json_str))


class Direction(str, Enum):
    """Volume bar colouring, derived from the same-bucket candle"""
    UP = "up"
    DOWN = "down"

    @classmethod
    def of(cls, open_: float, close: float) -> "Direction":
        return cls.UP if close >= open_ else cls.DOWN


@dataclass
class VolumeBar:
    """Traded volume for one historical bucket"""
    bucket_start: int
    volume: float
    direction: Direction

    def to_dict(self) -> dict:
        """Convert to dictionary for JSON serialization"""
        return {
            "time": self.bucket_start,
            "value": self.volume,
            "direction": self.direction.value,
        }

    def to_json(self) -> str:
        """Serialize to JSON string"""
        return json.dumps(self.to_dict())

    @classmethod
    def from_dict(cls, data: dict) -> "VolumeBar":
        """Create VolumeBar from dictionary"""
        return cls(
            bucket_start=int(data["time"]),
            volume=float(data["value"]),
            direction=Direction(data["direction"]),
        )


@dataclass
class CandleTransition:
    """
    Result of folding one tick into the aggregator.

    kind="new_bucket" means the tick opened a fresh in-progress candle,
    kind="update" means it extended the one already held.
    """
    kind: Literal["update", "new_bucket"]
    candle: Candle

    @property
    def is_new_bucket(self) -> bool:
        return self.kind == "new_bucket"


@dataclass
class NormalizedSeries:
    """Deduplicated, time-ordered historical candles and volumes"""
    candles: List[Candle] = field(default_factory=list)
    volumes: List[VolumeBar] = field(default_factory=list)

    @property
    def last_close(self) -> Optional[float]:
        return self.candles[-1].close if self.candles else None
