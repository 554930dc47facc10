"""
Feed Events

Inbound events consumed one at a time by the aggregation loop.
"""

from dataclasses import dataclass, field
from typing import Optional, Union

from schemas.market_data import NormalizedSeries


@dataclass
class HistoricalLoaded:
    """Historical snapshot fetched and normalized"""
    series: NormalizedSeries


@dataclass
class TickReceived:
    """Raw JSON event pushed by the live feed"""
    payload: dict = field(default_factory=dict)


@dataclass
class TransportClosed:
    """Live feed connection closed"""
    code: Optional[int] = None
    reason: str = ""


@dataclass
class TransportError:
    """Live feed connection failed"""
    error: str = ""


FeedEvent = Union[HistoricalLoaded, TickReceived, TransportClosed, TransportError]
