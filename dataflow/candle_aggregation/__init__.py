"""
Candle Aggregation

Time bucketing and live tick-to-candle aggregation.
"""

from dataflow.candle_aggregation.aggregator import CandleBuilder, LiveCandleAggregator
from dataflow.candle_aggregation.bucketer import (
    bucket_start,
    interval_seconds,
    local_utc_offset_seconds,
    to_local_display_time,
)

__all__ = [
    "CandleBuilder",
    "LiveCandleAggregator",
    "bucket_start",
    "interval_seconds",
    "local_utc_offset_seconds",
    "to_local_display_time",
]
