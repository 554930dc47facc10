"""
Time Bucketer

Aligns timestamps to fixed-width candle buckets and shifts UTC instants
into the local display clock.
"""

from datetime import datetime
from typing import Optional

# Provider interval names (seconds)
INTERVALS = {
    "1min": 60,
    "5min": 300,
    "15min": 900,
    "30min": 1800,
    "45min": 2700,
    "1h": 3600,
    "2h": 7200,
    "4h": 14400,
    "1day": 86400,
    "1week": 604800,
}


def interval_seconds(name: str) -> int:
    """
    Resolve a provider interval name to its width in seconds.

    Raises:
        ValueError: If the interval is not supported
    """
    try:
        return INTERVALS[name]
    except KeyError:
        raise ValueError(
            f"Invalid interval '{name}'. Must be one of: {list(INTERVALS.keys())}"
        )


def bucket_start(timestamp_seconds: int, interval_seconds: int) -> int:
    """Start of the bucket containing timestamp_seconds"""
    if interval_seconds <= 0:
        raise ValueError(f"Interval must be positive, got {interval_seconds}")
    return (int(timestamp_seconds) // interval_seconds) * interval_seconds


def local_utc_offset_seconds() -> int:
    """Local UTC offset in seconds, as valid right now"""
    offset = datetime.now().astimezone().utcoffset()
    return int(offset.total_seconds()) if offset else 0


def to_local_display_time(utc_seconds: int, utc_offset: Optional[int] = None) -> int:
    """
    Shift a UTC instant into the local wall clock for display.

    The offset is the one valid at call time, not at the event's own time,
    so display drifts by an hour across a DST change.
    """
    if utc_offset is None:
        utc_offset = local_utc_offset_seconds()
    return int(utc_seconds) + utc_offset
