"""
Historical Series Normalizer

Turns a raw historical batch into a deduplicated, time-ordered candle
series plus its companion volume series. The batch is all-or-nothing:
one bad record fails it.
"""

import logging
import math
from datetime import datetime, timezone
from typing import Iterable, List, Optional, Sequence, TypeVar

from dataflow.candle_aggregation.bucketer import to_local_display_time, local_utc_offset_seconds
from dataflow.errors import DataUnavailableError, MalformedRecordError
from schemas.market_data import Candle, Direction, NormalizedSeries, VolumeBar

logger = logging.getLogger(__name__)

PRICE_FIELDS = ("open", "high", "low", "close")

T = TypeVar("T", Candle, VolumeBar)


def parse_utc_timestamp(value: str) -> int:
    """
    Parse a provider datetime string as a UTC instant (epoch seconds).

    Naive values ("2024-01-02 10:31:00", "2024-01-02") are taken as UTC;
    an explicit offset or trailing Z is honoured.
    """
    if not isinstance(value, str) or not value.strip():
        raise ValueError(f"empty datetime {value!r}")
    parsed = datetime.fromisoformat(value.strip().replace("Z", "+00:00"))
    if parsed.tzinfo is None:
        parsed = parsed.replace(tzinfo=timezone.utc)
    return int(parsed.timestamp())


def parse_decimal(value) -> float:
    """Parse a decimal string into a finite float"""
    if value is None or isinstance(value, bool):
        raise ValueError(f"not a number: {value!r}")
    number = float(value)
    if not math.isfinite(number):
        raise ValueError(f"not a finite number: {value!r}")
    return number


def _dedupe_sorted(items: Iterable[T]) -> List[T]:
    """Stable sort by bucket, keep the first item seen per bucket"""
    result: List[T] = []
    for item in sorted(items, key=lambda i: i.bucket_start):
        if result and result[-1].bucket_start == item.bucket_start:
            continue
        result.append(item)
    return result


def normalize(records: Sequence[dict], utc_offset: Optional[int] = None) -> NormalizedSeries:
    """
    Normalize a historical batch.

    Args:
        records: Raw records in arrival order, each with datetime and
            string-encoded open/high/low/close/volume
        utc_offset: Display offset in seconds; defaults to the local offset now

    Returns:
        NormalizedSeries with strictly increasing, unique bucket times

    Raises:
        DataUnavailableError: If the batch is empty
        MalformedRecordError: If any record fails to parse
    """
    if not records:
        raise DataUnavailableError()

    if utc_offset is None:
        utc_offset = local_utc_offset_seconds()

    candles: List[Candle] = []
    volumes: List[VolumeBar] = []

    for index, record in enumerate(records):
        if not isinstance(record, dict):
            raise MalformedRecordError(index, f"expected an object, got {type(record).__name__}")

        try:
            utc_seconds = parse_utc_timestamp(record.get("datetime"))
        except (TypeError, ValueError) as e:
            raise MalformedRecordError(index, f"bad datetime: {e}")

        prices = {}
        for name in PRICE_FIELDS + ("volume",):
            try:
                prices[name] = parse_decimal(record.get(name))
            except (TypeError, ValueError) as e:
                raise MalformedRecordError(index, f"bad {name}: {e}")

        display_time = to_local_display_time(utc_seconds, utc_offset)
        candle = Candle(
            bucket_start=display_time,
            open=prices["open"],
            high=prices["high"],
            low=prices["low"],
            close=prices["close"],
        )
        if not candle.is_consistent():
            raise MalformedRecordError(
                index,
                f"inconsistent OHLC O={candle.open} H={candle.high} L={candle.low} C={candle.close}",
            )

        candles.append(candle)
        volumes.append(
            VolumeBar(
                bucket_start=display_time,
                volume=prices["volume"],
                direction=Direction.of(candle.open, candle.close),
            )
        )

    candles = _dedupe_sorted(candles)
    volumes = _dedupe_sorted(volumes)

    dropped = len(records) - len(candles)
    if dropped:
        logger.info(f"Dropped {dropped} duplicate historical records")
    logger.info(f"Normalized {len(candles)} historical candles")

    return NormalizedSeries(candles=candles, volumes=volumes)
