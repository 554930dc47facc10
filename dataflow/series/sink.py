"""
Series Sink

Owns the authoritative candle series for the chart.

Only two mutations exist:
- replace_all  -> wholesale replacement after the historical load
- upsert_last  -> overwrite the tail if same bucket, else append

The series stays strictly increasing by bucket_start with at most one
mutable tail entry.
"""

import logging
from typing import List, Literal, Optional, Sequence

from dataflow.errors import SeriesOrderError
from schemas.market_data import Candle, CandleTransition, VolumeBar

logger = logging.getLogger(__name__)

UpsertResult = Literal["replaced", "appended"]


def _check_strictly_increasing(items: Sequence, name: str) -> None:
    for previous, current in zip(items, items[1:]):
        if current.bucket_start <= previous.bucket_start:
            raise SeriesOrderError(
                f"{name} not strictly increasing: {previous.bucket_start} -> {current.bucket_start}"
            )


class SeriesSink:
    """
    In-memory candle and volume series for one symbol.

    Example usage:
        sink = SeriesSink()
        sink.replace_all(normalized.candles, normalized.volumes)
        sink.upsert_last(candle)
    """

    def __init__(self):
        self._candles: List[Candle] = []
        self._volumes: List[VolumeBar] = []
        self._loaded = False

        # Metrics
        self.replacements = 0
        self.upserts = 0

    @property
    def loaded(self) -> bool:
        """True once a replace_all has succeeded"""
        return self._loaded

    @property
    def candles(self) -> List[Candle]:
        return list(self._candles)

    @property
    def volumes(self) -> List[VolumeBar]:
        return list(self._volumes)

    @property
    def last(self) -> Optional[Candle]:
        return self._candles[-1] if self._candles else None

    def __len__(self) -> int:
        return len(self._candles)

    def replace_all(self, candles: Sequence[Candle], volumes: Sequence[VolumeBar] = ()) -> None:
        """
        Atomically replace the whole series.

        Raises:
            SeriesOrderError: If either sequence is not strictly increasing
        """
        candles = list(candles)
        volumes = list(volumes)
        _check_strictly_increasing(candles, "candles")
        _check_strictly_increasing(volumes, "volumes")

        self._candles = candles
        self._volumes = volumes
        self._loaded = True
        self.replacements += 1
        logger.info(f"Series replaced: {len(candles)} candles, {len(volumes)} volume bars")

    def upsert_last(self, candle: Candle) -> UpsertResult:
        """
        Overwrite the tail if it has the same bucket, otherwise append.

        Raises:
            SeriesOrderError: If the candle is older than the tail
        """
        tail = self.last
        if tail is not None and tail.bucket_start == candle.bucket_start:
            self._candles[-1] = candle
            self.upserts += 1
            return "replaced"

        if tail is not None and candle.bucket_start < tail.bucket_start:
            raise SeriesOrderError(
                f"Cannot append bucket {candle.bucket_start} before tail {tail.bucket_start}"
            )

        self._candles.append(candle)
        self.upserts += 1
        return "appended"

    def apply(self, transition: CandleTransition) -> UpsertResult:
        """
        Apply an aggregator transition.

        An update must land on the tail; a new bucket follows upsert_last.
        """
        if transition.kind == "update":
            tail = self.last
            if tail is None or tail.bucket_start != transition.candle.bucket_start:
                raise SeriesOrderError(
                    f"Update for bucket {transition.candle.bucket_start} does not match tail "
                    f"{tail.bucket_start if tail else None}"
                )
            self._candles[-1] = transition.candle
            self.upserts += 1
            return "replaced"

        return self.upsert_last(transition.candle)

    def snapshot(self, limit: Optional[int] = None) -> dict:
        """Series as plain dicts, oldest first, optionally the last `limit` points"""
        candles = self._candles if limit is None else self._candles[-limit:]
        volumes = self._volumes if limit is None else self._volumes[-limit:]
        return {
            "count": len(candles),
            "candles": [c.to_dict() for c in candles],
            "volumes": [v.to_dict() for v in volumes],
        }
