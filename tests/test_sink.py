import pytest

from dataflow.errors import SeriesOrderError
from dataflow.series.sink import SeriesSink
from schemas.market_data import Candle, CandleTransition, Direction, VolumeBar


def candle(t, o=100.0, h=110.0, l=90.0, c=105.0):
    return Candle(bucket_start=t, open=o, high=h, low=l, close=c)


@pytest.fixture
def sink():
    s = SeriesSink()
    s.replace_all([candle(0), candle(60)], [VolumeBar(0, 5.0, Direction.UP), VolumeBar(60, 6.0, Direction.UP)])
    return s


def test_replace_all(sink):
    assert sink.loaded
    assert len(sink) == 2
    assert [v.volume for v in sink.volumes] == [5.0, 6.0]

    sink.replace_all([candle(120)])

    assert [c.bucket_start for c in sink.candles] == [120]
    assert sink.volumes == []
    assert sink.replacements == 2


def test_replace_all_rejects_unordered_input():
    sink = SeriesSink()

    with pytest.raises(SeriesOrderError):
        sink.replace_all([candle(60), candle(0)])
    with pytest.raises(SeriesOrderError):
        sink.replace_all([candle(0), candle(0)])

    assert not sink.loaded
    assert len(sink) == 0


def test_upsert_last_replaces_same_bucket(sink):
    assert sink.upsert_last(candle(60, c=108.0)) == "replaced"

    assert len(sink) == 2
    assert sink.last.close == 108.0


def test_upsert_last_appends_new_bucket(sink):
    assert sink.upsert_last(candle(120)) == "appended"

    assert [c.bucket_start for c in sink.candles] == [0, 60, 120]


def test_upsert_last_is_idempotent(sink):
    update = candle(120, c=101.0)
    sink.upsert_last(update)
    once = sink.candles

    sink.upsert_last(update)

    assert sink.candles == once


def test_upsert_last_on_empty_series():
    sink = SeriesSink()

    assert sink.upsert_last(candle(60)) == "appended"
    assert sink.last == candle(60)


def test_upsert_last_refuses_older_bucket(sink):
    with pytest.raises(SeriesOrderError):
        sink.upsert_last(candle(30))

    assert [c.bucket_start for c in sink.candles] == [0, 60]


def test_apply_update_requires_matching_tail(sink):
    assert sink.apply(CandleTransition(kind="update", candle=candle(60, c=95.0))) == "replaced"
    assert sink.last.close == 95.0

    with pytest.raises(SeriesOrderError):
        sink.apply(CandleTransition(kind="update", candle=candle(120)))


def test_apply_new_bucket_uses_upsert(sink):
    assert sink.apply(CandleTransition(kind="new_bucket", candle=candle(120))) == "appended"
    assert sink.apply(CandleTransition(kind="new_bucket", candle=candle(120, o=1.0, l=1.0))) == "replaced"
    assert sink.last.open == 1.0


def test_read_surface_returns_copies(sink):
    sink.candles.append(candle(999))

    assert len(sink) == 2


def test_snapshot(sink):
    sink.upsert_last(candle(120))

    snapshot = sink.snapshot(limit=2)

    assert snapshot["count"] == 2
    assert [c["time"] for c in snapshot["candles"]] == [60, 120]
    assert snapshot["volumes"] == [
        {"time": 0, "value": 5.0, "direction": "up"},
        {"time": 60, "value": 6.0, "direction": "up"},
    ]
