import pytest

from dataflow.errors import DataUnavailableError, MalformedRecordError, ParseError
from dataflow.historical.normalizer import normalize, parse_utc_timestamp
from schemas.market_data import Direction

from tests.conftest import BASE_TS, HISTORICAL_RECORDS, record


def test_normalize_sorts_ascending():
    result = normalize(HISTORICAL_RECORDS, utc_offset=0)

    assert [c.bucket_start for c in result.candles] == [BASE_TS, BASE_TS + 60, BASE_TS + 120]
    assert [v.bucket_start for v in result.volumes] == [BASE_TS, BASE_TS + 60, BASE_TS + 120]
    assert result.candles[0].open == 100.0
    assert result.candles[-1].close == 103.0
    assert result.last_close == 103.0


def test_normalize_applies_display_offset():
    result = normalize(HISTORICAL_RECORDS, utc_offset=7200)

    assert result.candles[0].bucket_start == BASE_TS + 7200


def test_normalize_volume_direction():
    records = [
        record("2024-01-01 00:00:00", "100", "101", "99", "100"),   # flat -> up
        record("2024-01-01 00:01:00", "100", "101", "98", "99"),    # down
        record("2024-01-01 00:02:00", "99", "103", "99", "102", "7.5"),
    ]

    result = normalize(records, utc_offset=0)

    assert [v.direction for v in result.volumes] == [Direction.UP, Direction.DOWN, Direction.UP]
    assert result.volumes[2].volume == 7.5


def test_duplicates_keep_earliest_index():
    records = [
        record("2024-01-01 00:01:00", "200", "210", "190", "205"),
        record("2024-01-01 00:00:00", "100", "102", "99", "101"),
        record("2024-01-01 00:01:00", "300", "310", "290", "295", "99"),
    ]

    result = normalize(records, utc_offset=0)

    assert len(result.candles) == 2
    assert result.candles[1].open == 200.0
    assert result.volumes[1].direction == Direction.UP
    assert result.volumes[1].volume == 10.0


def test_output_is_strictly_increasing():
    records = HISTORICAL_RECORDS + list(reversed(HISTORICAL_RECORDS))

    result = normalize(records, utc_offset=0)

    times = [c.bucket_start for c in result.candles]
    assert times == sorted(set(times))
    assert len(result.candles) == len(result.volumes) == 3


def test_empty_batch_is_data_unavailable():
    with pytest.raises(DataUnavailableError) as exc_info:
        normalize([], utc_offset=0)

    assert str(exc_info.value) == "No data available"


@pytest.mark.parametrize(
    "bad",
    [
        record("not a date", "100", "101", "99", "100"),
        record("2024-01-01 00:00:00", "abc", "101", "99", "100"),
        record("2024-01-01 00:00:00", "100", "101", "99", "nan"),
        record("2024-01-01 00:00:00", "100", "101", "99", "100", volume=None),
        record("2024-01-01 00:00:00", "100", "99", "98", "100"),  # high below open
    ],
)
def test_malformed_record_fails_whole_batch(bad):
    with pytest.raises(MalformedRecordError) as exc_info:
        normalize(HISTORICAL_RECORDS + [bad], utc_offset=0)

    assert exc_info.value.index == len(HISTORICAL_RECORDS)


def test_parse_error_alias():
    assert ParseError is MalformedRecordError
    assert issubclass(ParseError, ValueError)


def test_parse_utc_timestamp_formats():
    assert parse_utc_timestamp("2024-01-01 00:00:00") == BASE_TS
    assert parse_utc_timestamp("2024-01-01") == BASE_TS
    assert parse_utc_timestamp("2024-01-01T00:00:00Z") == BASE_TS
    assert parse_utc_timestamp("2024-01-01T01:00:00+01:00") == BASE_TS
