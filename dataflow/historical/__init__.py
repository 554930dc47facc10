"""
Historical Data

Snapshot fetch and normalization.
"""

from dataflow.historical.client import HistoricalConfig, TwelveDataClient, extract_values
from dataflow.historical.normalizer import normalize, parse_decimal, parse_utc_timestamp

__all__ = [
    "HistoricalConfig",
    "TwelveDataClient",
    "extract_values",
    "parse_decimal",
    "parse_utc_timestamp",
    "normalize",
]
