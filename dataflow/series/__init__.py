"""
Series

The authoritative chart series and its NATS fan-out.
"""

from dataflow.series.publisher import SeriesPublisher
from dataflow.series.sink import SeriesSink

__all__ = ["SeriesSink", "SeriesPublisher"]
