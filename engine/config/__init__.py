"""
Config Module

YAML chart configuration loading and validation.
"""

from .loader import ChartConfig, ConfigLoader, FeedSettings, HistoricalSettings, NatsSettings

__all__ = [
    "ChartConfig",
    "ConfigLoader",
    "FeedSettings",
    "HistoricalSettings",
    "NatsSettings",
]
