"""
Ingestion

Live price feed transport.
"""

from dataflow.ingestion.price_feed import FeedConfig, PriceFeedClient

__all__ = ["FeedConfig", "PriceFeedClient"]
