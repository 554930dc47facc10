"""
Historical Client

Fetches the one-time OHLCV snapshot from the TwelveData time_series
endpoint and classifies the response.
"""

import logging
from dataclasses import dataclass
from typing import List, Optional

import httpx

from dataflow.errors import DataUnavailableError, FetchError

logger = logging.getLogger(__name__)


@dataclass
class HistoricalConfig:
    """Historical source configuration"""
    base_url: str = "https://api.twelvedata.com"
    api_key: str = "demo"
    timeout: Optional[float] = None  # no timeout unless configured


def extract_values(payload) -> List[dict]:
    """
    Pull the record list out of a time_series payload.

    Raises:
        DataUnavailableError: If the payload is an error payload or has
            no values
    """
    if not isinstance(payload, dict):
        raise DataUnavailableError()

    values = payload.get("values")
    if not values:
        message = payload.get("message")
        code = payload.get("code")
        raise DataUnavailableError(
            message=str(message) if message else None,
            code=str(code) if code is not None else None,
        )

    if not isinstance(values, list):
        raise DataUnavailableError(message="Unexpected values payload")

    return values


class TwelveDataClient:
    """
    Async client for the historical time_series endpoint.

    Example usage:
        client = TwelveDataClient(HistoricalConfig(api_key="..."))
        records = await client.fetch_time_series("BTC/USD", "1min", 5000)
    """

    def __init__(self, config: Optional[HistoricalConfig] = None, transport: Optional[httpx.AsyncBaseTransport] = None):
        self.config = config or HistoricalConfig()
        self._transport = transport

    async def fetch_payload(self, symbol: str, interval: str, output_size: int) -> dict:
        """
        Fetch the raw JSON payload.

        Raises:
            FetchError: On any network failure or a non-JSON body
        """
        params = {
            "symbol": symbol,
            "interval": interval,
            "outputsize": output_size,
            "apikey": self.config.api_key,
        }
        url = f"{self.config.base_url.rstrip('/')}/time_series"

        try:
            async with httpx.AsyncClient(timeout=self.config.timeout, transport=self._transport) as client:
                response = await client.get(url, params=params)
        except httpx.HTTPError as e:
            logger.error(f"Historical fetch failed: {e}")
            raise FetchError(str(e) or "Network error") from e

        try:
            payload = response.json()
        except ValueError as e:
            logger.error(f"Historical response is not JSON (HTTP {response.status_code})")
            raise FetchError(f"Invalid response from historical source (HTTP {response.status_code})") from e

        if response.status_code != 200:
            logger.warning(f"Historical source returned HTTP {response.status_code}")

        return payload

    async def fetch_time_series(self, symbol: str, interval: str, output_size: int) -> List[dict]:
        """
        Fetch the historical records for a symbol.

        Returns:
            Raw records in arrival order (newest first for TwelveData)

        Raises:
            FetchError: Network failure
            DataUnavailableError: Error payload or no records
        """
        logger.info(f"Fetching historical data: {symbol} {interval} outputsize={output_size}")
        payload = await self.fetch_payload(symbol, interval, output_size)

        try:
            values = extract_values(payload)
        except DataUnavailableError as e:
            logger.error(f"Historical source returned no data: {e}")
            raise

        logger.info(f"Fetched {len(values)} historical records for {symbol}")
        return values
