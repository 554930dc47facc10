"""
Chart Data Errors

Exception taxonomy for the historical load and the live feed.
Historical errors are terminal for a run; live feed errors only degrade status.
"""

from typing import Optional


class ChartDataError(Exception):
    """Base class for all chart data errors"""


class FetchError(ChartDataError):
    """The historical source could not be reached or returned an unreadable body"""


class DataUnavailableError(ChartDataError):
    """
    The historical response carries no usable records or an explicit error payload.

    Args:
        message: Upstream message, surfaced verbatim when present
        code: Upstream error code, used when no message is available
    """

    def __init__(self, message: Optional[str] = None, code: Optional[str] = None):
        self.message = message
        self.code = code
        super().__init__(message or code or "No data available")


class MalformedRecordError(ChartDataError, ValueError):
    """A historical record has an unparsable timestamp or numeric field"""

    def __init__(self, index: int, reason: str):
        self.index = index
        self.reason = reason
        super().__init__(f"Malformed record at index {index}: {reason}")


ParseError = MalformedRecordError


class SeriesOrderError(ChartDataError, ValueError):
    """A series mutation would break strict bucket ordering"""


class TransportClosedError(ChartDataError):
    """The live feed transport was closed"""


class TransportFaultError(ChartDataError):
    """The live feed transport failed"""


class InvalidTransitionError(ChartDataError):
    """The feed coordinator was asked to make an illegal status change"""
