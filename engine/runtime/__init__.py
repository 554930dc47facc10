"""
Runtime Module

Feed coordinator, per-attachment session and the inbound event channel.
"""

from .coordinator import FeedCoordinator, FeedStatus
from .events import EventChannel
from .session import FeedSession

__all__ = [
    "EventChannel",
    "FeedCoordinator",
    "FeedSession",
    "FeedStatus",
]
