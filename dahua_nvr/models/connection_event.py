"""
Connection event model for event stream connection tracking.
"""

from typing import TypedDict


class ConnectionEvent(TypedDict):
    """Represents a single event stream connection transition."""

    event_datetime: str
    event_type: str  # "connected", "disconnected" or "failed"
    message: str
