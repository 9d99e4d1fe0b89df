"""
Models package for the recorder client.

This package contains the data models shared by the event stream and the
file finder.
"""

from .alarm_event import AlarmEvent
from .connection_event import ConnectionEvent
from .found_file import FoundFile, FindResult
from .search_query import SearchQuery, MAX_FIND_COUNT

__all__ = [
    "AlarmEvent",
    "ConnectionEvent",
    "FoundFile",
    "FindResult",
    "SearchQuery",
    "MAX_FIND_COUNT",
]
