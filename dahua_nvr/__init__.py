"""
dahua_nvr - Client for the HTTP control and event interface of Dahua recorders.
"""

from .cameras import DahuaCamera, Recorder
from .events import AlarmParser, EventStream
from .search import FileFinder
from .signals import RecorderSignals, Signal
from .version import __version__, __version_full__

__all__ = [
    "DahuaCamera",
    "Recorder",
    "AlarmParser",
    "EventStream",
    "FileFinder",
    "RecorderSignals",
    "Signal",
    "__version__",
    "__version_full__",
]
