from dahua_nvr.utils.config import RECONNECT_TIMEOUT_SECONDS
from .parser import AlarmParser
from .stream import EventStream, ConnectionState, keepalive_socket_options

__all__ = [
    "AlarmParser",
    "EventStream",
    "ConnectionState",
    "RECONNECT_TIMEOUT_SECONDS",
    "keepalive_socket_options",
]
