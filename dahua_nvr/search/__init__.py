from .decoder import decode_find_results, parse_key_values
from .session import FileFinder, FileFindSession, SessionState

__all__ = [
    "decode_find_results",
    "parse_key_values",
    "FileFinder",
    "FileFindSession",
    "SessionState",
]
