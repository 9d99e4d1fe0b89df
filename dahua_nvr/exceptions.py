"""
Error types reported by the recorder client.

None of these are raised past a component boundary; they travel as the
payload of the ``error`` signal and ``str(error)`` is the reason.
"""


class NvrError(Exception):
    """Base class for recorder client errors."""
    pass


class CallerError(NvrError):
    """Raised when a call is missing mandatory arguments."""
    pass


class TransportError(NvrError):
    """Raised when the connection to the recorder fails."""
    pass


class ProtocolError(NvrError):
    """Raised when the recorder answers with an unexpected status or body."""
    pass


class DecodeError(NvrError):
    """Raised when an alarm record carries a malformed data payload."""
    pass


class StorageError(NvrError):
    """Raised when a local file cannot be written."""
    pass
