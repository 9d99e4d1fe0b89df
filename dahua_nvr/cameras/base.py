from abc import ABC, abstractmethod
from typing import Any, List, Mapping, Optional, Union

from dahua_nvr.models import ConnectionEvent, FindResult, FoundFile, SearchQuery
from dahua_nvr.signals import RecorderSignals


class Recorder(ABC):
    """Base class for recorder implementations."""

    signals: RecorderSignals

    @abstractmethod
    def start(self) -> None:
        """Attach to the recorder's event stream if alarms are enabled."""
        pass

    @abstractmethod
    async def close(self) -> None:
        """Detach from the event stream and stop reconnecting."""
        pass

    @abstractmethod
    async def find_files(self, query: Union[SearchQuery, Mapping[str, Any]]) -> Optional[FindResult]:
        """Search the recorder for media files."""
        pass

    @abstractmethod
    async def save_file(self, file: Union[FoundFile, Mapping[str, Any]], filename: Optional[str] = None) -> Optional[str]:
        """Download a recorded file; returns the local path."""
        pass

    @abstractmethod
    async def get_snapshot(self, channel: int = 0, path: Optional[str] = None, filename: Optional[str] = None) -> Optional[str]:
        """Save a snapshot from a channel; returns the local path."""
        pass

    @property
    @abstractmethod
    def connection_events(self) -> List[ConnectionEvent]:
        """Get list of event stream connection events."""
        pass

    @property
    @abstractmethod
    def is_connected(self) -> bool:
        """Whether the event stream is currently attached."""
        pass
