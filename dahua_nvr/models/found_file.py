"""
Models for recorded media files returned by a file search.
"""

from dataclasses import dataclass, field
from typing import Any, Dict, List, Optional


@dataclass
class FoundFile:
    """One media file descriptor from a ``findNextFile`` response.

    ``index`` is the position the recorder reported (``items[<index>]``);
    it is kept as-is, indices are not renumbered.
    """

    index: int
    channel: Optional[str] = None
    start_time: Optional[str] = None
    end_time: Optional[str] = None
    type: Optional[str] = None
    file_path: Optional[str] = None
    length: Optional[int] = None
    duration: Optional[int] = None
    work_dir: Optional[str] = None
    events: List[str] = field(default_factory=list)
    flags: List[str] = field(default_factory=list)
    extra: Dict[str, str] = field(default_factory=dict)

    def to_dict(self) -> Dict[str, Any]:
        """Return the record using the recorder's own field names."""
        data = dict(self.extra)
        for key, attr in FIELD_NAMES.items():
            value = getattr(self, attr)
            if value is not None:
                data[key] = value
        if self.events:
            data["Events"] = list(self.events)
        if self.flags:
            data["Flags"] = list(self.flags)
        return data


# Recorder field name -> FoundFile attribute
FIELD_NAMES = {
    "Channel": "channel",
    "StartTime": "start_time",
    "EndTime": "end_time",
    "Type": "type",
    "FilePath": "file_path",
    "Length": "length",
    "Duration": "duration",
    "WorkDir": "work_dir",
}

INTEGER_FIELDS = {"Length", "Duration"}


@dataclass
class FindResult:
    """The outcome of one file search: the ``found`` count and the records."""

    found: int = 0
    items: List[FoundFile] = field(default_factory=list)
    query: Optional[Any] = None

    def __len__(self):
        return len(self.items)

    def __iter__(self):
        return iter(self.items)
