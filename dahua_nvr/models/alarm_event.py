"""
Alarm event model for notifications pushed over the event stream.
"""

from dataclasses import dataclass, field
from typing import Any, Dict


@dataclass
class AlarmEvent:
    """One alarm record decoded from the recorder's event stream."""

    code: str
    action: str = ""
    index: str = ""
    metadata: Dict[str, Any] = field(default_factory=dict)

    def as_args(self):
        """Arguments in the order the ``alarm`` signal passes them."""
        return self.code, self.action, self.index, self.metadata
