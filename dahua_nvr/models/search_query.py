"""
Search query model for the media file finder.
"""

from datetime import datetime
from typing import List, Optional, Union

from pydantic import BaseModel, Field, field_validator

from dahua_nvr.utils.time_utils import format_recorder_time

MAX_FIND_COUNT = 100


class SearchQuery(BaseModel):
    """Conditions for one file search.

    ``channel``, ``start_time`` and ``end_time`` are mandatory. Times may be
    given as recorder-native strings or as ``datetime`` objects.
    """

    channel: int
    start_time: str = Field(alias="startTime", min_length=1)
    end_time: str = Field(alias="endTime", min_length=1)
    types: List[str] = Field(default_factory=list)
    dirs: List[str] = Field(default_factory=list)
    flags: List[str] = Field(default_factory=list)
    events: List[str] = Field(default_factory=list)
    count: Optional[int] = Field(default=None, ge=1)

    model_config = {"validate_by_name": True}

    @field_validator("start_time", "end_time", mode="before")
    @classmethod
    def _format_time(cls, value: Union[str, datetime]):
        if isinstance(value, datetime):
            return format_recorder_time(value)
        return value

    @field_validator("types", "dirs", "flags", "events", mode="before")
    @classmethod
    def _empty_list(cls, value):
        return [] if value is None else value

    @field_validator("count", mode="before")
    @classmethod
    def _default_count(cls, value):
        # 0 or missing means the finder's default count
        if value in (None, 0, "0", ""):
            return None
        return value

    @field_validator("count")
    @classmethod
    def _cap_count(cls, value: Optional[int]):
        if value is not None and value > MAX_FIND_COUNT:
            return MAX_FIND_COUNT
        return value

    def condition_params(self) -> List[tuple]:
        """Query parameters for the ``findFile`` call, in request order."""
        params = [
            ("condition.Channel", str(self.channel)),
            ("condition.StartTime", self.start_time),
            ("condition.EndTime", self.end_time),
        ]
        for name, values in (
            ("Types", self.types),
            ("Dirs", self.dirs),
            ("Flags", self.flags),
            ("Events", self.events),
        ):
            for idx, value in enumerate(values):
                params.append((f"condition.{name}[{idx}]", value))
        return params
