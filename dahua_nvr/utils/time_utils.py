from datetime import datetime
from typing import Optional, Union

import pytz

RECORDER_TIME_FORMAT = "%Y-%m-%d %H:%M:%S"
FILENAME_TIME_FORMAT = "%Y%m%d%H%M%S"


def format_recorder_time(dt: datetime) -> str:
    """Formats a datetime the way the recorder's CGI interface expects it."""
    return dt.strftime(RECORDER_TIME_FORMAT)


def parse_recorder_time(dt_str: str) -> datetime:
    """Parses a recorder timestamp such as '2024-01-01 12:00:00'."""
    return datetime.strptime(dt_str.strip(), RECORDER_TIME_FORMAT)


def convert_utc_to_local(utc_dt: datetime, tz_str: str) -> datetime:
    """Converts a timezone-aware UTC datetime to a local datetime."""
    if not utc_dt.tzinfo:
        # Assume UTC if datetime is naive
        utc_dt = pytz.utc.localize(utc_dt)

    try:
        local_tz = pytz.timezone(tz_str)
    except pytz.UnknownTimeZoneError:
        local_tz = pytz.utc

    return utc_dt.astimezone(local_tz)


def now_local(tz_str: Optional[str] = None) -> datetime:
    """Current time in the given timezone, or naive local time if none is set."""
    if not tz_str:
        return datetime.now()
    return convert_utc_to_local(datetime.now(pytz.utc), tz_str)


def to_datetime(value: Union[str, datetime]) -> datetime:
    if isinstance(value, datetime):
        return value
    return parse_recorder_time(value)
