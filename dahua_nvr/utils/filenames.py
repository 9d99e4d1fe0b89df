import logging
from datetime import datetime
from typing import Optional, Union

from .time_utils import FILENAME_TIME_FORMAT, to_datetime

logger = logging.getLogger(__name__)


def generate_filename(
    device: str,
    channel: Union[int, str],
    start: Union[str, datetime],
    end: Optional[Union[str, datetime]],
    filetype: str,
) -> str:
    """
    Build a local filename for a recording or snapshot.

    The result looks like ``<device>_ch<channel>_<start>[_<end>].<filetype>``
    with both times in ``YYYYMMDDHHMMSS`` form. ``end`` is omitted for
    snapshots.
    """
    filename = f"{device}_ch{channel}_{to_datetime(start).strftime(FILENAME_TIME_FORMAT)}"
    if end:
        filename += f"_{to_datetime(end).strftime(FILENAME_TIME_FORMAT)}"
    filename += f".{filetype}"
    logger.debug(f"Generated filename {filename}")
    return filename
