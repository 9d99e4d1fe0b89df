"""
Recorder client utilities.
"""

from .config import Config, load_config, save_config
from .filenames import generate_filename
from .paths import get_project_root, get_shared_data_path
from .time_utils import (
    convert_utc_to_local,
    format_recorder_time,
    now_local,
    parse_recorder_time,
)

__all__ = [
    "Config",
    "load_config",
    "save_config",
    "generate_filename",
    "get_project_root",
    "get_shared_data_path",
    "convert_utc_to_local",
    "format_recorder_time",
    "now_local",
    "parse_recorder_time",
]
