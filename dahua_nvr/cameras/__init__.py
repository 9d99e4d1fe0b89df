from .base import Recorder
from .dahua import DahuaCamera

__all__ = ["Recorder", "DahuaCamera"]
