import os
import asyncio
import logging
from typing import Optional

from dahua_nvr.cameras import DahuaCamera, Recorder
from dahua_nvr.utils.config import Config

logger = logging.getLogger(__name__)


class RecorderApp:
    """
    Attaches to a recorder's event stream and logs what it reports until shut down.
    """

    def __init__(self, config: Config, recorder: Optional[Recorder] = None):
        """
        Initialize the app.

        Args:
            config: Configuration object
            recorder: Recorder object (optional, a DahuaCamera is created if not provided)
        """
        self.config = config
        self.storage_path = os.path.abspath(config.storage.path)
        logger.info(f"Using storage path: {self.storage_path}")

        if recorder:
            self.recorder = recorder
        else:
            logger.info(f"Initializing recorder at {config.recorder.host}:{config.recorder.port}")
            self.recorder = DahuaCamera(
                config.recorder,
                storage_path=self.storage_path,
                events=config.events,
                search=config.search,
                timezone=config.app.timezone,
            )

        self._wire_signals()
        self._shutdown_event = asyncio.Event()

    def _wire_signals(self):
        signals = self.recorder.signals
        signals.connect.connect(self.on_connect)
        signals.alarm.connect(self.on_alarm)
        signals.end.connect(self.on_end)
        signals.files_found.connect(self.on_files_found)

    def on_connect(self, recorder_config):
        logger.info(f"Event stream attached to {recorder_config.host}")

    def on_alarm(self, code, action, index, metadata):
        logger.info(f"Alarm: {code} {action} index={index} {metadata or ''}")

    def on_end(self):
        logger.warning("Event stream ended")

    def on_files_found(self, result):
        logger.info(f"Search found {result.found} files ({len(result.items)} listed)")

    async def run(self):
        """Run until shutdown is requested."""
        self.recorder.start()
        await self._shutdown_event.wait()

    async def shutdown(self):
        logger.info("Shutting down")
        self._shutdown_event.set()
        await self.recorder.close()
