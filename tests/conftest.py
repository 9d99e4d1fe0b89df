import pytest
import pytest_asyncio
import asyncio

from dahua_nvr.signals import RecorderSignals
from dahua_nvr.utils.config import EventsConfig, RecorderConfig


class SignalRecorder:
    """Collects every emission of a RecorderSignals instance."""

    def __init__(self, signals: RecorderSignals):
        self.connects = []
        self.alarms = []
        self.errors = []
        self.ends = 0
        self.files_found = []
        signals.connect.connect(self.connects.append)
        signals.alarm.connect(lambda *args: self.alarms.append(args))
        signals.error.connect(self.errors.append)
        signals.end.connect(self._on_end)
        signals.files_found.connect(self.files_found.append)

    def _on_end(self):
        self.ends += 1


@pytest.fixture
def signals():
    return RecorderSignals()


@pytest.fixture
def recorded(signals):
    return SignalRecorder(signals)


@pytest.fixture
def recorder_config():
    """Create a recorder configuration."""
    return RecorderConfig(host="192.168.1.108", port=80, username="admin", password="admin")


@pytest.fixture
def fast_events_config():
    """Event stream configuration with a short reconnect delay for tests."""
    return EventsConfig(reconnect_delay=0.2)


@pytest_asyncio.fixture(scope="function", autouse=True)
async def cleanup_asyncio_tasks():
    """Automatically cancel all pending asyncio tasks at the end of each test."""
    yield

    try:
        current_task = asyncio.current_task()
        pending_tasks = [
            task for task in asyncio.all_tasks() if task != current_task and not task.done()
        ]

        if pending_tasks:
            for task in pending_tasks:
                task.cancel()
            await asyncio.gather(*pending_tasks, return_exceptions=True)

    except RuntimeError:
        # Event loop might already be closed
        pass


@pytest.fixture
def record_signals():
    """Factory for attaching a SignalRecorder to any RecorderSignals."""
    return SignalRecorder
