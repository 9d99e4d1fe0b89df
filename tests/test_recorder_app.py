import asyncio
from unittest.mock import AsyncMock, MagicMock

import pytest

from dahua_nvr.recorder_app import RecorderApp
from dahua_nvr.signals import RecorderSignals
from dahua_nvr.utils.config import Config


@pytest.fixture
def app_config(tmp_path):
    return Config.model_validate(
        {
            "RECORDER": {"host": "192.168.1.108", "username": "admin", "password": "admin"},
            "STORAGE": {"path": str(tmp_path)},
        }
    )


@pytest.fixture
def mock_recorder():
    recorder = MagicMock()
    recorder.signals = RecorderSignals()
    recorder.close = AsyncMock()
    return recorder


def test_app_wires_recorder_signals(app_config, mock_recorder):
    RecorderApp(app_config, recorder=mock_recorder)

    assert len(mock_recorder.signals.connect) == 1
    assert len(mock_recorder.signals.alarm) == 1
    assert len(mock_recorder.signals.end) == 1
    assert len(mock_recorder.signals.files_found) == 1


def test_app_creates_dahua_camera(app_config):
    app = RecorderApp(app_config)

    assert app.recorder.host == "192.168.1.108"
    assert app.recorder.timezone == "America/New_York"


@pytest.mark.asyncio
async def test_run_until_shutdown(app_config, mock_recorder):
    app = RecorderApp(app_config, recorder=mock_recorder)

    task = asyncio.create_task(app.run())
    await asyncio.sleep(0)
    mock_recorder.start.assert_called_once()

    await app.shutdown()
    await asyncio.wait_for(task, timeout=1)
    mock_recorder.close.assert_awaited_once()


def test_load_application_config_missing_file(tmp_path):
    from dahua_nvr.__main__ import load_application_config

    assert load_application_config(tmp_path / "missing.ini") is None


def test_load_application_config_invalid_file(tmp_path):
    from dahua_nvr.__main__ import load_application_config

    config_path = tmp_path / "config.ini"
    config_path.write_text("[RECORDER]\nport = 80\n")

    assert load_application_config(config_path) is None


def test_load_application_config(tmp_path):
    from dahua_nvr.__main__ import load_application_config

    config_path = tmp_path / "config.ini"
    config_path.write_text(
        "[RECORDER]\nhost = 192.168.1.108\nusername = admin\npassword = secret\n"
        "[EVENTS]\ncodes = VideoMotion, AlarmLocal\n"
    )

    config = load_application_config(config_path)

    assert config.recorder.host == "192.168.1.108"
    assert config.events.codes == ["VideoMotion", "AlarmLocal"]


@pytest.mark.asyncio
async def test_main_without_config_exits_with_error(tmp_path):
    from dahua_nvr.__main__ import main

    assert await main(tmp_path / "missing.ini") == 1
