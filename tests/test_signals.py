import asyncio

import pytest

from dahua_nvr.signals import RecorderSignals, Signal


def test_emit_calls_listeners_in_order():
    signal = Signal("alarm")
    calls = []
    signal.connect(lambda *args: calls.append(("first", args)))
    signal.connect(lambda *args: calls.append(("second", args)))

    signal.emit("VideoMotion", "Start", "0", {})

    assert calls == [
        ("first", ("VideoMotion", "Start", "0", {})),
        ("second", ("VideoMotion", "Start", "0", {})),
    ]


def test_failing_listener_does_not_stop_others():
    signal = Signal("error")
    calls = []

    def broken(reason):
        raise RuntimeError("listener bug")

    signal.connect(broken)
    signal.connect(calls.append)

    signal.emit("reason")

    assert calls == ["reason"]


def test_connect_and_disconnect():
    signal = Signal("end")
    callback = signal.connect(lambda: None)

    assert len(signal) == 1
    signal.connect(callback)
    assert len(signal) == 1

    signal.disconnect(callback)
    assert len(signal) == 0


@pytest.mark.asyncio
async def test_coroutine_listener_is_scheduled():
    signal = Signal("files_found")
    received = []

    async def listener(result):
        received.append(result)

    signal.connect(listener)
    signal.emit("result")
    await asyncio.sleep(0)

    assert received == ["result"]


def test_recorder_signals_are_independent():
    signals = RecorderSignals()
    signals.alarm.connect(lambda *args: None)

    assert len(signals.alarm) == 1
    assert len(signals.error) == 0
