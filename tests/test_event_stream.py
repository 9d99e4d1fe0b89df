import asyncio
import socket

import httpx
import pytest

from dahua_nvr.events import EventStream, keepalive_socket_options
from dahua_nvr.events.stream import MAX_CONNECTION_EVENTS
from dahua_nvr.exceptions import DecodeError, ProtocolError, TransportError
from dahua_nvr.utils.config import EventsConfig

MULTIPART_CHUNK = (
    b"--myboundary\r\n"
    b"Content-Type: text/plain\r\n"
    b"Content-Length: 37\r\n"
    b"\r\n"
    b"Code=VideoMotion;action=Start;index=0\r\n"
    b"\r\n"
)


async def stream_body(chunks, hold=None):
    for chunk in chunks:
        yield chunk
    if hold is not None:
        await hold.wait()


def make_client(handler):
    return httpx.AsyncClient(transport=httpx.MockTransport(handler))


class TestEventStreamConnection:
    """Tests for attaching to the event stream."""

    @pytest.mark.asyncio
    async def test_connect_emits_alarms_then_end(self, recorder_config, signals, recorded):
        requests = []

        async def handler(request):
            requests.append(request)
            return httpx.Response(200, content=stream_body([MULTIPART_CHUNK]))

        stream = EventStream(recorder_config, EventsConfig(reconnect_delay=5), signals, client=make_client(handler))
        state = stream.connect()
        await state.task

        assert recorded.connects == [recorder_config]
        assert recorded.alarms == [("VideoMotion", "Start", "0", {})]
        assert recorded.ends == 1
        assert recorded.errors == []
        assert not stream.is_connected
        assert stream.reconnect_pending

        request = requests[0]
        assert request.url.path == "/cgi-bin/eventManager.cgi"
        assert request.url.params["action"] == "attach"
        assert request.url.params["codes"] == "[All]"
        assert request.headers["Accept"] == "multipart/x-mixed-replace"
        assert request.headers["Authorization"].startswith("Basic ")

        await stream.stop()
        assert not stream.reconnect_pending

    @pytest.mark.asyncio
    async def test_connected_while_stream_is_open(self, recorder_config, signals, recorded):
        hold = asyncio.Event()

        async def handler(request):
            return httpx.Response(200, content=stream_body([MULTIPART_CHUNK], hold))

        stream = EventStream(recorder_config, EventsConfig(reconnect_delay=5), signals, client=make_client(handler))
        stream.connect()
        await asyncio.sleep(0.05)

        assert stream.is_connected
        assert len(recorded.alarms) == 1
        assert stream.connection_events[-1]["event_type"] == "connected"

        await stream.stop()
        assert recorded.ends == 0
        assert not stream.reconnect_pending

    @pytest.mark.asyncio
    async def test_decode_error_does_not_drop_stream(self, recorder_config, signals, recorded):
        hold = asyncio.Event()
        chunk = (
            b"Code=VideoBlind;action=Start;index=1;data={\n \"x\" : oops\n}\r\n"
            b"Code=VideoMotion;action=Stop;index=0\r\n"
        )

        async def handler(request):
            return httpx.Response(200, content=stream_body([chunk], hold))

        stream = EventStream(recorder_config, EventsConfig(reconnect_delay=5), signals, client=make_client(handler))
        stream.connect()
        await asyncio.sleep(0.05)

        assert len(recorded.errors) == 1
        assert isinstance(recorded.errors[0], DecodeError)
        assert recorded.alarms == [("VideoMotion", "Stop", "0", {})]
        assert stream.is_connected
        assert not stream.reconnect_pending

        await stream.stop()


class TestEventStreamReconnect:
    """Tests for the reconnect policy."""

    @pytest.mark.asyncio
    async def test_reconnect_after_delay_once_per_close(self, recorder_config, fast_events_config, signals, recorded):
        loop = asyncio.get_running_loop()
        times = []
        hold = asyncio.Event()

        async def handler(request):
            times.append(loop.time())
            if len(times) == 1:
                return httpx.Response(200, content=stream_body([MULTIPART_CHUNK]))
            return httpx.Response(200, content=stream_body([], hold))

        stream = EventStream(recorder_config, fast_events_config, signals, client=make_client(handler))
        stream.connect()

        await asyncio.sleep(0.1)
        assert len(times) == 1
        assert recorded.ends == 1

        await asyncio.sleep(0.4)
        assert len(times) == 2
        assert times[1] - times[0] >= fast_events_config.reconnect_delay - 0.01
        assert stream.is_connected
        assert len(recorded.connects) == 2

        await stream.stop()

    @pytest.mark.asyncio
    async def test_connect_failure_schedules_single_reconnect(self, recorder_config, signals, recorded):
        attempts = []

        async def handler(request):
            attempts.append(request)
            raise httpx.ConnectError("Connection refused", request=request)

        stream = EventStream(recorder_config, EventsConfig(reconnect_delay=5), signals, client=make_client(handler))
        state = stream.connect()
        await state.task

        assert len(attempts) == 1
        assert len(recorded.errors) == 1
        assert isinstance(recorded.errors[0], TransportError)
        assert recorded.ends == 0
        assert stream.reconnect_pending
        assert stream.connection_events[-1]["event_type"] == "failed"

        await stream.stop()

    @pytest.mark.asyncio
    async def test_failed_attempts_repeat_forever(self, recorder_config, fast_events_config, signals, recorded):
        attempts = []

        async def handler(request):
            attempts.append(request)
            raise httpx.ConnectError("Connection refused", request=request)

        stream = EventStream(recorder_config, fast_events_config, signals, client=make_client(handler))
        stream.connect()
        await asyncio.sleep(0.5)

        assert len(attempts) == 3
        assert len(recorded.errors) == 3

        await stream.stop()

    @pytest.mark.asyncio
    async def test_connection_history_is_bounded(self, recorder_config, signals):
        attempts = []
        enough = asyncio.Event()

        async def handler(request):
            attempts.append(request)
            if len(attempts) >= MAX_CONNECTION_EVENTS + 50:
                enough.set()
            raise httpx.ConnectError("Connection refused", request=request)

        stream = EventStream(recorder_config, EventsConfig(reconnect_delay=0.001), signals, client=make_client(handler))
        stream.connect()
        await asyncio.wait_for(enough.wait(), timeout=10)

        history = stream.connection_events
        assert len(history) == MAX_CONNECTION_EVENTS
        assert all(event["event_type"] == "failed" for event in history)

        await stream.stop()

    @pytest.mark.asyncio
    async def test_error_status_is_protocol_error(self, recorder_config, signals, recorded):
        async def handler(request):
            return httpx.Response(401, text="Unauthorized")

        stream = EventStream(recorder_config, EventsConfig(reconnect_delay=5), signals, client=make_client(handler))
        state = stream.connect()
        await state.task

        assert recorded.connects == []
        assert len(recorded.errors) == 1
        assert isinstance(recorded.errors[0], ProtocolError)
        assert stream.reconnect_pending

        await stream.stop()

    @pytest.mark.asyncio
    async def test_duplicate_schedule_is_ignored(self, recorder_config, signals):
        hold = asyncio.Event()

        async def handler(request):
            return httpx.Response(200, content=stream_body([], hold))

        stream = EventStream(recorder_config, EventsConfig(reconnect_delay=5), signals, client=make_client(handler))
        state = stream.connect()

        stream._schedule_reconnect(state)
        first = stream._reconnect_handle
        stream._schedule_reconnect(state)

        assert first is not None
        assert stream._reconnect_handle is first

        await stream.stop()
        assert first.cancelled()

    @pytest.mark.asyncio
    async def test_superseded_connection_is_ignored(self, recorder_config, signals, recorded):
        hold = asyncio.Event()

        async def handler(request):
            return httpx.Response(200, content=stream_body([], hold))

        stream = EventStream(recorder_config, EventsConfig(reconnect_delay=5), signals, client=make_client(handler))
        old_state = stream.connect()
        new_state = stream.connect()

        assert new_state.generation == old_state.generation + 1
        stream._handle_error(old_state, TransportError("stale"))
        stream._handle_closed(old_state)

        assert recorded.errors == []
        assert recorded.ends == 0
        assert not stream.reconnect_pending

        await stream.stop()

    @pytest.mark.asyncio
    async def test_stop_prevents_reconnect(self, recorder_config, fast_events_config, signals):
        attempts = []

        async def handler(request):
            attempts.append(request)
            return httpx.Response(200, content=stream_body([MULTIPART_CHUNK]))

        stream = EventStream(recorder_config, fast_events_config, signals, client=make_client(handler))
        state = stream.connect()
        await state.task
        assert stream.reconnect_pending

        await stream.stop()
        await asyncio.sleep(0.3)

        assert len(attempts) == 1


def test_keepalive_socket_options():
    options = keepalive_socket_options(interval=1.0, probes=1)

    assert (socket.SOL_SOCKET, socket.SO_KEEPALIVE, 1) in options
    if hasattr(socket, "TCP_KEEPINTVL"):
        assert (socket.IPPROTO_TCP, socket.TCP_KEEPINTVL, 1) in options
    if hasattr(socket, "TCP_KEEPCNT"):
        assert (socket.IPPROTO_TCP, socket.TCP_KEEPCNT, 1) in options


def test_url_uses_configured_codes(recorder_config):
    stream = EventStream(recorder_config, EventsConfig(codes=["VideoMotion", "AlarmLocal"]))

    assert stream.url == "http://192.168.1.108:80/cgi-bin/eventManager.cgi?action=attach&codes=[VideoMotion,AlarmLocal]"
