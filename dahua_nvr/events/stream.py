"""
Long-lived connection to the recorder's event attach endpoint.

Exactly one attach request is kept open. Whenever it fails or closes a new
one is issued after a fixed delay, forever. Each attempt gets its own
ConnectionState; callbacks from an attempt that has been superseded are
ignored.
"""

import asyncio
import logging
import socket
from collections import deque
from dataclasses import dataclass
from datetime import datetime
from typing import Deque, List, Optional

import httpx

from dahua_nvr.exceptions import NvrError, ProtocolError, TransportError
from dahua_nvr.models import AlarmEvent, ConnectionEvent
from dahua_nvr.signals import RecorderSignals
from dahua_nvr.utils.config import EventsConfig, RecorderConfig
from .parser import AlarmParser

logger = logging.getLogger(__name__)
EVENT_PATH = "/cgi-bin/eventManager.cgi"
MAX_CONNECTION_EVENTS = 100


def keepalive_socket_options(interval: float = 1.0, probes: int = 1) -> List[tuple]:
    """Socket options enabling TCP keepalive with the given probe interval and count."""
    seconds = max(1, int(round(interval)))
    options = [(socket.SOL_SOCKET, socket.SO_KEEPALIVE, 1)]
    if hasattr(socket, "TCP_KEEPIDLE"):
        options.append((socket.IPPROTO_TCP, socket.TCP_KEEPIDLE, seconds))
    elif hasattr(socket, "TCP_KEEPALIVE"):
        # macOS names the idle time TCP_KEEPALIVE
        options.append((socket.IPPROTO_TCP, socket.TCP_KEEPALIVE, seconds))
    if hasattr(socket, "TCP_KEEPINTVL"):
        options.append((socket.IPPROTO_TCP, socket.TCP_KEEPINTVL, seconds))
    if hasattr(socket, "TCP_KEEPCNT"):
        options.append((socket.IPPROTO_TCP, socket.TCP_KEEPCNT, probes))
    return options


@dataclass
class ConnectionState:
    """Mutable state of one connection attempt."""

    generation: int
    connected: bool = False
    task: Optional[asyncio.Task] = None


class EventStream:
    """Keeps the alarm event stream attached and emits what arrives on it.

    Signals: ``connect(recorder_config)``, ``alarm(code, action, index,
    metadata)``, ``error(reason)`` and ``end()``.
    """

    def __init__(
        self,
        recorder: RecorderConfig,
        events: Optional[EventsConfig] = None,
        signals: Optional[RecorderSignals] = None,
        client: Optional[httpx.AsyncClient] = None,
    ):
        self.recorder = recorder
        self.events = events or EventsConfig()
        self.signals = signals or RecorderSignals()
        self.reconnect_delay = self.events.reconnect_delay
        self._client = client
        self._auth = httpx.BasicAuth(recorder.username, recorder.password)
        self._parser = AlarmParser()
        self._state: Optional[ConnectionState] = None
        self._generation = 0
        self._reconnect_handle: Optional[asyncio.TimerHandle] = None
        self._closed = False
        self._connection_events: Deque[ConnectionEvent] = deque(maxlen=MAX_CONNECTION_EVENTS)

    @property
    def url(self) -> str:
        codes = ",".join(self.events.codes)
        return f"{self.recorder.base_url}{EVENT_PATH}?action=attach&codes=[{codes}]"

    @property
    def is_connected(self) -> bool:
        return self._state is not None and self._state.connected

    @property
    def connection_events(self) -> List[ConnectionEvent]:
        """Most recent connection attempts, oldest first."""
        return list(self._connection_events)

    @property
    def reconnect_pending(self) -> bool:
        return self._reconnect_handle is not None

    @property
    def state(self) -> Optional[ConnectionState]:
        return self._state

    def connect(self) -> ConnectionState:
        """Issue a new attach request, replacing any previous one.

        Must be called from a running event loop. Returns the state of the
        new attempt.
        """
        self._closed = False
        if self._reconnect_handle is not None:
            self._reconnect_handle.cancel()
            self._reconnect_handle = None

        previous = self._state
        if previous is not None and previous.task is not None and not previous.task.done():
            previous.task.cancel()

        self._generation += 1
        state = ConnectionState(generation=self._generation)
        self._state = state
        self._parser.flush()

        logger.info(f"Connecting to event stream at {self.recorder.host}:{self.recorder.port}...")
        state.task = asyncio.get_running_loop().create_task(self._run(state))
        return state

    async def stop(self) -> None:
        """Close the stream for good; no reconnect is attempted afterwards."""
        self._closed = True
        if self._reconnect_handle is not None:
            self._reconnect_handle.cancel()
            self._reconnect_handle = None

        state, self._state = self._state, None
        if state is not None and state.task is not None and not state.task.done():
            state.task.cancel()
            try:
                await state.task
            except asyncio.CancelledError:
                pass
        logger.info("Event stream stopped")

    def _is_current(self, state: ConnectionState) -> bool:
        return not self._closed and state is self._state

    def _new_client(self) -> httpx.AsyncClient:
        transport = httpx.AsyncHTTPTransport(
            socket_options=keepalive_socket_options(
                self.events.keepalive_interval, self.events.keepalive_probes
            )
        )
        return httpx.AsyncClient(transport=transport, timeout=None)

    async def _run(self, state: ConnectionState) -> None:
        # Use the provided client if available, otherwise create a new one
        if self._client:
            client = self._client
            close_client = False
        else:
            client = self._new_client()
            close_client = True

        try:
            async with client.stream(
                "GET",
                self.url,
                auth=self._auth,
                headers={"Accept": "multipart/x-mixed-replace"},
                timeout=None,
            ) as response:
                if not self._is_current(state):
                    return
                if response.status_code != 200:
                    self._handle_error(
                        state,
                        ProtocolError(f"Event stream refused with status {response.status_code}"),
                    )
                    return

                self._handle_connected(state)
                async for chunk in response.aiter_bytes():
                    if not self._is_current(state):
                        return
                    self._handle_data(chunk)
        except httpx.HTTPError as e:
            self._handle_error(state, TransportError(f"Connection error: {e}"))
        finally:
            if close_client:
                await client.aclose()
            self._handle_closed(state)

    def _record(self, event_type: str, message: str) -> None:
        self._connection_events.append(
            ConnectionEvent(
                event_datetime=datetime.now().isoformat(),
                event_type=event_type,
                message=message,
            )
        )

    def _handle_connected(self, state: ConnectionState) -> None:
        state.connected = True
        self._record("connected", self.url)
        logger.info(f"Connected to {self.recorder.host}:{self.recorder.port}")
        self.signals.connect.emit(self.recorder)

    def _handle_data(self, chunk: bytes) -> None:
        logger.debug(f"Data: {chunk!r}")
        for result in self._parser.feed(chunk):
            if isinstance(result, AlarmEvent):
                logger.debug(f"Alarm {result.code} {result.action} index={result.index}")
                self.signals.alarm.emit(*result.as_args())
            else:
                self.signals.error.emit(result)

    def _handle_error(self, state: ConnectionState, error: NvrError) -> None:
        if not self._is_current(state):
            logger.debug(f"Ignoring error from superseded connection {state.generation}: {error}")
            return
        logger.error(f"Event stream error: {error}")
        if not state.connected:
            self._record("failed", str(error))
            self._schedule_reconnect(state)
        self.signals.error.emit(error)

    def _handle_closed(self, state: ConnectionState) -> None:
        if not self._is_current(state):
            return
        was_connected = state.connected
        state.connected = False
        self._schedule_reconnect(state)
        if was_connected:
            self._record("disconnected", "connection closed")
            logger.info("Connection closed!")
            self.signals.end.emit()

    def _schedule_reconnect(self, state: ConnectionState) -> None:
        if not self._is_current(state) or self._reconnect_handle is not None:
            return
        logger.error(f"Connection closed - reconnecting in {self.reconnect_delay} seconds...")
        self._reconnect_handle = asyncio.get_running_loop().call_later(
            self.reconnect_delay, self._reconnect, state.generation
        )

    def _reconnect(self, generation: int) -> None:
        self._reconnect_handle = None
        if self._closed or self._state is None or self._state.generation != generation:
            return
        self.connect()
