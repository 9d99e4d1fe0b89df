"""
Per-kind callback registries used as the outbound interface of the client.
"""

import asyncio
import inspect
import logging
from typing import Any, Callable, List, Set

logger = logging.getLogger(__name__)


class Signal:
    """A named list of listeners.

    Listeners may be plain callables or coroutine functions. Coroutines are
    scheduled on the running loop; a listener that raises is logged and the
    remaining listeners still run.
    """

    def __init__(self, name: str):
        self.name = name
        self._listeners: List[Callable[..., Any]] = []
        self._pending: Set[asyncio.Task] = set()

    def connect(self, callback: Callable[..., Any]) -> Callable[..., Any]:
        if callback not in self._listeners:
            self._listeners.append(callback)
        return callback

    def disconnect(self, callback: Callable[..., Any]) -> None:
        if callback in self._listeners:
            self._listeners.remove(callback)

    def emit(self, *args: Any) -> None:
        for callback in list(self._listeners):
            try:
                result = callback(*args)
            except Exception as e:
                logger.error(f"Listener for '{self.name}' failed: {e}", exc_info=True)
                continue

            if inspect.isawaitable(result):
                task = asyncio.ensure_future(result)
                self._pending.add(task)
                task.add_done_callback(self._listener_done)

    def _listener_done(self, task: asyncio.Task) -> None:
        self._pending.discard(task)
        if not task.cancelled() and task.exception() is not None:
            logger.error(f"Listener for '{self.name}' failed: {task.exception()}")

    def __len__(self) -> int:
        return len(self._listeners)


class RecorderSignals:
    """All signals a recorder client can emit.

    ``connect(config)``, ``alarm(code, action, index, metadata)``,
    ``error(reason)``, ``end()``, ``files_found(result)``,
    ``ptz_status(lines)``, ``file_saved(info)``, ``snapshot_saved(info)``.
    """

    def __init__(self):
        self.connect = Signal("connect")
        self.alarm = Signal("alarm")
        self.error = Signal("error")
        self.end = Signal("end")
        self.files_found = Signal("files_found")
        self.ptz_status = Signal("ptz_status")
        self.file_saved = Signal("file_saved")
        self.snapshot_saved = Signal("snapshot_saved")
