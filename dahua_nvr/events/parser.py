"""
Incremental parser for the recorder's event stream body.

The attach endpoint sends an endless multipart body. Besides boundary and
part header lines, each part carries one record such as::

    Code=VideoMotion;action=Start;index=0;data={
       "Id" : [ 0 ],
       "RegionName" : [ "Region1" ]
    }

Records are CRLF terminated; the ``data`` payload is pretty-printed JSON whose
own lines are usually separated by bare LF. Chunks from the socket can split
a record anywhere, so incomplete input is kept until the next chunk.
"""

import codecs
import json
import logging
from typing import List, Optional, Union

from dahua_nvr.exceptions import DecodeError
from dahua_nvr.models import AlarmEvent

logger = logging.getLogger(__name__)

LINE_SEPARATOR = "\r\n"
CODE_MARKER = "Code="
DATA_MARKER = ";data="
MAX_BUFFER_SIZE = 1024 * 1024

ParseResult = Union[AlarmEvent, DecodeError]


def json_depth(text: str) -> int:
    """Net count of unclosed braces/brackets in text, ignoring string contents."""
    depth = 0
    in_string = False
    escaped = False
    for ch in text:
        if in_string:
            if escaped:
                escaped = False
            elif ch == "\\":
                escaped = True
            elif ch == '"':
                in_string = False
        elif ch == '"':
            in_string = True
        elif ch in "{[":
            depth += 1
        elif ch in "}]":
            depth -= 1
    return depth


def parse_fields(head: str) -> dict:
    """Split ``Code=...;action=...;index=...`` into a dict keyed by field name."""
    fields = {}
    for token in head.split(";"):
        if "=" not in token:
            continue
        key, value = token.split("=", 1)
        fields[key.strip()] = value.strip()
    return fields


class AlarmParser:
    """Turns raw event stream chunks into AlarmEvents.

    ``feed`` returns, in stream order, one AlarmEvent per record and one
    DecodeError per record whose data payload is not valid JSON.
    """

    def __init__(self, max_buffer_size: int = MAX_BUFFER_SIZE):
        self.max_buffer_size = max_buffer_size
        self._decoder = codecs.getincrementaldecoder("utf-8")(errors="replace")
        self._buffer = ""
        # Record whose data payload has not been closed yet
        self._pending: Optional[str] = None

    def flush(self) -> None:
        """Drop any partial input, e.g. when the connection is replaced."""
        self._decoder.reset()
        self._buffer = ""
        self._pending = None

    def feed(self, chunk: Union[bytes, str]) -> List[ParseResult]:
        """Parse one chunk and return the records it completed.

        A record whose ``data={`` payload is still open at the end of the
        chunk is held back. It is reported, as an AlarmEvent or DecodeError,
        only once a later line closes the payload or ends it: the next
        ``Code=`` line, a ``--`` boundary or a blank line. The multipart
        framing sends a blank line after each part, so this is normally
        the very next chunk.
        """
        if isinstance(chunk, bytes):
            chunk = self._decoder.decode(chunk)
        self._buffer += chunk

        lines = self._buffer.split(LINE_SEPARATOR)
        self._buffer = lines.pop()

        results: List[ParseResult] = []
        for line in lines:
            results.extend(self._handle_line(line))

        if len(self._buffer) + len(self._pending or "") > self.max_buffer_size:
            logger.warning("Event stream buffer overflow, discarding partial record")
            self._buffer = ""
            self._pending = None
            results.append(DecodeError("Alarm record exceeded maximum buffer size"))

        return results

    def _handle_line(self, line: str) -> List[ParseResult]:
        results: List[ParseResult] = []

        if self._pending is not None:
            if line.startswith(CODE_MARKER) or line.startswith("--") or not line.strip():
                # Next record, part boundary or blank line: the payload never closed
                record, self._pending = self._pending, None
                results.extend(self._parse_record(record))
            else:
                # Some firmware separates payload lines with CRLF as well
                self._pending += "\n" + line
                if json_depth(self._pending.split(DATA_MARKER, 1)[1]) <= 0:
                    record, self._pending = self._pending, None
                    results.extend(self._parse_record(record))
                return results

        if not line.startswith(CODE_MARKER):
            return results

        if DATA_MARKER in line:
            payload = line.split(DATA_MARKER, 1)[1]
            if payload.lstrip().startswith("{") and json_depth(payload) > 0:
                self._pending = line
                return results

        results.extend(self._parse_record(line))
        return results

    def _parse_record(self, record: str) -> List[ParseResult]:
        head, _, payload = record.partition(DATA_MARKER)
        fields = parse_fields(head)

        code = fields.get("Code", "")
        if not code:
            return []

        metadata = {}
        payload = payload.strip()
        if payload.startswith("{"):
            try:
                metadata = json.loads(payload)
            except json.JSONDecodeError as e:
                logger.error(f"Error during JSON parse of alarm extra data for {code}: {e}")
                return [DecodeError(f"Error during JSON parse of alarm extra data for {code}: {e}")]
            if not isinstance(metadata, dict):
                return [DecodeError(f"Alarm extra data for {code} is not an object")]
            logger.debug(f"Got JSON parsed metadata for {code}: {metadata}")

        return [
            AlarmEvent(
                code=code,
                action=fields.get("action", ""),
                index=fields.get("index", ""),
                metadata=metadata,
            )
        ]
