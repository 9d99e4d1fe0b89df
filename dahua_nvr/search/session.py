"""
Media file search against the recorder's ``mediaFileFind.cgi`` interface.

One search is five calls against a single server-side handle:

    factory.create -> findFile -> findNextFile -> close -> destroy

The calls are strictly sequential. Once a handle exists, close and destroy
always run, even when an earlier step failed, so the recorder's small pool
of search handles is never leaked.
"""

import logging
from enum import Enum
from typing import Any, Mapping, Optional, Union
from urllib.parse import quote

import httpx
from pydantic import ValidationError

from dahua_nvr.exceptions import CallerError, NvrError, ProtocolError, TransportError
from dahua_nvr.models import FindResult, SearchQuery
from dahua_nvr.signals import RecorderSignals
from dahua_nvr.utils.http_log import log_http_call
from .decoder import decode_find_results, parse_key_values

logger = logging.getLogger(__name__)

FIND_PATH = "/cgi-bin/mediaFileFind.cgi"
DEFAULT_FIND_COUNT = 100


class SessionState(Enum):
    UNCREATED = "uncreated"
    CREATED = "created"
    SEARCHING = "searching"
    LISTING = "listing"
    CLOSING = "closing"
    DESTROYED = "destroyed"
    FAILED = "failed"


class FileFindSession:
    """A single, non-reusable search session bound to one handle."""

    def __init__(
        self,
        base_url: str,
        auth: httpx.Auth,
        client: httpx.AsyncClient,
        signals: RecorderSignals,
        default_count: int = DEFAULT_FIND_COUNT,
        log_dir: Optional[str] = None,
    ):
        self.base_url = base_url
        self.auth = auth
        self.signals = signals
        self.default_count = default_count
        self.state = SessionState.UNCREATED
        self.handle: Optional[str] = None
        self._client = client
        self._log_dir = log_dir

    def _url(self, query: str) -> str:
        return f"{self.base_url}{FIND_PATH}?{query}"

    def _error(self, error: NvrError) -> None:
        logger.error(f"File find ({self.handle or 'no handle'}): {error}")
        self.signals.error.emit(error)

    async def _get(self, name: str, url: str) -> Optional[httpx.Response]:
        """Issue one step. Transport failures are signalled and return None."""
        try:
            logger.debug(f"Making request to: {url}")
            response = await self._client.get(url, auth=self.auth)
        except httpx.HTTPError as e:
            self._error(TransportError(f"{name} request failed: {e}"))
            return None
        await log_http_call(self._log_dir, name, response.request, response)
        logger.debug(f"{name} returned status {response.status_code}")
        return response

    async def run(self, query: SearchQuery) -> Optional[FindResult]:
        """Run the whole protocol once. Returns the result, or None if create failed."""
        if self.state is not SessionState.UNCREATED:
            self._error(CallerError("FILE FIND SESSION ALREADY USED"))
            return None

        if not await self.create():
            self.state = SessionState.FAILED
            return None

        try:
            result = FindResult()
            if await self.start(query):
                result = await self.next(query.count or self.default_count)
            result.query = query
            self.signals.files_found.emit(result)
        finally:
            await self.close()
            await self.destroy()
        return result

    async def create(self) -> bool:
        response = await self._get("find_create", self._url("action=factory.create"))
        if response is None:
            return False
        if response.status_code != 200:
            self._error(ProtocolError(f"ERROR ON CREATE FILE FIND COMMAND: status {response.status_code}"))
            return False

        handle = parse_key_values(response.text).get("result")
        if not handle:
            self._error(ProtocolError(f"ERROR ON CREATE FILE FIND COMMAND: no handle in {response.text.strip()!r}"))
            return False

        self.handle = handle
        self.state = SessionState.CREATED
        logger.info(f"Created file finder {handle}")
        return True

    async def start(self, query: SearchQuery) -> bool:
        self.state = SessionState.SEARCHING
        conditions = "&".join(
            f"{key}={quote(value, safe=':/')}" for key, value in query.condition_params()
        )
        url = self._url(f"action=findFile&object={self.handle}&{conditions}")
        response = await self._get("find_start", url)
        if response is None:
            return False
        if response.status_code != 200:
            # The recorder answers 400 when nothing matches the conditions
            self._error(ProtocolError(
                f"FAILED TO ISSUE FIND FILE COMMAND: status {response.status_code} {response.text.strip()!r}"
            ))
            return False
        logger.debug(f"findFile {self.handle}: {response.text.strip()}")
        return True

    async def next(self, count: int) -> FindResult:
        self.state = SessionState.LISTING
        url = self._url(f"action=findNextFile&object={self.handle}&count={count}")
        response = await self._get("find_next", url)
        if response is None:
            return FindResult()
        if response.status_code != 200:
            self._error(ProtocolError(f"FAILED NEXT FILE COMMAND: status {response.status_code}"))
            return FindResult()

        result = decode_find_results(response.text)
        logger.info(f"File finder {self.handle} found {result.found} files")
        return result

    async def _finish(self, action: str, label: str) -> None:
        response = await self._get(f"find_{action}", self._url(f"action={action}&object={self.handle}"))
        if response is None:
            return
        if response.status_code != 200 or response.text.strip() != "OK":
            self._error(ProtocolError(
                f"ERROR ON {label} FILE FIND COMMAND: status {response.status_code} {response.text.strip()!r}"
            ))

    async def close(self) -> None:
        self.state = SessionState.CLOSING
        await self._finish("close", "CLOSE")

    async def destroy(self) -> None:
        await self._finish("destroy", "DESTROY")
        self.state = SessionState.DESTROYED
        logger.debug(f"Destroyed file finder {self.handle}")


class FileFinder:
    """Entry point for file searches; every ``find`` gets its own session and handle."""

    def __init__(
        self,
        base_url: str,
        username: str,
        password: str,
        signals: Optional[RecorderSignals] = None,
        client: Optional[httpx.AsyncClient] = None,
        default_count: int = DEFAULT_FIND_COUNT,
        log_dir: Optional[str] = None,
    ):
        self.base_url = base_url
        self.auth = httpx.BasicAuth(username, password)
        self.signals = signals or RecorderSignals()
        self.default_count = default_count
        self._client = client
        self._log_dir = log_dir

    async def find(self, query: Union[SearchQuery, Mapping[str, Any]]) -> Optional[FindResult]:
        """Search for recorded files.

        Args:
            query: a SearchQuery, or a mapping with ``channel``, ``startTime``,
                ``endTime`` and optionally ``types``, ``dirs``, ``flags``,
                ``events`` and ``count``.

        Returns:
            The FindResult also passed to ``files_found``, or None when the
            query is incomplete or the handle could not be created.
        """
        if not isinstance(query, SearchQuery):
            try:
                query = SearchQuery.model_validate(dict(query or {}))
            except (ValidationError, TypeError, ValueError) as e:
                error = CallerError(f"FILE FIND MISSING ARGUMENTS: {e}")
                logger.error(str(error))
                self.signals.error.emit(error)
                return None

        # Use the provided client if available, otherwise create a new one
        if self._client:
            client = self._client
            close_client = False
        else:
            client = httpx.AsyncClient()
            close_client = True

        try:
            session = FileFindSession(
                self.base_url,
                self.auth,
                client,
                self.signals,
                default_count=self.default_count,
                log_dir=self._log_dir,
            )
            return await session.run(query)
        finally:
            if close_client:
                await client.aclose()
