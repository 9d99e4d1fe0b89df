import os
import time
import logging
from numbers import Number
from typing import Any, Dict, List, Mapping, Optional, Union

import aiofiles
import httpx

from dahua_nvr.events import EventStream
from dahua_nvr.exceptions import CallerError, NvrError, ProtocolError, StorageError, TransportError
from dahua_nvr.models import ConnectionEvent, FindResult, FoundFile, SearchQuery
from dahua_nvr.search import FileFinder
from dahua_nvr.search.decoder import parse_key_values, split_lines
from dahua_nvr.signals import RecorderSignals
from dahua_nvr.utils.config import EventsConfig, RecorderConfig, SearchConfig
from dahua_nvr.utils.filenames import generate_filename
from dahua_nvr.utils.http_log import log_http_call
from dahua_nvr.utils.time_utils import now_local
from .base import Recorder

logger = logging.getLogger(__name__)

PTZ_DIRECTIONS = {"Up", "Down", "Left", "Right", "LeftUp", "RightUp", "LeftDown", "RightDown"}
PTZ_ACTIONS = {"start", "stop"}


def _is_number(value: Any) -> bool:
    if isinstance(value, bool):
        return False
    if isinstance(value, Number):
        return True
    try:
        float(value)
        return True
    except (TypeError, ValueError):
        return False


class DahuaCamera(Recorder):
    """Dahua recorder implementation.

    Combines the event stream, the file finder and the one-shot CGI commands
    (PTZ, day/night profile, file download and snapshots). Everything reports
    through ``self.signals``.
    """

    def __init__(
        self,
        config: RecorderConfig,
        storage_path: str,
        events: Optional[EventsConfig] = None,
        search: Optional[SearchConfig] = None,
        timezone: Optional[str] = None,
        client: Optional[httpx.AsyncClient] = None,
        stream_client: Optional[httpx.AsyncClient] = None,
    ):
        """Initialize the Dahua recorder with configuration."""
        self.config = config
        self.host = config.host
        self.base_url = config.base_url
        self.storage_path = storage_path
        self.timezone = timezone
        self.signals = RecorderSignals()
        self._auth = httpx.BasicAuth(config.username, config.password)
        self._client = client
        self._log_dir = os.path.join(self.storage_path, "recorder_http_logs")

        self.event_stream = EventStream(config, events, self.signals, client=stream_client)
        self.finder = FileFinder(
            self.base_url,
            config.username,
            config.password,
            signals=self.signals,
            client=client,
            default_count=(search or SearchConfig()).default_count,
            log_dir=self._log_dir,
        )

    def start(self) -> None:
        if self.config.camera_alarms:
            self.event_stream.connect()
        else:
            logger.info("Camera alarms disabled, not attaching to the event stream")

    async def close(self) -> None:
        await self.event_stream.stop()

    @property
    def connection_events(self) -> List[ConnectionEvent]:
        return self.event_stream.connection_events

    @property
    def is_connected(self) -> bool:
        return self.event_stream.is_connected

    def _error(self, error: NvrError) -> None:
        logger.error(f"Error: {error}")
        self.signals.error.emit(error)

    async def _get(self, name: str, url: str, error_message: str) -> Optional[httpx.Response]:
        """GET a CGI url; transport errors are signalled and return None."""
        # Use the provided client if available, otherwise create a new one
        client = self._client or httpx.AsyncClient()
        try:
            logger.debug(f"Making request to: {url}")
            response = await client.get(url, auth=self._auth)
            await log_http_call(self._log_dir, name, response.request, response)
            return response
        except httpx.HTTPError as e:
            self._error(TransportError(f"{error_message}: {e}"))
            return None
        finally:
            if not self._client:
                await client.aclose()

    async def _command(self, name: str, url: str, error_message: str) -> bool:
        """Fire a command whose success answer is a plain ``OK`` body."""
        response = await self._get(name, url, error_message)
        if response is None:
            return False
        if response.status_code != 200 or response.text.strip() != "OK":
            self._error(ProtocolError(error_message))
            return False
        return True

    # PTZ (pan-tilt-zoom)

    async def ptz_command(self, cmd: str, arg1, arg2, arg3, arg4) -> bool:
        if not cmd or not all(_is_number(arg) for arg in (arg1, arg2, arg3, arg4)):
            self._error(CallerError("INVALID PTZ COMMAND"))
            return False
        url = (
            f"{self.base_url}/cgi-bin/ptz.cgi?action=start&channel=0&code={cmd}"
            f"&arg1={arg1}&arg2={arg2}&arg3={arg3}&arg4={arg4}"
        )
        return await self._command("ptz_command", url, "FAILED TO ISSUE PTZ COMMAND")

    async def ptz_preset(self, preset) -> bool:
        if not _is_number(preset):
            self._error(CallerError("INVALID PTZ PRESET"))
            return False
        url = f"{self.base_url}/cgi-bin/ptz.cgi?action=start&channel=0&code=GotoPreset&arg1=0&arg2={preset}&arg3=0"
        return await self._command("ptz_preset", url, "FAILED TO ISSUE PTZ PRESET")

    async def ptz_zoom(self, multiple) -> bool:
        if not _is_number(multiple):
            self._error(CallerError("INVALID PTZ ZOOM"))
            return False
        multiple = float(multiple)
        if multiple == 0:
            return True
        cmd = "ZoomTele" if multiple > 0 else "ZoomWide"
        url = f"{self.base_url}/cgi-bin/ptz.cgi?action=start&channel=0&code={cmd}&arg1=0&arg2={multiple:g}&arg3=0"
        return await self._command("ptz_zoom", url, "FAILED TO ISSUE PTZ ZOOM")

    async def ptz_move(self, direction: str, action: str, speed) -> bool:
        if not _is_number(speed):
            self._error(CallerError("INVALID PTZ SPEED"))
            return False
        if action not in PTZ_ACTIONS:
            self._error(CallerError("INVALID PTZ COMMAND"))
            return False
        if direction not in PTZ_DIRECTIONS:
            self._error(CallerError("INVALID PTZ DIRECTION"))
            return False
        url = (
            f"{self.base_url}/cgi-bin/ptz.cgi?action={action}&channel=0&code={direction}"
            f"&arg1={speed}&arg2={speed}&arg3=0"
        )
        return await self._command("ptz_move", url, f"FAILED TO ISSUE PTZ {direction.upper()} COMMAND")

    async def ptz_status(self) -> Dict[str, str]:
        """Query the PTZ status; emits the raw lines through ``ptz_status``."""
        url = f"{self.base_url}/cgi-bin/ptz.cgi?action=getStatus"
        response = await self._get("ptz_status", url, "FAILED TO QUERY STATUS")
        if response is None:
            return {}
        if response.status_code != 200:
            self._error(ProtocolError("FAILED TO QUERY STATUS"))
            return {}
        self.signals.ptz_status.emit(split_lines(response.text))
        return parse_key_values(response.text)

    # Profiles

    async def _switch_profile(self, mode: int, legacy_mode: int, label: str) -> bool:
        error_message = f"FAILED TO CHANGE TO {label} PROFILE"
        url = f"{self.base_url}/cgi-bin/configManager.cgi?action=setConfig&VideoInMode[0].Config[0]={mode}"
        response = await self._get(f"{label.lower()}_profile", url, error_message)
        if response is None:
            return False
        if response.status_code != 200:
            self._error(ProtocolError(error_message))
            return False
        if response.text.strip() != "Error":
            return True

        # Older cameras reject VideoInMode, fall back to the night options switch
        logger.info(f"VideoInMode not supported, using NightOptions for {label.lower()} profile")
        url = f"{self.base_url}/cgi-bin/configManager.cgi?action=setConfig&VideoInOptions[0].NightOptions.SwitchMode={legacy_mode}"
        response = await self._get(f"{label.lower()}_profile_legacy", url, error_message)
        if response is None:
            return False
        if response.status_code != 200:
            self._error(ProtocolError(error_message))
            return False
        return True

    async def day_profile(self) -> bool:
        return await self._switch_profile(1, 0, "DAY")

    async def night_profile(self) -> bool:
        return await self._switch_profile(2, 3, "NIGHT")

    # File finding

    async def find_files(self, query: Union[SearchQuery, Mapping[str, Any]]) -> Optional[FindResult]:
        return await self.finder.find(query)

    # Downloads

    async def _download(self, name: str, url: str, local_path: str, error_message: str) -> bool:
        """Streams a GET response to local_path, logging progress every second."""
        file_name = os.path.basename(local_path)
        try:
            os.makedirs(os.path.dirname(local_path) or ".", exist_ok=True)
        except OSError as e:
            self._error(StorageError(f"{error_message}: cannot create directory for {local_path}: {e}"))
            return False

        # Use the provided client if available, otherwise create a new one
        if self._client:
            client = self._client
            close_client = False
        else:
            client = httpx.AsyncClient(timeout=None)
            close_client = True

        try:
            async with client.stream("GET", url, auth=self._auth) as response:
                await log_http_call(self._log_dir, name, response.request, response, stream_response=True)
                if response.status_code != 200:
                    self._error(ProtocolError(f"{error_message}: status {response.status_code}"))
                    return False

                total = int(response.headers.get("content-length", 0) or 0)
                async with aiofiles.open(local_path, "wb") as f:
                    downloaded = 0
                    last_update = time.time()
                    last_downloaded = 0

                    async for chunk in response.aiter_bytes():
                        await f.write(chunk)
                        downloaded += len(chunk)

                        current_time = time.time()
                        if current_time - last_update >= 1.0:
                            speed = (downloaded - last_downloaded) / (current_time - last_update)
                            if total:
                                logger.info(
                                    f"Downloading {file_name}: {downloaded / total * 100:.1f}% "
                                    f"({downloaded/1024/1024:.1f}MB/{total/1024/1024:.1f}MB) @ {speed/1000:.0f} KByte/s"
                                )
                            else:
                                logger.info(f"Downloading {file_name}: {downloaded/1024/1024:.1f}MB @ {speed/1000:.0f} KByte/s")
                            last_update = current_time
                            last_downloaded = downloaded

                if total and downloaded != total:
                    self._error(ProtocolError(f"{error_message}: incomplete ({downloaded}/{total} bytes)"))
                    self._remove_partial(local_path)
                    return False

            logger.info(f"Download complete: {file_name}")
            return True
        except (httpx.RemoteProtocolError, httpx.ReadError) as e:
            # The recorder resets the connection for paths it does not know
            self._error(TransportError(f"{error_message} - FILE NOT FOUND?: {e}"))
            self._remove_partial(local_path)
            return False
        except httpx.HTTPError as e:
            self._error(TransportError(f"{error_message}: {e}"))
            self._remove_partial(local_path)
            return False
        except OSError as e:
            self._error(StorageError(f"{error_message}: cannot write {local_path}: {e}"))
            self._remove_partial(local_path)
            return False
        finally:
            if close_client:
                await client.aclose()

    def _remove_partial(self, local_path: str) -> None:
        if os.path.exists(local_path):
            try:
                os.remove(local_path)
                logger.info(f"Removed partial download: {local_path}")
            except OSError as e:
                logger.error(f"Failed to remove partial download {local_path}: {e}")

    async def save_file(
        self, file: Union[FoundFile, Mapping[str, Any]], filename: Optional[str] = None
    ) -> Optional[str]:
        """Download one found file into the storage path.

        Args:
            file: a FoundFile or a mapping using the recorder's field names
            filename: local file name; generated from the file's channel,
                times and type when omitted

        Returns:
            The local path, or None on failure.
        """
        if not file:
            self._error(CallerError("FILE OBJECT MISSING"))
            return None

        info = file.to_dict() if isinstance(file, FoundFile) else dict(file)
        if not info.get("FilePath"):
            self._error(CallerError("FILEPATH in FILE OBJECT MISSING"))
            return None

        if not filename:
            if not all(info.get(key) not in (None, "") for key in ("Channel", "StartTime", "EndTime", "Type")):
                self._error(CallerError("FILE OBJECT ATTRIBUTES MISSING"))
                return None
            try:
                filename = generate_filename(
                    self.host, info["Channel"], info["StartTime"], info["EndTime"], info["Type"]
                )
            except ValueError as e:
                self._error(CallerError(f"FILE OBJECT ATTRIBUTES INVALID: {e}"))
                return None

        local_path = os.path.join(self.storage_path, filename)
        url = f"{self.base_url}/cgi-bin/RPC_Loadfile{info['FilePath']}"
        logger.info(f"Downloading {info['FilePath']} to {local_path}")
        if not await self._download("save_file", url, local_path, "ERROR ON LOAD FILE COMMAND"):
            return None

        self.signals.file_saved.emit({"status": "DONE", "path": local_path})
        return local_path

    async def get_snapshot(
        self, channel: int = 0, path: Optional[str] = None, filename: Optional[str] = None
    ) -> Optional[str]:
        """Save a JPEG snapshot of a channel; returns the local path or None."""
        if not filename:
            filename = generate_filename(self.host, channel, now_local(self.timezone), None, "jpg")

        local_path = os.path.join(path or self.storage_path, filename)
        url = f"{self.base_url}/cgi-bin/snapshot.cgi?channel={channel}"
        if not await self._download("snapshot", url, local_path, "ERROR ON SNAPSHOT"):
            return None

        logger.info(f"Snapshot saved to {local_path}")
        self.signals.snapshot_saved.emit({"status": "DONE", "path": local_path})
        return local_path
