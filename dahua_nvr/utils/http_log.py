import os
import logging
from datetime import datetime
from typing import Optional

import aiofiles
import httpx

logger = logging.getLogger(__name__)


def http_logging_enabled() -> bool:
    return os.environ.get("LOG_LEVEL", "").lower() == "debug"


async def log_http_call(
    log_dir: Optional[str],
    name: str,
    request: Optional[httpx.Request],
    response: Optional[httpx.Response] = None,
    error: Optional[Exception] = None,
    stream_response: bool = False,
):
    """Logs the details of an HTTP request and its response to files if LOG_LEVEL is 'debug'."""
    if not log_dir or request is None or not http_logging_enabled():
        return

    timestamp = datetime.now().strftime("%Y%m%d_%H%M%S_%f")

    try:
        os.makedirs(log_dir, exist_ok=True)

        req_filename = os.path.join(log_dir, f"{timestamp}_{name}_request.log")
        async with aiofiles.open(req_filename, "w") as f:
            await f.write(f"URL: {request.method} {request.url}\n")
            await f.write("Headers:\n")
            for key, value in request.headers.items():
                if key.lower() == "authorization":
                    value = "<redacted>"
                await f.write(f"  {key}: {value}\n")

        res_filename = os.path.join(log_dir, f"{timestamp}_{name}_response.log")
        async with aiofiles.open(res_filename, "w") as f:
            if response is not None:
                await f.write(f"Status Code: {response.status_code}\n")
                await f.write("Headers:\n")
                for key, value in response.headers.items():
                    await f.write(f"  {key}: {value}\n")
                await f.write("\nBody:\n")
                if stream_response:
                    await f.write("[Streamed content not logged]")
                else:
                    await f.write(response.text)
            elif error is not None:
                await f.write(f"Error: {type(error).__name__}\n")
                await f.write(str(error))
    except OSError as e:
        logger.error(f"Error writing HTTP log for '{name}' to {log_dir}: {e}")
        return
    logger.debug(f"Logged HTTP call '{name}' to {log_dir}")
