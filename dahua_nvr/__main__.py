#!/usr/bin/env python
import sys
import asyncio
import logging
from logging.handlers import RotatingFileHandler
from pathlib import Path
from typing import Optional

from dahua_nvr.recorder_app import RecorderApp
from dahua_nvr.utils.config import Config, LoggingConfig, load_config
from dahua_nvr.utils.paths import get_shared_data_path

LOG_FORMAT = "%(asctime)s | %(levelname)-8s | %(name)s:%(funcName)s:%(lineno)d - %(message)s"

# Configure logging
logging.basicConfig(level=logging.INFO, format=LOG_FORMAT)
logging.getLogger("httpx").setLevel(logging.WARNING)
logger = logging.getLogger(__name__)


def setup_logging(config: LoggingConfig):
    """Applies the configured level and adds the rotating log file."""
    root = logging.getLogger()
    root.setLevel(getattr(logging, config.level.upper(), logging.INFO))

    if config.log_file:
        log_path = Path(config.log_file)
        log_path.parent.mkdir(parents=True, exist_ok=True)
        handler = RotatingFileHandler(
            log_path, maxBytes=config.max_log_size, backupCount=config.backup_count
        )
        handler.setFormatter(logging.Formatter(LOG_FORMAT))
        root.addHandler(handler)


def load_application_config(config_path: Optional[Path] = None) -> Optional[Config]:
    """Loads configuration, by default from the shared data directory."""
    config_path = config_path or get_shared_data_path() / "config.ini"
    if not config_path.exists():
        logger.error(f"Configuration file not found at {config_path}. Please create it first.")
        return None
    try:
        return load_config(config_path)
    except ValueError as e:
        logger.error(f"Invalid configuration in {config_path}: {e}")
        return None


async def main(config_path: Optional[Path] = None):
    """Main entry point for the application."""
    config = load_application_config(config_path)
    if not config:
        logger.error("Failed to load configuration. Exiting.")
        return 1

    setup_logging(config.logging)
    app = RecorderApp(config)

    try:
        await app.run()
    except asyncio.CancelledError:
        logger.info("Application is shutting down.")
    finally:
        await app.shutdown()
    return 0


def main_entry():
    """Entry point for console script."""
    config_path = Path(sys.argv[1]) if len(sys.argv) > 1 else None
    try:
        exit_code = asyncio.run(main(config_path))
        sys.exit(exit_code)
    except KeyboardInterrupt:
        logger.info("Keyboard interrupt received, shutting down...")
        sys.exit(0)


if __name__ == "__main__":
    main_entry()
