from __future__ import annotations

import configparser
from pathlib import Path
from typing import List

from pydantic import BaseModel, Field

RECONNECT_TIMEOUT_SECONDS = 10


class RecorderConfig(BaseModel):
    host: str
    port: int = 80
    username: str
    password: str
    camera_alarms: bool = True

    @property
    def base_url(self) -> str:
        return f"http://{self.host}:{self.port}"


class EventsConfig(BaseModel):
    reconnect_delay: float = RECONNECT_TIMEOUT_SECONDS
    keepalive_interval: float = 1.0
    keepalive_probes: int = 1
    codes: List[str] = Field(default_factory=lambda: ["All"])


class SearchConfig(BaseModel):
    default_count: int = Field(default=100, ge=1, le=100)


class StorageConfig(BaseModel):
    path: str = "./shared_data"


class LoggingConfig(BaseModel):
    level: str = "INFO"
    log_file: str = "logs/dahua_nvr.log"
    max_log_size: int = 10485760
    backup_count: int = 5


class AppConfig(BaseModel):
    timezone: str = "America/New_York"


class Config(BaseModel):
    recorder: RecorderConfig = Field(alias="RECORDER")
    events: EventsConfig = Field(default_factory=EventsConfig, alias="EVENTS")
    search: SearchConfig = Field(default_factory=SearchConfig, alias="SEARCH")
    storage: StorageConfig = Field(default_factory=StorageConfig, alias="STORAGE")
    logging: LoggingConfig = Field(default_factory=LoggingConfig, alias="LOGGING")
    app: AppConfig = Field(default_factory=AppConfig, alias="APP")

    model_config = {"validate_by_name": True}


def load_config(config_path: Path) -> Config:
    parser = configparser.ConfigParser()
    parser.read(config_path)

    config_dict = {s: dict(parser.items(s)) for s in parser.sections()}

    # configparser only knows strings, so list values are comma separated
    if "EVENTS" in config_dict and "codes" in config_dict["EVENTS"]:
        config_dict["EVENTS"]["codes"] = [
            c.strip() for c in config_dict["EVENTS"]["codes"].split(",") if c.strip()
        ]

    return Config.model_validate(config_dict)


def save_config(config: Config, config_path: Path):
    parser = configparser.ConfigParser()

    for field_name, field in Config.model_fields.items():
        alias = field.alias if field.alias else field_name
        value = getattr(config, field_name)

        section_items = {}
        for sub_field_name in type(value).model_fields:
            sub_value = getattr(value, sub_field_name)
            if sub_value is None:
                continue
            if isinstance(sub_value, list):
                section_items[sub_field_name] = ",".join(str(v) for v in sub_value)
            else:
                section_items[sub_field_name] = str(sub_value)

        if section_items:
            parser[alias] = section_items

    with config_path.open("w") as f:
        parser.write(f)
