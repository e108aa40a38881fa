from __future__ import annotations

import logging
import os
from dataclasses import dataclass
from datetime import tzinfo
from typing import List, Optional
from zoneinfo import ZoneInfo, ZoneInfoNotFoundError

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class Settings:
    """
    Application settings loaded from environment variables.

    Env vars:
    - STORAGE_BACKEND: 'memory' (default), 'file' or 'sqlite'
    - STORAGE_DIR: directory holding one JSON file per key for the file backend. Default './data'
    - SQLITE_DB_PATH: path to sqlite db file. Default './data/targets.db'
    - TARGET_TIMEZONE: IANA zone name used for "tomorrow"; empty means the system local zone
    - NOTIFICATIONS: 'log' (default) to emit reminders on the log, 'off' to deny them
    - CORS_ALLOW_ORIGINS: comma-separated list of allowed origins; '*' by default
    - LOG_LEVEL: level for the 'target_locker' logger. Default 'INFO'
    """

    storage_backend: str
    storage_dir: str
    sqlite_db_path: str
    timezone_name: Optional[str]
    notifications: str
    cors_allow_origins: List[str]
    log_level: str

    @property
    def timezone(self) -> Optional[tzinfo]:
        """Resolved zone, or None for the system local zone."""
        if not self.timezone_name:
            return None
        return ZoneInfo(self.timezone_name)


def _get_env(name: str, default: str) -> str:
    value = os.getenv(name, default)
    if value is None or value == "":
        return default
    return value


def _parse_choice(value: str, choices: set, default: str) -> str:
    v = value.strip().lower()
    return v if v in choices else default


def _parse_origins(origins_value: str) -> List[str]:
    """
    Parse CORS origins from env. Supports:
    - '*' to allow all origins
    - Comma-separated list of origins
    """
    value = origins_value.strip()
    if value == "*":
        return ["*"]
    return [o.strip() for o in value.split(",") if o.strip()]


def _parse_timezone(value: str) -> Optional[str]:
    name = value.strip()
    if not name:
        return None
    try:
        ZoneInfo(name)
    except (ZoneInfoNotFoundError, ValueError):
        logger.warning("Unknown TARGET_TIMEZONE %r; using the system local zone", name)
        return None
    return name


# PUBLIC_INTERFACE
def get_settings() -> Settings:
    """Return application settings loaded from environment variables."""
    level = _get_env("LOG_LEVEL", "INFO").strip().upper()
    if level not in {"DEBUG", "INFO", "WARNING", "ERROR", "CRITICAL"}:
        level = "INFO"

    return Settings(
        storage_backend=_parse_choice(_get_env("STORAGE_BACKEND", "memory"), {"memory", "file", "sqlite"}, "memory"),
        storage_dir=_get_env("STORAGE_DIR", "./data").strip(),
        sqlite_db_path=_get_env("SQLITE_DB_PATH", "./data/targets.db").strip(),
        timezone_name=_parse_timezone(os.getenv("TARGET_TIMEZONE", "")),
        notifications=_parse_choice(_get_env("NOTIFICATIONS", "log"), {"log", "off"}, "log"),
        cors_allow_origins=_parse_origins(_get_env("CORS_ALLOW_ORIGINS", "*")),
        log_level=level,
    )
