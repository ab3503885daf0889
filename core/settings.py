"""
Core Module - Settings.

============================================================
RESPONSIBILITY
============================================================
Loads runtime configuration from the environment.

- .env file support via python-dotenv
- Typed, immutable config objects per subsystem
- Safe defaults for local development

============================================================
ENVIRONMENT
============================================================
CLICKHOUSE_URL               http://127.0.0.1:8123
CLICKHOUSE_DATABASE          blocks_analytics_events_db
CLICKHOUSE_USER              (none)
CLICKHOUSE_PASSWORD          (none)
CLICKHOUSE_TIMEOUT_SECONDS   10
CLICKHOUSE_TABLE             blocks
CLICKHOUSE_TABLE_SETTINGS    k=v,k=v
OGMIOS_URL                   (none - live feed disabled)
FEED_RECONNECT_ATTEMPTS      5
FEED_HEARTBEAT_SECONDS       30
WINDOW_CAPACITY              10
DASHBOARD_HOST               0.0.0.0
DASHBOARD_PORT               8000
LOG_LEVEL                    INFO
LOG_FORMAT                   text
RUN_MIGRATIONS               true

============================================================
"""

import logging
import os
from dataclasses import dataclass, field
from typing import Dict, Optional, Union

from dotenv import load_dotenv


logger = logging.getLogger(__name__)

TableSettingValue = Union[int, float, str]


# ============================================================
# ENV HELPERS
# ============================================================

def _env_int(name: str, default: int) -> int:
    raw = os.getenv(name)
    if raw is None or raw.strip() == "":
        return default
    try:
        return int(raw)
    except ValueError:
        logger.warning(f"Invalid integer for {name}={raw!r}, using default {default}")
        return default


def _env_float(name: str, default: float) -> float:
    raw = os.getenv(name)
    if raw is None or raw.strip() == "":
        return default
    try:
        return float(raw)
    except ValueError:
        logger.warning(f"Invalid number for {name}={raw!r}, using default {default}")
        return default


def _env_bool(name: str, default: bool) -> bool:
    raw = os.getenv(name)
    if raw is None or raw.strip() == "":
        return default
    return raw.strip().lower() in ("1", "true", "yes", "on")


def parse_table_settings(raw: Optional[str]) -> Dict[str, TableSettingValue]:
    """
    Parse "k=v,k=v" into MergeTree table settings.

    Numeric values stay numeric so they render unquoted in DDL.
    """
    settings: Dict[str, TableSettingValue] = {}
    if not raw:
        return settings

    for part in raw.split(","):
        if not part.strip():
            continue
        key, sep, value = part.partition("=")
        key, value = key.strip(), value.strip()
        if not sep or not key or value == "":
            logger.warning(f"Ignoring malformed table setting: {part!r}")
            continue
        try:
            settings[key] = int(value)
        except ValueError:
            try:
                settings[key] = float(value)
            except ValueError:
                settings[key] = value
    return settings


# ============================================================
# CONFIG OBJECTS
# ============================================================

@dataclass(frozen=True)
class ClickHouseConfig:
    """Connection settings for the analytics store."""
    url: str = "http://127.0.0.1:8123"
    database: str = "blocks_analytics_events_db"
    user: Optional[str] = None
    password: Optional[str] = None
    timeout_seconds: float = 10.0
    table: str = "blocks"
    table_settings: Dict[str, TableSettingValue] = field(default_factory=dict)

    @classmethod
    def from_env(cls) -> "ClickHouseConfig":
        return cls(
            url=os.getenv("CLICKHOUSE_URL", cls.url),
            database=os.getenv("CLICKHOUSE_DATABASE", cls.database),
            user=os.getenv("CLICKHOUSE_USER") or None,
            password=os.getenv("CLICKHOUSE_PASSWORD") or None,
            timeout_seconds=_env_float("CLICKHOUSE_TIMEOUT_SECONDS", cls.timeout_seconds),
            table=os.getenv("CLICKHOUSE_TABLE", cls.table),
            table_settings=parse_table_settings(os.getenv("CLICKHOUSE_TABLE_SETTINGS")),
        )


@dataclass(frozen=True)
class FeedConfig:
    """Upstream chain-sync relay settings."""
    ws_url: Optional[str] = None
    reconnect_attempts: int = 5
    heartbeat_interval_seconds: int = 30

    @property
    def enabled(self) -> bool:
        return bool(self.ws_url)

    @classmethod
    def from_env(cls) -> "FeedConfig":
        return cls(
            ws_url=os.getenv("OGMIOS_URL") or None,
            reconnect_attempts=_env_int("FEED_RECONNECT_ATTEMPTS", cls.reconnect_attempts),
            heartbeat_interval_seconds=_env_int(
                "FEED_HEARTBEAT_SECONDS", cls.heartbeat_interval_seconds
            ),
        )


@dataclass(frozen=True)
class AppSettings:
    """Top-level application settings."""
    clickhouse: ClickHouseConfig = field(default_factory=ClickHouseConfig)
    feed: FeedConfig = field(default_factory=FeedConfig)
    window_capacity: int = 10
    dashboard_host: str = "0.0.0.0"
    dashboard_port: int = 8000
    log_level: str = "INFO"
    log_format: str = "text"
    run_migrations: bool = True

    @classmethod
    def from_env(cls) -> "AppSettings":
        return cls(
            clickhouse=ClickHouseConfig.from_env(),
            feed=FeedConfig.from_env(),
            window_capacity=_env_int("WINDOW_CAPACITY", cls.window_capacity),
            dashboard_host=os.getenv("DASHBOARD_HOST", cls.dashboard_host),
            dashboard_port=_env_int("DASHBOARD_PORT", cls.dashboard_port),
            log_level=os.getenv("LOG_LEVEL", cls.log_level),
            log_format=os.getenv("LOG_FORMAT", cls.log_format),
            run_migrations=_env_bool("RUN_MIGRATIONS", cls.run_migrations),
        )


def load_settings(env_file: Optional[str] = None) -> AppSettings:
    """
    Load settings, reading a .env file first when one exists.

    Variables already present in the environment win over the file.
    """
    load_dotenv(env_file)
    return AppSettings.from_env()
