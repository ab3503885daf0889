"""
Core Module Package.

This package contains the infrastructure components
that all other packages depend on.

Components:
- clock: Unified time abstraction and second-granularity timestamps
- logging_config: Process-wide logging setup
- settings: Environment-driven configuration
"""

from core.clock import (
    ClockFactory,
    ClockProtocol,
    MockClock,
    SystemClock,
    now_utc,
    parse_timestamp,
    truncate_to_second,
)
from core.logging_config import setup_logging
from core.settings import AppSettings, ClickHouseConfig, FeedConfig, load_settings


__all__ = [
    "ClockFactory",
    "ClockProtocol",
    "MockClock",
    "SystemClock",
    "now_utc",
    "parse_timestamp",
    "truncate_to_second",
    "setup_logging",
    "AppSettings",
    "ClickHouseConfig",
    "FeedConfig",
    "load_settings",
]
