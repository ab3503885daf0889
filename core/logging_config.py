"""
Core Module - Logging Setup.

============================================================
RESPONSIBILITY
============================================================
Configures process-wide logging for the pipeline and dashboard.

- One stdout handler on the root logger
- Text or JSON line format
- Optional correlation id stamped on every line

Components log through named loggers ("ingestion.blocks",
"repository.blocks", "feed.websocket", ...) and never configure
handlers themselves.

============================================================
"""

import json
import logging
import sys
from typing import Optional


TEXT_FORMAT = "%(asctime)s | %(levelname)-8s | %(name)s | {correlation_id} | %(message)s"


class JsonLineFormatter(logging.Formatter):
    """Render each record as a single JSON object."""

    def __init__(self, correlation_id: Optional[str] = None) -> None:
        super().__init__()
        self._correlation_id = correlation_id or ""

    def format(self, record: logging.LogRecord) -> str:
        payload = {
            "timestamp": self.formatTime(record),
            "level": record.levelname,
            "logger": record.name,
            "message": record.getMessage(),
            "correlation_id": self._correlation_id,
        }
        if record.exc_info:
            payload["exception"] = self.formatException(record.exc_info)
        return json.dumps(payload, default=str)


def setup_logging(
    level: str = "INFO",
    log_format: str = "text",
    correlation_id: Optional[str] = None,
) -> logging.Logger:
    """
    Set up structured logging.

    Args:
        level: Log level
        log_format: Output format (json or text)
        correlation_id: Correlation ID for tracing

    Returns:
        The application logger
    """
    log_level = getattr(logging, level.upper(), logging.INFO)

    if log_format == "json":
        formatter: logging.Formatter = JsonLineFormatter(correlation_id)
    else:
        formatter = logging.Formatter(
            TEXT_FORMAT.format(correlation_id=correlation_id or "")
        )

    handler = logging.StreamHandler(sys.stdout)
    handler.setFormatter(formatter)

    root_logger = logging.getLogger()
    root_logger.setLevel(log_level)
    root_logger.handlers = [handler]

    # aiohttp access logs are noisy at INFO
    logging.getLogger("aiohttp.access").setLevel(max(log_level, logging.WARNING))

    return logging.getLogger("blocks_analytics")
