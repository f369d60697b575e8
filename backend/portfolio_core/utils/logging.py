# backend/portfolio_core/utils/logging.py
"""
Logging configuration for the price core service.

- Level and format taken from settings (LOG_LEVEL, LOG_FORMAT)
- Every record carries the request correlation ID
- JSON output for log aggregation, plain text for development
- Chatty HTTP / market data libraries are capped at WARNING

Level conventions used across the services:
    DEBUG   - cache hits/misses, individual provider attempts
    INFO    - batch summaries (N requested, M resolved)
    WARNING - provider failures, fallbacks, skipped history
    ERROR   - unexpected exceptions

Usage:
    from portfolio_core.utils import setup_logging

    setup_logging()
"""

import json
import logging
import sys
from datetime import datetime, timezone
from typing import Any

from portfolio_core.config import settings
from portfolio_core.utils.context import get_correlation_id

DEFAULT_TEXT_FORMAT = "%(asctime)s | %(levelname)-8s | %(correlation_id)s | %(name)s | %(message)s"
DEFAULT_DATE_FORMAT = "%Y-%m-%d %H:%M:%S"

NO_CORRELATION_ID = "-"

NOISY_LOGGERS = [
    "yfinance",
    "peewee",
    "urllib3",
    "httpx",
    "httpcore",
    "asyncio",
]

# Attributes present on every LogRecord; anything else came in via `extra=`
_STANDARD_ATTRS = frozenset(
    logging.LogRecord("", 0, "", 0, "", None, None).__dict__.keys()
) | {"correlation_id", "message", "asctime"}


class CorrelationIdFilter(logging.Filter):
    """Attach `correlation_id` to every record passing through the handler."""

    def filter(self, record: logging.LogRecord) -> bool:
        record.correlation_id = get_correlation_id() or NO_CORRELATION_ID
        return True


class JsonFormatter(logging.Formatter):
    """
    One JSON object per line:

        {"timestamp": "...", "level": "WARNING", "logger": "portfolio_core.services.pricing.resolver",
         "correlation_id": "...", "message": "...", "extra": {...}}
    """

    def format(self, record: logging.LogRecord) -> str:
        entry: dict[str, Any] = {
            "timestamp": datetime.fromtimestamp(record.created, tz=timezone.utc).isoformat(),
            "level": record.levelname,
            "logger": record.name,
            "correlation_id": getattr(record, "correlation_id", NO_CORRELATION_ID),
            "message": record.getMessage(),
        }

        if record.exc_info:
            entry["exception"] = self.formatException(record.exc_info)

        extra = {
            key: value
            for key, value in record.__dict__.items()
            if key not in _STANDARD_ATTRS
        }
        if extra:
            entry["extra"] = extra

        # default=str covers Decimal, date and enum values passed via extra
        return json.dumps(entry, default=str)


def setup_logging(
        level: str | None = None,
        log_format: str | None = None,
        suppress_noisy_loggers: bool = True,
) -> None:
    """
    Configure the root logger. Call once at startup.

    Args:
        level: Overrides settings.log_level
        log_format: "text" or "json"; overrides settings.log_format
        suppress_noisy_loggers: Cap third-party loggers at WARNING
    """
    level_name = (level or settings.log_level).upper().strip()
    log_level = logging.getLevelName(level_name)
    if not isinstance(log_level, int):
        raise ValueError(f"Invalid log level: '{level_name}'")

    format_type = (log_format or settings.log_format).lower()
    if format_type == "json":
        formatter: logging.Formatter = JsonFormatter()
    else:
        formatter = logging.Formatter(fmt=DEFAULT_TEXT_FORMAT, datefmt=DEFAULT_DATE_FORMAT)

    handler = logging.StreamHandler(sys.stdout)
    handler.setFormatter(formatter)
    handler.addFilter(CorrelationIdFilter())

    root_logger = logging.getLogger()
    root_logger.setLevel(log_level)
    root_logger.handlers.clear()
    root_logger.addHandler(handler)

    if suppress_noisy_loggers:
        for name in NOISY_LOGGERS:
            logging.getLogger(name).setLevel(logging.WARNING)

    logging.getLogger(__name__).info(f"Logging configured: level={level_name}, format={format_type}")
