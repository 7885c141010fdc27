"""
Structured logging for the offline store.

Store components attach their context to log records through ``extra``:
mutations carry ``kind``, ``record_id``, ``operation`` and ``version``,
sync records carry ``remote``, ``counts``, ``duration_ms`` and ``reason``.
StructuredJsonFormatter lifts those fields to the top level of a
single-line JSON object so a collector can filter on them.

Enable it from configuration (``StoreConfig.structured_logging``) or by
calling configure_structured_logging() directly.
"""

import json
import logging
import sys
from datetime import datetime, timezone
from typing import Any

ROOT_LOGGER_NAME = "offline_store"

# Context fields emitted by store components
STORE_CONTEXT_FIELDS = (
    "kind",
    "record_id",
    "operation",
    "version",
    "remote",
    "counts",
    "duration_ms",
    "reason",
)


class StructuredJsonFormatter(logging.Formatter):
    """
    JSON formatter for store log records.

    Every line has ``timestamp``, ``level``, ``logger`` and ``message``.
    Store context fields present on the record are added next to them;
    values that are not JSON-serializable are written as strings.
    """

    def format(self, record: logging.LogRecord) -> str:
        log_obj: dict[str, Any] = {
            "timestamp": datetime.fromtimestamp(record.created, timezone.utc).isoformat(),
            "level": record.levelname,
            "logger": record.name,
            "message": record.getMessage(),
        }

        for key in STORE_CONTEXT_FIELDS:
            if hasattr(record, key):
                log_obj[key] = _jsonable(getattr(record, key))

        if record.exc_info:
            log_obj["exception"] = self.formatException(record.exc_info)

        return json.dumps(log_obj)


def _jsonable(value: Any) -> Any:
    try:
        json.dumps(value)
    except (TypeError, ValueError):
        return str(value)
    return value


def configure_structured_logging(
    level: int | str = logging.INFO,
    logger_name: str = ROOT_LOGGER_NAME,
) -> logging.Logger:
    """
    Send store logs to stdout as JSON lines.

    Args:
        level: Logging level, as a number or a name such as "DEBUG"
        logger_name: Logger to configure (default: the package logger)

    Returns:
        Configured logger instance
    """
    logger = logging.getLogger(logger_name)

    # Replace handlers so repeated calls do not duplicate output
    logger.handlers.clear()

    handler = logging.StreamHandler(sys.stdout)
    handler.setFormatter(StructuredJsonFormatter())

    logger.addHandler(handler)
    logger.setLevel(level)
    logger.propagate = False

    return logger


def get_store_logger(name: str) -> logging.Logger:
    """
    Get a logger for a store component.

    Args:
        name: Component name (e.g., 'sync', 'local')

    Returns:
        Logger instance with name 'offline_store.{name}'
    """
    return logging.getLogger(f"{ROOT_LOGGER_NAME}.{name}")


class StoreLoggerAdapter(logging.LoggerAdapter):
    """
    Logger adapter that adds fixed store context to every record.

    Per-call ``extra`` values are kept; the adapter's own context fills in
    the rest.
    """

    def process(self, msg: str, kwargs: dict[str, Any]) -> tuple[str, dict[str, Any]]:
        kwargs["extra"] = {**self.extra, **kwargs.get("extra", {})}
        return msg, kwargs
