"""JSON structured logging for graphlog.

Provides structured logging for the library's own diagnostics, with
correlation IDs and contextual metadata. Uses python-json-logger for JSON
formatting.
"""

import logging
import sys
from datetime import UTC, datetime
from typing import Any

from pythonjsonlogger.json import JsonFormatter

from graphlog.common.config import get_config


class CorrelationIdFilter(logging.Filter):
    """Attach the active correlation ID to library log records.

    Records that already carry a ``correlation_id`` (passed through
    ``extra``) keep it.
    """

    def filter(self, record: logging.LogRecord) -> bool:
        # Import here to avoid circular dependency
        from graphlog.common.tracing import get_correlation_id

        if getattr(record, "correlation_id", None) is None:
            record.correlation_id = get_correlation_id()
        return True


class CustomJsonFormatter(JsonFormatter):
    """JSON formatter for graphlog diagnostics.

    Every line carries an ISO-8601 UTC ``timestamp``, the ``level`` name, the
    emitting ``logger`` and the graphlog ``component`` it belongs to
    (``transport``, ``graph``, ...). ``correlation_id`` is included only when
    a trace is active. Fields passed through ``extra`` (``node_label``,
    ``uri``, ...) are kept as-is.
    """

    def add_fields(
        self,
        log_record: dict[str, Any],
        record: logging.LogRecord,
        message_dict: dict[str, Any],
    ) -> None:
        super().add_fields(log_record, record, message_dict)

        log_record["timestamp"] = datetime.fromtimestamp(record.created, UTC).isoformat()
        log_record["level"] = record.levelname
        log_record["logger"] = record.name
        log_record["component"] = _component(record.name)

        if getattr(record, "correlation_id", None) is None:
            log_record.pop("correlation_id", None)
        else:
            log_record["correlation_id"] = record.correlation_id


def _component(logger_name: str) -> str:
    """``graphlog.transport.handler`` -> ``transport``."""
    parts = logger_name.split(".")
    if parts[0] == "graphlog" and len(parts) > 1:
        return parts[1]
    return parts[0]


def setup_logging(level: str | None = None) -> logging.Handler:
    """Configure JSON structured logging for the ``graphlog`` logger tree.

    Only the library's own logger is configured; the root logger and the
    host application's handlers are left alone.

    Args:
        level: Optional log level override (DEBUG, INFO, WARNING, ERROR, CRITICAL).
               If not provided, uses GRAPHLOG_LOG_LEVEL from config.

    Returns:
        logging.Handler: The console handler that was installed.

    Example:
        >>> setup_logging("DEBUG")
        >>> logger = get_logger(__name__)
        >>> logger.info("Transport ready", extra={"node_label": "Log"})
    """
    config = get_config()
    log_level = (level or config.log_level).upper()

    library_logger = logging.getLogger("graphlog")
    library_logger.setLevel(log_level)

    # Remove existing handlers to avoid duplicates
    library_logger.handlers.clear()

    console_handler = logging.StreamHandler(sys.stdout)
    console_handler.setLevel(log_level)
    console_handler.setFormatter(
        CustomJsonFormatter("%(timestamp)s %(level)s %(logger)s %(message)s")
    )
    console_handler.addFilter(CorrelationIdFilter())

    library_logger.addHandler(console_handler)
    library_logger.propagate = False
    return console_handler


def get_logger(name: str) -> logging.Logger:
    """Get a logger instance for the given module.

    Args:
        name: The logger name (typically __name__ from the calling module).

    Returns:
        logging.Logger: Logger instance.
    """
    return logging.getLogger(name)


# Export public API
__all__ = ["CorrelationIdFilter", "CustomJsonFormatter", "get_logger", "setup_logging"]
