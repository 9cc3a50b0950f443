"""Process-wide logging for the static server.

Every record is written as one JSON object per line, to stdout or to a
rotating file. Components log through ``get_logger`` adapters, which add
the request correlation id and the component name; the formatter copies a
fixed set of ``extra`` fields into the output and ignores the rest.
"""

import json
import logging
import sys
from logging.handlers import RotatingFileHandler
from pathlib import Path
from typing import Optional

from static_server.domain.correlation_id import CorrelationLoggerAdapter

LOGGER_NAME = "static_server"
TEXT_FORMAT = "%(asctime)s %(levelname)s [%(correlation_id)s] %(name)s :: %(message)s"
DATE_FORMAT = "%Y-%m-%d %H:%M:%S"
ROTATE_AT_BYTES = 10 * 1024 * 1024
ROTATED_FILES_KEPT = 5

EXTRA_KEYS = (
    "client",
    "src",
    "method",
    "path",
    "code",
    "user_agent",
    "referer",
    "duration_ms",
    "location",
    "file",
    "error_type",
    "error",
    "errno",
    "host",
    "port",
    "directory",
    "log_destination",
    "log_level",
    "tls",
    "features",
    "state",
    "signal",
    "grace_seconds",
    "draining",
    "threads",
    "remaining_workers",
    "destination",
    "use_json",
)


class CorrelationIdFilter(logging.Filter):  # pylint: disable=too-few-public-methods
    """Give records logged outside an adapter a placeholder correlation id."""

    def filter(self, record: logging.LogRecord) -> bool:
        record.__dict__.setdefault("correlation_id", "-")
        return True


class JsonFormatter(logging.Formatter):
    """Render a record as a single sorted JSON object."""

    def format(self, record: logging.LogRecord) -> str:
        fields = record.__dict__
        payload = {
            "timestamp": self.formatTime(record, self.datefmt),
            "level": record.levelname,
            "message": record.getMessage(),
            "correlation_id": fields.get("correlation_id", "-"),
            "component": fields.get("component", "unknown"),
        }
        payload.update(
            (key, fields[key]) for key in ("event", *EXTRA_KEYS) if key in fields
        )
        if record.exc_info:
            payload["exception"] = self.formatException(record.exc_info)
        return json.dumps(payload, sort_keys=True, default=str)


def _level_number(name: str) -> int:
    number = logging.getLevelName(name.upper())
    return number if isinstance(number, int) else logging.INFO


def _open_handler(destination: Optional[str]) -> logging.Handler:
    if not destination or destination.lower() == "stdout":
        return logging.StreamHandler(sys.stdout)
    path = Path(destination)
    path.parent.mkdir(parents=True, exist_ok=True)
    return RotatingFileHandler(
        path, maxBytes=ROTATE_AT_BYTES, backupCount=ROTATED_FILES_KEPT
    )


def configure_logging(
    level: str = "INFO", destination: Optional[str] = None, use_json: bool = True
) -> CorrelationLoggerAdapter:
    """Point the ``static_server`` logger at ``destination``.

    Calling it again replaces the previous handler, closing it first.
    """
    number = _level_number(level)
    handler = _open_handler(destination)
    handler.setLevel(number)
    handler.addFilter(CorrelationIdFilter())
    handler.setFormatter(
        JsonFormatter(datefmt=DATE_FORMAT)
        if use_json
        else logging.Formatter(TEXT_FORMAT, DATE_FORMAT)
    )

    logger = logging.getLogger(LOGGER_NAME)
    for previous in logger.handlers[:]:
        logger.removeHandler(previous)
        previous.close()
    logger.addHandler(handler)
    logger.setLevel(number)
    logger.propagate = False

    adapter = CorrelationLoggerAdapter(logger, {})
    adapter.info(
        "Logging configured",
        extra={
            "event": "logging_configured",
            "destination": destination or "stdout",
            "use_json": use_json,
        },
    )
    return adapter
