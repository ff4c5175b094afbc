"""JSON logging for the Lothis relay.

Every line is one JSON object. Structured fields go under ``context``, either
per call (``extra={"context": {...}}``) or bound once per delivery with
:func:`bind`.
"""

import json
import logging
import sys
from datetime import datetime, timezone
from typing import Any

SERVICE_NAME = "lothis-relay"

QUIET_LOGGERS = ("httpx", "httpcore", "uvicorn.access", "sqlalchemy.engine")


class JSONFormatter(logging.Formatter):
    """Format log records as JSON."""

    def format(self, record: logging.LogRecord) -> str:
        log_data = {
            "timestamp": datetime.now(timezone.utc).isoformat(),
            "service": SERVICE_NAME,
            "level": record.levelname,
            "logger": record.name,
            "message": record.getMessage(),
        }

        context = getattr(record, "context", None)
        if context:
            log_data["context"] = {key: value for key, value in context.items() if value is not None}

        if record.exc_info:
            log_data["error_type"] = record.exc_info[0].__name__
            log_data["exception"] = self.formatException(record.exc_info)

        return json.dumps(log_data, ensure_ascii=False, default=str)


def setup_logging(level: str = "INFO") -> None:
    """Route all records to stdout as JSON; unknown level names fall back to INFO."""
    root_logger = logging.getLogger()
    root_logger.setLevel(getattr(logging, level.upper(), logging.INFO))

    for handler in root_logger.handlers[:]:
        root_logger.removeHandler(handler)

    handler = logging.StreamHandler(sys.stdout)
    handler.setFormatter(JSONFormatter())
    root_logger.addHandler(handler)

    for name in QUIET_LOGGERS:
        logging.getLogger(name).setLevel(logging.WARNING)


def get_logger(name: str) -> logging.Logger:
    return logging.getLogger(f"lothis.{name}")


class LoggerAdapter(logging.LoggerAdapter):
    """Merges bound context with the per-call ``context`` keyword."""

    def process(self, msg: str, kwargs: dict[str, Any]) -> tuple[str, dict[str, Any]]:
        context = kwargs.pop("context", None)
        if context or self.extra:
            kwargs["extra"] = {"context": {**self.extra, **(context or {})}}
        return msg, kwargs


def bind(logger: logging.Logger, **context: Any) -> LoggerAdapter:
    """Logger that stamps `context` (e.g. chat_id, delivery_id) on every record."""
    return LoggerAdapter(logger, context)
