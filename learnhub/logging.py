"""Structured logging configuration.

Modules log through ``get_logger(__name__)`` and attach identifiers with
``extra={"context": {...}}``. The text format renders the context as trailing
``key=value`` pairs; the json format emits one object per line for log
shippers.
"""

import json
import logging
import sys
from datetime import datetime, timezone
from typing import Any

LOG_FORMATS = ("text", "json")

_QUIET_LOGGERS = ("uvicorn.access", "httpx", "httpcore", "apscheduler")


def _utc_timestamp(record: logging.LogRecord) -> str:
    created = datetime.fromtimestamp(record.created, tz=timezone.utc)
    return created.strftime("%Y-%m-%dT%H:%M:%S.%f")[:-3] + "Z"


def _record_context(record: logging.LogRecord) -> dict[str, Any]:
    context = getattr(record, "context", None)
    if not isinstance(context, dict):
        return {}
    return {key: value for key, value in context.items() if value is not None}


def format_context(context: dict[str, Any]) -> str:
    """Render a context dict as space-separated ``key=value`` pairs."""
    return " ".join(f"{key}={value}" for key, value in context.items() if value is not None)


class StructuredFormatter(logging.Formatter):
    """``timestamp | level | logger | message key=value ...`` lines."""

    def format(self, record: logging.LogRecord) -> str:
        parts = [
            _utc_timestamp(record),
            record.levelname.ljust(8),
            record.name,
            record.getMessage(),
        ]
        line = " | ".join(parts)

        context = _record_context(record)
        if context:
            line = f"{line} {format_context(context)}"

        if record.exc_info:
            line = f"{line}\n{self.formatException(record.exc_info)}"
        return line


class JsonFormatter(logging.Formatter):
    """One JSON object per record; context keys are merged at the top level."""

    def format(self, record: logging.LogRecord) -> str:
        payload: dict[str, Any] = {
            "ts": _utc_timestamp(record),
            "level": record.levelname,
            "logger": record.name,
            "message": record.getMessage(),
        }
        for key, value in _record_context(record).items():
            payload.setdefault(key, value)
        if record.exc_info:
            payload["exc_info"] = self.formatException(record.exc_info)
        return json.dumps(payload, default=str, ensure_ascii=False)


def setup_logging(level: str = "INFO", fmt: str = "text") -> None:
    """Configure root logging for the application.

    Args:
        level: Log level name (DEBUG, INFO, WARNING, ERROR, CRITICAL)
        fmt: ``text`` or ``json``
    """
    numeric_level = getattr(logging, level.upper(), logging.INFO)

    root_logger = logging.getLogger()
    root_logger.setLevel(numeric_level)
    for handler in root_logger.handlers[:]:
        root_logger.removeHandler(handler)

    handler = logging.StreamHandler(sys.stdout)
    handler.setLevel(numeric_level)
    handler.setFormatter(JsonFormatter() if fmt == "json" else StructuredFormatter())
    root_logger.addHandler(handler)

    for name in _QUIET_LOGGERS:
        logging.getLogger(name).setLevel(logging.WARNING)


def get_logger(name: str) -> logging.Logger:
    return logging.getLogger(name)
