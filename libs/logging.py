"""JSON logging for the API and the workspace.

Each record becomes one JSON line with timestamp, level, logger, service,
environment and message. Values passed through ``extra=`` (for example the
``collection`` and ``record_id`` of a failed gateway call) become top-level keys.
"""

from __future__ import annotations

import json
import logging
from datetime import datetime, timezone
from typing import Any, Dict

from libs.core.settings import get_settings

# Attributes every LogRecord carries; anything else came in through `extra=`
_RESERVED = frozenset(
    {
        "name",
        "msg",
        "args",
        "levelname",
        "levelno",
        "pathname",
        "filename",
        "module",
        "exc_info",
        "exc_text",
        "stack_info",
        "lineno",
        "funcName",
        "created",
        "msecs",
        "relativeCreated",
        "thread",
        "threadName",
        "processName",
        "process",
        "taskName",
    }
)


class _JsonFormatter(logging.Formatter):
    """One-line JSON log formatter with stable keys and UTC timestamps."""

    def __init__(self, service: str, environment: str) -> None:
        super().__init__()
        self.service = service
        self.environment = environment

    def format(self, record: logging.LogRecord) -> str:
        dt = datetime.fromtimestamp(record.created, tz=timezone.utc)
        base: Dict[str, Any] = {
            "timestamp": dt.strftime("%Y-%m-%dT%H:%M:%S.%fZ"),
            "level": record.levelname,
            "logger": record.name,
            "service": self.service,
            "environment": self.environment,
            "message": record.getMessage(),
        }
        for k, v in record.__dict__.items():
            if k in _RESERVED or k in base:
                continue
            base[k] = v
        if record.exc_info and record.exc_info[1] is not None:
            exc = record.exc_info[1]
            base["error"] = {
                "class": type(exc).__name__,
                "message": str(exc)[:500],
            }
        return json.dumps(base, ensure_ascii=False, default=repr)


def setup_logging(level: str | None = None) -> None:
    """Configure root logger to output one-line JSON logs."""

    settings = get_settings()
    name = (level or settings.log_level).upper()

    handler = logging.StreamHandler()
    handler.setFormatter(_JsonFormatter(settings.service_name, settings.environment))

    root = logging.getLogger()
    root.handlers.clear()
    root.addHandler(handler)
    root.setLevel(getattr(logging, name, logging.INFO))


__all__ = ["setup_logging"]
