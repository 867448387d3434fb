"""Centralized structured logging configuration."""

from __future__ import annotations

import json
import logging
import sys
from datetime import datetime, timezone
from typing import Any

from orderflow.core.config import get_config

# Attributes every LogRecord carries; anything else arrived through `extra=`.
_RESERVED_ATTRS = frozenset(vars(logging.makeLogRecord({}))) | {"message", "asctime"}

# Libraries that log every request or task at INFO.
_NOISY_LOGGERS = ("urllib3", "celery.app.trace", "celery.worker.strategy")


class JsonFormatter(logging.Formatter):
    """Emit one JSON object per line.

    ``event`` defaults to the message, so plain ``logger.info("x.y")`` calls
    still carry a dotted event name.
    """

    def format(self, record: logging.LogRecord) -> str:
        message = record.getMessage()
        payload: dict[str, Any] = {
            "timestamp": datetime.fromtimestamp(record.created, tz=timezone.utc).isoformat(),
            "level": record.levelname,
            "logger": record.name,
            "message": message,
            "event": message,
        }
        for key, value in vars(record).items():
            if key in _RESERVED_ATTRS or key in ("timestamp", "level", "logger", "message"):
                continue
            payload[key] = value
        if record.exc_info:
            payload["exception"] = self.formatException(record.exc_info)
        return json.dumps(payload, ensure_ascii=True, default=str)


def configure_logging(force: bool = False) -> None:
    """Install JSON handlers on the root logger.

    A no-op when the root logger already has handlers, unless ``force`` is set
    (the Celery worker passes it to replace its own handlers).
    """
    config = get_config()
    root = logging.getLogger()
    if root.handlers and not force:
        return
    for handler in list(root.handlers):
        root.removeHandler(handler)

    root.setLevel(getattr(logging, config.LOG_LEVEL, logging.INFO))
    formatter = JsonFormatter()

    stream_handler = logging.StreamHandler(sys.stdout)
    stream_handler.setFormatter(formatter)
    root.addHandler(stream_handler)

    if config.LOG_FILE:
        file_handler = logging.FileHandler(config.LOG_FILE)
        file_handler.setFormatter(formatter)
        root.addHandler(file_handler)

    quiet_level = logging.WARNING if config.is_production else logging.INFO
    logging.getLogger("sqlalchemy.engine").setLevel(logging.WARNING)
    for name in _NOISY_LOGGERS:
        logging.getLogger(name).setLevel(max(quiet_level, root.level))
