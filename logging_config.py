from __future__ import annotations

import logging
import time
from logging.config import dictConfig
from typing import Any, Dict, Iterable, Sequence

from settings import get_settings

# Context attached through ``extra=`` by the ingest paths, in render order.
CONTEXT_KEYS = (
    "device_id",
    "reading_id",
    "topic",
    "partition",
    "offset",
    "state",
    "reason",
    "error",
)

# Client libraries that log every metadata refresh or statement at INFO.
_QUIET_LOGGERS = {
    "kafka": "WARNING",
    "sqlalchemy.engine": "WARNING",
}

_configured = False


def _render_value(value: Any) -> str:
    text = str(value)
    if isinstance(value, BaseException):
        # kafka-python errors already lead with their class name
        name = type(value).__name__
        if not text.startswith(name):
            text = f"{name}: {text}" if text else name
    if not text or any(ch.isspace() or ch == "=" for ch in text):
        return '"' + text.replace('"', '\\"') + '"'
    return text


class ContextualFormatter(logging.Formatter):
    """Append known ``extra`` keys as key=value pairs, stamping times in UTC.

    Values holding whitespace or ``=`` are quoted so the suffix stays
    splittable; exceptions render with their type name.
    """

    converter = time.gmtime

    def __init__(
        self,
        fmt: str | None = None,
        datefmt: str | None = None,
        style: str = "%",
        extra_keys: Iterable[str] | None = None,
    ) -> None:
        super().__init__(fmt=fmt, datefmt=datefmt, style=style)
        self._extra_keys: Sequence[str] = tuple(extra_keys or CONTEXT_KEYS)

    def format(self, record: logging.LogRecord) -> str:
        message = super().format(record)
        pairs: list[str] = []
        for key in self._extra_keys:
            value = getattr(record, key, None)
            if value is not None:
                pairs.append(f"{key}={_render_value(value)}")
        if not pairs:
            return message
        return f"{message} | {' '.join(pairs)}"


def build_logging_config(level: str | int) -> Dict[str, Any]:
    return {
        "version": 1,
        "disable_existing_loggers": False,
        "formatters": {
            "contextual": {
                "()": "logging_config.ContextualFormatter",
                "fmt": "%(asctime)sZ | %(levelname)s | %(threadName)s | %(name)s | %(message)s",
                "datefmt": "%Y-%m-%dT%H:%M:%S",
                "extra_keys": list(CONTEXT_KEYS),
            }
        },
        "handlers": {
            "console": {
                "class": "logging.StreamHandler",
                "formatter": "contextual",
            }
        },
        "root": {"handlers": ["console"], "level": level},
        "loggers": {name: {"level": quiet} for name, quiet in _QUIET_LOGGERS.items()},
    }


def configure_logging(level: str | int | None = None) -> None:
    """Install the console handler once per process; later calls are no-ops."""
    global _configured
    if _configured:
        return

    dictConfig(build_logging_config(level if level is not None else get_settings().log_level))
    _configured = True
