"""Logging setup shared by the API process and the tests."""

from __future__ import annotations

import logging
from logging.config import dictConfig
from typing import Any, Dict, Iterable, Sequence

from settings import get_settings

# ``extra`` fields rendered after the message, in this order.
_CONTEXT_KEYS = (
    "dataset_name",
    "row_count",
    "record_count",
    "generation",
    "stream_state",
    "stream_mode",
    "cursor",
    "chart_kind",
    "reason",
)

# Third-party loggers that chatter at INFO during connects and retries.
_QUIET_LOGGERS = ("websockets", "httpx", "google")

_configured = False


class ContextualFormatter(logging.Formatter):
    """Append ``key=value`` pairs for known ``extra`` fields to each line."""

    def __init__(
        self,
        fmt: str | None = None,
        datefmt: str | None = None,
        style: str = "%",
        context_keys: Iterable[str] | None = None,
    ) -> None:
        super().__init__(fmt=fmt, datefmt=datefmt, style=style)
        self._context_keys: Sequence[str] = tuple(context_keys or _CONTEXT_KEYS)

    def format(self, record: logging.LogRecord) -> str:
        message = super().format(record)
        context = [
            f"{key}={getattr(record, key)}"
            for key in self._context_keys
            if getattr(record, key, None) is not None
        ]
        if not context:
            return message
        return f"{message} | {' '.join(context)}"


def _build_config(level: str | int) -> Dict[str, Any]:
    return {
        "version": 1,
        "disable_existing_loggers": False,
        "formatters": {
            "dashboard": {
                "()": "logging_config.ContextualFormatter",
                "fmt": "%(asctime)s %(levelname)-7s %(name)s: %(message)s",
                "datefmt": "%Y-%m-%d %H:%M:%S",
                "context_keys": list(_CONTEXT_KEYS),
            }
        },
        "handlers": {
            "console": {
                "class": "logging.StreamHandler",
                "formatter": "dashboard",
            }
        },
        "loggers": {name: {"level": "WARNING"} for name in _QUIET_LOGGERS},
        "root": {"handlers": ["console"], "level": level},
    }


def configure_logging(level: str | int | None = None) -> None:
    """Install the dashboard's logging configuration once per process."""
    global _configured
    if _configured:
        return
    dictConfig(_build_config(level if level is not None else get_settings().log_level))
    _configured = True
