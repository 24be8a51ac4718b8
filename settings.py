"""Process-wide configuration read from environment variables."""

from __future__ import annotations

import logging
import os
from dataclasses import dataclass
from functools import lru_cache
from typing import Optional
from zoneinfo import ZoneInfo, ZoneInfoNotFoundError

logger = logging.getLogger(__name__)

_PREFERENCES_PATH_ENV = "DASHBOARD_PREFERENCES_PATH"
_TIMEZONE_ENV = "DASHBOARD_TIMEZONE"
_LIVE_URL_ENV = "STREAM_LIVE_URL"
_TICK_SECONDS_ENV = "STREAM_TICK_SECONDS"
_CONNECT_TIMEOUT_ENV = "STREAM_CONNECT_TIMEOUT"
_GEMINI_API_KEY_ENV = "GEMINI_API_KEY"
_GEMINI_MODEL_ENV = "GEMINI_MODEL"
_LOG_LEVEL_ENV = "LOG_LEVEL"

_DEFAULT_TIMEZONE = "UTC"


@dataclass(frozen=True)
class Settings:
    preferences_path: Optional[str]
    # IANA zone for "today", naive dataset dates and filter bounds.
    timezone: str
    live_stream_url: Optional[str]
    stream_tick_seconds: float
    stream_connect_timeout: float
    gemini_api_key: Optional[str]
    gemini_model: str
    log_level: str


def _env(name: str) -> Optional[str]:
    """Stripped value of ``name``; ``None`` when unset, ``""`` when blank."""
    value = os.getenv(name)
    return None if value is None else value.strip()


def _read_str_env(name: str, default: str) -> str:
    return _env(name) or default


def _read_optional_env(name: str, default: Optional[str]) -> Optional[str]:
    value = _env(name)
    if value is None:
        return default
    return value or None


def _read_positive_float(name: str, default: float) -> float:
    value = _env(name)
    if not value:
        return default
    try:
        parsed = float(value)
    except ValueError:
        return default
    return parsed if parsed > 0 else default


def _read_timezone(default: str) -> str:
    name = _read_str_env(_TIMEZONE_ENV, default)
    try:
        ZoneInfo(name)
    except (ZoneInfoNotFoundError, ValueError):
        logger.warning("Unknown timezone %r, using %s", name, default)
        return default
    return name


@lru_cache
def get_settings() -> Settings:
    return Settings(
        preferences_path=_read_optional_env(_PREFERENCES_PATH_ENV, "./tmp/preferences.json"),
        timezone=_read_timezone(_DEFAULT_TIMEZONE),
        live_stream_url=_read_optional_env(_LIVE_URL_ENV, None),
        stream_tick_seconds=_read_positive_float(_TICK_SECONDS_ENV, 1.0),
        stream_connect_timeout=_read_positive_float(_CONNECT_TIMEOUT_ENV, 2.0),
        gemini_api_key=_read_optional_env(_GEMINI_API_KEY_ENV, None),
        gemini_model=_read_str_env(_GEMINI_MODEL_ENV, "gemini-2.5-flash"),
        log_level=_read_str_env(_LOG_LEVEL_ENV, "INFO").upper(),
    )
