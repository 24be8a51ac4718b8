from __future__ import annotations

import os
from dataclasses import dataclass
from typing import Optional

DEFAULT_BASE_URL = "http://localhost:8000"
DEFAULT_POLL_INTERVAL = 1.0
# Replays emit one record per second, so long datasets take a while.
DEFAULT_WAIT_TIMEOUT = 600.0

_BASE_URL_ENV = "API_BASE_URL"
_POLL_INTERVAL_ENV = "CLI_POLL_INTERVAL"
_WAIT_TIMEOUT_ENV = "CLI_POLL_TIMEOUT"


@dataclass(frozen=True)
class CLIConfig:
    base_url: str = DEFAULT_BASE_URL
    poll_interval: float = DEFAULT_POLL_INTERVAL
    wait_timeout: float = DEFAULT_WAIT_TIMEOUT


def _positive_float(raw: Optional[str], default: float) -> float:
    candidate = (raw or "").strip()
    if not candidate:
        return default
    try:
        parsed = float(candidate)
    except ValueError:
        return default
    return parsed if parsed > 0 else default


def load_config(
    base_url: Optional[str] = None,
    poll_interval: Optional[float] = None,
    wait_timeout: Optional[float] = None,
) -> CLIConfig:
    url = base_url or os.getenv(_BASE_URL_ENV) or DEFAULT_BASE_URL
    return CLIConfig(
        base_url=url.rstrip("/"),
        poll_interval=(
            poll_interval
            if poll_interval is not None
            else _positive_float(os.getenv(_POLL_INTERVAL_ENV), DEFAULT_POLL_INTERVAL)
        ),
        wait_timeout=(
            wait_timeout
            if wait_timeout is not None
            else _positive_float(os.getenv(_WAIT_TIMEOUT_ENV), DEFAULT_WAIT_TIMEOUT)
        ),
    )
