"""Map loosely shaped rows onto :class:`SoilRecord`."""

from __future__ import annotations

import math
from datetime import date, datetime
from typing import Any, Iterable, Mapping, Optional, Tuple
from zoneinfo import ZoneInfo

from models.records import Number, SoilRecord

_NUMERIC_FIELDS = ("moisture", "fertility", "temperature")


def today_iso(timezone: str = "UTC") -> str:
    return datetime.now(ZoneInfo(timezone)).date().isoformat()


def normalize_row(row: Mapping[str, Any], today: Optional[str] = None) -> SoilRecord:
    """Build a record from ``row``; never raises.

    Missing dates fall back to ``today`` (or the current UTC date) and
    missing, falsy or non-numeric measurements become ``0``.
    """
    values = {field: _to_number(row.get(field)) for field in _NUMERIC_FIELDS}
    return SoilRecord(date=_to_date_string(row.get("date"), today), **values)


def normalize_rows(
    rows: Iterable[Mapping[str, Any]], today: Optional[str] = None
) -> Tuple[SoilRecord, ...]:
    fallback_date = today or today_iso()
    return tuple(normalize_row(row, today=fallback_date) for row in rows)


def _to_date_string(value: Any, today: Optional[str]) -> str:
    if not value:
        return today or today_iso()
    if isinstance(value, datetime):
        return value.isoformat()
    if isinstance(value, date):
        return value.isoformat()
    if isinstance(value, str):
        return value
    return str(value)


def _to_number(value: Any) -> Number:
    if not value or isinstance(value, bool):
        return 0
    if isinstance(value, (int, float)):
        if isinstance(value, float) and not math.isfinite(value):
            return 0
        return value
    if isinstance(value, str):
        candidate = value.strip()
        try:
            return int(candidate)
        except ValueError:
            pass
        try:
            parsed = float(candidate)
        except ValueError:
            return 0
        return parsed if math.isfinite(parsed) else 0
    return 0
