"""Date-window filtering over a loaded dataset."""

from __future__ import annotations

import logging
from datetime import date, datetime, time, timedelta, tzinfo
from typing import Iterable, List, Optional, Union
from zoneinfo import ZoneInfo

from dateutil import parser as date_parser

from models.records import SoilRecord

logger = logging.getLogger(__name__)

DateBound = Union[date, str, None]

# Last representable instant of a day at millisecond precision.
_END_OF_DAY = timedelta(days=1) - timedelta(milliseconds=1)


class DateRangeError(ValueError):
    """Raised when a filter is requested without both bounds."""


def filter_by_date_range(
    records: Iterable[SoilRecord],
    start: DateBound,
    end: DateBound,
    timezone: str = "UTC",
) -> List[SoilRecord]:
    """Return the records whose date falls inside ``[start, end]``, both days inclusive.

    Naive record dates and both bounds are interpreted in ``timezone``.
    Records whose date cannot be parsed never match.
    """
    if not start or not end:
        raise DateRangeError("Please select both a start and end date.")

    zone = ZoneInfo(timezone)
    lower = datetime.combine(_as_date(start), time.min, tzinfo=zone)
    upper = datetime.combine(_as_date(end), time.min, tzinfo=zone) + _END_OF_DAY

    selected: List[SoilRecord] = []
    skipped = 0
    for record in records:
        moment = parse_record_date(record.date, zone)
        if moment is None:
            skipped += 1
            continue
        if lower <= moment <= upper:
            selected.append(record)

    if skipped:
        logger.debug(
            "Excluded records with unparseable dates",
            extra={"record_count": skipped, "reason": "unparseable date"},
        )
    return selected


def parse_record_date(value: str, zone: tzinfo) -> Optional[datetime]:
    try:
        parsed = date_parser.parse(value)
    except (ValueError, OverflowError, TypeError):
        return None
    if parsed.tzinfo is None:
        parsed = parsed.replace(tzinfo=zone)
    return parsed


def _as_date(value: Union[date, str]) -> date:
    if isinstance(value, datetime):
        return value.date()
    if isinstance(value, date):
        return value
    try:
        return date.fromisoformat(value.strip())
    except ValueError as exc:
        raise DateRangeError(f"Invalid date {value!r}; expected YYYY-MM-DD.") from exc
