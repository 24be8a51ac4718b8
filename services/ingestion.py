"""Parse uploaded soil datasets into raw row mappings."""

from __future__ import annotations

import csv
import io
import json
import logging
import math
import re
from datetime import date, datetime, time
from pathlib import PurePath
from typing import Any, Dict, List

import pandas as pd

logger = logging.getLogger(__name__)

RawRow = Dict[str, Any]

SUPPORTED_EXTENSIONS = (".csv", ".json", ".xlsx", ".xls")

_INT_PATTERN = re.compile(r"^[+-]?\d+$")
_FLOAT_PATTERN = re.compile(r"^[+-]?(\d+\.\d*|\.\d+|\d+)([eE][+-]?\d+)?$")


class UnsupportedFileTypeError(ValueError):
    """Raised for uploads whose extension is not a known dataset format."""


class MalformedFileError(ValueError):
    """Raised when a recognised format fails to parse."""


def ensure_supported(filename: str) -> str:
    """Return the lower-cased extension of ``filename`` or raise for unknown formats."""
    suffix = PurePath(filename or "").suffix.lower()
    if suffix not in SUPPORTED_EXTENSIONS:
        raise UnsupportedFileTypeError(
            "Unsupported file type. Please upload a CSV, JSON, or Excel file."
        )
    return suffix


def parse_data_file(filename: str, contents: bytes) -> List[RawRow]:
    """Dispatch on the file extension and return one mapping per data row.

    Unsupported extensions are rejected before the payload is inspected.
    Every parse failure is reported as :class:`MalformedFileError`; no
    partially parsed rows are ever returned.
    """
    suffix = ensure_supported(filename)
    if not contents:
        raise MalformedFileError("Uploaded file is empty.")

    if suffix == ".csv":
        rows = _parse_csv(contents)
    elif suffix == ".json":
        rows = _parse_json(contents)
    else:
        rows = _parse_spreadsheet(contents)

    logger.info("Parsed dataset file", extra={"dataset_name": filename, "row_count": len(rows)})
    return rows


def _parse_csv(contents: bytes) -> List[RawRow]:
    try:
        text = contents.decode("utf-8-sig")
    except UnicodeDecodeError as exc:
        raise MalformedFileError("CSV file is not valid UTF-8 text.") from exc

    try:
        reader = csv.DictReader(io.StringIO(text, newline=""))
        if not reader.fieldnames:
            raise MalformedFileError("CSV file is missing a header row.")
        fieldnames = [name.strip() for name in reader.fieldnames]
        reader.fieldnames = fieldnames

        rows: List[RawRow] = []
        for row in reader:
            values = [value for key, value in row.items() if key is not None]
            if all(value is None or not str(value).strip() for value in values):
                continue
            rows.append(
                {key: _coerce_scalar(value) for key, value in row.items() if key is not None}
            )
    except csv.Error as exc:
        raise MalformedFileError(f"Could not parse CSV file: {exc}") from exc
    return rows


def _parse_json(contents: bytes) -> List[RawRow]:
    try:
        payload = json.loads(contents.decode("utf-8-sig"))
    except (UnicodeDecodeError, json.JSONDecodeError) as exc:
        raise MalformedFileError(f"Could not parse JSON file: {exc}") from exc

    if not isinstance(payload, list) or not all(isinstance(item, dict) for item in payload):
        raise MalformedFileError("Unsupported JSON format. Expected an array of objects.")
    return payload


def _parse_spreadsheet(contents: bytes) -> List[RawRow]:
    try:
        frame = pd.read_excel(io.BytesIO(contents), sheet_name=0)
    except Exception as exc:  # noqa: BLE001 - engines raise a wide variety of errors
        raise MalformedFileError(f"Could not read spreadsheet: {exc}") from exc

    frame = frame.dropna(how="all")
    rows: List[RawRow] = []
    for record in frame.to_dict(orient="records"):
        rows.append({str(key).strip(): _spreadsheet_cell(value) for key, value in record.items()})
    return rows


def _spreadsheet_cell(value: Any) -> Any:
    if value is None or value is pd.NaT:
        return None
    if isinstance(value, float) and math.isnan(value):
        return None
    if isinstance(value, datetime):
        if value.time() == time(0, 0):
            return value.date().isoformat()
        return value.isoformat()
    if isinstance(value, date):
        return value.isoformat()
    if hasattr(value, "item"):
        # numpy scalars
        return value.item()
    return value


def _coerce_scalar(value: Any) -> Any:
    """Best-effort typing for CSV cells: numbers, booleans and empties."""
    if value is None:
        return None
    if isinstance(value, list):
        # Overflow cells from ragged rows.
        return value
    candidate = value.strip()
    if not candidate:
        return None
    lowered = candidate.lower()
    if lowered == "true":
        return True
    if lowered == "false":
        return False
    if _INT_PATTERN.match(candidate):
        return int(candidate)
    if _FLOAT_PATTERN.match(candidate):
        return float(candidate)
    return candidate
