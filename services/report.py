"""CSV export of the displayed window."""

from __future__ import annotations

import csv
import io
from dataclasses import asdict
from typing import Iterable

from models.records import SOIL_FIELDS, SoilRecord

REPORT_FILENAME = "soil_analysis_report.csv"


def export_csv(records: Iterable[SoilRecord]) -> str:
    buffer = io.StringIO(newline="")
    writer = csv.DictWriter(buffer, fieldnames=list(SOIL_FIELDS), lineterminator="\r\n")
    writer.writeheader()
    for record in records:
        writer.writerow(asdict(record))
    return buffer.getvalue()
