from __future__ import annotations

import logging

from logging_config import ContextualFormatter


def _record(**extra) -> logging.LogRecord:
    record = logging.LogRecord(
        name="services.dashboard",
        level=logging.INFO,
        pathname="/srv/services/dashboard.py",
        lineno=10,
        msg="Dataset replaced",
        args=(),
        exc_info=None,
    )
    record.__dict__.update(extra)
    return record


def test_known_extras_are_appended_in_order() -> None:
    formatter = ContextualFormatter(fmt="%(message)s")

    line = formatter.format(_record(record_count=3, dataset_name="farm.csv", generation=2))

    assert line == "Dataset replaced | dataset_name=farm.csv record_count=3 generation=2"


def test_builtin_record_attributes_are_not_echoed() -> None:
    formatter = ContextualFormatter(fmt="%(message)s")

    assert formatter.format(_record()) == "Dataset replaced"


def test_dataset_name_extra_does_not_clash_with_log_record() -> None:
    logger = logging.getLogger("tests.logging_config")
    logger.setLevel(logging.INFO)
    try:
        logger.info("Parsed dataset file", extra={"dataset_name": "farm.csv"})
    finally:
        logger.setLevel(logging.NOTSET)
