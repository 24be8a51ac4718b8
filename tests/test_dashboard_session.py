from __future__ import annotations

import asyncio
import json
import logging
from datetime import date

import pytest

from datastore.preferences import PreferenceStore
from models.records import ChartKind, SoilRecord, StreamState
from services.advisor import Advisor
from services.dashboard import DashboardSession, EmptyWindowError
from services.filtering import DateRangeError
from services.ingestion import MalformedFileError, UnsupportedFileTypeError

CSV_A = b"date,moisture,fertility,temperature\n2024-01-01,10,1,20\n2024-01-02,11,2,21\n2024-01-03,12,3,22\n"
JSON_B = json.dumps([{"date": "2025-06-01", "moisture": 40}]).encode("utf-8")


class FakeBackend:
    def __init__(self, reply=None, error: Exception | None = None) -> None:
        self.reply = reply
        self.error = error
        self.calls = 0

    def generate_json(self, contents, system_instruction=None):
        self.calls += 1
        if self.error is not None:
            raise self.error
        return self.reply


def _session(backend: FakeBackend | None = None, **kwargs) -> DashboardSession:
    advisor = Advisor(backend or FakeBackend(error=RuntimeError("offline")))
    return DashboardSession(advisor, PreferenceStore(), tick_seconds=3600, **kwargs)


def test_upload_replaces_dataset_wholesale() -> None:
    async def scenario() -> None:
        session = _session()
        first = await session.upload("a.csv", CSV_A)
        assert first.record_count == 3

        second = await session.upload("b.json", JSON_B)

        assert second.record_count == 1
        assert session.dataset == (SoilRecord(date="2025-06-01", moisture=40),)
        assert session.window == list(session.dataset)
        assert session.filename == "b.json"

    asyncio.run(scenario())


def test_upload_reports_fallback_analysis_when_advisor_fails() -> None:
    async def scenario() -> None:
        session = _session()
        response = await session.upload("a.csv", CSV_A)

        assert response.analysis is not None
        assert response.analysis.fallback is True
        assert "offline" in (response.analysis.reason or "")
        assert response.analysis.result.yield_tons_per_acre == 8.5
        assert session.analysis == response.analysis

    asyncio.run(scenario())


def test_upload_keeps_real_analysis() -> None:
    backend = FakeBackend(reply={"yield": 4.2, "profit": 900, "summary": "ok"})

    async def scenario() -> None:
        session = _session(backend)
        response = await session.upload("a.csv", CSV_A)

        assert response.analysis is not None
        assert response.analysis.fallback is False
        assert response.analysis.result.profit == 900

    asyncio.run(scenario())


@pytest.mark.parametrize(
    "filename,body,error",
    [
        ("notes.txt", b"hello", UnsupportedFileTypeError),
        ("bad.json", b'{"date": "2024-01-01"}', MalformedFileError),
    ],
)
def test_rejected_upload_keeps_previous_state(filename, body, error) -> None:
    async def scenario() -> None:
        session = _session()
        await session.upload("a.csv", CSV_A)
        before = (session.dataset, list(session.window), session.analysis)

        with pytest.raises(error):
            await session.upload(filename, body)

        assert (session.dataset, list(session.window), session.analysis) == before

    asyncio.run(scenario())


def test_filter_then_reset_restores_dataset() -> None:
    async def scenario() -> None:
        session = _session()
        await session.upload("a.csv", CSV_A)

        filtered = session.apply_filter(date(2024, 1, 2), date(2024, 1, 2))
        assert [record.date for record in filtered.records] == ["2024-01-02"]
        assert filtered.filtered is True
        assert session.dataset_view().record_count == 3

        reset = session.reset_filter()
        assert reset.filtered is False
        assert [record.date for record in reset.records] == ["2024-01-01", "2024-01-02", "2024-01-03"]

    asyncio.run(scenario())


def test_filter_without_bounds_is_rejected() -> None:
    session = _session()

    with pytest.raises(DateRangeError):
        session.apply_filter(None, date(2024, 1, 2))


def test_report_of_empty_window_raises() -> None:
    session = _session()

    with pytest.raises(EmptyWindowError, match="No soil data to export."):
        session.report_csv()


def test_report_exports_the_display_window() -> None:
    async def scenario() -> None:
        session = _session()
        await session.upload("a.csv", CSV_A)
        session.apply_filter(date(2024, 1, 3), date(2024, 1, 3))

        body = session.report_csv()

        assert body.splitlines() == ["date,moisture,fertility,temperature", "2024-01-03,12,3,22"]

    asyncio.run(scenario())


def test_chart_placeholder_and_preferred_kind() -> None:
    async def scenario() -> None:
        session = _session()
        empty = session.chart()
        assert empty.figure is None
        assert empty.placeholder == "Please upload your dataset to see results."

        await session.upload("a.csv", CSV_A)
        session.update_preferences(chart_kind=ChartKind.bar)

        chart = session.chart()
        assert chart.kind is ChartKind.bar
        assert chart.figure is not None
        assert {trace["type"] for trace in chart.figure["data"]} == {"bar"}
        assert session.chart_html() is not None

    asyncio.run(scenario())


def test_upload_stops_an_active_stream() -> None:
    async def scenario() -> None:
        session = _session()
        await session.upload("a.csv", CSV_A)
        await session.start_stream()
        session.simulator.tick()
        assert session.stream_status().window_size == 1

        await session.upload("b.json", JSON_B)

        status = session.stream_status()
        assert status.state is StreamState.idle
        assert status.window_size == 1
        assert session.simulator.has_timer is False
        await session.aclose()

    asyncio.run(scenario())


def test_chat_uses_fallback_reply() -> None:
    async def scenario() -> None:
        session = _session()
        reply = await session.chat([], "When should I irrigate?")

        assert reply.fallback is True
        assert reply.result.language_code == "en-US"

    asyncio.run(scenario())


def test_reupload_resets_stream_status_to_new_dataset() -> None:
    async def scenario() -> None:
        session = _session()
        await session.upload("a.csv", CSV_A)
        await session.start_stream()
        session.simulator.tick()

        await session.upload("b.json", JSON_B)

        status = session.stream_status()
        assert status.state is StreamState.idle
        assert status.mode is None
        assert status.cursor == 0
        assert status.total == 0
        assert status.window_size == 1

    asyncio.run(scenario())


def test_upload_is_logged_with_dataset_name(caplog) -> None:
    async def scenario() -> None:
        session = _session()
        with caplog.at_level(logging.INFO, logger="services.dashboard"):
            await session.upload("a.csv", CSV_A)

    asyncio.run(scenario())
    (record,) = [r for r in caplog.records if r.getMessage() == "Dataset replaced"]
    assert record.dataset_name == "a.csv"
    assert record.record_count == 3
