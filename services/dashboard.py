"""Application state for a single dashboard session."""

from __future__ import annotations

import json
import logging
from dataclasses import asdict
from datetime import date
from functools import lru_cache
from typing import Iterable, List, Optional, Sequence, Tuple

from starlette.concurrency import run_in_threadpool

from app.schemas import (
    AdvisorResponse,
    ChartResponse,
    DatasetResponse,
    DatasetUploadResponse,
    DisplayWindowResponse,
    StreamStatusResponse,
    SoilRecordOut,
)
from datastore.preferences import PreferenceStore, Preferences, build_default_store
from models.records import ChartKind, SoilRecord, StreamState
from services.advisor import (
    FALLBACK_CHAT_REPLY,
    FALLBACK_DISEASE_DETECTION,
    FALLBACK_LAND_ANALYSIS,
    FALLBACK_SOIL_ANALYSIS,
    Advisor,
    ChatReply,
    ChatTurn,
    DiseaseDetection,
    LandImageAnalysis,
    SoilAnalysis,
    build_default_advisor,
    resolve,
)
from services.filtering import filter_by_date_range
from services.ingestion import parse_data_file
from services.normalizer import normalize_rows, today_iso
from services.report import export_csv
from services.streaming import Connector, StreamSimulator
from services.visualization import EMPTY_CHART_MESSAGE, build_figure
from settings import get_settings

logger = logging.getLogger(__name__)


class EmptyWindowError(LookupError):
    """Raised when an export is requested with nothing on display."""


class DashboardSession:
    """Owns the dataset, the display window, the stream and the latest analysis.

    The dataset is only ever replaced wholesale.  ``window`` is a single list
    mutated in place so the stream simulator and the range filter always
    write to the same display buffer.
    """

    def __init__(
        self,
        advisor: Advisor,
        preferences: PreferenceStore,
        *,
        timezone: str = "UTC",
        live_url: Optional[str] = None,
        tick_seconds: float = 1.0,
        connect_timeout: float = 2.0,
        connector: Optional[Connector] = None,
    ) -> None:
        self.advisor = advisor
        self.preferences = preferences
        self.timezone = timezone
        self.filename: Optional[str] = None
        self.dataset: Tuple[SoilRecord, ...] = ()
        self.window: List[SoilRecord] = []
        self.filter_bounds: Optional[Tuple[date, date]] = None
        self.analysis: Optional[AdvisorResponse[SoilAnalysis]] = None
        self._generation = 0
        self.simulator = StreamSimulator(
            lambda: self.dataset,
            self.window,
            live_url=live_url,
            interval=tick_seconds,
            connect_timeout=connect_timeout,
            connector=connector,
            timezone_name=timezone,
        )

    async def upload(self, filename: str, contents: bytes) -> DatasetUploadResponse:
        """Parse ``contents`` and make it the current dataset.

        Parsing errors propagate before any state changes, so a rejected
        upload leaves the previous dataset in place.
        """
        rows = await run_in_threadpool(parse_data_file, filename, contents)
        records = normalize_rows(rows, today=today_iso(self.timezone))

        if self.simulator.state is not StreamState.idle:
            await self.simulator.stop()

        self._generation += 1
        generation = self._generation
        self.filename = filename
        self.dataset = records
        self.window[:] = records
        self.filter_bounds = None
        self.analysis = None
        logger.info(
            "Dataset replaced",
            extra={"dataset_name": filename, "record_count": len(records), "generation": generation},
        )

        result = await run_in_threadpool(self.advisor.analyze_soil, records)
        payload, is_fallback, reason = resolve(result, FALLBACK_SOIL_ANALYSIS)
        view = AdvisorResponse[SoilAnalysis](result=payload, fallback=is_fallback, reason=reason)
        if generation == self._generation:
            self.analysis = view
        else:
            logger.info(
                "Discarding analysis for a superseded upload", extra={"generation": generation}
            )

        return DatasetUploadResponse(filename=filename, record_count=len(records), analysis=view)

    def dataset_view(self) -> DatasetResponse:
        return DatasetResponse(
            filename=self.filename,
            record_count=len(self.dataset),
            records=_records_out(self.dataset),
        )

    def window_view(self) -> DisplayWindowResponse:
        start, end = self.filter_bounds or (None, None)
        return DisplayWindowResponse(
            records=_records_out(self.window),
            start_date=start,
            end_date=end,
            filtered=self.filter_bounds is not None,
        )

    def apply_filter(self, start: Optional[date], end: Optional[date]) -> DisplayWindowResponse:
        selected = filter_by_date_range(self.dataset, start, end, timezone=self.timezone)
        self.window[:] = selected
        self.filter_bounds = (start, end)  # type: ignore[assignment]
        logger.info("Range filter applied", extra={"record_count": len(selected)})
        return self.window_view()

    def reset_filter(self) -> DisplayWindowResponse:
        self.filter_bounds = None
        self.window[:] = self.dataset
        return self.window_view()

    def chart(self, kind: Optional[ChartKind] = None) -> ChartResponse:
        prefs = self.preferences.get()
        chart_kind = kind or prefs.chart_kind
        figure = build_figure(self.window, chart_kind, prefs.theme)
        if figure is None:
            return ChartResponse(kind=chart_kind, placeholder=EMPTY_CHART_MESSAGE)
        return ChartResponse(kind=chart_kind, figure=json.loads(figure.to_json()))

    def chart_html(self, kind: Optional[ChartKind] = None) -> Optional[str]:
        prefs = self.preferences.get()
        figure = build_figure(self.window, kind or prefs.chart_kind, prefs.theme)
        if figure is None:
            return None
        return figure.to_html(full_html=False, include_plotlyjs="cdn")

    def report_csv(self) -> str:
        if not self.window:
            raise EmptyWindowError("No soil data to export.")
        return export_csv(self.window)

    async def start_stream(self) -> StreamStatusResponse:
        await self.simulator.start()
        return self.stream_status()

    async def pause_stream(self) -> StreamStatusResponse:
        await self.simulator.pause()
        return self.stream_status()

    async def resume_stream(self) -> StreamStatusResponse:
        await self.simulator.resume()
        return self.stream_status()

    async def stop_stream(self) -> StreamStatusResponse:
        await self.simulator.stop()
        return self.stream_status()

    def stream_status(self) -> StreamStatusResponse:
        status = self.simulator.status()
        return StreamStatusResponse(
            state=status.state,
            mode=status.mode,
            cursor=status.cursor,
            total=status.total,
            window_size=len(self.window),
            last_update=status.last_update,
        )

    def get_preferences(self) -> Preferences:
        return self.preferences.get()

    def update_preferences(self, **changes: object) -> Preferences:
        return self.preferences.update(**changes)

    async def analyze_land_image(
        self, image: bytes, mime_type: str
    ) -> AdvisorResponse[LandImageAnalysis]:
        result = await run_in_threadpool(self.advisor.analyze_land_image, image, mime_type)
        payload, is_fallback, reason = resolve(result, FALLBACK_LAND_ANALYSIS)
        return AdvisorResponse[LandImageAnalysis](result=payload, fallback=is_fallback, reason=reason)

    async def detect_plant_disease(
        self, image: bytes, mime_type: str
    ) -> AdvisorResponse[DiseaseDetection]:
        result = await run_in_threadpool(self.advisor.detect_plant_disease, image, mime_type)
        payload, is_fallback, reason = resolve(result, FALLBACK_DISEASE_DETECTION)
        return AdvisorResponse[DiseaseDetection](result=payload, fallback=is_fallback, reason=reason)

    async def chat(self, history: Sequence[ChatTurn], message: str) -> AdvisorResponse[ChatReply]:
        result = await run_in_threadpool(self.advisor.chat, history, message, self.dataset)
        payload, is_fallback, reason = resolve(result, FALLBACK_CHAT_REPLY)
        return AdvisorResponse[ChatReply](result=payload, fallback=is_fallback, reason=reason)

    async def aclose(self) -> None:
        await self.simulator.aclose()


def _records_out(records: Iterable[SoilRecord]) -> List[SoilRecordOut]:
    return [SoilRecordOut(**asdict(record)) for record in records]


@lru_cache
def build_default_session() -> DashboardSession:
    """Factory that wires the session from environment settings."""
    settings = get_settings()
    advisor = build_default_advisor(settings.gemini_api_key, settings.gemini_model)
    return DashboardSession(
        advisor=advisor,
        preferences=build_default_store(),
        timezone=settings.timezone,
        live_url=settings.live_stream_url,
        tick_seconds=settings.stream_tick_seconds,
        connect_timeout=settings.stream_connect_timeout,
    )
