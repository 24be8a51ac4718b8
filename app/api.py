"""HTTP route definitions for the service."""

from __future__ import annotations

from typing import Literal, Optional

from fastapi import APIRouter, Depends, File, HTTPException, Query, Response, UploadFile, status

from app.schemas import (
    AdvisorResponse,
    ChatRequest,
    ChartResponse,
    DatasetResponse,
    DatasetUploadResponse,
    DisplayWindowResponse,
    FilterRequest,
    PreferencesUpdate,
    StreamStatusResponse,
)
from datastore.preferences import Preferences
from models.records import ChartKind
from services.advisor import ChatReply, DiseaseDetection, LandImageAnalysis
from services.dashboard import DashboardSession, EmptyWindowError, build_default_session
from services.filtering import DateRangeError
from services.ingestion import MalformedFileError, UnsupportedFileTypeError, ensure_supported
from services.report import REPORT_FILENAME
from services.streaming import StreamTransitionError

router = APIRouter()


def get_session() -> DashboardSession:
    return build_default_session()


@router.post(
    "/dashboard/dataset",
    status_code=status.HTTP_201_CREATED,
    response_model=DatasetUploadResponse,
    summary="Upload a CSV, JSON or Excel soil dataset, replacing the current one.",
)
async def upload_dataset(
    file: UploadFile = File(..., description="Soil dataset (.csv, .json, .xlsx or .xls)."),
    session: DashboardSession = Depends(get_session),
) -> DatasetUploadResponse:
    filename = file.filename or ""
    try:
        ensure_supported(filename)
        contents = await file.read()
        return await session.upload(filename, contents)
    except UnsupportedFileTypeError as exc:
        raise HTTPException(
            status_code=status.HTTP_415_UNSUPPORTED_MEDIA_TYPE,
            detail=str(exc),
        ) from exc
    except MalformedFileError as exc:
        raise HTTPException(
            status_code=status.HTTP_400_BAD_REQUEST,
            detail=str(exc),
        ) from exc
    finally:
        await file.close()


@router.get(
    "/dashboard/dataset",
    response_model=DatasetResponse,
    summary="Return the full dataset from the last upload.",
)
async def get_dataset(session: DashboardSession = Depends(get_session)) -> DatasetResponse:
    return session.dataset_view()


@router.get(
    "/dashboard/window",
    response_model=DisplayWindowResponse,
    summary="Return the records currently on display.",
)
async def get_window(session: DashboardSession = Depends(get_session)) -> DisplayWindowResponse:
    return session.window_view()


@router.post(
    "/dashboard/window/filter",
    response_model=DisplayWindowResponse,
    summary="Narrow the display window to an inclusive date range.",
)
async def filter_window(
    request: FilterRequest,
    session: DashboardSession = Depends(get_session),
) -> DisplayWindowResponse:
    try:
        return session.apply_filter(request.start_date, request.end_date)
    except DateRangeError as exc:
        raise HTTPException(
            status_code=status.HTTP_400_BAD_REQUEST,
            detail=str(exc),
        ) from exc


@router.post(
    "/dashboard/window/reset",
    response_model=DisplayWindowResponse,
    summary="Clear the date range and show the full dataset.",
)
async def reset_window(session: DashboardSession = Depends(get_session)) -> DisplayWindowResponse:
    return session.reset_filter()


@router.get(
    "/dashboard/chart",
    response_model=ChartResponse,
    summary="Plotly figure for the display window.",
)
async def get_chart(
    kind: Optional[ChartKind] = Query(None, description="line, bar or area; defaults to the saved preference."),
    session: DashboardSession = Depends(get_session),
) -> ChartResponse:
    return session.chart(kind)


@router.get(
    "/dashboard/report.csv",
    summary="Download the display window as CSV.",
    response_class=Response,
)
async def download_report(session: DashboardSession = Depends(get_session)) -> Response:
    try:
        body = session.report_csv()
    except EmptyWindowError as exc:
        raise HTTPException(
            status_code=status.HTTP_404_NOT_FOUND,
            detail=str(exc),
        ) from exc
    return Response(
        content=body,
        media_type="text/csv; charset=utf-8",
        headers={"Content-Disposition": f'attachment; filename="{REPORT_FILENAME}"'},
    )


@router.get(
    "/dashboard/stream",
    response_model=StreamStatusResponse,
    summary="Current streaming state.",
)
async def get_stream(session: DashboardSession = Depends(get_session)) -> StreamStatusResponse:
    return session.stream_status()


@router.post(
    "/dashboard/stream/{action}",
    response_model=StreamStatusResponse,
    summary="Start, pause, resume or stop streaming.",
)
async def control_stream(
    action: Literal["start", "pause", "resume", "stop"],
    session: DashboardSession = Depends(get_session),
) -> StreamStatusResponse:
    handlers = {
        "start": session.start_stream,
        "pause": session.pause_stream,
        "resume": session.resume_stream,
        "stop": session.stop_stream,
    }
    try:
        return await handlers[action]()
    except StreamTransitionError as exc:
        raise HTTPException(
            status_code=status.HTTP_409_CONFLICT,
            detail=str(exc),
        ) from exc


@router.get("/preferences", response_model=Preferences, summary="Saved dashboard preferences.")
async def get_preferences(session: DashboardSession = Depends(get_session)) -> Preferences:
    return session.get_preferences()


@router.put("/preferences", response_model=Preferences, summary="Update dashboard preferences.")
async def put_preferences(
    update: PreferencesUpdate,
    session: DashboardSession = Depends(get_session),
) -> Preferences:
    return session.update_preferences(theme=update.theme, chart_kind=update.chart_kind)


@router.post(
    "/advisor/land-image",
    response_model=AdvisorResponse[LandImageAnalysis],
    summary="Estimate field health from a land or drone photo.",
)
async def analyze_land_image(
    image: UploadFile = File(...),
    session: DashboardSession = Depends(get_session),
) -> AdvisorResponse[LandImageAnalysis]:
    contents = await image.read()
    await image.close()
    return await session.analyze_land_image(contents, image.content_type or "image/jpeg")


@router.post(
    "/advisor/plant-disease",
    response_model=AdvisorResponse[DiseaseDetection],
    summary="Detect plant disease from a leaf photo.",
)
async def detect_plant_disease(
    image: UploadFile = File(...),
    session: DashboardSession = Depends(get_session),
) -> AdvisorResponse[DiseaseDetection]:
    contents = await image.read()
    await image.close()
    return await session.detect_plant_disease(contents, image.content_type or "image/jpeg")


@router.post(
    "/advisor/chat",
    response_model=AdvisorResponse[ChatReply],
    summary="Ask the farm advisor a question.",
)
async def chat(
    request: ChatRequest,
    session: DashboardSession = Depends(get_session),
) -> AdvisorResponse[ChatReply]:
    return await session.chat(request.history, request.message)


@router.get(
    "/health",
    summary="Health check endpoint.",
    status_code=status.HTTP_200_OK,
)
async def healthcheck() -> dict[str, str]:
    return {"status": "ok"}


@router.get(
    "/",
    summary="Root endpoint mirrors health information.",
    status_code=status.HTTP_200_OK,
)
async def root() -> dict[str, str]:
    return {"status": "ok", "detail": "See /ui for the dashboard."}
