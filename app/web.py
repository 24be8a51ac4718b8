from __future__ import annotations

from pathlib import Path
from typing import Optional

from fastapi import APIRouter, Depends, Query, Request
from fastapi.responses import HTMLResponse
from fastapi.templating import Jinja2Templates

from models.records import ChartKind, StreamState
from services.dashboard import DashboardSession, build_default_session
from services.visualization import EMPTY_CHART_MESSAGE


templates = Jinja2Templates(directory=str(Path(__file__).resolve().parent / "templates"))

# Rows shown in the preview table under the chart.
_PREVIEW_ROWS = 50


def get_session() -> DashboardSession:
    return build_default_session()


router = APIRouter(include_in_schema=False)


@router.get("/ui", name="ui_index", response_class=HTMLResponse)
async def ui_index(
    request: Request,
    kind: Optional[ChartKind] = Query(None),
    session: DashboardSession = Depends(get_session),
) -> HTMLResponse:
    preferences = session.get_preferences()
    chart_kind = kind or preferences.chart_kind
    stream = session.stream_status()
    should_poll = stream.state is StreamState.streaming

    return templates.TemplateResponse(
        request,
        "ui/index.html",
        {
            "filename": session.filename,
            "dataset_size": len(session.dataset),
            "window": session.window[-_PREVIEW_ROWS:],
            "window_size": len(session.window),
            "window_view": session.window_view(),
            "chart_html": session.chart_html(chart_kind),
            "chart_kind": chart_kind.value,
            "chart_kinds": [item.value for item in ChartKind],
            "placeholder": EMPTY_CHART_MESSAGE,
            "analysis": session.analysis,
            "stream": stream,
            "theme": preferences.theme.value,
            "should_poll": should_poll,
        },
    )
