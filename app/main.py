"""ASGI entry point: ``uvicorn app.main:app``."""

from __future__ import annotations

import logging
from contextlib import asynccontextmanager
from pathlib import Path
from typing import AsyncIterator

from fastapi import FastAPI
from fastapi.staticfiles import StaticFiles

from app.api import router as api_router
from app.web import router as ui_router
from logging_config import configure_logging
from services.dashboard import build_default_session

logger = logging.getLogger(__name__)

_STATIC_DIR = Path(__file__).resolve().parent / "static"


@asynccontextmanager
async def lifespan(app: FastAPI) -> AsyncIterator[None]:
    # One session per process; the stream timer and socket live on this loop.
    app.state.session = build_default_session()
    logger.info(
        "Dashboard session ready",
        extra={"stream_state": app.state.session.stream_status().state.value},
    )
    try:
        yield
    finally:
        await app.state.session.aclose()
        build_default_session.cache_clear()
        logger.info("Dashboard session closed")


def create_app() -> FastAPI:
    configure_logging()
    dashboard = FastAPI(
        title="Soil Dashboard",
        description="Upload soil datasets, chart and replay them, and ask the farm advisor.",
        version="0.1.0",
        lifespan=lifespan,
    )
    dashboard.mount("/static", StaticFiles(directory=_STATIC_DIR), name="static")
    dashboard.include_router(api_router)
    dashboard.include_router(ui_router)
    return dashboard


app = create_app()
