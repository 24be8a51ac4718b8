"""Pydantic schemas for the HTTP API layer."""

from __future__ import annotations

from datetime import date, datetime
from typing import Any, Dict, Generic, List, Optional, TypeVar, Union

from pydantic import BaseModel, Field

from models.records import ChartKind, StreamMode, StreamState, Theme
from services.advisor import ChatTurn, SoilAnalysis

PayloadT = TypeVar("PayloadT")


class SoilRecordOut(BaseModel):
    """One normalised soil observation."""

    date: str
    moisture: Union[int, float]
    fertility: Union[int, float]
    temperature: Union[int, float]


class AdvisorResponse(BaseModel, Generic[PayloadT]):
    """Advisor output, flagged when the fixed fallback stands in for the service."""

    result: PayloadT
    fallback: bool = Field(False, description="True when the advisor was unavailable.")
    reason: Optional[str] = None


class DatasetUploadResponse(BaseModel):
    filename: str
    record_count: int = Field(..., ge=0)
    analysis: Optional[AdvisorResponse[SoilAnalysis]] = None


class DatasetResponse(BaseModel):
    filename: Optional[str] = None
    record_count: int = Field(..., ge=0)
    records: List[SoilRecordOut] = Field(default_factory=list)


class DisplayWindowResponse(BaseModel):
    records: List[SoilRecordOut] = Field(default_factory=list)
    start_date: Optional[date] = None
    end_date: Optional[date] = None
    filtered: bool = False


class FilterRequest(BaseModel):
    start_date: Optional[date] = None
    end_date: Optional[date] = None


class ChartResponse(BaseModel):
    kind: ChartKind
    placeholder: Optional[str] = None
    figure: Optional[Dict[str, Any]] = Field(
        default=None, description="Plotly figure JSON; absent when the window is empty."
    )


class StreamStatusResponse(BaseModel):
    state: StreamState
    mode: Optional[StreamMode] = None
    cursor: int = Field(..., ge=0)
    total: int = Field(..., ge=0)
    window_size: int = Field(..., ge=0)
    last_update: Optional[datetime] = None


class PreferencesUpdate(BaseModel):
    theme: Optional[Theme] = None
    chart_kind: Optional[ChartKind] = None


class ChatRequest(BaseModel):
    message: str = Field(..., min_length=1)
    history: List[ChatTurn] = Field(default_factory=list)
