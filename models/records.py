"""Domain models shared across services."""

from __future__ import annotations

from dataclasses import dataclass
from enum import Enum
from typing import Union

Number = Union[int, float]


@dataclass(frozen=True, slots=True)
class SoilRecord:
    """A single soil observation, normalised from an upload or a live message."""

    date: str
    moisture: Number = 0
    fertility: Number = 0
    temperature: Number = 0


class StreamState(str, Enum):
    idle = "idle"
    streaming = "streaming"
    paused = "paused"
    finished = "finished"


class StreamMode(str, Enum):
    replay = "replay"
    live = "live"


class ChartKind(str, Enum):
    line = "line"
    bar = "bar"
    area = "area"


class Theme(str, Enum):
    light = "light"
    dark = "dark"


SOIL_FIELDS = ("date", "moisture", "fertility", "temperature")
