from __future__ import annotations
import json
import logging
from functools import lru_cache
from pathlib import Path
from threading import Lock
from typing import Optional

from pydantic import BaseModel, ValidationError

from models.records import ChartKind, Theme
from settings import get_settings

logger = logging.getLogger(__name__)


class Preferences(BaseModel):
    theme: Theme = Theme.light
    chart_kind: ChartKind = ChartKind.line


class PreferenceStore:
    """Dashboard preferences kept as one JSON document, reloaded at startup."""

    def __init__(self, persistence_path: Optional[Path] = None) -> None:
        self.persistence_path = persistence_path
        self._preferences = Preferences()
        self._lock = Lock()
        if persistence_path:
            persistence_path.parent.mkdir(parents=True, exist_ok=True)
            self._load_from_disk()

    def get(self) -> Preferences:
        with self._lock:
            return self._preferences.model_copy(deep=True)

    def put(self, preferences: Preferences) -> None:
        with self._lock:
            self._preferences = preferences.model_copy(deep=True)
            self._persist()

    def update(self, **changes: object) -> Preferences:
        with self._lock:
            merged = self._preferences.model_dump()
            merged.update({key: value for key, value in changes.items() if value is not None})
            self._preferences = Preferences.model_validate(merged)
            self._persist()
            return self._preferences.model_copy(deep=True)

    def _persist(self) -> None:
        if not self.persistence_path:
            return
        payload = self._preferences.model_dump(mode="json")
        self.persistence_path.write_text(json.dumps(payload, indent=2, sort_keys=True))

    def _load_from_disk(self) -> None:
        if not self.persistence_path or not self.persistence_path.exists():
            return

        try:
            raw = self.persistence_path.read_text() or "{}"
            self._preferences = Preferences.model_validate(json.loads(raw))
        except (OSError, json.JSONDecodeError, ValidationError) as exc:
            logger.warning(
                "Discarding unreadable preferences file", extra={"reason": str(exc)}
            )
            self._preferences = Preferences()


@lru_cache
def build_default_store(path: Optional[str] = None) -> PreferenceStore:
    settings = get_settings()
    store_path = settings.preferences_path if path is None else path
    persistence = Path(store_path) if store_path else None
    return PreferenceStore(persistence_path=persistence)
