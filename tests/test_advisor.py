"""Unit tests for the advisor boundary."""

from __future__ import annotations

import logging
from typing import Any, List, Optional, Sequence

import pytest

from models.records import SoilRecord
from services.advisor import (
    FALLBACK_CHAT_REPLY,
    FALLBACK_SOIL_ANALYSIS,
    Advisor,
    ChatTurn,
    Failure,
    GeminiBackend,
    SoilAnalysis,
    Success,
    resolve,
)


class FakeBackend:
    def __init__(self, reply: Any = None, error: Optional[Exception] = None) -> None:
        self.reply = reply
        self.error = error
        self.calls: List[tuple[Sequence[Any], Optional[str]]] = []

    def generate_json(self, contents, system_instruction=None):
        self.calls.append((list(contents), system_instruction))
        if self.error is not None:
            raise self.error
        return self.reply


def _records(count: int) -> list[SoilRecord]:
    return [SoilRecord(date=f"2024-01-{day:02d}", moisture=day) for day in range(1, count + 1)]


def test_soil_analysis_success_is_typed() -> None:
    backend = FakeBackend(
        reply={
            "yield": 9.1,
            "profit": 15000,
            "diseases": [{"name": "Rust", "probability": 0.3, "explanation": "humid"}],
            "risks": [],
            "summary": "Looks fine.",
        }
    )

    result = Advisor(backend).analyze_soil(_records(3))

    assert isinstance(result, Success)
    assert result.payload.yield_tons_per_acre == 9.1
    assert result.payload.diseases[0].name == "Rust"


def test_soil_prompt_samples_first_twenty_records() -> None:
    backend = FakeBackend(reply={"yield": 1, "profit": 1})

    Advisor(backend).analyze_soil(_records(25))

    (contents, _), = backend.calls
    prompt = contents[0]
    assert "2024-01-20" in prompt
    assert "2024-01-21" not in prompt


def test_backend_error_becomes_failure(caplog) -> None:
    backend = FakeBackend(error=RuntimeError("quota exceeded"))

    with caplog.at_level(logging.WARNING):
        result = Advisor(backend).analyze_soil(_records(2))

    assert isinstance(result, Failure)
    assert "quota exceeded" in result.reason
    assert any(getattr(record, "reason", None) == result.reason for record in caplog.records)


def test_unexpected_shape_becomes_failure() -> None:
    backend = FakeBackend(reply={"summary": "no numbers"})

    result = Advisor(backend).analyze_soil(_records(2))

    assert isinstance(result, Failure)
    assert "unexpected shape" in result.reason


def test_empty_dataset_is_not_sent() -> None:
    backend = FakeBackend(reply={"yield": 1, "profit": 1})

    result = Advisor(backend).analyze_soil([])

    assert isinstance(result, Failure)
    assert backend.calls == []


def test_failure_resolves_to_documented_fallback() -> None:
    result = Advisor(FakeBackend(error=ConnectionError("offline"))).analyze_soil(_records(1))

    payload, is_fallback, reason = resolve(result, FALLBACK_SOIL_ANALYSIS)

    assert is_fallback is True
    assert "offline" in reason
    assert payload.yield_tons_per_acre == 8.5
    assert payload.profit == 12000
    assert payload.summary.startswith("Mock Data")


def test_success_resolves_to_payload() -> None:
    analysis = SoilAnalysis(yield_tons_per_acre=3, profit=4)

    assert resolve(Success(analysis), FALLBACK_SOIL_ANALYSIS) == (analysis, False, None)


def test_images_are_sent_as_inline_blobs() -> None:
    backend = FakeBackend(
        reply={
            "isDroneImage": True,
            "ndvi": 0.7,
            "healthMap": {"healthy": 70, "mediumStress": 20, "highStress": 10},
            "summary": "Dense canopy.",
        }
    )

    result = Advisor(backend).analyze_land_image(b"\xff\xd8jpeg", "image/jpeg")

    assert isinstance(result, Success)
    assert result.payload.health_map.medium_stress == 20
    (contents, _), = backend.calls
    assert contents[0] == {"mime_type": "image/jpeg", "data": b"\xff\xd8jpeg"}


def test_disease_confidence_out_of_range_fails() -> None:
    backend = FakeBackend(reply={"diseaseName": "Blight", "confidence": 140, "treatmentSteps": []})

    result = Advisor(backend).detect_plant_disease(b"img", "image/png")

    assert isinstance(result, Failure)


def test_chat_includes_history_and_recent_soil_context() -> None:
    backend = FakeBackend(reply={"response": "Riega mañana.", "languageCode": "es-ES"})
    history = [ChatTurn(role="user", text="Hola"), ChatTurn(role="model", text="¡Hola!")]

    result = Advisor(backend).chat(history, "¿Cuándo riego?", _records(8))

    assert isinstance(result, Success)
    assert result.payload.language_code == "es-ES"
    (contents, instruction), = backend.calls
    assert [turn["role"] for turn in contents] == ["user", "model", "user"]
    assert contents[-1]["parts"][0]["text"] == "¿Cuándo riego?"
    assert "2024-01-08" in instruction
    assert "2024-01-03" not in instruction


def test_chat_failure_fallback_is_an_apology() -> None:
    result = Advisor(FakeBackend(error=TimeoutError())).chat([], "hello")

    payload, is_fallback, _ = resolve(result, FALLBACK_CHAT_REPLY)

    assert is_fallback is True
    assert payload.language_code == "en-US"


def test_gemini_backend_without_key_fails_fast() -> None:
    advisor = Advisor(GeminiBackend(api_key=None, model_name="gemini-2.5-flash"))

    result = advisor.analyze_soil(_records(1))

    assert isinstance(result, Failure)
    assert "API key is not configured" in result.reason


def test_resolve_rejects_untagged_values() -> None:
    with pytest.raises(TypeError):
        resolve({"yield": 1}, FALLBACK_SOIL_ANALYSIS)  # type: ignore[arg-type]
