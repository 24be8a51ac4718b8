"""Boundary to the generative-AI farm advisor.

Every public call returns a tagged result: :class:`Success` carrying a
validated payload, or :class:`Failure` carrying a human-readable reason.
Nothing escapes as an exception, and every call has a fixed fallback payload
that callers can show instead via :func:`resolve`.
"""

from __future__ import annotations

import json
import logging
from dataclasses import asdict, dataclass
from typing import Any, Generic, List, Optional, Protocol, Sequence, Tuple, TypeVar, Union

import google.generativeai as genai
from pydantic import BaseModel, ConfigDict, Field, ValidationError

from models.records import SoilRecord

logger = logging.getLogger(__name__)

SOIL_SAMPLE_SIZE = 20
CHAT_CONTEXT_SIZE = 5

T = TypeVar("T")
ModelT = TypeVar("ModelT", bound=BaseModel)


class RiskItem(BaseModel):
    name: str
    probability: float = 0.0
    explanation: str = ""


class SoilAnalysis(BaseModel):
    model_config = ConfigDict(populate_by_name=True)

    yield_tons_per_acre: float = Field(..., alias="yield")
    profit: float
    diseases: List[RiskItem] = Field(default_factory=list)
    risks: List[RiskItem] = Field(default_factory=list)
    summary: str = ""


class HealthMap(BaseModel):
    model_config = ConfigDict(populate_by_name=True)

    healthy: float
    medium_stress: float = Field(..., alias="mediumStress")
    high_stress: float = Field(..., alias="highStress")


class LandImageAnalysis(BaseModel):
    model_config = ConfigDict(populate_by_name=True)

    is_drone_image: bool = Field(False, alias="isDroneImage")
    ndvi: Optional[float] = None
    ndre: Optional[float] = None
    health_map: HealthMap = Field(..., alias="healthMap")
    summary: str = ""


class DiseaseDetection(BaseModel):
    model_config = ConfigDict(populate_by_name=True)

    disease_name: str = Field(..., alias="diseaseName")
    confidence: float = Field(..., ge=0, le=100)
    treatment_steps: List[str] = Field(default_factory=list, alias="treatmentSteps")


class ChatReply(BaseModel):
    model_config = ConfigDict(populate_by_name=True)

    response_text: str = Field(..., alias="response")
    language_code: str = Field("en-US", alias="languageCode")


class ChatTurn(BaseModel):
    role: str
    text: str


@dataclass(frozen=True)
class Success(Generic[T]):
    payload: T


@dataclass(frozen=True)
class Failure:
    reason: str


AdvisorResult = Union[Success[T], Failure]


FALLBACK_SOIL_ANALYSIS = SoilAnalysis(
    yield_tons_per_acre=8.5,
    profit=12000,
    diseases=[
        RiskItem(name="Mock Blight", probability=0.2, explanation="Mock: Slightly high humidity detected.")
    ],
    risks=[
        RiskItem(name="Mock Drought", probability=0.1, explanation="Mock: Low moisture in some records.")
    ],
    summary=(
        "Mock Data: Soil moisture is stable, but fertility shows a slight decline. "
        "Consider adding nitrogen-rich fertilizer for optimal yield."
    ),
)

FALLBACK_LAND_ANALYSIS = LandImageAnalysis(
    is_drone_image=False,
    health_map=HealthMap(healthy=60, medium_stress=25, high_stress=15),
    summary=(
        "Mock Data: The field appears mostly healthy, with some patches of stress "
        "likely due to uneven water distribution."
    ),
)

FALLBACK_DISEASE_DETECTION = DiseaseDetection(
    disease_name="Mock Data: Tomato Late Blight",
    confidence=85,
    treatment_steps=[
        "Remove and destroy infected leaves.",
        "Apply copper-based fungicide.",
        "Ensure good air circulation.",
    ],
)

FALLBACK_CHAT_REPLY = ChatReply(
    response_text="I'm sorry, I couldn't process that request right now. Please try again.",
    language_code="en-US",
)


_SOIL_PROMPT = """You are an expert agricultural AI. Analyze the following soil dataset and:
1. Predict the most likely crop diseases and risks (with probability and explanation).
2. Give a clear, actionable summary for the farmer.
3. Predict yield (tons/acre) and profit (USD).
4. Use only the data provided. Be accurate and practical.
Dataset: {dataset}
Respond in this JSON format:
{{"yield": number, "profit": number,
  "diseases": [{{"name": string, "probability": number, "explanation": string}}],
  "risks": [{{"name": string, "probability": number, "explanation": string}}],
  "summary": string}}"""

_LAND_PROMPT = """Analyze this agricultural land image.
1. Determine if it is a drone/hyperspectral image or a normal photo.
2. If drone/hyperspectral, estimate NDVI/NDRE values.
3. If a normal photo, analyze plant health based on color, texture, and vegetation cover.
4. Create a health map estimation as percentages (healthy, mediumStress, highStress).
5. Provide a brief summary.
Respond as JSON with keys isDroneImage, ndvi, ndre, healthMap, summary."""

_DISEASE_PROMPT = """Analyze this plant image to detect disease. Identify the disease, provide a
confidence percentage (0 to 100), and list brief treatment steps.
Respond as JSON with keys diseaseName, confidence, treatmentSteps."""

_CHAT_CONTEXT = (
    "You are an AI farm advisor with decades of experience. "
    "Be encouraging and provide practical, profit-focused advice."
)

_CHAT_INSTRUCTION = (
    "First, detect the language of the user's question. Then, provide a direct and helpful "
    "answer in that same language. Finally, provide the BCP-47 language code for your "
    'response. Respond as JSON: {"response": string, "languageCode": string}.'
)


class AdvisorBackend(Protocol):
    def generate_json(
        self, contents: Sequence[Any], system_instruction: Optional[str] = None
    ) -> Any: ...


class GeminiBackend:
    """Calls Gemini with a JSON response MIME type and decodes the reply."""

    def __init__(self, api_key: Optional[str], model_name: str) -> None:
        self.model_name = model_name
        self._api_key = api_key
        if api_key:
            genai.configure(api_key=api_key)

    def generate_json(
        self, contents: Sequence[Any], system_instruction: Optional[str] = None
    ) -> Any:
        if not self._api_key:
            raise RuntimeError("Gemini API key is not configured.")
        model = genai.GenerativeModel(
            self.model_name,
            system_instruction=system_instruction,
            generation_config={"response_mime_type": "application/json"},
        )
        response = model.generate_content(list(contents))
        return json.loads(response.text)


class Advisor:
    def __init__(self, backend: AdvisorBackend) -> None:
        self.backend = backend

    def analyze_soil(self, records: Sequence[SoilRecord]) -> AdvisorResult[SoilAnalysis]:
        if not records:
            return Failure("No soil data to analyze.")
        sample = [asdict(record) for record in records[:SOIL_SAMPLE_SIZE]]
        prompt = _SOIL_PROMPT.format(dataset=json.dumps(sample))
        return self._call("soil analysis", SoilAnalysis, [prompt])

    def analyze_land_image(
        self, image: bytes, mime_type: str
    ) -> AdvisorResult[LandImageAnalysis]:
        if not image:
            return Failure("Image is empty.")
        contents = [{"mime_type": mime_type, "data": image}, _LAND_PROMPT]
        return self._call("land image analysis", LandImageAnalysis, contents)

    def detect_plant_disease(
        self, image: bytes, mime_type: str
    ) -> AdvisorResult[DiseaseDetection]:
        if not image:
            return Failure("Image is empty.")
        contents = [{"mime_type": mime_type, "data": image}, _DISEASE_PROMPT]
        return self._call("plant disease detection", DiseaseDetection, contents)

    def chat(
        self,
        history: Sequence[ChatTurn],
        message: str,
        records: Sequence[SoilRecord] = (),
    ) -> AdvisorResult[ChatReply]:
        context = _CHAT_CONTEXT
        if records:
            recent = [asdict(record) for record in records[-CHAT_CONTEXT_SIZE:]]
            context += (
                f" The user's most recent farm soil data is: {json.dumps(recent)}. "
                "Use this data to provide specific, profit-focused advice."
            )
        contents = [
            {"role": turn.role, "parts": [{"text": turn.text}]} for turn in history
        ]
        contents.append({"role": "user", "parts": [{"text": message}]})
        return self._call(
            "chat", ChatReply, contents, system_instruction=f"{context} {_CHAT_INSTRUCTION}"
        )

    def _call(
        self,
        operation: str,
        model: type[ModelT],
        contents: Sequence[Any],
        system_instruction: Optional[str] = None,
    ) -> AdvisorResult[ModelT]:
        try:
            raw = self.backend.generate_json(contents, system_instruction=system_instruction)
            return Success(model.model_validate(raw))
        except ValidationError as exc:
            reason = f"{operation} returned an unexpected shape ({exc.error_count()} errors)"
        except Exception as exc:  # noqa: BLE001 - the service is an opaque collaborator
            reason = f"{operation} failed: {exc}"
        logger.warning("Advisor call failed", extra={"reason": reason})
        return Failure(reason)


def resolve(result: AdvisorResult[T], fallback: T) -> Tuple[T, bool, Optional[str]]:
    """Unpack ``result`` as ``(payload, is_fallback, failure_reason)``."""
    if isinstance(result, Success):
        return result.payload, False, None
    if isinstance(result, Failure):
        return fallback, True, result.reason
    raise TypeError(f"Unexpected advisor result {result!r}")


def build_default_advisor(api_key: Optional[str], model_name: str) -> Advisor:
    return Advisor(GeminiBackend(api_key=api_key, model_name=model_name))
