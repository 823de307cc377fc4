"""Probabilistic needs analysis delegated to an external scoring service."""

from __future__ import annotations

import logging
import os
from dataclasses import asdict, dataclass
from typing import Any, Dict, List, Mapping, Optional, Protocol, Union

import requests
from pydantic import BaseModel, Field, ValidationError, field_validator

from engines.needs_types import (
    SOURCE_MODEL,
    LearnerContext,
    NeedsSignal,
    NormalizedFeatureVector,
)

logger = logging.getLogger(__name__)

DEFAULT_MODEL_TIMEOUT = 5.0


class ExternalServiceError(RuntimeError):
    """Raised when the scoring collaborator is unreachable, slow or malformed."""


class ScoringResponse(BaseModel):
    category_probabilities: Dict[str, float] = Field(alias="categoryProbabilities")
    confidence: float = Field(ge=0.0, le=1.0)

    model_config = {
        "populate_by_name": True,
    }

    @field_validator("category_probabilities")
    @classmethod
    def _probabilities_in_range(cls, value: Dict[str, float]) -> Dict[str, float]:
        for label, probability in value.items():
            if not 0.0 <= probability <= 1.0:
                raise ValueError(f"probability for {label} outside [0, 1]")
        return value


class ScoringClient(Protocol):
    def score(self, features: Mapping[str, Any], cultural_context: Mapping[str, Any]) -> ScoringResponse:
        ...


class HttpScoringClient:
    """POST the feature map to ``url`` and parse the category probabilities."""

    def __init__(self, url: Optional[str] = None, timeout: float = DEFAULT_MODEL_TIMEOUT):
        self.url = url if url is not None else os.getenv("NEEDS_MODEL_URL", "")
        self.timeout = timeout

    def score(self, features: Mapping[str, Any], cultural_context: Mapping[str, Any]) -> ScoringResponse:
        if not self.url:
            raise ExternalServiceError("needs model endpoint is not configured")

        payload = {"featureVector": dict(features), "culturalContext": dict(cultural_context)}
        try:
            response = requests.post(self.url, json=payload, timeout=self.timeout)
            response.raise_for_status()
        except requests.Timeout as exc:
            raise ExternalServiceError(f"needs model timed out after {self.timeout}s") from exc
        except requests.HTTPError as exc:
            status = exc.response.status_code if exc.response is not None else "unknown"
            raise ExternalServiceError(f"needs model returned HTTP {status}") from exc
        except requests.RequestException as exc:
            raise ExternalServiceError(f"needs model unreachable: {exc}") from exc

        try:
            body = response.json()
        except ValueError as exc:
            raise ExternalServiceError("needs model returned a non-JSON body") from exc

        try:
            return ScoringResponse.model_validate(body)
        except (ValidationError, ValueError, TypeError) as exc:
            raise ExternalServiceError(f"needs model returned malformed data: {exc}") from exc


@dataclass(frozen=True)
class ModelOk:
    signals: List[NeedsSignal]

    @property
    def confidence(self) -> float:
        return max((signal.confidence for signal in self.signals), default=0.0)


@dataclass(frozen=True)
class ModelDegraded:
    reason: str


ModelOutcome = Union[ModelOk, ModelDegraded]


def build_feature_map(
    vector: NormalizedFeatureVector, context: Optional[LearnerContext] = None
) -> Dict[str, float]:
    """Scale the vector into the ``[0, 1]`` features the scoring model expects."""

    context = context or LearnerContext()
    return {
        "reading_speed": min(vector.reading_speed / 200, 1.0),
        "error_rate": min(vector.error_rate, 1.0),
        "response_time": min(vector.response_time.mean / 10000, 1.0),
        "help_requests": min(vector.help_requests / 20, 1.0),
        "audio_preference": vector.audio_preference,
        "visual_preference": vector.visual_preference,
        "kinesthetic_preference": vector.kinesthetic_preference,
        "repetition_needed": 0.8 if vector.repetition_needed else 0.2,
        "attention_span": min(vector.attention_span / 60, 1.0),
        "task_completion": min(vector.task_completion, 1.0),
        "motor_coordination": context.motor_coordination,
        "social_interaction": context.social_interaction,
        "age": min(max((context.age - 5) / 13, 0.0), 1.0),
    }


def build_cultural_context(
    vector: NormalizedFeatureVector, context: Optional[LearnerContext] = None
) -> Dict[str, Any]:
    context = context or LearnerContext()
    payload = {
        "culture": vector.cultural_background,
        "language": vector.language,
        "socioeconomicLevel": vector.socioeconomic_context,
    }
    payload.update(asdict(context))
    return payload


def analyze_model(
    vector: NormalizedFeatureVector,
    client: ScoringClient,
    context: Optional[LearnerContext] = None,
) -> List[NeedsSignal]:
    """Score ``vector`` with the external collaborator.

    Raises ``ExternalServiceError`` on timeout, transport or format failures.
    """

    response = client.score(build_feature_map(vector, context), build_cultural_context(vector, context))
    return [
        NeedsSignal(
            scores=dict(response.category_probabilities),
            confidence=response.confidence,
            source=SOURCE_MODEL,
        )
    ]


def run_model_analysis(
    vector: NormalizedFeatureVector,
    client: Optional[ScoringClient],
    context: Optional[LearnerContext] = None,
) -> ModelOutcome:
    """Like ``analyze_model`` but folds failures into ``ModelDegraded``."""

    if client is None:
        return ModelDegraded("needs model disabled")
    try:
        return ModelOk(analyze_model(vector, client, context))
    except ExternalServiceError as exc:
        return ModelDegraded(str(exc))
