"""Value types shared by the needs-detection and difficulty engines."""

from __future__ import annotations

from dataclasses import dataclass, field, replace
from typing import Any, Dict, Mapping, Optional, Tuple

# Need-category labels.
READING_PROCESSING = "reading-processing"
ATTENTION = "attention"
COGNITIVE_LOAD = "cognitive-load"
MATH_PROCESSING = "math-processing"
NEEDS_MORE_SCAFFOLDING = "needs-more-scaffolding"
LOW_ENGAGEMENT = "low-engagement"
LANGUAGE_SUPPORT = "language-support"
AUDITORY_PREFERENCE = "auditory-preference"
VISUAL_PREFERENCE = "visual-preference"
KINESTHETIC_PREFERENCE = "kinesthetic-preference"

NEED_CATEGORIES: Tuple[str, ...] = (
    READING_PROCESSING,
    ATTENTION,
    COGNITIVE_LOAD,
    MATH_PROCESSING,
    NEEDS_MORE_SCAFFOLDING,
    LOW_ENGAGEMENT,
    LANGUAGE_SUPPORT,
    AUDITORY_PREFERENCE,
    VISUAL_PREFERENCE,
    KINESTHETIC_PREFERENCE,
)

SENSORY_CATEGORIES = frozenset(
    {AUDITORY_PREFERENCE, VISUAL_PREFERENCE, KINESTHETIC_PREFERENCE}
)

SOURCE_RULE = "rule"
SOURCE_MODEL = "model"
SOURCE_CULTURAL = "cultural"
SIGNAL_SOURCES = (SOURCE_RULE, SOURCE_MODEL, SOURCE_CULTURAL)

DEVICE_TYPES = ("mobile", "tablet", "desktop")


def clamp(value: float, low: float = 0.0, high: float = 1.0) -> float:
    return max(low, min(high, value))


def severity_for(score: float) -> str:
    """Map a need score in ``[0, 1]`` onto ``mild``/``moderate``/``severe``."""

    if score < 0.4:
        return "mild"
    if score < 0.7:
        return "moderate"
    return "severe"


@dataclass(frozen=True)
class ReadingErrors:
    substitutions: float
    omissions: float
    insertions: float
    reversals: float
    transpositions: float


@dataclass(frozen=True)
class MathErrors:
    calculation: float
    procedural: float
    conceptual: float
    visual: float


@dataclass(frozen=True)
class ResponseTimeStats:
    mean: float  # milliseconds
    variance: float
    outliers: float


@dataclass(frozen=True)
class NormalizedFeatureVector:
    """Validated interaction sample with derived features.

    ``audio_preference``, ``visual_preference`` and ``kinesthetic_preference``
    always sum to one.
    """

    reading_speed: float  # words per minute
    reading_accuracy: float
    reading_comprehension: float
    math_accuracy: float
    math_speed: float
    attention_span: float  # minutes
    task_completion: float
    help_requests: float
    audio_preference: float
    visual_preference: float
    kinesthetic_preference: float
    reading_errors: ReadingErrors
    math_errors: MathErrors
    response_time: ResponseTimeStats
    language: str
    cultural_background: str
    socioeconomic_context: str
    previous_education: Optional[float] = None
    session_duration: Optional[float] = None
    breaks_taken: Optional[float] = None
    device_type: Optional[str] = None
    internet_speed: Optional[float] = None
    offline_usage: Optional[float] = None
    time_of_day: Optional[str] = None
    error_rate: float = 0.0
    repetition_needed: bool = False
    warnings: Tuple[str, ...] = ()

    def sensory_total(self) -> float:
        return self.audio_preference + self.visual_preference + self.kinesthetic_preference

    def with_updates(self, **changes: Any) -> "NormalizedFeatureVector":
        return replace(self, **changes)

    def to_dict(self) -> Dict[str, Any]:
        return {
            "reading_speed": self.reading_speed,
            "reading_accuracy": self.reading_accuracy,
            "reading_comprehension": self.reading_comprehension,
            "math_accuracy": self.math_accuracy,
            "math_speed": self.math_speed,
            "attention_span": self.attention_span,
            "task_completion": self.task_completion,
            "help_requests": self.help_requests,
            "audio_preference": self.audio_preference,
            "visual_preference": self.visual_preference,
            "kinesthetic_preference": self.kinesthetic_preference,
            "reading_errors": dict(vars(self.reading_errors)),
            "math_errors": dict(vars(self.math_errors)),
            "response_time": dict(vars(self.response_time)),
            "language": self.language,
            "cultural_background": self.cultural_background,
            "socioeconomic_context": self.socioeconomic_context,
            "previous_education": self.previous_education,
            "session_duration": self.session_duration,
            "breaks_taken": self.breaks_taken,
            "device_type": self.device_type,
            "internet_speed": self.internet_speed,
            "offline_usage": self.offline_usage,
            "time_of_day": self.time_of_day,
            "error_rate": self.error_rate,
            "repetition_needed": self.repetition_needed,
            "warnings": list(self.warnings),
        }

    @classmethod
    def from_dict(cls, data: Mapping[str, Any]) -> "NormalizedFeatureVector":
        payload = dict(data)
        payload["reading_errors"] = ReadingErrors(**payload["reading_errors"])
        payload["math_errors"] = MathErrors(**payload["math_errors"])
        payload["response_time"] = ResponseTimeStats(**payload["response_time"])
        payload["warnings"] = tuple(payload.get("warnings") or ())
        return cls(**payload)


@dataclass(frozen=True)
class LearnerContext:
    """Learner facts the telemetry does not carry.

    The defaults stand in for a typical primary-school learner and are used
    whenever the caller has nothing better: ``age=10``, ``grade=5``,
    ``motor_coordination=0.7`` and ``social_interaction=0.6``.
    """

    age: int = 10
    grade: int = 5
    region: str = "unspecified"
    education_level: str = "basic"
    motor_coordination: float = 0.7
    social_interaction: float = 0.6


@dataclass(frozen=True)
class NeedsSignal:
    """One analyzer's verdict over one or more need categories."""

    scores: Mapping[str, float]
    confidence: float
    source: str
    origin: Optional[str] = None  # for cultural signals: the source that was re-weighted
    indicators: Tuple[str, ...] = ()

    def __post_init__(self) -> None:
        if self.source not in SIGNAL_SOURCES:
            raise ValueError(f"Unknown signal source: {self.source}")
        object.__setattr__(
            self, "scores", {label: clamp(float(score)) for label, score in self.scores.items()}
        )
        object.__setattr__(self, "confidence", clamp(float(self.confidence)))

    def to_dict(self) -> Dict[str, Any]:
        return {
            "scores": dict(self.scores),
            "confidence": self.confidence,
            "source": self.source,
            "origin": self.origin,
            "indicators": list(self.indicators),
        }

    @classmethod
    def from_dict(cls, data: Mapping[str, Any]) -> "NeedsSignal":
        return cls(
            scores=dict(data.get("scores") or {}),
            confidence=float(data.get("confidence", 0.0)),
            source=str(data["source"]),
            origin=data.get("origin"),
            indicators=tuple(data.get("indicators") or ()),
        )


@dataclass(frozen=True)
class FusedNeedsProfile:
    scores: Mapping[str, float]
    confidence: float
    fallback_used: bool
    signals: Tuple[NeedsSignal, ...] = ()
    winning_sources: Mapping[str, str] = field(default_factory=dict)
    degraded_reason: Optional[str] = None

    @property
    def model_source(self) -> str:
        return "fallback" if self.fallback_used else "hybrid"

    def score(self, category: str) -> float:
        return float(self.scores.get(category, 0.0))

    def severities(self) -> Dict[str, str]:
        return {label: severity_for(score) for label, score in self.scores.items()}

    def ranked(self) -> list[tuple[str, float]]:
        """Categories ordered by descending need score, label as tie-break."""

        return sorted(self.scores.items(), key=lambda item: (-item[1], item[0]))

    def to_dict(self) -> Dict[str, Any]:
        return {
            "scores": dict(self.scores),
            "confidence": self.confidence,
            "fallback_used": self.fallback_used,
            "model_source": self.model_source,
            "signals": [signal.to_dict() for signal in self.signals],
            "winning_sources": dict(self.winning_sources),
            "degraded_reason": self.degraded_reason,
        }

    @classmethod
    def from_dict(cls, data: Mapping[str, Any]) -> "FusedNeedsProfile":
        return cls(
            scores={k: float(v) for k, v in (data.get("scores") or {}).items()},
            confidence=float(data.get("confidence", 0.0)),
            fallback_used=bool(data.get("fallback_used", False)),
            signals=tuple(NeedsSignal.from_dict(s) for s in data.get("signals") or ()),
            winning_sources=dict(data.get("winning_sources") or {}),
            degraded_reason=data.get("degraded_reason"),
        )
