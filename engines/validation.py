"""Validation and normalisation of raw interaction telemetry."""

from __future__ import annotations

import math
from typing import Any, Dict, List, Mapping, Optional

from engines.needs_types import (
    DEVICE_TYPES,
    MathErrors,
    NormalizedFeatureVector,
    ReadingErrors,
    ResponseTimeStats,
)

DEFAULT_SENSORY_TOLERANCE = 0.1
REPETITION_HELP_THRESHOLD = 3


class ValidationError(ValueError):
    """Raised when an interaction sample cannot be accepted.

    ``field`` names the offending key using the caller's spelling.
    """

    def __init__(self, field: str, message: str):
        super().__init__(f"{field}: {message}")
        self.field = field
        self.message = message


REQUIRED_NUMERIC_FIELDS = (
    "readingSpeed",
    "readingAccuracy",
    "readingComprehension",
    "mathAccuracy",
    "mathSpeed",
    "attentionSpan",
    "taskCompletion",
    "helpRequests",
    "audioPreference",
    "visualPreference",
    "kinestheticPreference",
)

READING_ERROR_FIELDS = ("substitutions", "omissions", "insertions", "reversals", "transpositions")
MATH_ERROR_FIELDS = ("calculation", "procedural", "conceptual", "visual")
RESPONSE_TIME_FIELDS = ("mean", "variance", "outliers")
REQUIRED_TAG_FIELDS = ("language", "culturalBackground", "socioeconomicContext")
OPTIONAL_NUMERIC_FIELDS = (
    "previousEducation",
    "sessionDuration",
    "breaksTaken",
    "internetSpeed",
    "offlineUsage",
)


def _is_number(value: Any) -> bool:
    if isinstance(value, bool) or not isinstance(value, (int, float)):
        return False
    try:
        return math.isfinite(value)
    except OverflowError:
        # ints beyond float range
        return False


def _non_negative(value: Any, field: str) -> float:
    if value is None:
        raise ValidationError(field, "is required")
    if not _is_number(value):
        raise ValidationError(field, f"must be a finite number, got {type(value).__name__}")
    if value < 0:
        raise ValidationError(field, "must not be negative")
    return float(value)


def _sub_object(sample: Mapping[str, Any], name: str, keys: tuple[str, ...]) -> Dict[str, float]:
    block = sample.get(name)
    if not isinstance(block, Mapping):
        raise ValidationError(name, "must be an object")
    return {key: _non_negative(block.get(key), f"{name}.{key}") for key in keys}


def _renormalise_sensory(
    audio: float, visual: float, kinesthetic: float, tolerance: float, warnings: List[str]
) -> tuple[float, float, float]:
    total = audio + visual + kinesthetic
    if total <= 0:
        raise ValidationError("sensoryPreferences", "audio/visual/kinesthetic preferences sum to zero")
    if abs(total - 1.0) > tolerance:
        warnings.append(
            f"sensory preferences summed to {total:.3f}; rescaled proportionally"
        )
    audio, visual = audio / total, visual / total
    # Derive the last share so the triple sums to one without accumulated drift.
    kinesthetic = max(0.0, 1.0 - audio - visual)
    return audio, visual, kinesthetic


def validate_interaction(
    sample: Mapping[str, Any],
    *,
    sensory_tolerance: float = DEFAULT_SENSORY_TOLERANCE,
) -> NormalizedFeatureVector:
    """Check a raw telemetry sample and return its normalised feature vector.

    Raises ``ValidationError`` for the first malformed field found. The
    function has no side effects; warnings (such as a rescaled sensory triple)
    are returned on the vector.
    """

    if not isinstance(sample, Mapping):
        raise ValidationError("interactionData", "must be an object")

    numeric = {name: _non_negative(sample.get(name), name) for name in REQUIRED_NUMERIC_FIELDS}
    reading = _sub_object(sample, "readingErrors", READING_ERROR_FIELDS)
    maths = _sub_object(sample, "mathErrors", MATH_ERROR_FIELDS)
    response = _sub_object(sample, "responseTime", RESPONSE_TIME_FIELDS)

    tags: Dict[str, str] = {}
    for name in REQUIRED_TAG_FIELDS:
        value = sample.get(name)
        if not isinstance(value, str) or not value.strip():
            raise ValidationError(name, "must be a non-empty string")
        tags[name] = value.strip()

    optional: Dict[str, Optional[float]] = {}
    for name in OPTIONAL_NUMERIC_FIELDS:
        value = sample.get(name)
        optional[name] = None if value is None else _non_negative(value, name)
    if optional["offlineUsage"] is not None and optional["offlineUsage"] > 1:
        raise ValidationError("offlineUsage", "must be between 0 and 1")

    device_type = sample.get("deviceType")
    if device_type is not None and device_type not in DEVICE_TYPES:
        raise ValidationError("deviceType", f"must be one of: {', '.join(DEVICE_TYPES)}")

    time_of_day = sample.get("timeOfDay")
    if time_of_day is not None and not isinstance(time_of_day, str):
        raise ValidationError("timeOfDay", "must be a string")

    warnings: List[str] = []
    audio, visual, kinesthetic = _renormalise_sensory(
        numeric["audioPreference"],
        numeric["visualPreference"],
        numeric["kinestheticPreference"],
        sensory_tolerance,
        warnings,
    )

    return NormalizedFeatureVector(
        reading_speed=numeric["readingSpeed"],
        reading_accuracy=numeric["readingAccuracy"],
        reading_comprehension=numeric["readingComprehension"],
        math_accuracy=numeric["mathAccuracy"],
        math_speed=numeric["mathSpeed"],
        attention_span=numeric["attentionSpan"],
        task_completion=numeric["taskCompletion"],
        help_requests=numeric["helpRequests"],
        audio_preference=audio,
        visual_preference=visual,
        kinesthetic_preference=kinesthetic,
        reading_errors=ReadingErrors(**reading),
        math_errors=MathErrors(**maths),
        response_time=ResponseTimeStats(**response),
        language=tags["language"],
        cultural_background=tags["culturalBackground"],
        socioeconomic_context=tags["socioeconomicContext"],
        previous_education=optional["previousEducation"],
        session_duration=optional["sessionDuration"],
        breaks_taken=optional["breaksTaken"],
        device_type=device_type,
        internet_speed=optional["internetSpeed"],
        offline_usage=optional["offlineUsage"],
        time_of_day=time_of_day,
        error_rate=(reading["substitutions"] + reading["omissions"]) / 100,
        repetition_needed=numeric["helpRequests"] > REPETITION_HELP_THRESHOLD,
        warnings=tuple(warnings),
    )
