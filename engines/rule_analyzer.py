"""Deterministic threshold heuristics over normalised interaction features."""

from __future__ import annotations

import logging
from typing import List, Optional

from engines.needs_types import (
    ATTENTION,
    AUDITORY_PREFERENCE,
    COGNITIVE_LOAD,
    KINESTHETIC_PREFERENCE,
    LANGUAGE_SUPPORT,
    LOW_ENGAGEMENT,
    MATH_PROCESSING,
    NEEDS_MORE_SCAFFOLDING,
    READING_PROCESSING,
    SOURCE_RULE,
    VISUAL_PREFERENCE,
    NeedsSignal,
    NormalizedFeatureVector,
    clamp,
)

logger = logging.getLogger(__name__)


def _deficit(value: float, threshold: float) -> float:
    """Relative shortfall of ``value`` below ``threshold`` in ``[0, 1]``."""

    if threshold <= 0:
        return 0.0
    return clamp((threshold - value) / threshold)


def _excess(value: float, threshold: float, span: float) -> float:
    """Relative overshoot of ``value`` above ``threshold`` scaled by ``span``."""

    return clamp((value - threshold) / span)


class RuleBasedNeedsAnalyzer:
    def __init__(self):
        self.reading_speed_threshold = 80.0  # words per minute
        self.very_slow_reading_speed = 60.0
        self.reading_accuracy_threshold = 0.85
        self.letter_confusion_threshold = 3
        self.letter_confusion_span = 6.0
        self.error_rate_span = 0.1

        self.attention_span_threshold = 10.0  # minutes
        self.attention_reference = 15.0
        self.variance_threshold = 5.0
        self.outlier_span = 5.0

        self.slow_response_ms = 5000.0
        self.slow_response_span_ms = 10000.0
        self.outlier_threshold = 3

        self.math_accuracy_threshold = 0.7
        self.math_speed_threshold = 0.5
        self.math_error_span = 15.0

        self.help_request_threshold = 3
        self.help_request_span = 7.0
        self.task_completion_threshold = 0.7
        self.engagement_completion_threshold = 0.6

        self.comprehension_threshold = 0.6
        self.sensory_dominance_threshold = 0.5

    # ------------------------------------------------------------------
    def analyze(self, vector: NormalizedFeatureVector) -> List[NeedsSignal]:
        """Return one ``rule`` signal per need category whose thresholds are exceeded."""

        detectors = (
            self._reading_processing,
            self._attention,
            self._cognitive_load,
            self._math_processing,
            self._scaffolding,
            self._low_engagement,
            self._language_support,
        )
        signals = [signal for signal in (detect(vector) for detect in detectors) if signal]
        signals.extend(self._sensory_preferences(vector))
        logger.debug("Rule analysis produced %d signals", len(signals))
        return signals

    # ------------------------------------------------------------------
    @staticmethod
    def _confidence(score: float, indicator_count: int) -> float:
        # Stronger exceedance and more corroborating indicators raise confidence.
        return clamp(0.4 + 0.4 * score + 0.05 * indicator_count)

    def _signal(self, category: str, score: float, indicators: List[str]) -> Optional[NeedsSignal]:
        score = clamp(score)
        if score <= 0.0:
            return None
        return NeedsSignal(
            scores={category: score},
            confidence=self._confidence(score, len(indicators)),
            source=SOURCE_RULE,
            indicators=tuple(indicators),
        )

    def _reading_processing(self, v: NormalizedFeatureVector) -> Optional[NeedsSignal]:
        slow = v.reading_speed < self.reading_speed_threshold
        inaccurate = v.reading_accuracy < self.reading_accuracy_threshold
        if not (slow or inaccurate):
            return None

        confusions = v.reading_errors.reversals + v.reading_errors.transpositions
        indicators = []
        if v.reading_errors.reversals >= self.letter_confusion_threshold:
            indicators.append("frequent letter reversals")
        if v.reading_errors.transpositions >= self.letter_confusion_threshold:
            indicators.append("letter transpositions")
        if v.reading_speed < self.very_slow_reading_speed:
            indicators.append("very slow reading speed")
        if not indicators:
            return None

        confusion = clamp(confusions / self.letter_confusion_span)
        speed = _deficit(v.reading_speed, self.reading_speed_threshold)
        errors = clamp(v.error_rate / self.error_rate_span)
        score = 0.45 * confusion + 0.35 * speed + 0.2 * errors
        return self._signal(READING_PROCESSING, score, indicators)

    def _attention(self, v: NormalizedFeatureVector) -> Optional[NeedsSignal]:
        short_span = v.attention_span < self.attention_span_threshold
        erratic = v.response_time.variance > self.variance_threshold
        if not (short_span or erratic):
            return None

        indicators = []
        if v.attention_span < self.attention_span_threshold / 2:
            indicators.append("very limited attention span")
        elif short_span:
            indicators.append("short attention span")
        if erratic:
            indicators.append("highly variable response times")
        if v.help_requests > 10:
            indicators.append("many help requests")

        score = (
            0.5 * _deficit(v.attention_span, self.attention_reference)
            + 0.3 * _excess(v.response_time.variance, self.variance_threshold, 10.0)
            + 0.2 * clamp(v.response_time.outliers / self.outlier_span)
        )
        return self._signal(ATTENTION, score, indicators)

    def _cognitive_load(self, v: NormalizedFeatureVector) -> Optional[NeedsSignal]:
        slow = v.response_time.mean > self.slow_response_ms
        outliers = v.response_time.outliers > self.outlier_threshold
        if not (slow or outliers):
            return None

        indicators = []
        if slow:
            indicators.append("slow average response time")
        if outliers:
            indicators.append("frequent response-time outliers")
        if v.breaks_taken is not None and v.session_duration and v.breaks_taken > v.session_duration / 10:
            indicators.append("frequent breaks")

        score = 0.6 * _excess(
            v.response_time.mean, self.slow_response_ms, self.slow_response_span_ms
        ) + 0.4 * clamp(v.response_time.outliers / (2 * self.outlier_threshold))
        return self._signal(COGNITIVE_LOAD, score, indicators)

    def _math_processing(self, v: NormalizedFeatureVector) -> Optional[NeedsSignal]:
        if not (
            v.math_accuracy < self.math_accuracy_threshold
            or v.math_speed < self.math_speed_threshold
        ):
            return None

        indicators = []
        if v.math_errors.calculation > 8:
            indicators.append("frequent calculation errors")
        if v.math_errors.conceptual > 5:
            indicators.append("difficulty with mathematical concepts")
        if v.math_speed < 0.3:
            indicators.append("very slow math speed")
        if not indicators:
            return None

        error_total = (
            v.math_errors.calculation + v.math_errors.procedural + v.math_errors.conceptual
        )
        score = (
            0.4 * _deficit(v.math_accuracy, self.math_accuracy_threshold)
            + 0.3 * clamp(error_total / self.math_error_span)
            + 0.3 * _deficit(v.math_speed, self.math_speed_threshold)
        )
        return self._signal(MATH_PROCESSING, score, indicators)

    def _scaffolding(self, v: NormalizedFeatureVector) -> Optional[NeedsSignal]:
        if not (
            v.help_requests > self.help_request_threshold
            and v.task_completion < self.task_completion_threshold
        ):
            return None
        indicators = ["repeated help requests", "incomplete tasks"]
        score = 0.5 * _excess(
            v.help_requests, self.help_request_threshold, self.help_request_span
        ) + 0.5 * _deficit(v.task_completion, self.task_completion_threshold)
        return self._signal(NEEDS_MORE_SCAFFOLDING, score, indicators)

    def _low_engagement(self, v: NormalizedFeatureVector) -> Optional[NeedsSignal]:
        if v.task_completion >= self.engagement_completion_threshold:
            return None
        indicators = ["low task completion"]
        rarely_asks = v.help_requests <= 1
        if rarely_asks:
            indicators.append("rarely asks for help")
        score = 0.7 * _deficit(v.task_completion, self.engagement_completion_threshold) + (
            0.3 if rarely_asks else 0.0
        )
        return self._signal(LOW_ENGAGEMENT, score, indicators)

    def _language_support(self, v: NormalizedFeatureVector) -> Optional[NeedsSignal]:
        if v.reading_comprehension >= self.comprehension_threshold:
            return None
        return self._signal(
            LANGUAGE_SUPPORT,
            _deficit(v.reading_comprehension, self.comprehension_threshold),
            ["limited reading comprehension"],
        )

    def _sensory_preferences(self, v: NormalizedFeatureVector) -> List[NeedsSignal]:
        signals = []
        for category, share, label in (
            (AUDITORY_PREFERENCE, v.audio_preference, "auditory"),
            (VISUAL_PREFERENCE, v.visual_preference, "visual"),
            (KINESTHETIC_PREFERENCE, v.kinesthetic_preference, "kinesthetic"),
        ):
            if share > self.sensory_dominance_threshold:
                signal = self._signal(category, share, [f"strong preference for {label} content"])
                if signal:
                    signals.append(signal)
        return signals


_DEFAULT_ANALYZER = RuleBasedNeedsAnalyzer()


def analyze_rules(vector: NormalizedFeatureVector) -> List[NeedsSignal]:
    return _DEFAULT_ANALYZER.analyze(vector)
