"""Merge rule, model and cultural signals into a single needs profile."""

from __future__ import annotations

import logging
from typing import Dict, List, Sequence, Tuple, Union

from engines.model_analyzer import ModelDegraded, ModelOk, ModelOutcome
from engines.needs_types import (
    SOURCE_MODEL,
    SOURCE_RULE,
    FusedNeedsProfile,
    NeedsSignal,
)

logger = logging.getLogger(__name__)

# Preference order when two sources report the same score.
_SOURCE_PRIORITY = {SOURCE_MODEL: 2, SOURCE_RULE: 1}


def _max_scores(signals: Sequence[NeedsSignal]) -> Dict[str, float]:
    scores: Dict[str, float] = {}
    for signal in signals:
        for label, score in signal.scores.items():
            scores[label] = max(scores.get(label, 0.0), score)
    return scores


def _coerce_model(model: Union[ModelOutcome, Sequence[NeedsSignal], None]) -> ModelOutcome:
    if model is None:
        return ModelDegraded("needs model result unavailable")
    if isinstance(model, (ModelOk, ModelDegraded)):
        return model
    return ModelOk(list(model))


def fuse(
    rule_signals: Sequence[NeedsSignal],
    model: Union[ModelOutcome, Sequence[NeedsSignal], None],
    cultural_signals: Sequence[NeedsSignal] = (),
) -> FusedNeedsProfile:
    """Combine the available signals into a ``FusedNeedsProfile``.

    Each category takes the maximum of its per-source scores; a cultural
    signal replaces the raw score of the source it re-weighted. Ties go to the
    model. A degraded model outcome never raises: the profile is built from
    rule and cultural signals with ``fallback_used`` set.
    """

    outcome = _coerce_model(model)
    rule_signals = list(rule_signals)
    model_signals: List[NeedsSignal] = list(outcome.signals) if isinstance(outcome, ModelOk) else []
    fallback_used = isinstance(outcome, ModelDegraded)
    if fallback_used:
        logger.warning("Needs model unavailable, using rule-only fusion: %s", outcome.reason)
        cultural_signals = [s for s in cultural_signals if s.origin != SOURCE_MODEL]

    per_source = {
        SOURCE_RULE: _max_scores(rule_signals),
        SOURCE_MODEL: _max_scores(model_signals),
    }
    for origin in (SOURCE_RULE, SOURCE_MODEL):
        reweighted = _max_scores([s for s in cultural_signals if s.origin == origin])
        per_source[origin].update(reweighted)

    scores: Dict[str, float] = {}
    winners: Dict[str, str] = {}
    for source in (SOURCE_RULE, SOURCE_MODEL):
        for label, score in per_source[source].items():
            current = scores.get(label)
            if current is None or score > current or (
                score == current and _SOURCE_PRIORITY[source] > _SOURCE_PRIORITY[winners[label]]
            ):
                scores[label] = score
                winners[label] = source

    rule_confidence = max((s.confidence for s in rule_signals), default=0.0)
    if fallback_used:
        confidence = rule_confidence
    else:
        model_confidence = max((s.confidence for s in model_signals), default=0.0)
        confidence = max(rule_confidence, model_confidence)

    retained: Tuple[NeedsSignal, ...] = tuple(rule_signals) + tuple(model_signals) + tuple(cultural_signals)
    return FusedNeedsProfile(
        scores=scores,
        confidence=confidence,
        fallback_used=fallback_used,
        signals=retained,
        winning_sources=winners,
        degraded_reason=outcome.reason if fallback_used else None,
    )
