"""Blend a fresh feature vector with a learner's earlier samples."""

from __future__ import annotations

from typing import Sequence

from engines.needs_types import NormalizedFeatureVector

HISTORY_DECAY = 0.8

BLENDED_FIELDS = (
    "reading_speed",
    "reading_accuracy",
    "reading_comprehension",
    "math_accuracy",
    "math_speed",
    "attention_span",
    "task_completion",
    "help_requests",
    "audio_preference",
    "visual_preference",
    "kinesthetic_preference",
)


def blend_with_history(
    current: NormalizedFeatureVector,
    history: Sequence[NormalizedFeatureVector],
    *,
    decay: float = HISTORY_DECAY,
) -> NormalizedFeatureVector:
    """Return ``current`` with scalar features averaged against ``history``.

    ``history`` is ordered most recent first. The current sample has weight 1
    and the i-th prior sample ``decay ** (i + 1)``. Error counts, tags and the
    optional context always come from the current sample.
    """

    if not history:
        return current

    weights = [decay ** (index + 1) for index in range(len(history))]
    total_weight = 1.0 + sum(weights)

    blended = {}
    for name in BLENDED_FIELDS:
        weighted = getattr(current, name) + sum(
            getattr(past, name) * weight for past, weight in zip(history, weights)
        )
        blended[name] = weighted / total_weight

    # Both inputs sum to one, so only drift needs correcting.
    audio, visual = blended["audio_preference"], blended["visual_preference"]
    sensory_total = audio + visual + blended["kinesthetic_preference"]
    blended["audio_preference"] = audio / sensory_total
    blended["visual_preference"] = visual / sensory_total
    blended["kinesthetic_preference"] = max(
        0.0, 1.0 - blended["audio_preference"] - blended["visual_preference"]
    )
    blended["repetition_needed"] = blended["help_requests"] > 3
    return current.with_updates(**blended)
