"""Cultural re-weighting of needs signals."""

from __future__ import annotations

import logging
from typing import List, Optional, Sequence

from cultural_context import CULTURAL_CONTEXTS, CulturalContextRegistry, UnknownCultureError
from engines.needs_types import SOURCE_CULTURAL, NeedsSignal

logger = logging.getLogger(__name__)


class CulturalContextAdjuster:
    def __init__(self, registry: Optional[CulturalContextRegistry] = None):
        self.registry = registry or CULTURAL_CONTEXTS

    def adjust(self, signals: Sequence[NeedsSignal], cultural_tag: str) -> List[NeedsSignal]:
        """Return ``cultural`` copies of ``signals`` with per-category weights applied.

        Unknown tags get neutral weights. Cultural signals are never
        re-weighted twice.
        """

        try:
            profile = self.registry.lookup(cultural_tag)
        except UnknownCultureError as exc:
            logger.warning("%s; applying neutral cultural weights", exc)
            weights = {}
        else:
            weights = dict(profile.weights)

        adjusted = []
        for signal in signals:
            if signal.source == SOURCE_CULTURAL:
                continue
            adjusted.append(
                NeedsSignal(
                    scores={
                        label: score * weights.get(label, 1.0)
                        for label, score in signal.scores.items()
                    },
                    confidence=signal.confidence,
                    source=SOURCE_CULTURAL,
                    origin=signal.source,
                    indicators=signal.indicators,
                )
            )
        return adjusted


_DEFAULT_ADJUSTER = CulturalContextAdjuster()


def adjust_for_culture(signals: Sequence[NeedsSignal], cultural_tag: str) -> List[NeedsSignal]:
    return _DEFAULT_ADJUSTER.adjust(signals, cultural_tag)
