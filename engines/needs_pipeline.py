"""End-to-end needs detection: validate, analyse, adjust and fuse."""

from __future__ import annotations

import logging
from concurrent.futures import ThreadPoolExecutor
from concurrent.futures import TimeoutError as FutureTimeoutError
from dataclasses import dataclass, field
from typing import Any, Dict, List, Mapping, Optional, Sequence

from cultural_context import CULTURAL_CONTEXTS, CulturalContextRegistry
from engines.cultural_adjuster import CulturalContextAdjuster
from engines.fusion import fuse
from engines.history import blend_with_history
from engines.insights import next_assessment_interval
from engines.learner_profile import LearnerProfile, describe_learner
from engines.model_analyzer import (
    HttpScoringClient,
    ModelDegraded,
    ModelOk,
    ModelOutcome,
    ScoringClient,
    run_model_analysis,
)
from engines.needs_types import FusedNeedsProfile, LearnerContext, NormalizedFeatureVector
from engines.rule_analyzer import RuleBasedNeedsAnalyzer
from engines.validation import validate_interaction
from env_validation import EngineSettings

logger = logging.getLogger(__name__)

# Extra seconds allowed for the worker to hand back a result after the HTTP timeout.
_JOIN_GRACE = 1.0


@dataclass
class NeedsDetectionResult:
    """``vector`` is what was analysed; ``raw_vector`` is the sample before history blending."""

    vector: NormalizedFeatureVector
    profile: FusedNeedsProfile
    learner: LearnerProfile
    cultural_adaptations: Dict[str, List[str]] = field(default_factory=dict)
    next_assessment_days: int = 30
    raw_vector: Optional[NormalizedFeatureVector] = None

    def __post_init__(self) -> None:
        if self.raw_vector is None:
            self.raw_vector = self.vector

    @property
    def model_source(self) -> str:
        return self.profile.model_source


class NeedsDetectionPipeline:
    def __init__(
        self,
        settings: Optional[EngineSettings] = None,
        client: Optional[ScoringClient] = None,
        registry: Optional[CulturalContextRegistry] = None,
        rule_analyzer: Optional[RuleBasedNeedsAnalyzer] = None,
    ):
        self.settings = settings or EngineSettings()
        if client is None and self.settings.model_enabled:
            client = HttpScoringClient(self.settings.model_url or "", timeout=self.settings.model_timeout)
        self.client = client
        self.registry = registry or CULTURAL_CONTEXTS
        self.rule_analyzer = rule_analyzer or RuleBasedNeedsAnalyzer()
        self.adjuster = CulturalContextAdjuster(self.registry)
        self._executor = ThreadPoolExecutor(max_workers=4, thread_name_prefix="needs-model")

    def close(self) -> None:
        self._executor.shutdown(wait=False)

    # ------------------------------------------------------------------
    def detect(
        self,
        sample: Mapping[str, Any],
        context: Optional[LearnerContext] = None,
        history: Sequence[NormalizedFeatureVector] = (),
    ) -> NeedsDetectionResult:
        """Validate ``sample`` and build the fused needs profile.

        Only ``ValidationError`` escapes; model failures degrade to rule-only
        fusion.
        """

        raw = validate_interaction(sample, sensory_tolerance=self.settings.sensory_tolerance)
        for warning in raw.warnings:
            logger.warning("Interaction sample: %s", warning)
        vector = raw
        if history:
            vector = blend_with_history(raw, history[: self.settings.history_limit])
        result = self.analyze(vector, context)
        result.raw_vector = raw
        return result

    def analyze(
        self, vector: NormalizedFeatureVector, context: Optional[LearnerContext] = None
    ) -> NeedsDetectionResult:
        context = context or LearnerContext()
        future = None
        if self.client is not None:
            future = self._executor.submit(run_model_analysis, vector, self.client, context)

        rule_signals = self.rule_analyzer.analyze(vector)
        cultural_signals = self.adjuster.adjust(rule_signals, vector.cultural_background)

        outcome = self._join(future)
        if isinstance(outcome, ModelOk):
            cultural_signals += self.adjuster.adjust(outcome.signals, vector.cultural_background)

        profile = fuse(rule_signals, outcome, cultural_signals)
        logger.debug(
            "Fused %d categories for %s (source=%s)",
            len(profile.scores),
            vector.cultural_background,
            profile.model_source,
        )
        return NeedsDetectionResult(
            vector=vector,
            profile=profile,
            learner=describe_learner(vector, profile),
            cultural_adaptations=self.registry.lookup_or_default(vector.cultural_background).adaptations(),
            next_assessment_days=next_assessment_interval(profile).days,
        )

    def _join(self, future) -> ModelOutcome:
        if future is None:
            return ModelDegraded("needs model disabled")
        try:
            return future.result(timeout=self.settings.model_timeout + _JOIN_GRACE)
        except FutureTimeoutError:
            future.cancel()
            return ModelDegraded(f"needs model did not answer within {self.settings.model_timeout}s")
        except Exception as exc:
            logger.error("Needs model client failed unexpectedly: %s", exc, exc_info=True)
            return ModelDegraded(f"needs model client error: {exc}")
