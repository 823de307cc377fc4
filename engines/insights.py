"""Assessment summaries: mastery, strengths, weaknesses and next steps."""

from __future__ import annotations

from dataclasses import asdict, dataclass, field
from datetime import timedelta
from typing import Any, Dict, List, Optional

from engines.difficulty_controller import AssessmentState
from engines.needs_types import NEED_CATEGORIES, SENSORY_CATEGORIES, FusedNeedsProfile

WEAKNESS_THRESHOLD = 0.5
STRENGTH_THRESHOLD = 0.2
MAX_RECOMMENDED_CATEGORIES = 3
SLOW_RESPONSE_MS = 120_000
FAST_RESPONSE_MS = 60_000

CATEGORY_LABELS: Dict[str, str] = {
    "reading-processing": "reading processing",
    "attention": "sustained attention",
    "cognitive-load": "working-memory load",
    "math-processing": "number processing",
    "needs-more-scaffolding": "independent task work",
    "low-engagement": "engagement",
    "language-support": "language comprehension",
    "auditory-preference": "auditory learning",
    "visual-preference": "visual learning",
    "kinesthetic-preference": "hands-on learning",
}

RECOMMENDATION_TEMPLATES: Dict[str, str] = {
    "reading-processing": "Pair every text with audio and allow extra reading time ({label}, need {score:.0%})",
    "attention": "Keep activities under 10 minutes with planned breaks ({label}, need {score:.0%})",
    "cognitive-load": "Introduce one step at a time using worked examples ({label}, need {score:.0%})",
    "math-processing": "Practise with visual manipulatives before symbolic work ({label}, need {score:.0%})",
    "needs-more-scaffolding": "Provide guided hints and partial solutions ({label}, need {score:.0%})",
    "low-engagement": "Use culturally relevant, game-like tasks ({label}, need {score:.0%})",
    "language-support": "Offer bilingual glossaries and simplified instructions ({label}, need {score:.0%})",
}
DEFAULT_TEMPLATE = "Give targeted practice on {label} (need {score:.0%})"

NEXT_STEP_TEMPLATES: Dict[str, str] = {
    "reading-processing": "Complete an audio-supported reading lesson",
    "attention": "Try a short focused micro-lesson",
    "cognitive-load": "Review the last topic with a worked example",
    "math-processing": "Practise number sense with manipulatives",
    "needs-more-scaffolding": "Redo the unit with step-by-step guidance",
    "low-engagement": "Pick a lesson from a favourite theme",
    "language-support": "Study the key vocabulary of the unit",
}


@dataclass(frozen=True)
class AssessmentSummary:
    score_percentage: int
    correct_answers: int
    total_questions: int
    elapsed_ms: float
    mastery_level: str
    strengths: List[str] = field(default_factory=list)
    weaknesses: List[str] = field(default_factory=list)
    recommendations: List[str] = field(default_factory=list)
    next_steps: List[str] = field(default_factory=list)
    difficulty_progression: List[str] = field(default_factory=list)

    def to_dict(self) -> Dict[str, Any]:
        return asdict(self)


def mastery_level(score_percentage: float) -> str:
    if score_percentage < 60:
        return "beginner"
    if score_percentage < 75:
        return "intermediate"
    if score_percentage < 90:
        return "advanced"
    return "expert"


def next_assessment_interval(profile: FusedNeedsProfile) -> timedelta:
    """7 days when any need is severe, 14 when moderate, otherwise 30."""

    severities = set(profile.severities().values())
    if "severe" in severities:
        return timedelta(days=7)
    if "moderate" in severities:
        return timedelta(days=14)
    return timedelta(days=30)


def _label(category: str) -> str:
    return CATEGORY_LABELS.get(category, category.replace("-", " "))


def _weak_categories(profile: Optional[FusedNeedsProfile]) -> List[tuple[str, float]]:
    if profile is None:
        return []
    return [
        (category, score)
        for category, score in profile.ranked()
        if score >= WEAKNESS_THRESHOLD and category not in SENSORY_CATEGORIES
    ]


def summarize(state: AssessmentState, profile: Optional[FusedNeedsProfile] = None) -> AssessmentSummary:
    """Derive the end-of-session summary; pure given the same inputs."""

    profile = profile if profile is not None else state.profile
    total = state.answered
    correct = state.correct_count
    score = round(correct / total * 100) if total else 0
    elapsed = sum(record.response_time_ms for record in state.history)
    level = mastery_level(score)

    strengths: List[str] = []
    weaknesses: List[str] = []
    if total:
        if correct > total * 0.8:
            strengths.append("High accuracy")
        if all(record.response_time_ms < FAST_RESPONSE_MS for record in state.history):
            strengths.append("Good response speed")
        if total - correct > total * 0.3:
            weaknesses.append("Needs reinforcement of core concepts")
        if any(record.response_time_ms > SLOW_RESPONSE_MS for record in state.history):
            weaknesses.append("Struggles with response time")

    weak = _weak_categories(profile)
    if profile is not None:
        for category in NEED_CATEGORIES:
            if category in SENSORY_CATEGORIES:
                continue
            if profile.score(category) < STRENGTH_THRESHOLD:
                strengths.append(f"Strong {_label(category)}")
        weaknesses.extend(f"Difficulty with {_label(category)}" for category, _ in weak)

    recommendations = [
        RECOMMENDATION_TEMPLATES.get(category, DEFAULT_TEMPLATE).format(label=_label(category), score=value)
        for category, value in weak[:MAX_RECOMMENDED_CATEGORIES]
    ]
    if score < 70:
        recommendations.append("Review fundamental concepts")
    elif score < 85:
        recommendations.append("Reinforce specific areas with harder problems")
    else:
        recommendations.append("Explore advanced concepts in real contexts")

    next_steps = [
        NEXT_STEP_TEMPLATES.get(category, f"Practise {_label(category)}")
        for category, _ in weak
    ]
    if level in ("advanced", "expert"):
        next_steps.append("Move on to enrichment content")
    else:
        next_steps.append("Take a follow-up assessment")

    return AssessmentSummary(
        score_percentage=score,
        correct_answers=correct,
        total_questions=total,
        elapsed_ms=elapsed,
        mastery_level=level,
        strengths=strengths,
        weaknesses=weaknesses,
        recommendations=recommendations,
        next_steps=next_steps,
        difficulty_progression=[record.difficulty for record in state.history],
    )
