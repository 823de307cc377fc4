"""Human-oriented learner profile derived from features and fused needs."""

from __future__ import annotations

from dataclasses import dataclass, field
from typing import Dict, List

from engines.needs_types import FusedNeedsProfile, NormalizedFeatureVector

STYLE_RECOMMENDATIONS: Dict[str, List[str]] = {
    "visual": ["Use diagrams and concept maps", "Include explanatory videos"],
    "auditory": ["Provide voice narration", "Include educational podcasts"],
    "kinesthetic": ["Include interactive activities", "Use virtual simulations"],
}

PACE_RECOMMENDATIONS: Dict[str, List[str]] = {
    "slow": ["Allow extra time to finish tasks", "Split content into smaller sections"],
    "moderate": [],
    "fast": ["Offer additional content", "Provide optional challenges"],
}

CATEGORY_RECOMMENDATIONS: Dict[str, List[str]] = {
    "reading-processing": ["Use dyslexia-friendly fonts", "Provide audio for all text"],
    "attention": ["Schedule breaks every 10-15 minutes", "Give step-by-step instructions"],
    "cognitive-load": ["Present one idea per screen", "Use worked examples"],
    "math-processing": ["Use virtual manipulatives", "Show visual representations of numbers"],
    "needs-more-scaffolding": ["Offer hints before revealing answers", "Break tasks into guided steps"],
    "low-engagement": ["Connect tasks to the learner's interests", "Use short gamified activities"],
    "language-support": ["Offer bilingual glossaries", "Simplify instructions"],
    "auditory-preference": ["Read instructions aloud"],
    "visual-preference": ["Add images to every explanation"],
    "kinesthetic-preference": ["Use drag-and-drop exercises"],
}

DETECTION_THRESHOLD = 0.5


@dataclass
class LearnerProfile:
    learning_style: str
    pace: str
    strengths: List[str] = field(default_factory=list)
    challenges: List[str] = field(default_factory=list)
    recommendations: List[str] = field(default_factory=list)


def learning_style(vector: NormalizedFeatureVector) -> str:
    preferences = [
        ("visual", vector.visual_preference),
        ("auditory", vector.audio_preference),
        ("kinesthetic", vector.kinesthetic_preference),
    ]
    # max() keeps the first entry on ties: visual, then auditory.
    return max(preferences, key=lambda item: item[1])[0]


def learning_pace(vector: NormalizedFeatureVector) -> str:
    average_speed = (min(vector.reading_speed / 200, 1.0) + vector.math_speed) / 2
    if average_speed < 0.5:
        return "slow"
    if average_speed > 0.8:
        return "fast"
    return "moderate"


def describe_learner(vector: NormalizedFeatureVector, profile: FusedNeedsProfile) -> LearnerProfile:
    style = learning_style(vector)
    pace = learning_pace(vector)

    strengths = []
    if vector.reading_comprehension > 0.8:
        strengths.append("Good reading comprehension")
    if vector.math_accuracy > 0.8:
        strengths.append("Accurate in mathematics")
    if vector.task_completion > 0.9:
        strengths.append("High task completion rate")

    challenges = []
    if vector.reading_speed < 60:
        challenges.append("Slow reading speed")
    if vector.attention_span < 10:
        challenges.append("Limited attention span")
    if vector.help_requests > 5:
        challenges.append("Needs frequent help")

    recommendations = STYLE_RECOMMENDATIONS[style] + PACE_RECOMMENDATIONS[pace]
    for category, score in profile.ranked():
        if score >= DETECTION_THRESHOLD:
            recommendations.extend(CATEGORY_RECOMMENDATIONS.get(category, []))

    return LearnerProfile(
        learning_style=style,
        pace=pace,
        strengths=strengths,
        challenges=challenges,
        recommendations=list(dict.fromkeys(recommendations)),
    )
