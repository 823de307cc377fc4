"""Pydantic schemas for the needs-detection and assessment step API."""

from __future__ import annotations

from typing import Any, Dict, List, Literal

from pydantic import BaseModel, Field, StrictBool

__all__ = [
    "LearnerContextModel",
    "NeedsDetectionRequest",
    "NeedsDetectionResponse",
    "LearnerProfileModel",
    "AssessmentStartRequest",
    "AssessmentStartResponse",
    "AnswerEventRequest",
    "AssessmentStepResponse",
    "AssessmentCompleteRequest",
    "AssessmentSummaryModel",
]

Difficulty = Literal["easy", "medium", "hard"]

_CAMEL = {"populate_by_name": True}


class LearnerContextModel(BaseModel):
    """Optional learner facts; omitted fields use the documented defaults."""

    age: int = Field(default=10, ge=3, le=30)
    grade: int = Field(default=5, ge=0, le=14)
    region: str = "unspecified"
    education_level: str = Field(default="basic", alias="educationLevel")
    motor_coordination: float = Field(default=0.7, ge=0.0, le=1.0, alias="motorCoordination")
    social_interaction: float = Field(default=0.6, ge=0.0, le=1.0, alias="socialInteraction")

    model_config = _CAMEL


class NeedsDetectionRequest(BaseModel):
    learner_id: str = Field(min_length=1, alias="learnerId")
    interaction_data: Dict[str, Any] = Field(
        alias="interactionData",
        description="Raw interaction sample; validated by the engine, not by this schema.",
    )
    context: LearnerContextModel | None = None

    model_config = _CAMEL


class LearnerProfileModel(BaseModel):
    learning_style: str = Field(alias="learningStyle")
    pace: str
    strengths: List[str]
    challenges: List[str]
    recommendations: List[str]

    model_config = _CAMEL


class NeedsDetectionResponse(BaseModel):
    learner_id: str = Field(alias="learnerId")
    profile: Dict[str, Any]
    model_source: Literal["hybrid", "fallback"] = Field(alias="modelSource")
    severities: Dict[str, str]
    learner_profile: LearnerProfileModel = Field(alias="learnerProfile")
    cultural_adaptations: Dict[str, List[str]] = Field(alias="culturalAdaptations")
    next_assessment_days: int = Field(alias="nextAssessmentDays")
    warnings: List[str] = Field(default_factory=list)

    model_config = {"populate_by_name": True, "protected_namespaces": ()}


class AssessmentStartRequest(BaseModel):
    session_id: str = Field(min_length=1, alias="sessionId")
    learner_id: str | None = Field(default=None, alias="learnerId")
    total_questions: int | None = Field(default=None, ge=1, le=200, alias="totalQuestions")

    model_config = _CAMEL


class AssessmentStartResponse(BaseModel):
    session_id: str = Field(alias="sessionId")
    current_difficulty: Difficulty = Field(alias="currentDifficulty")
    total_questions: int = Field(alias="totalQuestions")

    model_config = _CAMEL


class AnswerEventRequest(BaseModel):
    session_id: str = Field(min_length=1, alias="sessionId")
    sequence: int = Field(ge=1, description="1-based submission order of the answer.")
    answer_correct: StrictBool = Field(alias="answerCorrect")
    response_time_ms: float = Field(ge=0.0, alias="responseTimeMs")

    model_config = _CAMEL


class AssessmentSummaryModel(BaseModel):
    score_percentage: int = Field(alias="scorePercentage")
    correct_answers: int = Field(alias="correctAnswers")
    total_questions: int = Field(alias="totalQuestions")
    elapsed_ms: float = Field(alias="elapsedMs")
    mastery_level: Literal["beginner", "intermediate", "advanced", "expert"] = Field(alias="masteryLevel")
    strengths: List[str]
    weaknesses: List[str]
    recommendations: List[str]
    next_steps: List[str] = Field(alias="nextSteps")
    difficulty_progression: List[str] = Field(alias="difficultyProgression")

    model_config = _CAMEL


class AssessmentStepResponse(BaseModel):
    session_id: str = Field(alias="sessionId")
    current_difficulty: Difficulty = Field(alias="currentDifficulty")
    difficulty_changed: bool = Field(alias="difficultyChanged")
    accepted: bool
    completed: bool
    summary: AssessmentSummaryModel | None = None

    model_config = _CAMEL


class AssessmentCompleteRequest(BaseModel):
    session_id: str = Field(min_length=1, alias="sessionId")

    model_config = _CAMEL
