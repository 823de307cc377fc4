# app.py: Adaptive Needs Engine v1.0.0
# - Needs detection with hybrid (rule + model) fusion and rule-only fallback
# - Live difficulty adaptation per assessment session

import logging
from contextlib import asynccontextmanager
from dataclasses import asdict
from typing import Optional

from fastapi import FastAPI, HTTPException
from fastapi.responses import JSONResponse

from engines.difficulty_controller import AdaptiveDifficultyController, DifficultyChange, UnknownSessionError
from engines.insights import summarize
from engines.needs_pipeline import NeedsDetectionPipeline
from engines.needs_types import LearnerContext
from engines.validation import ValidationError as InteractionValidationError
from env_validation import load_settings
from profile_store import ProfileStore
from schemas import (
    AnswerEventRequest,
    AssessmentCompleteRequest,
    AssessmentStartRequest,
    AssessmentStartResponse,
    AssessmentStepResponse,
    AssessmentSummaryModel,
    LearnerProfileModel,
    NeedsDetectionRequest,
    NeedsDetectionResponse,
)

logger = logging.getLogger(__name__)

SETTINGS = load_settings()
PIPELINE = NeedsDetectionPipeline(SETTINGS)
CONTROLLER = AdaptiveDifficultyController(
    escalation_streak=SETTINGS.escalation_streak,
    deescalation_streak=SETTINGS.deescalation_streak,
    bias_threshold=SETTINGS.bias_threshold,
    default_question_count=SETTINGS.question_count,
)
_STORE: Optional[ProfileStore] = None


def _log_difficulty_change(change: DifficultyChange) -> None:
    logger.info("difficultyChanged session=%s %s -> %s (%s)", change.session_id, change.old, change.new, change.reason)


CONTROLLER.add_listener(_log_difficulty_change)


def _get_store() -> ProfileStore:
    global _STORE
    if _STORE is None:
        _STORE = ProfileStore(SETTINGS.db_path)
    return _STORE


@asynccontextmanager
async def _lifespan(_: FastAPI):
    try:
        from env_validation import validate_environment
        validate_environment()
        _get_store()
        logger.info("Engine settings in use: %s", SETTINGS.as_dict())
        yield
    except Exception as e:
        logger.error("Failed to initialize application: %s", str(e), exc_info=True)
        raise


app = FastAPI(title="Adaptive Needs Engine", version="1.0.0", lifespan=_lifespan)


@app.exception_handler(InteractionValidationError)
async def _interaction_validation_error(_, exc: InteractionValidationError):
    return JSONResponse(status_code=400, content={"detail": str(exc), "field": exc.field})


@app.get("/health")
def health():
    return {"status": "ok", "model_configured": bool(SETTINGS.model_url)}


@app.post("/needs/detect", response_model=NeedsDetectionResponse)
def detect_needs(request: NeedsDetectionRequest):
    """Analyse one interaction sample; the response always carries a profile."""
    store = _get_store()
    context = LearnerContext(**request.context.model_dump()) if request.context else None
    history = store.recent_vectors(request.learner_id, SETTINGS.history_limit)

    result = PIPELINE.detect(request.interaction_data, context=context, history=history)
    store.save_profile(request.learner_id, result.profile, result.raw_vector)

    return NeedsDetectionResponse(
        learner_id=request.learner_id,
        profile=result.profile.to_dict(),
        model_source=result.model_source,
        severities=result.profile.severities(),
        learner_profile=LearnerProfileModel.model_validate(asdict(result.learner)),
        cultural_adaptations=result.cultural_adaptations,
        next_assessment_days=result.next_assessment_days,
        warnings=list(result.vector.warnings),
    )


@app.post("/assessment/start", response_model=AssessmentStartResponse)
def start_assessment(request: AssessmentStartRequest):
    profile = _get_store().latest_profile(request.learner_id) if request.learner_id else None
    state = CONTROLLER.start_session(request.session_id, profile=profile, total_questions=request.total_questions)
    return AssessmentStartResponse(
        session_id=state.session_id,
        current_difficulty=state.current_difficulty,
        total_questions=state.total_questions,
    )


def _finish(session_id: str) -> AssessmentSummaryModel:
    state = CONTROLLER.end_session(session_id)
    return AssessmentSummaryModel.model_validate(summarize(state).to_dict())


@app.post("/assessment/answer", response_model=AssessmentStepResponse)
def submit_answer(event: AnswerEventRequest):
    try:
        step = CONTROLLER.record_answer(
            event.session_id, event.sequence, event.answer_correct, event.response_time_ms
        )
        summary = _finish(event.session_id) if step.completed and step.accepted else None
    except UnknownSessionError:
        raise HTTPException(status_code=404, detail="session not found")
    return AssessmentStepResponse(
        session_id=event.session_id,
        current_difficulty=step.current_difficulty,
        difficulty_changed=step.difficulty_changed,
        accepted=step.accepted,
        completed=step.completed,
        summary=summary,
    )


@app.post("/assessment/complete", response_model=AssessmentSummaryModel)
def complete_assessment(request: AssessmentCompleteRequest):
    try:
        return _finish(request.session_id)
    except UnknownSessionError:
        raise HTTPException(status_code=404, detail="session not found")
