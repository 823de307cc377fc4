"""Hysteretic easy/medium/hard difficulty controller for live assessments."""

from __future__ import annotations

import logging
import threading
from dataclasses import dataclass, field
from datetime import datetime, timezone
from typing import Callable, Dict, List, Optional

from engines.needs_types import ATTENTION, COGNITIVE_LOAD, FusedNeedsProfile

logger = logging.getLogger(__name__)

DIFFICULTY_LEVELS = ("easy", "medium", "hard")
DEFAULT_DIFFICULTY = "medium"
BIAS_CATEGORIES = (ATTENTION, COGNITIVE_LOAD)


class UnknownSessionError(KeyError):
    """Raised when an event references a session that is not active."""


@dataclass(frozen=True)
class AnswerRecord:
    sequence: int
    correct: bool
    response_time_ms: float
    difficulty: str


@dataclass(frozen=True)
class DifficultyChange:
    session_id: str
    old: str
    new: str
    reason: str


@dataclass
class AssessmentState:
    """Mutable per-session state; owned by exactly one controller entry."""

    session_id: str
    current_difficulty: str = DEFAULT_DIFFICULTY
    consecutive_correct: int = 0
    consecutive_incorrect: int = 0
    history: List[AnswerRecord] = field(default_factory=list)
    profile: Optional[FusedNeedsProfile] = None
    total_questions: int = 10
    last_sequence: int = 0
    pending: Dict[int, tuple] = field(default_factory=dict)
    started_at: datetime = field(default_factory=lambda: datetime.now(timezone.utc))
    completed: bool = False

    @property
    def answered(self) -> int:
        return len(self.history)

    @property
    def correct_count(self) -> int:
        return sum(1 for record in self.history if record.correct)


@dataclass(frozen=True)
class StepResult:
    current_difficulty: str
    difficulty_changed: bool
    accepted: bool
    completed: bool
    changes: tuple = ()


DifficultyListener = Callable[[DifficultyChange], None]


def initial_difficulty(profile: Optional[FusedNeedsProfile], bias_threshold: float = 0.6) -> str:
    """``medium`` unless attention or cognitive load scores above ``bias_threshold``."""

    if profile is None:
        return DEFAULT_DIFFICULTY
    if any(profile.score(category) > bias_threshold for category in BIAS_CATEGORIES):
        return _step(DEFAULT_DIFFICULTY, -1)
    return DEFAULT_DIFFICULTY


def _step(level: str, direction: int) -> str:
    index = DIFFICULTY_LEVELS.index(level) + direction
    index = max(0, min(len(DIFFICULTY_LEVELS) - 1, index))
    return DIFFICULTY_LEVELS[index]


class AdaptiveDifficultyController:
    """Session arena driving one difficulty state machine per session id."""

    def __init__(
        self,
        escalation_streak: int = 3,
        deescalation_streak: int = 2,
        bias_threshold: float = 0.6,
        default_question_count: int = 10,
    ):
        if escalation_streak < 1 or deescalation_streak < 1:
            raise ValueError("streak thresholds must be positive")
        self.escalation_streak = escalation_streak
        self.deescalation_streak = deescalation_streak
        self.bias_threshold = bias_threshold
        self.default_question_count = default_question_count
        self._sessions: Dict[str, AssessmentState] = {}
        self._locks: Dict[str, threading.Lock] = {}
        self._arena_lock = threading.Lock()
        self._listeners: List[DifficultyListener] = []

    # ------------------------------------------------------------------
    def add_listener(self, listener: DifficultyListener) -> None:
        self._listeners.append(listener)

    def start_session(
        self,
        session_id: str,
        profile: Optional[FusedNeedsProfile] = None,
        total_questions: Optional[int] = None,
    ) -> AssessmentState:
        state = AssessmentState(
            session_id=session_id,
            current_difficulty=initial_difficulty(profile, self.bias_threshold),
            profile=profile,
            total_questions=total_questions or self.default_question_count,
        )
        with self._arena_lock:
            self._sessions[session_id] = state
            self._locks[session_id] = threading.Lock()
        logger.info(
            "Assessment session %s started at %s", session_id, state.current_difficulty
        )
        return state

    def get_state(self, session_id: str) -> AssessmentState:
        with self._arena_lock:
            try:
                return self._sessions[session_id]
            except KeyError:
                raise UnknownSessionError(session_id) from None

    def end_session(self, session_id: str) -> AssessmentState:
        """Remove the session from the arena and return its final state."""

        with self._arena_lock:
            try:
                state = self._sessions.pop(session_id)
            except KeyError:
                raise UnknownSessionError(session_id) from None
            self._locks.pop(session_id, None)
        state.completed = True
        logger.info(
            "Assessment session %s ended after %d answers", session_id, state.answered
        )
        return state

    # ------------------------------------------------------------------
    def record_answer(
        self,
        session_id: str,
        sequence: int,
        correct: bool,
        response_time_ms: float = 0.0,
    ) -> StepResult:
        """Apply an answer event in submission order.

        Events already applied are ignored, as are events numbered past the
        session's question count. Events ahead of the next expected sequence
        number are held back until the gap is filled.
        """

        with self._arena_lock:
            state = self._sessions.get(session_id)
            lock = self._locks.get(session_id)
        if state is None or lock is None:
            raise UnknownSessionError(session_id)
        with lock:
            if state.completed or sequence <= state.last_sequence or sequence in state.pending:
                logger.warning(
                    "Ignoring duplicate answer %s for session %s", sequence, session_id
                )
                return self._result(state, [], accepted=False)

            if sequence > state.total_questions:
                logger.warning(
                    "Rejecting answer %s for session %s beyond its %d questions",
                    sequence,
                    session_id,
                    state.total_questions,
                )
                return self._result(state, [], accepted=False)

            state.pending[sequence] = (bool(correct), float(response_time_ms))
            if sequence != state.last_sequence + 1:
                logger.warning(
                    "Holding out-of-order answer %s for session %s (expected %s)",
                    sequence,
                    session_id,
                    state.last_sequence + 1,
                )

            changes: List[DifficultyChange] = []
            while state.last_sequence + 1 in state.pending and not state.completed:
                next_sequence = state.last_sequence + 1
                is_correct, elapsed = state.pending.pop(next_sequence)
                change = self._apply(state, next_sequence, is_correct, elapsed)
                if change:
                    changes.append(change)
                if state.answered >= state.total_questions:
                    state.completed = True

        for change in changes:
            self._notify(change)
        return self._result(state, changes, accepted=True)

    # ------------------------------------------------------------------
    def _apply(
        self, state: AssessmentState, sequence: int, correct: bool, response_time_ms: float
    ) -> Optional[DifficultyChange]:
        state.history.append(
            AnswerRecord(sequence, correct, response_time_ms, state.current_difficulty)
        )
        state.last_sequence = sequence

        if correct:
            state.consecutive_correct += 1
            state.consecutive_incorrect = 0
            if state.consecutive_correct >= self.escalation_streak and state.current_difficulty != "hard":
                state.consecutive_correct = 0
                return self._transition(state, +1, f"{self.escalation_streak} consecutive correct answers")
        else:
            state.consecutive_incorrect += 1
            state.consecutive_correct = 0
            if state.consecutive_incorrect >= self.deescalation_streak and state.current_difficulty != "easy":
                state.consecutive_incorrect = 0
                return self._transition(state, -1, f"{self.deescalation_streak} consecutive incorrect answers")
        return None

    def _transition(self, state: AssessmentState, direction: int, reason: str) -> DifficultyChange:
        old = state.current_difficulty
        state.current_difficulty = _step(old, direction)
        logger.info("Session %s difficulty %s -> %s (%s)", state.session_id, old, state.current_difficulty, reason)
        return DifficultyChange(state.session_id, old, state.current_difficulty, reason)

    def _notify(self, change: DifficultyChange) -> None:
        for listener in list(self._listeners):
            try:
                listener(change)
            except Exception as exc:
                logger.error("Difficulty listener %r failed: %s", listener, exc, exc_info=True)

    @staticmethod
    def _result(state: AssessmentState, changes: List[DifficultyChange], *, accepted: bool) -> StepResult:
        return StepResult(
            current_difficulty=state.current_difficulty,
            difficulty_changed=bool(changes),
            accepted=accepted,
            completed=state.completed,
            changes=tuple(changes),
        )
