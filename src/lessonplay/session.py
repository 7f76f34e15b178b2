import logging
import time
from enum import Enum
from typing import Any, Callable, Optional, Sequence

from .config import settings
from .evaluator import evaluate
from .exceptions import InvalidTransition, NoLessonAvailable
from .models import (
    AnswerOutcome,
    AnswerRecord,
    QuestionBase,
    SessionKey,
    SessionResult,
    SessionSnapshot,
    SessionState,
)
from .persistence import SessionPersistence
from .reporter import CompletionReporter, build_result

logger = logging.getLogger(__name__)


class SessionStatus(str, Enum):
    NOT_STARTED = "NOT_STARTED"
    IN_PROGRESS = "IN_PROGRESS"
    FINISHED = "FINISHED"


class LessonSession:
    """State machine for one learner's attempt at one lesson.

    NOT_STARTED -> IN_PROGRESS -> FINISHED. Every transition while in
    progress autosaves a snapshot; finishing runs the completion reporter
    exactly once.
    """

    def __init__(
        self,
        key: SessionKey,
        state: SessionState,
        level_id: Optional[str] = None,
        persistence: Optional[SessionPersistence] = None,
        reporter: Optional[CompletionReporter] = None,
        clock: Callable[[], float] = time.time,
    ):
        self.key = key
        self.state = state
        self.level_id = level_id
        self.persistence = persistence
        self.reporter = reporter
        self.clock = clock
        self.resumed = False
        self._started = False
        self._result: Optional[SessionResult] = None

    @classmethod
    def new(
        cls,
        key: SessionKey,
        questions: Sequence[QuestionBase],
        hearts_max: int = settings.HEARTS_MAX,
        **kwargs,
    ) -> "LessonSession":
        state = SessionState(questions=list(questions), hearts=hearts_max, hearts_max=hearts_max)
        return cls(key, state, **kwargs)

    @classmethod
    def resume(cls, snapshot: SessionSnapshot, **kwargs) -> "LessonSession":
        session = cls(snapshot.key, snapshot.to_state(), **kwargs)
        session.resumed = True
        return session

    # --- Queries ---
    @property
    def status(self) -> SessionStatus:
        if self.state.finished:
            return SessionStatus.FINISHED
        if self._started:
            return SessionStatus.IN_PROGRESS
        return SessionStatus.NOT_STARTED

    @property
    def total_questions(self) -> int:
        return len(self.state.questions)

    @property
    def current_question(self) -> Optional[QuestionBase]:
        if self.status != SessionStatus.IN_PROGRESS:
            return None
        if self.state.current_index >= self.total_questions:
            return None
        return self.state.questions[self.state.current_index]

    @property
    def result(self) -> Optional[SessionResult]:
        return self._result

    def snapshot(self) -> SessionSnapshot:
        return SessionSnapshot.from_state(self.state, self.key, self._now_ms())

    # --- Transitions ---
    def start(self) -> "LessonSession":
        if self.status != SessionStatus.NOT_STARTED:
            raise InvalidTransition(f"Cannot start a session that is {self.status.value}")
        if not self.state.questions:
            raise NoLessonAvailable(f"No questions for lesson {self.key.lesson_id}")

        if not self.state.started_at_ms:
            self.state.started_at_ms = self._now_ms()
        self._started = True
        logger.info(
            f"Session {self.key.storage_key} started at question "
            f"{self.state.current_index + 1}/{self.total_questions}"
            f"{' (resumed)' if self.resumed else ''}"
        )

        if self.state.hearts == 0 or self.state.current_index >= self.total_questions:
            self.finish()
        else:
            self._autosave()
        return self

    def submit_answer(self, answer: Any) -> AnswerOutcome:
        """Evaluate `answer` against the current question and apply the economy.

        Retries overwrite the recorded answer until the session advances.
        Rewards for a question are granted once; every wrong attempt costs
        hearts. Running out of hearts finishes the session immediately.
        """
        question = self.current_question
        if question is None:
            raise InvalidTransition(
                f"No question to answer in session {self.key.storage_key} ({self.status.value})"
            )

        state = self.state
        is_correct = evaluate(question, answer)
        state.answers[question.id] = AnswerRecord(
            answer=answer, is_correct=is_correct, timestamp_ms=self._now_ms()
        )

        if is_correct:
            if question.id not in state.rewarded_ids:
                state.rewarded_ids.append(question.id)
                state.score += 1
                state.streak += 1
                state.max_streak = max(state.max_streak, state.streak)
                state.xp_earned += question.reward_xp
                state.diamonds_earned += question.reward_diamonds
        else:
            state.hearts = max(0, state.hearts - question.penalty_hearts)
            state.streak = 0

        logger.debug(
            f"[{self.key.storage_key}] Q{state.current_index + 1} {question.type}: "
            f"{'correct' if is_correct else 'wrong'} (hearts={state.hearts}, score={state.score})"
        )

        if state.hearts == 0:
            self.finish()
        else:
            self._autosave()

        return AnswerOutcome(
            question_id=question.id,
            is_correct=is_correct,
            hearts=state.hearts,
            streak=state.streak,
            score=state.score,
            finished=state.finished,
        )

    def advance(self) -> Optional[SessionResult]:
        """Move to the next question. Returns the result if this finished the session."""
        if self.status != SessionStatus.IN_PROGRESS:
            raise InvalidTransition(f"Cannot advance a session that is {self.status.value}")

        state = self.state
        state.current_index = min(state.current_index + 1, self.total_questions)
        if state.hearts == 0 or state.current_index >= self.total_questions:
            return self.finish()
        self._autosave()
        return None

    def finish(self) -> SessionResult:
        """Enter FINISHED and report. Repeated calls return the first result."""
        if self.state.finished:
            if self._result is None:
                self._result = build_result(self.key, self.state, self._now_ms())
            return self._result
        if self.status == SessionStatus.NOT_STARTED:
            raise InvalidTransition("Cannot finish a session that has not started")

        self.state.finished = True
        finished_at_ms = self._now_ms()
        if self.reporter is not None:
            self._result = self.reporter.report(
                self.key, self.state, finished_at_ms, level_id=self.level_id
            )
        else:
            self._result = build_result(self.key, self.state, finished_at_ms)
        return self._result

    # --- Internals ---
    def _autosave(self):
        if self.persistence is None or self.status != SessionStatus.IN_PROGRESS:
            return
        try:
            self.persistence.autosave(self.snapshot())
        except Exception as e:
            logger.warning(f"Autosave failed for {self.key.storage_key}: {e}")

    def _now_ms(self) -> int:
        return int(self.clock() * 1000)
