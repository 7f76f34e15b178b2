import logging
import math
from typing import Any, Callable, Dict, Optional

from .config import settings
from .effects import EffectRunner, InlineEffectRunner
from .models import SessionKey, SessionResult, SessionState
from .persistence import SessionPersistence
from .ports import LevelUnlockChecker, SessionHistoryStore, StatsAggregator
from .quiz import question_type_counts

logger = logging.getLogger(__name__)


def accuracy_percent(correct: int, total: int) -> int:
    """Accuracy against the full question count, rounded half up."""
    if total <= 0:
        return 0
    return int(math.floor(100 * correct / total + 0.5))


def build_result(
    key: SessionKey, state: SessionState, finished_at_ms: int
) -> SessionResult:
    total = len(state.questions)
    correct = state.score
    accuracy = accuracy_percent(correct, total)
    time_spent = 0
    if state.started_at_ms:
        time_spent = max(0, (finished_at_ms - state.started_at_ms) // 1000)
    return SessionResult(
        lesson_id=key.lesson_id,
        total_questions=total,
        correct_answers=correct,
        wrong_answers=max(0, total - correct),
        accuracy_percent=accuracy,
        xp_earned=state.xp_earned,
        diamonds_earned=state.diamonds_earned,
        hearts_remaining=state.hearts,
        time_spent_sec=int(time_spent),
        unlocked_next=accuracy >= settings.UNLOCK_ACCURACY,
        streak=state.streak,
        max_streak=state.max_streak,
    )


def stats_delta(result: SessionResult) -> Dict[str, Any]:
    return {
        "xp": result.xp_earned,
        "diamonds": result.diamonds_earned,
        "finished_lesson": True,
        "time_spent_sec": result.time_spent_sec,
        "correct_answers": result.correct_answers,
        "wrong_answers": result.wrong_answers,
        "max_streak": result.max_streak,
    }


def history_record(
    key: SessionKey,
    state: SessionState,
    result: SessionResult,
    level_id: str,
    finished_at_ms: int,
) -> Dict[str, Any]:
    return {
        "user_id": key.user_id,
        "lesson_id": key.lesson_id,
        "level_id": level_id,
        "score": result.correct_answers,
        "total_questions": result.total_questions,
        "correct_answers": result.correct_answers,
        "wrong_answers": result.wrong_answers,
        "accuracy_percent": result.accuracy_percent,
        "xp_earned": result.xp_earned,
        "diamonds_earned": result.diamonds_earned,
        "hearts_remaining": result.hearts_remaining,
        "streak": result.streak,
        "max_streak": result.max_streak,
        "question_types": question_type_counts(state.questions),
        "time_spent_sec": result.time_spent_sec,
        "started_at_ms": state.started_at_ms,
        "completed_at_ms": finished_at_ms,
    }


class CompletionReporter:
    """Turns a finished session into a result and fans it out.

    Each side effect has its own failure boundary: the learner gets a
    result even when every collaborator is down.
    """

    def __init__(
        self,
        stats: Optional[StatsAggregator] = None,
        history: Optional[SessionHistoryStore] = None,
        unlock_checker: Optional[LevelUnlockChecker] = None,
        persistence: Optional[SessionPersistence] = None,
        runner: Optional[EffectRunner] = None,
    ):
        self.stats = stats
        self.history = history
        self.unlock_checker = unlock_checker
        self.persistence = persistence
        self.runner = runner or InlineEffectRunner()

    def report(
        self,
        key: SessionKey,
        state: SessionState,
        finished_at_ms: int,
        level_id: Optional[str] = None,
    ) -> SessionResult:
        level_id = level_id or key.lesson_id
        result = build_result(key, state, finished_at_ms)

        if self.stats is not None:
            delta = stats_delta(result)
            self._isolated(
                "stats-delta",
                lambda: self.runner.launch(
                    "stats-delta", self.stats.apply_delta, key.user_id, delta
                ),
            )

        if self.history is not None:
            record = history_record(key, state, result, level_id, finished_at_ms)
            self._isolated(
                "session-history",
                lambda: self.runner.launch("session-history", self.history.save, record),
            )

        if result.unlocked_next and self.unlock_checker is not None:
            performance = {
                "accuracy": result.accuracy_percent,
                "score": result.correct_answers,
                "attempts": 1,
            }
            result.next_level_unlocked = self._isolated(
                "level-unlock",
                lambda: bool(
                    self.unlock_checker.check_and_unlock(
                        key.user_id, level_id, performance
                    ).get("unlocked")
                ),
            )

        if self.persistence is not None:
            self._isolated("clear-snapshot", lambda: self.persistence.clear(key))

        logger.info(
            f"Lesson {key.storage_key} finished: {result.correct_answers}/"
            f"{result.total_questions} ({result.accuracy_percent}%)"
        )
        return result

    def _isolated(self, name: str, fn: Callable[[], Any]) -> Any:
        try:
            return fn()
        except Exception as e:
            logger.warning(f"Completion step '{name}' failed: {e}")
            return None
