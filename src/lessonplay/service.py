import logging
import threading
import time
from typing import Any, Callable, Dict, Mapping, Optional, Union

from .exceptions import InvalidTransition, NoLessonAvailable, SessionNotFound
from .models import AnswerOutcome, Archetype, ListenChoose, SessionKey, SessionResult
from .persistence import SessionPersistence
from .ports import TtsPlayer, play_audio_safely
from .quiz import LessonGenerator
from .reporter import CompletionReporter
from .session import LessonSession, SessionStatus
from .vocabulary import VocabularyManager

logger = logging.getLogger(__name__)


class LessonService:
    """Owns the live session of each (user, lesson) and wires the engine parts."""

    def __init__(
        self,
        vocab_manager: VocabularyManager,
        persistence: SessionPersistence,
        reporter: CompletionReporter,
        generator: Optional[LessonGenerator] = None,
        tts_player: Optional[TtsPlayer] = None,
        clock: Callable[[], float] = time.time,
    ):
        self.vocab_manager = vocab_manager
        self.persistence = persistence
        self.reporter = reporter
        self.generator = generator or LessonGenerator()
        self.tts_player = tts_player
        self.clock = clock
        self.sessions: Dict[SessionKey, LessonSession] = {}
        self._lock = threading.Lock()

    def start_lesson(
        self,
        key: SessionKey,
        topic: Optional[str] = None,
        level_id: Optional[str] = None,
        mix: Optional[Mapping[Union[Archetype, str], int]] = None,
    ) -> LessonSession:
        """Resume the learner's lesson if a snapshot exists, else generate a new one."""
        with self._lock:
            live = self.sessions.get(key)
            if live is not None and live.status == SessionStatus.IN_PROGRESS:
                return live

            options = dict(
                level_id=level_id,
                persistence=self.persistence,
                reporter=self.reporter,
                clock=self.clock,
            )
            snapshot = self.persistence.restore(key)
            if snapshot is not None and not snapshot.finished:
                session = LessonSession.resume(snapshot, **options)
            else:
                pool = self.vocab_manager.get_pool(topic or key.lesson_id)
                questions = self.generator.generate(pool, mix)
                if not questions:
                    raise NoLessonAvailable(
                        f"Nothing to practice for lesson {key.lesson_id} (topic {topic})"
                    )
                session = LessonSession.new(key, questions, **options)

            session.start()
            self.sessions[key] = session
            return session

    def get_session(self, key: SessionKey) -> LessonSession:
        session = self.sessions.get(key)
        if session is None:
            raise SessionNotFound(f"No active session for {key.storage_key}")
        return session

    def submit_answer(self, key: SessionKey, answer: Any) -> AnswerOutcome:
        return self.get_session(key).submit_answer(answer)

    def advance(self, key: SessionKey) -> Optional[SessionResult]:
        return self.get_session(key).advance()

    def finish(self, key: SessionKey) -> SessionResult:
        return self.get_session(key).finish()

    def get_result(self, key: SessionKey) -> SessionResult:
        session = self.get_session(key)
        if session.result is None:
            raise InvalidTransition(f"Session {key.storage_key} has not finished")
        return session.result

    def play_current_audio(self, key: SessionKey) -> bool:
        question = self.get_session(key).current_question
        if not isinstance(question, ListenChoose):
            return False
        play_audio_safely(self.tts_player, question.audio_text)
        return True

    def reset(self, key: SessionKey) -> None:
        with self._lock:
            self.sessions.pop(key, None)
        self.persistence.clear(key)
        logger.info(f"Session {key.storage_key} reset")
