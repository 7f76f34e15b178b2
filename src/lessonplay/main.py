import logging
import os
from contextlib import asynccontextmanager
from functools import lru_cache
from logging.handlers import RotatingFileHandler
from typing import Optional

import uvicorn
from fastapi import Cookie, Depends, FastAPI, Request, Response
from fastapi.responses import JSONResponse

from .collaborators import (
    RedisLevelUnlockChecker,
    RedisSessionHistoryStore,
    RedisStatsAggregator,
)
from .config import settings
from .database import init_db
from .effects import EffectRunner
from .exceptions import (
    InvalidTransition,
    LessonError,
    NoLessonAvailable,
    SessionNotFound,
)
from .log_handler import SQLiteHandler
from .models import AnswerRequest, SessionKey, StartLessonRequest
from .persistence import SessionPersistence
from .redis_session import RedisRemoteStore, redis_client
from .reporter import CompletionReporter
from .service import LessonService
from .session import LessonSession
from .stores import SQLiteLocalStore
from .vocabulary import VocabularyManager

# --- Logging Setup ---
logger = logging.getLogger("lessonplay")
logger.setLevel(logging.DEBUG if settings.DEBUG else logging.INFO)

if settings.LOG_TO_DB:
    logger.addHandler(SQLiteHandler())
else:
    if not os.path.exists(settings.LOG_DIR):
        os.makedirs(settings.LOG_DIR)
    log_path = os.path.join(settings.LOG_DIR, settings.LOG_FILE)
    file_handler = RotatingFileHandler(log_path, maxBytes=5_000_000, backupCount=3)
    file_handler.setFormatter(
        logging.Formatter("%(asctime)s - %(levelname)s - %(message)s")
    )
    logger.addHandler(file_handler)


# --- Lifecycle ---
@asynccontextmanager
async def lifespan(app: FastAPI):
    if settings.LOG_TO_DB:
        init_db()
    vocab_manager.load_all()
    yield
    if get_lesson_service.cache_info().currsize:
        get_lesson_service().persistence.runner.shutdown(wait=True)


app = FastAPI(
    title=settings.PROJECT_NAME,
    debug=settings.DEBUG,
    lifespan=lifespan,
)

vocab_manager = VocabularyManager(f"{settings.VOCAB_DIR}")

ERROR_STATUS = {
    SessionNotFound: 404,
    InvalidTransition: 409,
    NoLessonAvailable: 422,
}


@app.exception_handler(LessonError)
async def lesson_error_handler(request: Request, exc: LessonError):
    status_code = ERROR_STATUS.get(type(exc), 400)
    return JSONResponse({"error": str(exc)}, status_code=status_code)


# --- Dependencies ---
@lru_cache
def get_lesson_service() -> LessonService:
    runner = EffectRunner()
    persistence = SessionPersistence(
        local=SQLiteLocalStore(),
        remote=RedisRemoteStore(redis_client),
        runner=runner,
    )
    reporter = CompletionReporter(
        stats=RedisStatsAggregator(redis_client),
        history=RedisSessionHistoryStore(redis_client),
        unlock_checker=RedisLevelUnlockChecker(redis_client),
        persistence=persistence,
        runner=runner,
    )
    return LessonService(vocab_manager, persistence, reporter)


def get_user_id(
    user_id: Optional[str] = Cookie(None, alias=settings.USER_COOKIE_NAME),
) -> str:
    return user_id or settings.DEFAULT_USER_ID


def session_view(session: LessonSession) -> dict:
    state = session.state
    question = session.current_question
    result = session.result
    return {
        "lessonId": session.key.lesson_id,
        "status": session.status.value,
        "resumed": session.resumed,
        "currentIndex": state.current_index,
        "totalQuestions": session.total_questions,
        "hearts": state.hearts,
        "streak": state.streak,
        "score": state.score,
        "xpEarned": state.xp_earned,
        "diamondsEarned": state.diamonds_earned,
        "question": question.public_dict() if question else None,
        "result": result.model_dump(by_alias=True) if result else None,
    }


# --- Routes ---
@app.get("/api/topics")
def get_topics():
    return vocab_manager.get_topics()


@app.post("/api/lessons/{lesson_id}/start")
def start_lesson(
    lesson_id: str,
    response: Response,
    payload: Optional[StartLessonRequest] = None,
    user_id: str = Depends(get_user_id),
    service: LessonService = Depends(get_lesson_service),
):
    payload = payload or StartLessonRequest()
    key = SessionKey(user_id=user_id, lesson_id=lesson_id)
    session = service.start_lesson(
        key, topic=payload.topic, level_id=payload.level_id, mix=payload.mix
    )
    logger.info(
        f"Lesson start: {key.storage_key} [Topic: {payload.topic}, Resumed: {session.resumed}]"
    )
    response.set_cookie(
        key=settings.USER_COOKIE_NAME,
        value=user_id,
        httponly=True,
        samesite="Lax",
    )
    return session_view(session)


@app.get("/api/lessons/{lesson_id}/question")
def get_question(
    lesson_id: str,
    user_id: str = Depends(get_user_id),
    service: LessonService = Depends(get_lesson_service),
):
    session = service.get_session(SessionKey(user_id=user_id, lesson_id=lesson_id))
    return session_view(session)


@app.post("/api/lessons/{lesson_id}/answer")
def submit_answer(
    lesson_id: str,
    payload: AnswerRequest,
    user_id: str = Depends(get_user_id),
    service: LessonService = Depends(get_lesson_service),
):
    key = SessionKey(user_id=user_id, lesson_id=lesson_id)
    outcome = service.submit_answer(key, payload.answer)
    return outcome.model_dump(by_alias=True)


@app.post("/api/lessons/{lesson_id}/advance")
def advance(
    lesson_id: str,
    user_id: str = Depends(get_user_id),
    service: LessonService = Depends(get_lesson_service),
):
    key = SessionKey(user_id=user_id, lesson_id=lesson_id)
    service.advance(key)
    return session_view(service.get_session(key))


@app.post("/api/lessons/{lesson_id}/finish")
def finish(
    lesson_id: str,
    user_id: str = Depends(get_user_id),
    service: LessonService = Depends(get_lesson_service),
):
    key = SessionKey(user_id=user_id, lesson_id=lesson_id)
    return service.finish(key).model_dump(by_alias=True)


@app.get("/api/lessons/{lesson_id}/result")
def get_result(
    lesson_id: str,
    user_id: str = Depends(get_user_id),
    service: LessonService = Depends(get_lesson_service),
):
    key = SessionKey(user_id=user_id, lesson_id=lesson_id)
    return service.get_result(key).model_dump(by_alias=True)


@app.post("/api/lessons/{lesson_id}/reset")
def reset_session(
    lesson_id: str,
    user_id: str = Depends(get_user_id),
    service: LessonService = Depends(get_lesson_service),
):
    service.reset(SessionKey(user_id=user_id, lesson_id=lesson_id))
    return {"status": "success"}


if __name__ == "__main__":
    uvicorn.run("lessonplay.main:app", host="0.0.0.0", port=8000, reload=settings.DEBUG)
