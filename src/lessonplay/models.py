from enum import Enum
from typing import Annotated, Any, ClassVar, Dict, List, Literal, Optional, Union

from pydantic import BaseModel, ConfigDict, Field, model_validator
from pydantic.alias_generators import to_camel

from .config import settings

TRUE_TEXT = "ถูก"
FALSE_TEXT = "ผิด"


class CamelModel(BaseModel):
    """Base model: snake_case in Python, camelCase on the wire."""

    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True)


class Archetype(str, Enum):
    LISTEN_CHOOSE = "LISTEN_CHOOSE"
    PICTURE_MATCH = "PICTURE_MATCH"
    DRAG_MATCH = "DRAG_MATCH"
    ARRANGE_SENTENCE = "ARRANGE_SENTENCE"
    FILL_BLANK_DIALOG = "FILL_BLANK_DIALOG"
    TRANSFORM_PARAPHRASE = "TRANSFORM_PARAPHRASE"
    TIMELINE_ORDER = "TIMELINE_ORDER"
    TRUE_FALSE = "TRUE_FALSE"


# --- Content ---
class VocabItem(CamelModel):
    model_config = ConfigDict(frozen=True)

    id: str
    primary_text: str
    translation: str
    audio_text: str = ""
    image_key: Optional[str] = None
    extra: Dict[str, Any] = Field(default_factory=dict)

    @model_validator(mode="before")
    @classmethod
    def _default_audio_text(cls, data: Any) -> Any:
        if isinstance(data, dict) and not (data.get("audio_text") or data.get("audioText")):
            data = dict(data)
            data["audio_text"] = data.get("primary_text") or data.get("primaryText") or ""
        return data


# --- Questions ---
class Token(CamelModel):
    id: str
    text: str


class MatchItem(Token):
    correct_match: str


class QuestionBase(CamelModel):
    id: str
    instruction: str = ""
    reward_xp: int = settings.REWARD_XP
    reward_diamonds: int = settings.REWARD_DIAMONDS
    penalty_hearts: int = settings.PENALTY_HEARTS

    # Fields that give the answer away; stripped before a question is served.
    answer_fields: ClassVar[Any] = set()

    def public_dict(self) -> Dict[str, Any]:
        return self.model_dump(by_alias=True, exclude=self.answer_fields)


class ListenChoose(QuestionBase):
    type: Literal["LISTEN_CHOOSE"] = "LISTEN_CHOOSE"
    audio_text: str
    correct_text: str
    choices: List[str]

    answer_fields: ClassVar[Any] = {"correct_text"}


class PictureMatch(QuestionBase):
    type: Literal["PICTURE_MATCH"] = "PICTURE_MATCH"
    image_key: Optional[str] = None
    correct_text: str
    choices: List[str]

    answer_fields: ClassVar[Any] = {"correct_text"}


class DragMatch(QuestionBase):
    type: Literal["DRAG_MATCH"] = "DRAG_MATCH"
    left_items: List[MatchItem]
    right_items: List[Token]

    answer_fields: ClassVar[Any] = {"left_items": {"__all__": {"correct_match"}}}


class ArrangeSentence(QuestionBase):
    type: Literal["ARRANGE_SENTENCE"] = "ARRANGE_SENTENCE"
    correct_order: List[str]
    word_bank: List[Token]

    answer_fields: ClassVar[Any] = {"correct_order"}


class FillBlankDialog(QuestionBase):
    type: Literal["FILL_BLANK_DIALOG"] = "FILL_BLANK_DIALOG"
    template: str
    correct_text: str
    choices: List[str]

    answer_fields: ClassVar[Any] = {"correct_text"}


class TransformParaphrase(QuestionBase):
    type: Literal["TRANSFORM_PARAPHRASE"] = "TRANSFORM_PARAPHRASE"
    source_text: str
    target_pattern: str
    must_contain: List[str]

    answer_fields: ClassVar[Any] = {"must_contain"}


class TimelineOrder(QuestionBase):
    type: Literal["TIMELINE_ORDER"] = "TIMELINE_ORDER"
    correct_order: List[str]
    steps_bank: List[Token]

    answer_fields: ClassVar[Any] = {"correct_order"}


class TrueFalse(QuestionBase):
    type: Literal["TRUE_FALSE"] = "TRUE_FALSE"
    statement: str
    correct_text: Literal["ถูก", "ผิด"]
    choices: List[str] = Field(default_factory=lambda: [TRUE_TEXT, FALSE_TEXT])

    answer_fields: ClassVar[Any] = {"correct_text"}


Question = Annotated[
    Union[
        ListenChoose,
        PictureMatch,
        DragMatch,
        ArrangeSentence,
        FillBlankDialog,
        TransformParaphrase,
        TimelineOrder,
        TrueFalse,
    ],
    Field(discriminator="type"),
]

SINGLE_CHOICE_TYPES = (ListenChoose, PictureMatch, FillBlankDialog, TrueFalse)


# --- Session ---
class SessionKey(BaseModel):
    model_config = ConfigDict(frozen=True)

    user_id: str
    lesson_id: str

    @property
    def storage_key(self) -> str:
        return f"{self.user_id}:{self.lesson_id}"


class AnswerRecord(CamelModel):
    answer: Any = None
    is_correct: bool
    timestamp_ms: int


class SessionState(CamelModel):
    questions: List[Question] = Field(default_factory=list)
    current_index: int = Field(0, ge=0)
    hearts: int = Field(settings.HEARTS_MAX, ge=0)
    hearts_max: int = settings.HEARTS_MAX
    streak: int = Field(0, ge=0)
    max_streak: int = Field(0, ge=0)
    score: int = Field(0, ge=0)
    xp_earned: int = Field(0, ge=0)
    diamonds_earned: int = Field(0, ge=0)
    answers: Dict[str, AnswerRecord] = Field(default_factory=dict)
    # Questions whose reward has been paid out; a question pays once.
    rewarded_ids: List[str] = Field(default_factory=list)
    started_at_ms: int = 0
    finished: bool = False


class SessionSnapshot(SessionState):
    """Serializable projection of a SessionState, keyed by user and lesson."""

    model_config = ConfigDict(extra="ignore")

    lesson_id: str
    user_id: str
    saved_at_ms: int = 0

    @property
    def key(self) -> SessionKey:
        return SessionKey(user_id=self.user_id, lesson_id=self.lesson_id)

    @classmethod
    def from_state(
        cls, state: SessionState, key: SessionKey, saved_at_ms: int = 0
    ) -> "SessionSnapshot":
        return cls.model_validate(
            {
                **state.model_dump(),
                "lesson_id": key.lesson_id,
                "user_id": key.user_id,
                "saved_at_ms": saved_at_ms,
            }
        )

    def to_state(self) -> SessionState:
        return SessionState.model_validate(
            self.model_dump(exclude={"lesson_id", "user_id", "saved_at_ms"})
        )


class SessionResult(CamelModel):
    """Outcome of a finished session.

    Two fields describe unlocking. `unlocked_next` is the learner's own
    threshold check (accuracy at or above `UNLOCK_ACCURACY`) and is always
    set. `next_level_unlocked` is the level-unlock checker's verdict: it is
    only filled when the threshold was met and the checker answered, and is
    `None` otherwise. Clients that gate the next level on the server's
    records should read `next_level_unlocked`.
    """

    lesson_id: str
    total_questions: int
    correct_answers: int
    wrong_answers: int
    accuracy_percent: int
    xp_earned: int
    diamonds_earned: int
    hearts_remaining: int
    time_spent_sec: int
    unlocked_next: bool = Field(
        description="Accuracy met the unlock threshold."
    )
    streak: int = 0
    max_streak: int = 0
    next_level_unlocked: Optional[bool] = Field(
        None,
        description="Level-unlock checker verdict; null when it was not consulted or failed.",
    )


class AnswerOutcome(CamelModel):
    question_id: str
    is_correct: bool
    hearts: int
    streak: int
    score: int
    finished: bool


# --- API payloads ---
class StartLessonRequest(CamelModel):
    topic: Optional[str] = None
    level_id: Optional[str] = None
    mix: Optional[Dict[Archetype, int]] = None


class AnswerRequest(CamelModel):
    answer: Any = None
