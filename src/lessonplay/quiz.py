import logging
import random
import uuid
from abc import ABC, abstractmethod
from typing import Dict, List, Mapping, Optional, Sequence, Set, Union

from .config import settings
from .models import (
    FALSE_TEXT,
    TRUE_TEXT,
    Archetype,
    ArrangeSentence,
    DragMatch,
    FillBlankDialog,
    ListenChoose,
    MatchItem,
    PictureMatch,
    QuestionBase,
    TimelineOrder,
    Token,
    TransformParaphrase,
    TrueFalse,
    VocabItem,
)

logger = logging.getLogger(__name__)

# Connective words used as word-bank fillers and as last-resort distractors.
FILLER_WORDS = ["และ", "หรือ", "ของ", "นะ", "สิ", "ครับ", "ค่ะ"]
LINKER_WORD = "คือ"
BLANK = "____"
MATCH_PAIRS = 4
TIMELINE_STEPS = 4


def _uid() -> str:
    return uuid.uuid4().hex[:9]


class ItemPicker:
    """Draws items from the pool without replacement until it runs dry."""

    def __init__(self, pool: Sequence[VocabItem], rng: random.Random):
        self.pool = list(pool)
        self.rng = rng
        self.used_ids: Set[str] = set()
        self._positions = {item.id: index for index, item in enumerate(self.pool)}

    def pick(self, candidates: Optional[Sequence[VocabItem]] = None) -> VocabItem:
        candidates = list(candidates or self.pool)
        fresh = [item for item in candidates if item.id not in self.used_ids]
        item = self.rng.choice(fresh or candidates)
        self.used_ids.add(item.id)
        return item

    def sample(self, count: int) -> List[VocabItem]:
        return self.rng.sample(self.pool, min(count, len(self.pool)))

    def position(self, item: VocabItem) -> int:
        return self._positions.get(item.id, len(self.pool))


# --- Strategy Pattern: Question Builders ---
class QuestionBuilder(ABC):
    """Builds one question of a single archetype from the pool."""

    archetype: Archetype

    def __init__(self, rng: random.Random):
        self.rng = rng

    @abstractmethod
    def build(self, picker: ItemPicker) -> QuestionBase:
        pass

    def _id(self, prefix: str, item: Optional[VocabItem] = None) -> str:
        if item is None:
            return f"{prefix}_{_uid()}"
        return f"{prefix}_{item.id}_{_uid()}"

    def _choices(self, correct_text: str, pool: Sequence[VocabItem]) -> List[str]:
        """Correct text plus distinct distractors, shuffled.

        Distractors come from the pool first. A pool too small to supply them
        is padded with connective words, so the correct text always appears
        exactly once.
        """
        wanted = settings.CHOICE_COUNT - 1
        texts = list(
            dict.fromkeys(
                item.primary_text for item in pool if item.primary_text != correct_text
            )
        )
        distractors = self.rng.sample(texts, min(wanted, len(texts)))
        if len(distractors) < wanted:
            padding = [
                word
                for word in FILLER_WORDS
                if word != correct_text and word not in distractors
            ]
            self.rng.shuffle(padding)
            distractors.extend(padding[: wanted - len(distractors)])

        choices = [correct_text] + distractors
        self.rng.shuffle(choices)
        return choices

    def _fillers(self, correct_order: Sequence[str]) -> List[str]:
        candidates = [word for word in FILLER_WORDS if word not in correct_order]
        count = min(self.rng.randint(1, 2), len(candidates))
        return self.rng.sample(candidates, count)

    def _bank(self, texts: Sequence[str]) -> List[Token]:
        tokens = [Token(id=_uid(), text=text) for text in texts]
        self.rng.shuffle(tokens)
        return tokens


class ListenChooseBuilder(QuestionBuilder):
    archetype = Archetype.LISTEN_CHOOSE

    def build(self, picker: ItemPicker) -> ListenChoose:
        item = picker.pick()
        return ListenChoose(
            id=self._id("lc", item),
            instruction="ฟังเสียงแล้วเลือกคำที่ได้ยิน",
            audio_text=item.audio_text or item.primary_text,
            correct_text=item.primary_text,
            choices=self._choices(item.primary_text, picker.pool),
        )


class PictureMatchBuilder(QuestionBuilder):
    archetype = Archetype.PICTURE_MATCH

    def build(self, picker: ItemPicker) -> PictureMatch:
        illustrated = [item for item in picker.pool if item.image_key]
        item = picker.pick(illustrated or None)
        return PictureMatch(
            id=self._id("pm", item),
            instruction="ดูรูปแล้วเลือกคำให้ถูกต้อง",
            image_key=item.image_key,
            correct_text=item.primary_text,
            choices=self._choices(item.primary_text, picker.pool),
        )


class DragMatchBuilder(QuestionBuilder):
    archetype = Archetype.DRAG_MATCH

    def build(self, picker: ItemPicker) -> DragMatch:
        batch = picker.sample(MATCH_PAIRS)
        left_items = [
            MatchItem(id=f"L{i + 1}", text=item.primary_text, correct_match=item.translation)
            for i, item in enumerate(batch)
        ]
        translations = [item.translation for item in batch]
        self.rng.shuffle(translations)
        right_items = [
            Token(id=f"R{i + 1}", text=text) for i, text in enumerate(translations)
        ]
        return DragMatch(
            id=self._id("dm"),
            instruction="จับคู่คำกับความหมาย",
            left_items=left_items,
            right_items=right_items,
        )


class ArrangeSentenceBuilder(QuestionBuilder):
    archetype = Archetype.ARRANGE_SENTENCE

    def build(self, picker: ItemPicker) -> ArrangeSentence:
        item = picker.pick()
        example = item.extra.get("example")
        if isinstance(example, str) and example.split():
            tokens = example.split()
        else:
            tokens = [t for t in (item.primary_text, LINKER_WORD, item.translation) if t]
        return ArrangeSentence(
            id=self._id("arr", item),
            instruction="เรียงคำให้เป็นประโยคที่ถูกต้อง",
            correct_order=tokens,
            word_bank=self._bank(tokens + self._fillers(tokens)),
        )


class FillBlankDialogBuilder(QuestionBuilder):
    archetype = Archetype.FILL_BLANK_DIALOG

    def build(self, picker: ItemPicker) -> FillBlankDialog:
        item = picker.pick()
        example = item.extra.get("example")
        if isinstance(example, str) and item.primary_text in example:
            template = example.replace(item.primary_text, BLANK, 1)
        else:
            template = f"{item.translation}: {BLANK}"
        return FillBlankDialog(
            id=self._id("fb", item),
            instruction="เติมคำให้ถูกต้องตามบทสนทนา",
            template=template,
            correct_text=item.primary_text,
            choices=self._choices(item.primary_text, picker.pool),
        )


class TransformParaphraseBuilder(QuestionBuilder):
    archetype = Archetype.TRANSFORM_PARAPHRASE

    def build(self, picker: ItemPicker) -> TransformParaphrase:
        item = picker.pick()
        pieces = [p.strip() for p in item.primary_text.split("...") if p.strip()]
        example = item.extra.get("example")
        return TransformParaphrase(
            id=self._id("tf", item),
            instruction=f'แปลงประโยคให้ใช้รูปแบบ "{item.primary_text}"',
            source_text=example if isinstance(example, str) and example else item.translation,
            target_pattern=item.primary_text,
            must_contain=pieces or [item.primary_text],
        )


class TimelineOrderBuilder(QuestionBuilder):
    archetype = Archetype.TIMELINE_ORDER

    def build(self, picker: ItemPicker) -> TimelineOrder:
        batch = picker.sample(TIMELINE_STEPS)
        batch.sort(key=lambda item: self._position(item, picker))
        steps = [item.primary_text for item in batch]
        return TimelineOrder(
            id=self._id("tl"),
            instruction="เรียงขั้นตอนให้ถูกต้อง",
            correct_order=steps,
            steps_bank=self._bank(steps + self._fillers(steps)),
        )

    @staticmethod
    def _position(item: VocabItem, picker: ItemPicker) -> float:
        try:
            return float(item.extra.get("order"))
        except (TypeError, ValueError):
            return float(picker.position(item))


class TrueFalseBuilder(QuestionBuilder):
    archetype = Archetype.TRUE_FALSE

    def build(self, picker: ItemPicker) -> TrueFalse:
        item = picker.pick()
        wrong = sorted(
            {p.translation for p in picker.pool if p.translation != item.translation}
        )
        if wrong and self.rng.random() < 0.5:
            shown, answer = self.rng.choice(wrong), FALSE_TEXT
        else:
            shown, answer = item.translation, TRUE_TEXT
        return TrueFalse(
            id=self._id("tfq", item),
            instruction="ตัดสินว่าข้อความถูกหรือผิด",
            statement=f"{item.primary_text} = {shown}",
            correct_text=answer,
        )


class BuilderFactory:
    """Factory to select the builder for an archetype."""

    BUILDERS = {
        builder.archetype: builder
        for builder in (
            ListenChooseBuilder,
            PictureMatchBuilder,
            DragMatchBuilder,
            ArrangeSentenceBuilder,
            FillBlankDialogBuilder,
            TransformParaphraseBuilder,
            TimelineOrderBuilder,
            TrueFalseBuilder,
        )
    }

    @classmethod
    def create(cls, archetype: Union[Archetype, str], rng: random.Random) -> QuestionBuilder:
        try:
            builder_cls = cls.BUILDERS[Archetype(archetype)]
        except (KeyError, ValueError):
            raise ValueError(f"Unknown question archetype: {archetype}")
        return builder_cls(rng)


class LessonGenerator:
    """Turns a vocabulary pool into a shuffled, type-diverse question list."""

    def __init__(self, rng: Optional[random.Random] = None):
        self.rng = rng or random.Random()

    def generate(
        self,
        pool: Sequence[VocabItem],
        archetype_mix: Optional[Mapping[Union[Archetype, str], int]] = None,
    ) -> List[QuestionBase]:
        items = [item for item in pool if item.primary_text and item.primary_text.strip()]
        if not items:
            logger.warning("Empty vocabulary pool: no questions generated")
            return []

        mix = settings.DEFAULT_MIX if archetype_mix is None else archetype_mix
        picker = ItemPicker(items, self.rng)
        questions: List[QuestionBase] = []
        for archetype, count in mix.items():
            builder = BuilderFactory.create(archetype, self.rng)
            for _ in range(max(0, int(count))):
                questions.append(builder.build(picker))

        self.rng.shuffle(questions)
        logger.info(f"Generated {len(questions)} questions from {len(items)} items")
        return questions


def question_type_counts(questions: Sequence[QuestionBase]) -> Dict[str, int]:
    counts: Dict[str, int] = {}
    for question in questions:
        counts[question.type] = counts.get(question.type, 0) + 1
    return counts


def generate(
    pool: Sequence[VocabItem],
    archetype_mix: Optional[Mapping[Union[Archetype, str], int]] = None,
    rng: Optional[random.Random] = None,
) -> List[QuestionBase]:
    return LessonGenerator(rng).generate(pool, archetype_mix)
