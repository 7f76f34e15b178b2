import logging
from typing import Any, Callable, Dict, Type

from .models import (
    ArrangeSentence,
    DragMatch,
    FillBlankDialog,
    ListenChoose,
    PictureMatch,
    QuestionBase,
    TimelineOrder,
    TransformParaphrase,
    TrueFalse,
)

logger = logging.getLogger(__name__)


def _single_choice(question: Any, answer: Any) -> bool:
    if not isinstance(answer, str):
        return False
    return answer.strip() == question.correct_text.strip()


def _pair_ids(pair: Any):
    if isinstance(pair, dict):
        return pair.get("leftId", pair.get("left_id")), pair.get("rightId", pair.get("right_id"))
    if isinstance(pair, (list, tuple)) and len(pair) == 2:
        return pair[0], pair[1]
    return None, None


def _drag_match(question: DragMatch, answer: Any) -> bool:
    if not isinstance(answer, (list, tuple)):
        return False
    expected = {item.id: item.correct_match for item in question.left_items}
    right_texts = {item.id: item.text for item in question.right_items}
    seen = set()
    for pair in answer:
        left_id, right_id = _pair_ids(pair)
        if left_id not in expected or left_id in seen or right_id not in right_texts:
            return False
        if expected[left_id] != right_texts[right_id]:
            return False
        seen.add(left_id)
    # No partial credit: every left item must be paired.
    return bool(expected) and seen == set(expected)


def _ordered(question: Any, answer: Any) -> bool:
    if not isinstance(answer, (list, tuple)):
        return False
    return list(answer) == list(question.correct_order)


def _contains_all(question: TransformParaphrase, answer: Any) -> bool:
    if not isinstance(answer, str) or not answer.strip():
        return False
    return all(token in answer for token in question.must_contain)


RULES: Dict[Type[QuestionBase], Callable[[Any, Any], bool]] = {
    ListenChoose: _single_choice,
    PictureMatch: _single_choice,
    FillBlankDialog: _single_choice,
    TrueFalse: _single_choice,
    DragMatch: _drag_match,
    ArrangeSentence: _ordered,
    TimelineOrder: _ordered,
    TransformParaphrase: _contains_all,
}


def evaluate(question: QuestionBase, answer: Any) -> bool:
    """Return whether `answer` is correct for `question`.

    Never raises: unknown question types and malformed answers are wrong.
    """
    rule = RULES.get(type(question))
    if rule is None:
        logger.warning(f"No evaluation rule for {type(question).__name__}")
        return False
    try:
        return bool(rule(question, answer))
    except Exception as e:
        logger.warning(f"Answer evaluation failed for {question.id}: {e}")
        return False
