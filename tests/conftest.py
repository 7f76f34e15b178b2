import random
from typing import Any, Dict, List

import pytest

from lessonplay.effects import InlineEffectRunner
from lessonplay.models import (
    ArrangeSentence,
    DragMatch,
    ListenChoose,
    SessionKey,
    TimelineOrder,
    TransformParaphrase,
    VocabItem,
)
from lessonplay.persistence import SessionPersistence, load_snapshot, dump_snapshot
from lessonplay.reporter import CompletionReporter


# --- Test doubles ---
class MemoryStore:
    """Dict-backed local store."""

    def __init__(self):
        self.data: Dict[str, str] = {}

    def get(self, key):
        return self.data.get(key)

    def set(self, key, value):
        self.data[key] = value

    def delete(self, key):
        self.data.pop(key, None)


class BrokenStore:
    def get(self, key):
        raise ConnectionError("local store down")

    def set(self, key, value):
        raise ConnectionError("local store down")

    def delete(self, key):
        raise ConnectionError("local store down")


class MemoryRemoteStore:
    def __init__(self):
        self.data: Dict[str, str] = {}
        self.posts = 0

    def get_session(self, key):
        return load_snapshot(self.data.get(key.storage_key))

    def post_session(self, snapshot):
        self.posts += 1
        self.data[snapshot.key.storage_key] = dump_snapshot(snapshot)
        return True

    def delete_session(self, key):
        self.data.pop(key.storage_key, None)
        return True


class BrokenRemoteStore:
    def get_session(self, key):
        raise ConnectionError("remote unreachable")

    def post_session(self, snapshot):
        raise ConnectionError("remote unreachable")

    def delete_session(self, key):
        raise ConnectionError("remote unreachable")


class FakeRedis:
    """In-memory stand-in for the handful of redis commands the app uses."""

    def __init__(self):
        self.values: Dict[str, str] = {}
        self.hashes: Dict[str, Dict[str, int]] = {}
        self.lists: Dict[str, List[str]] = {}
        self.sets: Dict[str, set] = {}
        self.expiry: Dict[str, Any] = {}

    def get(self, key):
        return self.values.get(key)

    def set(self, key, value, ex=None):
        self.values[key] = value
        self.expiry[key] = ex
        return True

    def delete(self, key):
        return int(self.values.pop(key, None) is not None)

    def hincrby(self, key, field, amount=1):
        bucket = self.hashes.setdefault(key, {})
        bucket[field] = bucket.get(field, 0) + amount
        return bucket[field]

    def hset(self, key, field=None, value=None, mapping=None):
        bucket = self.hashes.setdefault(key, {})
        updates = dict(mapping or {})
        if field is not None:
            updates[field] = value
        bucket.update({name: int(amount) for name, amount in updates.items()})
        return len(updates)

    def hgetall(self, key):
        return {field: str(value) for field, value in self.hashes.get(key, {}).items()}

    def lpush(self, key, value):
        self.lists.setdefault(key, []).insert(0, value)
        return len(self.lists[key])

    def ltrim(self, key, start, end):
        self.lists[key] = self.lists.get(key, [])[start : end + 1]
        return True

    def lrange(self, key, start, end):
        items = self.lists.get(key, [])
        return items[start:] if end == -1 else items[start : end + 1]

    def sadd(self, key, value):
        self.sets.setdefault(key, set()).add(value)
        return 1

    def smembers(self, key):
        return set(self.sets.get(key, set()))


class RecordingStats:
    def __init__(self):
        self.deltas = []

    def apply_delta(self, user_id, delta):
        self.deltas.append((user_id, delta))


class RecordingHistory:
    def __init__(self):
        self.records = []

    def save(self, record):
        self.records.append(record)
        return f"history-{len(self.records)}"


class RecordingUnlock:
    def __init__(self, unlocked=True):
        self.calls = []
        self.unlocked = unlocked

    def check_and_unlock(self, user_id, level_id, performance):
        self.calls.append((user_id, level_id, performance))
        return {"unlocked": self.unlocked}


class FailingCollaborator:
    def apply_delta(self, user_id, delta):
        raise RuntimeError("stats service down")

    def save(self, record):
        raise RuntimeError("history service down")

    def check_and_unlock(self, user_id, level_id, performance):
        raise RuntimeError("unlock service down")


class FrozenClock:
    def __init__(self, now: float = 1_700_000_000.0):
        self.now = now

    def __call__(self):
        return self.now

    def tick(self, seconds: float):
        self.now += seconds


# --- Builders ---
def make_questions(count: int) -> List[ListenChoose]:
    return [
        ListenChoose(
            id=f"q{i}",
            audio_text=f"word{i}",
            correct_text=f"word{i}",
            choices=[f"word{i}", "และ", "หรือ", "ของ"],
        )
        for i in range(count)
    ]


def correct_answer(question) -> Any:
    if isinstance(question, DragMatch):
        by_text = {item.text: item.id for item in question.right_items}
        return [
            {"leftId": item.id, "rightId": by_text[item.correct_match]}
            for item in question.left_items
        ]
    if isinstance(question, (ArrangeSentence, TimelineOrder)):
        return list(question.correct_order)
    if isinstance(question, TransformParaphrase):
        return " ".join(question.must_contain)
    return question.correct_text


# --- Fixtures ---
@pytest.fixture
def pool() -> List[VocabItem]:
    rows = [
        ("place_001", "บ้าน", "house", "house.png", "ฉันอยู่ที่ บ้าน ทุกวัน"),
        ("place_002", "โรงเรียน", "school", "school.png", "เด็ก ไป โรงเรียน ตอนเช้า"),
        ("place_003", "โรงพยาบาล", "hospital", None, None),
        ("place_004", "วัด", "temple", "temple.png", None),
        ("place_005", "ตลาด", "market", None, "แม่ ไป ตลาด"),
        ("place_006", "ธนาคาร", "bank", None, None),
        ("place_007", "ถ้า...ก็", "if...then", None, "ถ้า ฝนตก ก็ อยู่บ้าน"),
        ("place_008", "สถานีรถไฟ", "train station", None, None),
    ]
    items = []
    for order, (item_id, text, translation, image, example) in enumerate(rows):
        extra = {"order": order}
        if example:
            extra["example"] = example
        items.append(
            VocabItem(
                id=item_id,
                primary_text=text,
                translation=translation,
                image_key=image,
                extra=extra,
            )
        )
    return items


@pytest.fixture
def rng():
    return random.Random(1234)


@pytest.fixture
def key():
    return SessionKey(user_id="user-1", lesson_id="level1")


@pytest.fixture
def clock():
    return FrozenClock()


@pytest.fixture
def local_store():
    return MemoryStore()


@pytest.fixture
def remote_store():
    return MemoryRemoteStore()


@pytest.fixture
def persistence(local_store, remote_store):
    return SessionPersistence(local_store, remote_store, InlineEffectRunner())


@pytest.fixture
def stats():
    return RecordingStats()


@pytest.fixture
def history():
    return RecordingHistory()


@pytest.fixture
def unlock():
    return RecordingUnlock()


@pytest.fixture
def reporter(stats, history, unlock, persistence):
    return CompletionReporter(
        stats=stats,
        history=history,
        unlock_checker=unlock,
        persistence=persistence,
        runner=InlineEffectRunner(),
    )
