import json
import logging
import re
import uuid
from datetime import datetime
from typing import Any, Dict, List, Optional

from .config import settings
from .leveling import xp_progress
from .redis_session import redis_client

logger = logging.getLogger(__name__)

STATS_PREFIX = "user-stats:"
HISTORY_PREFIX = "session-history:"
UNLOCKED_PREFIX = "unlocked-levels:"

COUNTER_FIELDS = {
    "xp": "xp",
    "diamonds": "diamonds",
    "correct_answers": "total_correct_answers",
    "wrong_answers": "total_wrong_answers",
    "time_spent_sec": "total_time_spent_sec",
}


class RedisStatsAggregator:
    """Accumulates XP, diamonds and correctness counters in a per-user hash.

    Level, XP needed for the next level and best streak are recomputed
    from the totals after every delta.
    """

    def __init__(self, client=None):
        self.client = client if client is not None else redis_client

    def apply_delta(self, user_id: str, delta: Dict[str, Any]) -> None:
        key = f"{STATS_PREFIX}{user_id}"
        for source, field in COUNTER_FIELDS.items():
            amount = int(delta.get(source) or 0)
            if amount:
                self.client.hincrby(key, field, amount)
        if delta.get("finished_lesson"):
            self.client.hincrby(key, "lessons_completed", 1)

        current = self.get_stats(user_id)
        progress = xp_progress(current.get("xp", 0))
        self.client.hset(
            key,
            mapping={
                "level": progress["level"],
                "next_level_xp": progress["requirement"],
                "level_progress_percent": progress["percent"],
                "max_streak": max(current.get("max_streak", 0), int(delta.get("max_streak") or 0)),
            },
        )
        logger.info(f"Applied stats delta for {user_id}: +{delta.get('xp', 0)} XP")

    def get_stats(self, user_id: str) -> Dict[str, int]:
        raw = self.client.hgetall(f"{STATS_PREFIX}{user_id}")
        return {field: int(value) for field, value in raw.items()}


class RedisSessionHistoryStore:
    """Keeps the most recent finished-session records per user."""

    def __init__(self, client=None, limit: int = settings.HISTORY_LIMIT):
        self.client = client if client is not None else redis_client
        self.limit = limit

    def save(self, record: Dict[str, Any]) -> str:
        record_id = str(uuid.uuid4())
        key = f"{HISTORY_PREFIX}{record.get('user_id', settings.DEFAULT_USER_ID)}"
        payload = {**record, "id": record_id, "saved_at": datetime.now().isoformat()}
        self.client.lpush(key, json.dumps(payload, ensure_ascii=False))
        self.client.ltrim(key, 0, self.limit - 1)
        return record_id

    def list(self, user_id: str) -> List[Dict[str, Any]]:
        return [json.loads(raw) for raw in self.client.lrange(f"{HISTORY_PREFIX}{user_id}", 0, -1)]


class RedisLevelUnlockChecker:
    """Unlocks `level<N+1>` when a lesson of `level<N>` meets the threshold."""

    def __init__(
        self,
        client=None,
        accuracy_threshold: int = settings.UNLOCK_ACCURACY,
        minimum_attempts: int = 1,
        max_level: int = 10,
    ):
        self.client = client if client is not None else redis_client
        self.accuracy_threshold = accuracy_threshold
        self.minimum_attempts = minimum_attempts
        self.max_level = max_level

    def next_level(self, level_id: str) -> Optional[str]:
        match = re.fullmatch(r"(.*?)(\d+)(.*)", level_id)
        if not match:
            return None
        prefix, number, suffix = match.groups()
        if int(number) >= self.max_level:
            return None
        return f"{prefix}{int(number) + 1}{suffix}"

    def check_and_unlock(
        self, user_id: str, level_id: str, performance: Dict[str, Any]
    ) -> Dict[str, Any]:
        accuracy = performance.get("accuracy", 0)
        attempts = performance.get("attempts", 1)
        if accuracy < self.accuracy_threshold or attempts < self.minimum_attempts:
            return {"unlocked": False}

        unlocked_level = self.next_level(level_id)
        if unlocked_level is None:
            return {"unlocked": False}

        self.client.sadd(f"{UNLOCKED_PREFIX}{user_id}", unlocked_level)
        logger.info(f"Level {unlocked_level} unlocked for {user_id} ({accuracy}%)")
        return {"unlocked": True, "level_id": unlocked_level}

    def unlocked_levels(self, user_id: str) -> List[str]:
        return sorted(self.client.smembers(f"{UNLOCKED_PREFIX}{user_id}"))
