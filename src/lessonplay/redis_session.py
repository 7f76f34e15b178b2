from datetime import timedelta
from typing import Optional

import redis

from .config import settings
from .models import SessionKey, SessionSnapshot
from .persistence import dump_snapshot, load_snapshot

SESSION_PREFIX = "lesson-session:"

redis_client = redis.from_url(settings.REDIS_URL, decode_responses=True)


class RedisRemoteStore:
    """Remote session store; snapshots expire after the session timeout."""

    def __init__(self, client=None, ttl_minutes: int = settings.SESSION_TIMEOUT_MINUTES):
        self.client = client if client is not None else redis_client
        self.ttl = timedelta(minutes=ttl_minutes)

    def _key(self, key: SessionKey) -> str:
        return f"{SESSION_PREFIX}{key.storage_key}"

    def get_session(self, key: SessionKey) -> Optional[SessionSnapshot]:
        return load_snapshot(self.client.get(self._key(key)))

    def post_session(self, snapshot: SessionSnapshot) -> bool:
        self.client.set(self._key(snapshot.key), dump_snapshot(snapshot), ex=self.ttl)
        return True

    def delete_session(self, key: SessionKey) -> bool:
        self.client.delete(self._key(key))
        return True
