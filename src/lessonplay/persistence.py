import logging
import time
from typing import Optional

from pydantic import ValidationError

from .effects import EffectRunner, InlineEffectRunner
from .models import SessionKey, SessionSnapshot
from .ports import LocalStore, RemoteStore

logger = logging.getLogger(__name__)


def dump_snapshot(snapshot: SessionSnapshot) -> str:
    return snapshot.model_dump_json(by_alias=True)


def load_snapshot(raw: Optional[str]) -> Optional[SessionSnapshot]:
    """Parse a stored snapshot; corrupt or empty snapshots come back as None."""
    if not raw:
        return None
    try:
        snapshot = SessionSnapshot.model_validate_json(raw)
    except ValidationError as e:
        logger.warning(f"Discarding corrupt snapshot: {e.error_count()} validation errors")
        return None
    return snapshot if snapshot.questions else None


class SessionPersistence:
    """Write-through snapshot storage over a local and a remote backend.

    Writes are fire-and-forget through the effect runner. Reads prefer the
    remote store and fall back to the local one.
    """

    def __init__(
        self,
        local: LocalStore,
        remote: Optional[RemoteStore] = None,
        runner: Optional[EffectRunner] = None,
    ):
        self.local = local
        self.remote = remote
        self.runner = runner or InlineEffectRunner()

    def autosave(self, snapshot: SessionSnapshot) -> None:
        snapshot = snapshot.model_copy(update={"saved_at_ms": int(time.time() * 1000)})
        key = snapshot.key
        self.runner.launch(f"autosave-local {key.storage_key}", self._save_local, snapshot)
        if self.remote is not None:
            self.runner.launch(
                f"autosave-remote {key.storage_key}", self.remote.post_session, snapshot
            )

    def restore(self, key: SessionKey) -> Optional[SessionSnapshot]:
        snapshot = self._restore_remote(key)
        if snapshot is not None:
            logger.info(f"Restored {key.storage_key} from remote store")
            self.runner.launch(f"cache-local {key.storage_key}", self._save_local, snapshot)
            return snapshot

        try:
            snapshot = load_snapshot(self.local.get(key.storage_key))
        except Exception as e:
            logger.error(f"Local store unavailable for {key.storage_key}: {e}")
            return None
        if snapshot is not None and snapshot.key != key:
            logger.warning(f"Local snapshot for {key.storage_key} has a mismatched key")
            return None
        if snapshot is not None:
            logger.info(f"Restored {key.storage_key} from local store")
        return snapshot

    def clear(self, key: SessionKey) -> None:
        self.runner.launch(f"clear-local {key.storage_key}", self.local.delete, key.storage_key)
        if self.remote is not None:
            self.runner.launch(f"clear-remote {key.storage_key}", self.remote.delete_session, key)

    def _save_local(self, snapshot: SessionSnapshot) -> None:
        self.local.set(snapshot.key.storage_key, dump_snapshot(snapshot))

    def _restore_remote(self, key: SessionKey) -> Optional[SessionSnapshot]:
        if self.remote is None:
            return None
        try:
            snapshot = self.remote.get_session(key)
        except Exception as e:
            logger.warning(f"Remote store unavailable for {key.storage_key}: {e}")
            return None
        if snapshot is None or not snapshot.questions:
            return None
        return snapshot
