"""
Collaborator ports for the lesson engine.

The engine depends only on these interfaces; concrete backends live in
`stores.py` and `collaborators.py`.
"""

import logging
from abc import abstractmethod
from typing import Any, Dict, Optional, Protocol

from .models import SessionKey, SessionSnapshot

logger = logging.getLogger(__name__)


class LocalStore(Protocol):
    """Port for on-device key-value storage."""

    @abstractmethod
    def get(self, key: str) -> Optional[str]:
        pass

    @abstractmethod
    def set(self, key: str, value: str) -> None:
        pass

    @abstractmethod
    def delete(self, key: str) -> None:
        pass


class RemoteStore(Protocol):
    """Port for the remote session store. Every call may fail."""

    @abstractmethod
    def get_session(self, key: SessionKey) -> Optional[SessionSnapshot]:
        pass

    @abstractmethod
    def post_session(self, snapshot: SessionSnapshot) -> bool:
        pass

    @abstractmethod
    def delete_session(self, key: SessionKey) -> bool:
        pass


class StatsAggregator(Protocol):
    """Port for the per-user XP/diamond/correctness counters."""

    @abstractmethod
    def apply_delta(self, user_id: str, delta: Dict[str, Any]) -> None:
        pass


class SessionHistoryStore(Protocol):
    @abstractmethod
    def save(self, record: Dict[str, Any]) -> str:
        """Persist a finished-session record and return its id."""
        pass


class LevelUnlockChecker(Protocol):
    @abstractmethod
    def check_and_unlock(
        self, user_id: str, level_id: str, performance: Dict[str, Any]
    ) -> Dict[str, Any]:
        """Return at least {"unlocked": bool}."""
        pass


class TtsPlayer(Protocol):
    @abstractmethod
    def play_audio(self, text: str) -> None:
        pass


def play_audio_safely(player: Optional[TtsPlayer], text: str) -> None:
    """Best-effort playback: errors are logged and ignored."""
    if player is None or not text:
        return
    try:
        player.play_audio(text)
    except Exception as e:
        logger.warning(f"Audio playback failed for '{text}': {e}")
