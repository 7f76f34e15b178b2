import logging
import threading
from typing import Optional

from .database import connect, init_db

logger = logging.getLogger(__name__)


class SQLiteLocalStore:
    """Key-value snapshot storage in the app's SQLite database."""

    def __init__(self, path: Optional[str] = None):
        init_db(path)
        self._conn = connect(path)
        self._lock = threading.Lock()

    def get(self, key: str) -> Optional[str]:
        with self._lock:
            row = self._conn.execute(
                "SELECT value FROM snapshots WHERE key = ?", (key,)
            ).fetchone()
        return row["value"] if row else None

    def set(self, key: str, value: str) -> None:
        with self._lock:
            self._conn.execute(
                "INSERT INTO snapshots (key, value, updated_at) VALUES (?, ?, CURRENT_TIMESTAMP) "
                "ON CONFLICT(key) DO UPDATE SET value = excluded.value, "
                "updated_at = excluded.updated_at",
                (key, value),
            )
            self._conn.commit()

    def delete(self, key: str) -> None:
        with self._lock:
            self._conn.execute("DELETE FROM snapshots WHERE key = ?", (key,))
            self._conn.commit()
        logger.info(f"Cleared local snapshot {key}")

    def close(self):
        self._conn.close()
