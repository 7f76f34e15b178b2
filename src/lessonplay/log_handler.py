import logging
import os
from datetime import datetime
from typing import Optional

from .database import connect, get_db_path, init_db


class SQLiteHandler(logging.Handler):
    """Writes log records to the `logs` table of the app database."""

    def __init__(self, path: Optional[str] = None, level=logging.NOTSET):
        super().__init__(level)
        self.path = os.path.abspath(path or get_db_path())
        init_db(self.path)

    def emit(self, record: logging.LogRecord):
        try:
            conn = connect(self.path)
            try:
                conn.execute(
                    "INSERT INTO logs (created_at, level, logger, message) VALUES (?, ?, ?, ?)",
                    (
                        datetime.fromtimestamp(record.created).isoformat(),
                        record.levelname,
                        record.name,
                        self.format(record),
                    ),
                )
                conn.commit()
            finally:
                conn.close()
        except Exception:
            self.handleError(record)
