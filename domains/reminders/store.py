"""SQLite persistence for reminders.

One row per reminder, keyed by id. Timestamps are epoch milliseconds,
isActive is 0/1, repeat defaults to 'none'.
"""

import sqlite3
import time
from contextlib import contextmanager
from datetime import datetime
from pathlib import Path
from typing import Optional

from logger import logger
from . import config
from .errors import PersistenceError
from .models import Reminder, to_epoch_ms

COLUMNS = (
    "id", "title", "description", "scheduledTime", "isActive",
    "createdAt", "updatedAt", "notificationId", "repeat",
)


class ReminderStore:
    """Reminder table on a local SQLite database."""

    def __init__(self, db_path: Optional[str] = None):
        """Initialize the store.

        Args:
            db_path: SQLite file (default: REMINDERS_DB); ":memory:" is allowed
        """
        if db_path is None:
            from config import REMINDERS_DB
            db_path = REMINDERS_DB
        self.db_path = db_path
        self._connection: Optional[sqlite3.Connection] = None

    def _get_connection(self) -> sqlite3.Connection:
        """Get or create the database connection with WAL mode."""
        if self._connection is not None:
            return self._connection

        if self.db_path != ":memory:":
            Path(self.db_path).parent.mkdir(parents=True, exist_ok=True)

        try:
            self._connection = sqlite3.connect(self.db_path, check_same_thread=False, timeout=10.0)
            self._connection.row_factory = sqlite3.Row
            self._connection.execute("PRAGMA journal_mode=WAL")
            self._connection.execute("PRAGMA busy_timeout=5000")
        except sqlite3.Error as e:
            logger.error(f"Failed to open reminder database {self.db_path}: {e}")
            raise PersistenceError(f"Cannot open reminder database: {e}") from e

        return self._connection

    @contextmanager
    def _transaction(self):
        """Commit on success, roll back and wrap sqlite errors on failure."""
        conn = self._get_connection()
        try:
            yield conn
            conn.commit()
        except sqlite3.Error as e:
            conn.rollback()
            logger.error(f"Reminder storage error: {e}")
            raise PersistenceError(str(e)) from e

    async def init_db(self) -> None:
        """Create the reminders table if it doesn't exist."""
        with self._transaction() as conn:
            conn.execute(f"""
                CREATE TABLE IF NOT EXISTS {config.TABLE} (
                    id TEXT PRIMARY KEY,
                    title TEXT NOT NULL,
                    description TEXT,
                    scheduledTime INTEGER NOT NULL,
                    isActive INTEGER NOT NULL,
                    createdAt INTEGER NOT NULL,
                    updatedAt INTEGER NOT NULL,
                    notificationId TEXT,
                    repeat TEXT DEFAULT 'none'
                )
            """)
        logger.info(f"Reminder store initialized: {self.db_path}")

    async def read_all(self) -> list[Reminder]:
        """Load every reminder row."""
        try:
            rows = self._get_connection().execute(f"SELECT * FROM {config.TABLE}").fetchall()
        except sqlite3.Error as e:
            logger.error(f"Failed to read reminders: {e}")
            raise PersistenceError(str(e)) from e

        reminders = []
        for row in rows:
            try:
                reminders.append(Reminder.from_row(dict(row)))
            except (KeyError, TypeError, ValueError) as e:
                logger.warning(f"Skipping invalid reminder row {row['id']}: {e}")
        return reminders

    async def create_row(self, reminder: Reminder) -> None:
        row = reminder.to_row()
        placeholders = ", ".join("?" for _ in COLUMNS)
        with self._transaction() as conn:
            conn.execute(
                f"INSERT INTO {config.TABLE} ({', '.join(COLUMNS)}) VALUES ({placeholders})",
                tuple(row[c] for c in COLUMNS)
            )
        logger.debug(f"Inserted reminder row {reminder.id}")

    async def update_row(self, reminder: Reminder) -> None:
        """Write every mutable column of an existing row."""
        row = reminder.to_row()
        mutable = [c for c in COLUMNS if c not in ("id", "createdAt")]
        with self._transaction() as conn:
            cursor = conn.execute(
                f"UPDATE {config.TABLE} SET {', '.join(f'{c} = ?' for c in mutable)} WHERE id = ?",
                tuple(row[c] for c in mutable) + (reminder.id,)
            )
            if cursor.rowcount == 0:
                raise PersistenceError(f"Reminder row {reminder.id} does not exist")
        logger.debug(f"Updated reminder row {reminder.id}")

    async def delete_row(self, reminder_id: str) -> None:
        with self._transaction() as conn:
            conn.execute(f"DELETE FROM {config.TABLE} WHERE id = ?", (reminder_id,))
        logger.debug(f"Deleted reminder row {reminder_id}")

    async def update_notification_id(
        self,
        reminder_id: str,
        notification_id: Optional[str],
        updated_at: Optional[datetime] = None
    ) -> None:
        """Narrow update of the armed trigger handle (also bumps updatedAt)."""
        updated_ms = to_epoch_ms(updated_at) if updated_at else int(time.time() * 1000)
        with self._transaction() as conn:
            conn.execute(
                f"UPDATE {config.TABLE} SET notificationId = ?, updatedAt = ? WHERE id = ?",
                (notification_id, updated_ms, reminder_id)
            )

    def close(self) -> None:
        if self._connection is not None:
            self._connection.close()
            self._connection = None
