"""
Academic Deadline — User and Task Directories.

SQLite-backed stores for students and their deadlines. The reminder scheduler
reads both on every tick; nothing here is cached.
"""

from __future__ import annotations

import json
import logging
import sqlite3
from datetime import datetime, timezone
from pathlib import Path

from src.core.reminder_window import ConfigurationError, normalize_lead_times
from src.data.models import (
    DEFAULT_LEAD_TIMES,
    DEFAULT_REMINDER_TIME,
    Task,
    User,
)
from src.ports.directory_port import DirectoryReadError

logger = logging.getLogger(__name__)

# Fixed-width UTC format so that string comparison in SQL orders correctly.
_TS_FORMAT = "%Y-%m-%d %H:%M:%S.%f"

_UNSET = object()


def to_db_timestamp(dt: datetime) -> str:
    """Serialize a datetime as fixed-width UTC text. Naive values are taken as UTC."""
    if dt.tzinfo is None:
        dt = dt.replace(tzinfo=timezone.utc)
    return dt.astimezone(timezone.utc).strftime(_TS_FORMAT)


def from_db_timestamp(value: str) -> datetime:
    return datetime.strptime(value, _TS_FORMAT).replace(tzinfo=timezone.utc)


def _now_text() -> str:
    return to_db_timestamp(datetime.now(timezone.utc))


def _validate_reminder_time(value: str) -> str:
    try:
        parsed = datetime.strptime(value.strip(), "%H:%M")
    except (AttributeError, ValueError) as exc:
        raise ConfigurationError(f"Invalid reminder time: {value!r}") from exc
    return parsed.strftime("%H:%M")


class TaskDB:
    """SQLite-backed storage for academic tasks."""

    def __init__(self, db_path: str | None = None) -> None:
        if db_path is None:
            from src.config import settings
            db_path = settings.DATABASE_PATH

        self._db_path = db_path
        Path(db_path).parent.mkdir(parents=True, exist_ok=True)
        self._init_db()

    def _connect(self) -> sqlite3.Connection:
        conn = sqlite3.connect(self._db_path)
        conn.row_factory = sqlite3.Row
        return conn

    def _init_db(self) -> None:
        """Create the tasks table if it doesn't exist, and migrate schema."""
        with self._connect() as conn:
            conn.execute("""
                CREATE TABLE IF NOT EXISTS tasks (
                    id            INTEGER PRIMARY KEY AUTOINCREMENT,
                    owner_id      INTEGER NOT NULL,
                    title         TEXT    NOT NULL,
                    category      TEXT,
                    due_at        TEXT    NOT NULL,
                    notes         TEXT,
                    is_priority   INTEGER NOT NULL DEFAULT 0,
                    is_recurring  INTEGER NOT NULL DEFAULT 0,
                    created_at    TEXT    NOT NULL,
                    updated_at    TEXT    NOT NULL
                )
            """)
            # Migrate existing DBs: add new columns if missing
            existing_cols = {
                row[1] for row in conn.execute("PRAGMA table_info(tasks)").fetchall()
            }
            if "is_recurring" not in existing_cols:
                conn.execute(
                    "ALTER TABLE tasks ADD COLUMN is_recurring INTEGER NOT NULL DEFAULT 0"
                )
            conn.execute(
                "CREATE INDEX IF NOT EXISTS idx_tasks_owner_due ON tasks (owner_id, due_at)"
            )
        logger.debug("Tasks table initialized at %s", self._db_path)

    @staticmethod
    def _row_to_task(row: sqlite3.Row) -> Task:
        return Task(
            id=row["id"],
            owner_id=row["owner_id"],
            title=row["title"],
            category=row["category"],
            due_at=from_db_timestamp(row["due_at"]),
            notes=row["notes"],
            is_priority=bool(row["is_priority"]),
            is_recurring=bool(row["is_recurring"]),
            created_at=row["created_at"],
            updated_at=row["updated_at"],
        )

    def add_task(
        self,
        owner_id: int,
        title: str,
        due_at: datetime,
        category: str | None = None,
        notes: str | None = None,
        is_priority: bool = False,
        is_recurring: bool = False,
    ) -> Task:
        """Insert a new task for owner_id."""
        now = _now_text()
        with self._connect() as conn:
            cursor = conn.execute(
                """
                INSERT INTO tasks
                    (owner_id, title, category, due_at, notes,
                     is_priority, is_recurring, created_at, updated_at)
                VALUES (?, ?, ?, ?, ?, ?, ?, ?, ?)
                """,
                (
                    owner_id, title, category, to_db_timestamp(due_at), notes,
                    int(is_priority), int(is_recurring), now, now,
                ),
            )
            task_id = cursor.lastrowid

        logger.info("Task added: #%d '%s' for user %d", task_id, title, owner_id)
        return self.get_task(task_id)

    def get_task(self, task_id: int) -> Task | None:
        """Fetch a single task by ID."""
        with self._connect() as conn:
            row = conn.execute(
                "SELECT * FROM tasks WHERE id = ?", (task_id,)
            ).fetchone()
        if row is None:
            return None
        return self._row_to_task(row)

    def update_task(
        self,
        task_id: int,
        owner_id: int,
        *,
        title: str | None = None,
        due_at: datetime | None = None,
        category: object = _UNSET,
        notes: object = _UNSET,
        is_priority: bool | None = None,
        is_recurring: bool | None = None,
    ) -> Task | None:
        """Edit a task owned by owner_id. Returns None if no such task.

        Changing due_at leaves reminder log entries for the old date alone.
        """
        updates: dict[str, object] = {}
        if title is not None:
            updates["title"] = title
        if due_at is not None:
            updates["due_at"] = to_db_timestamp(due_at)
        if category is not _UNSET:
            updates["category"] = category
        if notes is not _UNSET:
            updates["notes"] = notes
        if is_priority is not None:
            updates["is_priority"] = int(is_priority)
        if is_recurring is not None:
            updates["is_recurring"] = int(is_recurring)

        if updates:
            updates["updated_at"] = _now_text()
            assignments = ", ".join(f"{col} = ?" for col in updates)
            with self._connect() as conn:
                cursor = conn.execute(
                    f"UPDATE tasks SET {assignments} WHERE id = ? AND owner_id = ?",
                    (*updates.values(), task_id, owner_id),
                )
            if cursor.rowcount == 0:
                return None
            logger.info("Task #%d updated (%s)", task_id, ", ".join(updates))

        task = self.get_task(task_id)
        if task is None or task.owner_id != owner_id:
            return None
        return task

    def delete_task(self, task_id: int, owner_id: int) -> bool:
        """Permanently delete a task owned by owner_id."""
        with self._connect() as conn:
            cursor = conn.execute(
                "DELETE FROM tasks WHERE id = ? AND owner_id = ?",
                (task_id, owner_id),
            )
        deleted = cursor.rowcount > 0
        if deleted:
            logger.info("Task #%d deleted", task_id)
        return deleted

    def list_tasks(self, owner_id: int) -> list[Task]:
        """Return all of a user's tasks, soonest first."""
        with self._connect() as conn:
            rows = conn.execute(
                "SELECT * FROM tasks WHERE owner_id = ? ORDER BY due_at",
                (owner_id,),
            ).fetchall()
        return [self._row_to_task(r) for r in rows]

    def find_tasks_for_user_in_range(
        self,
        user_id: int,
        start: datetime,
        end: datetime,
        limit: int | None = None,
    ) -> list[Task]:
        """Return user_id's tasks with start <= due_at <= end, soonest first."""
        query = (
            "SELECT * FROM tasks WHERE owner_id = ? AND due_at >= ? AND due_at <= ?"
            " ORDER BY due_at, id"
        )
        params: list = [user_id, to_db_timestamp(start), to_db_timestamp(end)]
        if limit is not None:
            query += " LIMIT ?"
            params.append(limit)

        try:
            with self._connect() as conn:
                rows = conn.execute(query, params).fetchall()
        except sqlite3.Error as exc:
            raise DirectoryReadError(f"Task query failed: {exc}") from exc

        return [self._row_to_task(r) for r in rows]


class UserDB:
    """SQLite-backed storage for registered students."""

    def __init__(self, db_path: str | None = None) -> None:
        if db_path is None:
            from src.config import settings
            db_path = settings.DATABASE_PATH

        self._db_path = db_path
        Path(db_path).parent.mkdir(parents=True, exist_ok=True)
        self._init_db()

    def _connect(self) -> sqlite3.Connection:
        conn = sqlite3.connect(self._db_path)
        conn.row_factory = sqlite3.Row
        return conn

    def _init_db(self) -> None:
        with self._connect() as conn:
            conn.execute("""
                CREATE TABLE IF NOT EXISTS users (
                    id                   INTEGER PRIMARY KEY AUTOINCREMENT,
                    email                TEXT    NOT NULL UNIQUE,
                    display_name         TEXT    NOT NULL,
                    student_id           TEXT,
                    college_name         TEXT,
                    reminders_enabled    INTEGER NOT NULL DEFAULT 1,
                    lead_times           TEXT,
                    daily_digest_enabled INTEGER NOT NULL DEFAULT 0,
                    reminder_time        TEXT    NOT NULL DEFAULT '17:30',
                    created_at           TEXT    NOT NULL
                )
            """)
            # Migrate existing DBs: add new columns if missing
            existing_cols = {
                row[1] for row in conn.execute("PRAGMA table_info(users)").fetchall()
            }
            if "reminder_time" not in existing_cols:
                conn.execute(
                    "ALTER TABLE users ADD COLUMN reminder_time TEXT NOT NULL DEFAULT '17:30'"
                )
        logger.debug("Users table initialized at %s", self._db_path)

    @staticmethod
    def _decode_lead_times(raw: str | None, user_id: int) -> list:
        if raw is None:
            return list(DEFAULT_LEAD_TIMES)
        try:
            value = json.loads(raw)
        except ValueError:
            logger.warning("User %d has unreadable lead times %r", user_id, raw)
            return list(DEFAULT_LEAD_TIMES)
        if not isinstance(value, list):
            return [value]
        return value

    @classmethod
    def _row_to_user(cls, row: sqlite3.Row) -> User:
        return User(
            id=row["id"],
            email=row["email"],
            display_name=row["display_name"],
            student_id=row["student_id"],
            college_name=row["college_name"],
            reminders_enabled=bool(row["reminders_enabled"]),
            lead_times=cls._decode_lead_times(row["lead_times"], row["id"]),
            daily_digest_enabled=bool(row["daily_digest_enabled"]),
            reminder_time=row["reminder_time"],
            created_at=row["created_at"],
        )

    def add_user(
        self,
        email: str,
        display_name: str,
        student_id: str | None = None,
        college_name: str | None = None,
    ) -> User:
        """Register a new user with default reminder preferences."""
        now = _now_text()
        with self._connect() as conn:
            cursor = conn.execute(
                """
                INSERT INTO users
                    (email, display_name, student_id, college_name,
                     reminders_enabled, lead_times, daily_digest_enabled,
                     reminder_time, created_at)
                VALUES (?, ?, ?, ?, 1, ?, 0, ?, ?)
                """,
                (
                    email.strip().lower(), display_name, student_id, college_name,
                    json.dumps(list(DEFAULT_LEAD_TIMES)), DEFAULT_REMINDER_TIME, now,
                ),
            )
            user_id = cursor.lastrowid

        logger.info("User registered: %d <%s>", user_id, email)
        return self.get_user(user_id)

    def get_user(self, user_id: int) -> User | None:
        """Fetch a user by ID."""
        with self._connect() as conn:
            row = conn.execute(
                "SELECT * FROM users WHERE id = ?", (user_id,)
            ).fetchone()
        if row is None:
            return None
        return self._row_to_user(row)

    def update_reminder_preferences(
        self,
        user_id: int,
        enabled: bool | None = None,
        lead_times: list[int] | None = None,
        daily_digest: bool | None = None,
        reminder_time: str | None = None,
    ) -> User | None:
        """Merge new reminder preferences into the stored ones.

        Arguments left as None keep their current value. Raises
        ConfigurationError for a lead time that is negative, non-integer or
        over a year, and for a reminder_time that is not HH:MM. Returns None
        if the user doesn't exist.
        """
        updates: dict[str, object] = {}
        if enabled is not None:
            updates["reminders_enabled"] = int(enabled)
        if lead_times is not None:
            updates["lead_times"] = json.dumps(normalize_lead_times(lead_times, strict=True))
        if daily_digest is not None:
            updates["daily_digest_enabled"] = int(daily_digest)
        if reminder_time is not None:
            updates["reminder_time"] = _validate_reminder_time(reminder_time)

        if updates:
            assignments = ", ".join(f"{col} = ?" for col in updates)
            with self._connect() as conn:
                conn.execute(
                    f"UPDATE users SET {assignments} WHERE id = ?",
                    (*updates.values(), user_id),
                )
            logger.info("Reminder preferences updated for user %d", user_id)

        return self.get_user(user_id)

    def _find(self, where: str) -> list[User]:
        try:
            with self._connect() as conn:
                rows = conn.execute(
                    f"SELECT * FROM users WHERE {where} ORDER BY id"
                ).fetchall()
        except sqlite3.Error as exc:
            raise DirectoryReadError(f"User query failed: {exc}") from exc
        return [self._row_to_user(r) for r in rows]

    def find_users_with_reminder_enabled(self) -> list[User]:
        """Users who opted into deadline reminders."""
        return self._find("reminders_enabled = 1")

    def find_users_with_digest_enabled(self) -> list[User]:
        """Users with reminders on and the daily digest opted in."""
        return self._find("reminders_enabled = 1 AND daily_digest_enabled = 1")
