"""
Academic Deadline — Reminder Ledger.

Append-only record of every reminder delivery attempt. This is the single
place that answers "was this reminder already sent?": a partial unique index
allows at most one 'sent' row per (user, task, kind, lead_days), while failed
and bounced attempts may repeat freely.
"""

from __future__ import annotations

import logging
import sqlite3
from datetime import datetime, timezone
from pathlib import Path

from src.data.db import from_db_timestamp, to_db_timestamp
from src.data.models import (
    REMINDER_KINDS,
    REMINDER_STATUSES,
    STATUS_SENT,
    ReminderLogEntry,
    ReminderLogView,
)

logger = logging.getLogger(__name__)


class ReminderLedger:
    """SQLite-backed reminder log with at-most-once 'sent' semantics."""

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
                CREATE TABLE IF NOT EXISTS reminder_log (
                    id               INTEGER PRIMARY KEY AUTOINCREMENT,
                    user_id          INTEGER NOT NULL,
                    task_id          INTEGER NOT NULL,
                    kind             TEXT    NOT NULL,
                    lead_days        INTEGER NOT NULL,
                    due_at_snapshot  TEXT    NOT NULL,
                    status           TEXT    NOT NULL DEFAULT 'sent',
                    error_detail     TEXT,
                    created_at       TEXT    NOT NULL
                )
            """)
            conn.execute("""
                CREATE UNIQUE INDEX IF NOT EXISTS uq_reminder_log_sent
                ON reminder_log (user_id, task_id, kind, lead_days)
                WHERE status = 'sent'
            """)
            conn.execute(
                "CREATE INDEX IF NOT EXISTS idx_reminder_log_created ON reminder_log (created_at)"
            )
        logger.debug("Reminder log table initialized at %s", self._db_path)

    @staticmethod
    def _row_to_entry(row: sqlite3.Row) -> ReminderLogEntry:
        return ReminderLogEntry(
            id=row["id"],
            user_id=row["user_id"],
            task_id=row["task_id"],
            kind=row["kind"],
            lead_days=row["lead_days"],
            due_at_snapshot=from_db_timestamp(row["due_at_snapshot"]),
            status=row["status"],
            error_detail=row["error_detail"],
            created_at=from_db_timestamp(row["created_at"]),
        )

    def was_sent(self, user_id: int, task_id: int, kind: str, lead_days: int) -> bool:
        """True iff a 'sent' entry exists for exactly this tuple."""
        with self._connect() as conn:
            row = conn.execute(
                """
                SELECT 1 FROM reminder_log
                WHERE user_id = ? AND task_id = ? AND kind = ? AND lead_days = ?
                  AND status = 'sent'
                """,
                (user_id, task_id, kind, lead_days),
            ).fetchone()
        return row is not None

    def _find_sent(
        self, conn: sqlite3.Connection, user_id: int, task_id: int, kind: str, lead_days: int,
    ) -> ReminderLogEntry | None:
        row = conn.execute(
            """
            SELECT * FROM reminder_log
            WHERE user_id = ? AND task_id = ? AND kind = ? AND lead_days = ?
              AND status = 'sent'
            """,
            (user_id, task_id, kind, lead_days),
        ).fetchone()
        return self._row_to_entry(row) if row is not None else None

    def record(
        self,
        user_id: int,
        task_id: int,
        kind: str,
        lead_days: int,
        due_at_snapshot: datetime,
        status: str = STATUS_SENT,
        error_detail: str | None = None,
        created_at: datetime | None = None,
    ) -> ReminderLogEntry:
        """Append a delivery outcome.

        A second 'sent' row for the same (user, task, kind, lead_days) is
        rejected by the unique index; in that case nothing is written and the
        existing row is returned.
        """
        if kind not in REMINDER_KINDS:
            raise ValueError(f"Unknown reminder kind: {kind!r}")
        if status not in REMINDER_STATUSES:
            raise ValueError(f"Unknown reminder status: {status!r}")
        if lead_days < 0:
            raise ValueError(f"lead_days must not be negative, got {lead_days}")

        if created_at is None:
            created_at = datetime.now(timezone.utc)

        with self._connect() as conn:
            try:
                cursor = conn.execute(
                    """
                    INSERT INTO reminder_log
                        (user_id, task_id, kind, lead_days, due_at_snapshot,
                         status, error_detail, created_at)
                    VALUES (?, ?, ?, ?, ?, ?, ?, ?)
                    """,
                    (
                        user_id, task_id, kind, lead_days,
                        to_db_timestamp(due_at_snapshot), status, error_detail,
                        to_db_timestamp(created_at),
                    ),
                )
            except sqlite3.IntegrityError:
                existing = self._find_sent(conn, user_id, task_id, kind, lead_days)
                if existing is None:
                    raise
                logger.info(
                    "Reminder already logged for user %d, task %d (%s, %d days)",
                    user_id, task_id, kind, lead_days,
                )
                return existing

            row = conn.execute(
                "SELECT * FROM reminder_log WHERE id = ?", (cursor.lastrowid,)
            ).fetchone()

        return self._row_to_entry(row)

    def purge_older_than(self, cutoff: datetime) -> int:
        """Delete every entry created strictly before cutoff. Returns the count."""
        with self._connect() as conn:
            cursor = conn.execute(
                "DELETE FROM reminder_log WHERE created_at < ?",
                (to_db_timestamp(cutoff),),
            )
        removed = cursor.rowcount
        logger.info("Purged %d reminder log entries older than %s", removed, cutoff.isoformat())
        return removed

    def entries_for(
        self, user_id: int, task_id: int, kind: str | None = None,
    ) -> list[ReminderLogEntry]:
        """All attempts for one user/task pair, oldest first."""
        query = "SELECT * FROM reminder_log WHERE user_id = ? AND task_id = ?"
        params: list = [user_id, task_id]
        if kind is not None:
            query += " AND kind = ?"
            params.append(kind)
        query += " ORDER BY created_at, id"
        with self._connect() as conn:
            rows = conn.execute(query, params).fetchall()
        return [self._row_to_entry(r) for r in rows]

    def recent_for_user(self, user_id: int, limit: int = 20) -> list[ReminderLogView]:
        """Latest attempts for a user, newest first, with task titles.

        Tasks deleted since the reminder was logged show up as "unknown".
        The tasks table may not exist when the ledger lives in its own file.
        """
        with self._connect() as conn:
            has_tasks = conn.execute(
                "SELECT 1 FROM sqlite_master WHERE type = 'table' AND name = 'tasks'"
            ).fetchone() is not None
            if has_tasks:
                rows = conn.execute(
                    """
                    SELECT l.*, t.title AS task_title
                    FROM reminder_log l LEFT JOIN tasks t ON t.id = l.task_id
                    WHERE l.user_id = ?
                    ORDER BY l.created_at DESC, l.id DESC
                    LIMIT ?
                    """,
                    (user_id, limit),
                ).fetchall()
            else:
                rows = conn.execute(
                    """
                    SELECT l.*, NULL AS task_title FROM reminder_log l
                    WHERE l.user_id = ?
                    ORDER BY l.created_at DESC, l.id DESC
                    LIMIT ?
                    """,
                    (user_id, limit),
                ).fetchall()

        views = []
        for row in rows:
            title = row["task_title"]
            views.append(ReminderLogView(
                entry=self._row_to_entry(row),
                task_title=title if title is not None else "unknown",
                task_exists=title is not None,
            ))
        return views

    def status_counts(self, since: datetime | None = None) -> dict[str, int]:
        """Number of entries per status, optionally only those created since `since`."""
        query = "SELECT status, COUNT(*) AS n FROM reminder_log"
        params: list = []
        if since is not None:
            query += " WHERE created_at >= ?"
            params.append(to_db_timestamp(since))
        query += " GROUP BY status"
        with self._connect() as conn:
            rows = conn.execute(query, params).fetchall()
        counts = {status: 0 for status in REMINDER_STATUSES}
        counts.update({row["status"]: row["n"] for row in rows})
        return counts
