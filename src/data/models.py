"""
Academic Deadline — Data Models.

Users and tasks are owned by the rest of the application; the reminder
subsystem only reads them. Reminder log entries are the one piece of state
the scheduler writes.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from datetime import datetime

DEFAULT_LEAD_TIMES: tuple[int, ...] = (1, 3, 7)
DEFAULT_REMINDER_TIME = "17:30"

# Reminder kinds
KIND_DEADLINE = "deadline"
KIND_DAILY_DIGEST = "daily_digest"
REMINDER_KINDS = (KIND_DEADLINE, KIND_DAILY_DIGEST)

# Delivery outcomes
STATUS_SENT = "sent"
STATUS_FAILED = "failed"
STATUS_BOUNCED = "bounced"
REMINDER_STATUSES = (STATUS_SENT, STATUS_FAILED, STATUS_BOUNCED)


@dataclass
class User:
    """A registered student and their email reminder preferences."""

    id: int
    email: str
    display_name: str
    student_id: str | None = None
    college_name: str | None = None
    reminders_enabled: bool = True
    lead_times: list = field(default_factory=lambda: list(DEFAULT_LEAD_TIMES))
    daily_digest_enabled: bool = False
    reminder_time: str = DEFAULT_REMINDER_TIME   # "HH:MM", 24h
    created_at: str = ""


@dataclass
class Task:
    """An academic deadline owned by a single user."""

    id: int
    owner_id: int
    title: str
    due_at: datetime                  # timezone-aware, UTC
    category: str | None = None       # e.g. "Assignment", "Exam"
    notes: str | None = None
    is_priority: bool = False
    is_recurring: bool = False
    created_at: str = ""
    updated_at: str = ""


@dataclass
class ReminderLogEntry:
    """One delivery attempt recorded in the reminder ledger.

    lead_days is 0 for digest entries. due_at_snapshot keeps the task's due
    date at the time of the attempt, so later edits to the task don't rewrite
    history.
    """

    id: int
    user_id: int
    task_id: int
    kind: str
    lead_days: int
    due_at_snapshot: datetime
    status: str
    created_at: datetime
    error_detail: str | None = None


@dataclass
class ReminderLogView:
    """A ledger entry joined with its task for display."""

    entry: ReminderLogEntry
    task_title: str = "unknown"
    task_exists: bool = False
