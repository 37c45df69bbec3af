"""Shared test fixtures and configuration.

Sets up fake environment variables so src.config doesn't sys.exit(),
and provides common fixtures like temp DBs.
"""

import os

# Patch env vars BEFORE any src imports
os.environ.setdefault("EMAIL_USER", "reminders@example.com")
os.environ.setdefault("EMAIL_PASS", "fake-password-for-tests")
os.environ.setdefault("DATABASE_PATH", ":memory:")
os.environ.setdefault("TIMEZONE", "Asia/Kolkata")

import pytest


@pytest.fixture
def tmp_db_path(tmp_path):
    """Return a temporary SQLite DB path shared by all stores in a test."""
    return str(tmp_path / "test_deadlines.db")


@pytest.fixture
def task_db(tmp_db_path):
    """Return a TaskDB instance backed by a temp file."""
    from src.data.db import TaskDB
    return TaskDB(db_path=tmp_db_path)


@pytest.fixture
def user_db(tmp_db_path):
    """Return a UserDB instance backed by a temp file."""
    from src.data.db import UserDB
    return UserDB(db_path=tmp_db_path)


@pytest.fixture
def ledger(tmp_db_path):
    """Return a ReminderLedger instance backed by a temp file."""
    from src.data.ledger import ReminderLedger
    return ReminderLedger(db_path=tmp_db_path)
