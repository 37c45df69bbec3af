"""
Academic Deadline — Centralized configuration.

Loads all settings from .env and validates required keys.
This module is the foundation for every other module in the project.
"""

from __future__ import annotations

import os
import sys
from pathlib import Path

from dotenv import load_dotenv
from pydantic import BaseModel, field_validator

# Load .env from project root (two levels up from src/config.py)
_ENV_PATH = Path(__file__).resolve().parent.parent / ".env"
load_dotenv(_ENV_PATH)

_WEEKDAYS = ("mon", "tue", "wed", "thu", "fri", "sat", "sun")


class Settings(BaseModel):
    """Application settings loaded from environment variables."""

    APP_NAME: str = "Academic Deadline"

    # SMTP transport
    EMAIL_USER: str
    EMAIL_PASS: str
    EMAIL_FROM: str = ""          # empty → EMAIL_USER
    SMTP_HOST: str = "smtp.gmail.com"
    SMTP_PORT: int = 587
    SMTP_USE_TLS: bool = True
    SMTP_TIMEOUT_SECONDS: float = 30.0

    # SQLite
    DATABASE_PATH: str = "data/deadlines.db"

    # Reference timezone for day-window math and job triggers
    TIMEZONE: str = "Asia/Kolkata"

    # Job schedule (HH:MM in TIMEZONE)
    DEADLINE_CHECK_TIME: str = "17:30"
    DAILY_DIGEST_TIME: str = "18:15"
    RETENTION_SWEEP_WEEKDAY: str = "sun"
    RETENTION_SWEEP_TIME: str = "02:00"

    # Reminder policy
    LEDGER_RETENTION_DAYS: int = 90
    DIGEST_LOOKAHEAD_DAYS: int = 7
    DIGEST_UPCOMING_LIMIT: int = 10

    @field_validator("DEADLINE_CHECK_TIME", "DAILY_DIGEST_TIME", "RETENTION_SWEEP_TIME")
    @classmethod
    def check_hhmm(cls, v: str) -> str:
        parts = v.strip().split(":")
        if len(parts) != 2 or not all(p.isdigit() for p in parts):
            raise ValueError(f"expected HH:MM, got {v!r}")
        hour, minute = int(parts[0]), int(parts[1])
        if not (0 <= hour < 24 and 0 <= minute < 60):
            raise ValueError(f"time out of range: {v!r}")
        return f"{hour:02d}:{minute:02d}"

    @field_validator("RETENTION_SWEEP_WEEKDAY")
    @classmethod
    def check_weekday(cls, v: str) -> str:
        day = v.strip().lower()[:3]
        if day not in _WEEKDAYS:
            raise ValueError(f"unknown weekday: {v!r}")
        return day

    @field_validator("SMTP_USE_TLS", mode="before")
    @classmethod
    def parse_bool(cls, v: str | bool) -> bool:
        if isinstance(v, bool):
            return v
        return str(v).strip().lower() in ("1", "true", "yes", "on")

    @property
    def sender(self) -> str:
        return self.EMAIL_FROM or self.EMAIL_USER


def _load_settings() -> Settings:
    """Load settings from environment, validating required keys."""
    email_user = os.getenv("EMAIL_USER", "")
    email_pass = os.getenv("EMAIL_PASS", "")

    if not email_user or email_user.startswith("your-"):
        print("ERROR: EMAIL_USER is missing or not set in .env", file=sys.stderr)
        sys.exit(1)

    if not email_pass or email_pass.startswith("your-"):
        print("ERROR: EMAIL_PASS is missing or not set in .env", file=sys.stderr)
        sys.exit(1)

    return Settings(
        APP_NAME=os.getenv("APP_NAME", "Academic Deadline"),
        EMAIL_USER=email_user,
        EMAIL_PASS=email_pass,
        EMAIL_FROM=os.getenv("EMAIL_FROM", ""),
        SMTP_HOST=os.getenv("SMTP_HOST", "smtp.gmail.com"),
        SMTP_PORT=os.getenv("SMTP_PORT", "587"),
        SMTP_USE_TLS=os.getenv("SMTP_USE_TLS", "true"),
        SMTP_TIMEOUT_SECONDS=os.getenv("SMTP_TIMEOUT_SECONDS", "30"),
        DATABASE_PATH=os.getenv("DATABASE_PATH", "data/deadlines.db"),
        TIMEZONE=os.getenv("TIMEZONE", "Asia/Kolkata"),
        DEADLINE_CHECK_TIME=os.getenv("DEADLINE_CHECK_TIME", "17:30"),
        DAILY_DIGEST_TIME=os.getenv("DAILY_DIGEST_TIME", "18:15"),
        RETENTION_SWEEP_WEEKDAY=os.getenv("RETENTION_SWEEP_WEEKDAY", "sun"),
        RETENTION_SWEEP_TIME=os.getenv("RETENTION_SWEEP_TIME", "02:00"),
        LEDGER_RETENTION_DAYS=os.getenv("LEDGER_RETENTION_DAYS", "90"),
        DIGEST_LOOKAHEAD_DAYS=os.getenv("DIGEST_LOOKAHEAD_DAYS", "7"),
        DIGEST_UPCOMING_LIMIT=os.getenv("DIGEST_UPCOMING_LIMIT", "10"),
    )


# Singleton — imported by all other modules as:
#   from src.config import settings
settings = _load_settings()
