"""
Academic Deadline — Reminder window math.

Pure helpers for turning "N days before the deadline" into concrete
[start, end] datetime bounds in the reference timezone, plus validation of
a user's configured lead times. No I/O here.
"""

from __future__ import annotations

import logging
import re
from datetime import date, datetime, time, timedelta, tzinfo

logger = logging.getLogger(__name__)

URGENCY_URGENT = "urgent"
URGENCY_WARNING = "warning"
URGENCY_INFO = "info"

MAX_LEAD_DAYS = 365


class ConfigurationError(ValueError):
    """Raised for malformed reminder preferences, e.g. a negative lead time."""


def day_bounds(day: date, tz: tzinfo) -> tuple[datetime, datetime]:
    """Return the first and last instant of `day` in `tz`, both inclusive."""
    start = datetime.combine(day, time.min, tzinfo=tz)
    end = datetime.combine(day, time.max, tzinfo=tz)
    return start, end


def lead_time_window(
    now: datetime, lead_days: int, tz: tzinfo
) -> tuple[datetime, datetime]:
    """Bounds of the calendar day that is `lead_days` after today.

    `now` may be in any timezone; "today" is taken in `tz`.
    """
    today = now.astimezone(tz).date()
    return day_bounds(today + timedelta(days=lead_days), tz)


def upcoming_window(
    now: datetime, lookahead_days: int, tz: tzinfo
) -> tuple[datetime, datetime]:
    """Window for the digest's "coming up" list.

    Starts right after today ends and runs to exactly `lookahead_days` from now.
    """
    _, end_of_today = day_bounds(now.astimezone(tz).date(), tz)
    return end_of_today + timedelta(microseconds=1), now + timedelta(days=lookahead_days)


def parse_lead_time(value: object) -> int:
    """Validate a single lead time. Raises ConfigurationError."""
    if isinstance(value, bool):
        raise ConfigurationError(f"Lead time must be an integer, got {value!r}")
    if isinstance(value, float) and value.is_integer():
        value = int(value)
    if isinstance(value, str) and re.fullmatch(r"-?[0-9]+", value.strip()):
        value = int(value.strip())
    if not isinstance(value, int):
        raise ConfigurationError(f"Lead time must be an integer, got {value!r}")
    if value < 0:
        raise ConfigurationError(f"Lead time must not be negative, got {value}")
    if value > MAX_LEAD_DAYS:
        raise ConfigurationError(
            f"Lead time must be at most {MAX_LEAD_DAYS} days, got {value}"
        )
    return value


def normalize_lead_times(
    values: list | tuple,
    strict: bool = False,
    user_id: int | None = None,
) -> list[int]:
    """Deduplicate and sort lead times.

    With strict=True the first invalid entry raises ConfigurationError.
    Otherwise invalid entries are skipped with a warning.
    """
    result: set[int] = set()
    for value in values:
        try:
            result.add(parse_lead_time(value))
        except ConfigurationError as exc:
            if strict:
                raise
            logger.warning("Skipping lead time for user %s: %s", user_id, exc)
    return sorted(result)


def urgency_for(lead_days: int) -> str:
    """0-1 days is urgent, 2-3 a warning, anything further informational."""
    if lead_days <= 1:
        return URGENCY_URGENT
    if lead_days <= 3:
        return URGENCY_WARNING
    return URGENCY_INFO
