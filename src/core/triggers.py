"""
Academic Deadline — Job trigger policies.

A TriggerPolicy is plain data describing when a job should run. It is turned
into an APScheduler trigger only when the job is registered, so the job
bodies can be tested by calling them directly.
"""

from __future__ import annotations

from dataclasses import dataclass

from apscheduler.triggers.cron import CronTrigger
from apscheduler.triggers.interval import IntervalTrigger

POLICY_DAILY = "daily"
POLICY_WEEKLY = "weekly"
POLICY_INTERVAL = "interval"


def _split_hhmm(value: str) -> tuple[int, int]:
    hour, minute = value.split(":")
    return int(hour), int(minute)


@dataclass(frozen=True)
class TriggerPolicy:
    kind: str
    timezone: str = "UTC"
    at: str | None = None              # "HH:MM" for daily/weekly
    weekday: str | None = None         # "mon".."sun" for weekly
    every_minutes: int | None = None   # for interval

    @classmethod
    def daily(cls, at: str, timezone: str) -> TriggerPolicy:
        _split_hhmm(at)
        return cls(kind=POLICY_DAILY, timezone=timezone, at=at)

    @classmethod
    def weekly(cls, weekday: str, at: str, timezone: str) -> TriggerPolicy:
        _split_hhmm(at)
        return cls(kind=POLICY_WEEKLY, timezone=timezone, at=at, weekday=weekday)

    @classmethod
    def interval(cls, minutes: int, timezone: str = "UTC") -> TriggerPolicy:
        if minutes <= 0:
            raise ValueError(f"Interval must be positive, got {minutes}")
        return cls(kind=POLICY_INTERVAL, timezone=timezone, every_minutes=minutes)

    def to_trigger(self) -> CronTrigger | IntervalTrigger:
        """Build the APScheduler trigger for this policy."""
        if self.kind == POLICY_INTERVAL:
            return IntervalTrigger(minutes=self.every_minutes, timezone=self.timezone)

        hour, minute = _split_hhmm(self.at)
        if self.kind == POLICY_DAILY:
            return CronTrigger(hour=hour, minute=minute, timezone=self.timezone)
        if self.kind == POLICY_WEEKLY:
            return CronTrigger(
                day_of_week=self.weekday, hour=hour, minute=minute, timezone=self.timezone,
            )
        raise ValueError(f"Unknown trigger policy: {self.kind!r}")

    def describe(self) -> str:
        if self.kind == POLICY_INTERVAL:
            return f"every {self.every_minutes} min"
        if self.kind == POLICY_WEEKLY:
            return f"{self.weekday} at {self.at} {self.timezone}"
        return f"daily at {self.at} {self.timezone}"
