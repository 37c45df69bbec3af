"""Tests for src.core.triggers — policy data to APScheduler triggers."""

from datetime import datetime
from zoneinfo import ZoneInfo

import pytest
from apscheduler.triggers.cron import CronTrigger
from apscheduler.triggers.interval import IntervalTrigger

from src.core.triggers import TriggerPolicy

IST = ZoneInfo("Asia/Kolkata")


class TestTriggerPolicy:
    def test_daily_fires_at_configured_time(self):
        trigger = TriggerPolicy.daily("17:30", "Asia/Kolkata").to_trigger()
        assert isinstance(trigger, CronTrigger)
        now = datetime(2026, 3, 10, 9, 0, tzinfo=IST)
        assert trigger.get_next_fire_time(None, now) == datetime(2026, 3, 10, 17, 30, tzinfo=IST)

    def test_daily_rolls_to_next_day(self):
        trigger = TriggerPolicy.daily("17:30", "Asia/Kolkata").to_trigger()
        now = datetime(2026, 3, 10, 18, 0, tzinfo=IST)
        assert trigger.get_next_fire_time(None, now) == datetime(2026, 3, 11, 17, 30, tzinfo=IST)

    def test_weekly_on_sunday(self):
        trigger = TriggerPolicy.weekly("sun", "02:00", "Asia/Kolkata").to_trigger()
        # 10 March 2026 is a Tuesday
        now = datetime(2026, 3, 10, 9, 0, tzinfo=IST)
        assert trigger.get_next_fire_time(None, now) == datetime(2026, 3, 15, 2, 0, tzinfo=IST)

    def test_interval(self):
        trigger = TriggerPolicy.interval(15).to_trigger()
        assert isinstance(trigger, IntervalTrigger)

    def test_interval_must_be_positive(self):
        with pytest.raises(ValueError):
            TriggerPolicy.interval(0)

    def test_bad_time_rejected(self):
        with pytest.raises(ValueError):
            TriggerPolicy.daily("half past five", "UTC")

    def test_describe(self):
        assert TriggerPolicy.daily("18:15", "UTC").describe() == "daily at 18:15 UTC"
        assert TriggerPolicy.weekly("sun", "02:00", "UTC").describe() == "sun at 02:00 UTC"
        assert TriggerPolicy.interval(5).describe() == "every 5 min"
