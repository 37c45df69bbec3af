"""
Academic Deadline — Reminder Scheduler.

Deadline check: for every user with reminders on and every configured lead
time, email one batch of the tasks due on that day that haven't had a
reminder for that lead time yet, then log one ledger row per task.

Daily digest: one summary of today's and the coming week's tasks for users
who opted in.

Retention sweep: drop ledger rows past the retention window.

Each job runs at most once at a time; a trigger that fires while the previous
run is still going is skipped. This module is provider-agnostic: it depends on
the directory and notification protocols, not on SQLite or SMTP.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass, field
from datetime import datetime, timedelta, timezone
from typing import TYPE_CHECKING, Awaitable, Callable
from zoneinfo import ZoneInfo

from apscheduler.schedulers.asyncio import AsyncIOScheduler

from src.config import settings
from src.core.reminder_window import (
    day_bounds,
    lead_time_window,
    normalize_lead_times,
    upcoming_window,
)
from src.core.triggers import TriggerPolicy
from src.data.models import KIND_DEADLINE, STATUS_BOUNCED, STATUS_FAILED, STATUS_SENT
from src.ports.directory_port import DirectoryReadError
from src.ports.notification_port import CATEGORY_OTHER, DeliveryError

if TYPE_CHECKING:
    from src.data.ledger import ReminderLedger
    from src.data.models import Task, User
    from src.ports.directory_port import TaskDirectory, UserDirectory
    from src.ports.notification_port import NotificationPort

logger = logging.getLogger(__name__)

JOB_DEADLINE_CHECK = "deadline_check"
JOB_DAILY_DIGEST = "daily_digest"
JOB_RETENTION_SWEEP = "retention_sweep"


@dataclass
class JobSpec:
    """A recurring job: when it fires and what it runs."""

    name: str
    policy: TriggerPolicy
    func: Callable[[], Awaitable[int | None]]


@dataclass
class SchedulerStatus:
    initialized: bool
    active_job_count: int
    running_jobs: list[str] = field(default_factory=list)


def _utc_now() -> datetime:
    return datetime.now(timezone.utc)


class ReminderScheduler:
    """Owns the reminder jobs, their re-entrancy flags and their timer.

    Construct once at start-up and pass it to anything that needs the manual
    trigger or the status query.
    """

    def __init__(
        self,
        users: UserDirectory,
        tasks: TaskDirectory,
        ledger: ReminderLedger,
        notifier: NotificationPort,
        *,
        timezone_name: str | None = None,
        clock: Callable[[], datetime] | None = None,
        timer: AsyncIOScheduler | None = None,
        retention_days: int | None = None,
        digest_lookahead_days: int | None = None,
        digest_upcoming_limit: int | None = None,
        policies: dict[str, TriggerPolicy] | None = None,
    ) -> None:
        self._users = users
        self._tasks = tasks
        self._ledger = ledger
        self._notifier = notifier

        self._tz_name = timezone_name or settings.TIMEZONE
        self._tz = ZoneInfo(self._tz_name)
        self._clock = clock or _utc_now
        self._timer = timer if timer is not None else AsyncIOScheduler(timezone=self._tz)

        self._retention_days = (
            settings.LEDGER_RETENTION_DAYS if retention_days is None else retention_days
        )
        self._lookahead_days = (
            settings.DIGEST_LOOKAHEAD_DAYS if digest_lookahead_days is None else digest_lookahead_days
        )
        self._upcoming_limit = (
            settings.DIGEST_UPCOMING_LIMIT if digest_upcoming_limit is None else digest_upcoming_limit
        )

        self._policies = {
            JOB_DEADLINE_CHECK: TriggerPolicy.daily(settings.DEADLINE_CHECK_TIME, self._tz_name),
            JOB_DAILY_DIGEST: TriggerPolicy.daily(settings.DAILY_DIGEST_TIME, self._tz_name),
            JOB_RETENTION_SWEEP: TriggerPolicy.weekly(
                settings.RETENTION_SWEEP_WEEKDAY, settings.RETENTION_SWEEP_TIME, self._tz_name,
            ),
        }
        if policies:
            self._policies.update(policies)

        self._running: set[str] = set()
        self._initialized = False

    # ------------------------------------------------------------------
    # Lifecycle
    # ------------------------------------------------------------------

    def job_specs(self) -> list[JobSpec]:
        return [
            JobSpec(JOB_DEADLINE_CHECK, self._policies[JOB_DEADLINE_CHECK], self.run_deadline_check),
            JobSpec(JOB_DAILY_DIGEST, self._policies[JOB_DAILY_DIGEST], self.run_digest_check),
            JobSpec(JOB_RETENTION_SWEEP, self._policies[JOB_RETENTION_SWEEP], self.run_retention_sweep),
        ]

    def start(self) -> None:
        """Register all jobs with the timer and start it. Must run inside an event loop."""
        if self._initialized:
            logger.warning("Reminder scheduler already initialized")
            return

        logger.info("Starting reminder scheduler...")
        for spec in self.job_specs():
            self._timer.add_job(
                spec.func,
                trigger=spec.policy.to_trigger(),
                id=spec.name,
                name=spec.name,
                max_instances=1,
                coalesce=True,
                misfire_grace_time=3600,
                replace_existing=True,
            )
            logger.info("Job '%s' scheduled (%s)", spec.name, spec.policy.describe())

        if not self._timer.running:
            self._timer.start()
        self._initialized = True
        logger.info("Reminder scheduler initialized")

    def shutdown(self) -> None:
        """Remove all jobs and stop the timer."""
        if not self._initialized:
            return
        logger.info("Stopping reminder scheduler...")
        for spec in self.job_specs():
            if self._timer.get_job(spec.name) is not None:
                self._timer.remove_job(spec.name)
        if self._timer.running:
            self._timer.shutdown(wait=False)
        self._initialized = False

    def status(self) -> SchedulerStatus:
        active = len(self._timer.get_jobs()) if self._initialized else 0
        return SchedulerStatus(
            initialized=self._initialized,
            active_job_count=active,
            running_jobs=sorted(self._running),
        )

    def is_running(self, job_name: str) -> bool:
        return job_name in self._running

    async def _guarded(
        self, job_name: str, body: Callable[[], Awaitable[int]],
    ) -> int | None:
        """Run body unless job_name is already running. Never raises.

        The flag is checked and set with no await in between, so two triggers
        on the same event loop can't both get past it.
        """
        if job_name in self._running:
            logger.warning("Job '%s' is still running; skipping this trigger", job_name)
            return None

        self._running.add(job_name)
        try:
            return await body()
        except DirectoryReadError as exc:
            logger.error("Job '%s' aborted, directory unavailable: %s", job_name, exc)
            return None
        except Exception:
            logger.exception("Job '%s' failed", job_name)
            return None
        finally:
            self._running.discard(job_name)

    # ------------------------------------------------------------------
    # Deadline reminders
    # ------------------------------------------------------------------

    async def run_deadline_check(self) -> int | None:
        """One deadline tick. Returns reminders sent, or None if skipped/aborted."""
        return await self._guarded(JOB_DEADLINE_CHECK, self._deadline_tick)

    async def _deadline_tick(self) -> int:
        logger.info("Running deadline reminder check...")
        try:
            users = self._users.find_users_with_reminder_enabled()
        except DirectoryReadError:
            raise
        except Exception as exc:
            raise DirectoryReadError(f"Could not list users: {exc}") from exc

        now = self._clock()
        logger.info("Processing reminders for %d users...", len(users))

        total = 0
        for user in users:
            try:
                total += await self._process_user_deadlines(user, now)
            except Exception as exc:
                logger.error("Error processing reminders for user %d: %s", user.id, exc)

        logger.info("Deadline reminder check completed. Sent %d reminders.", total)
        return total

    async def run_deadline_check_for_user(self, user_id: int) -> int:
        """Run the deadline check for one user right now.

        Backs the "send me a test reminder" action. Raises LookupError for an
        unknown user and ValueError when that user has reminders turned off.
        Delivery failures are logged to the ledger, not raised.
        """
        user = self._users.get_user(user_id)
        if user is None:
            raise LookupError(f"User {user_id} not found")
        if not user.reminders_enabled:
            raise ValueError("Email reminders are disabled. Enable them first.")
        return await self._process_user_deadlines(user, self._clock())

    async def _process_user_deadlines(self, user: User, now: datetime) -> int:
        """Send every due batch for one user. Returns the number of tasks reminded."""
        sent = 0
        for lead_days in normalize_lead_times(user.lead_times, user_id=user.id):
            start, end = lead_time_window(now, lead_days, self._tz)
            tasks = self._tasks.find_tasks_for_user_in_range(user.id, start, end)
            pending = [
                t for t in tasks
                if not self._ledger.was_sent(user.id, t.id, KIND_DEADLINE, lead_days)
            ]
            if not pending:
                continue

            if await self._deliver_batch(user, pending, lead_days):
                sent += len(pending)
        return sent

    async def _deliver_batch(self, user: User, tasks: list[Task], lead_days: int) -> bool:
        attempted_at = self._clock()
        try:
            await self._notifier.send_deadline_batch(user, tasks, lead_days)
        except Exception as exc:
            bounced = isinstance(exc, DeliveryError) and exc.bounced
            category = exc.category if isinstance(exc, DeliveryError) else CATEGORY_OTHER
            logger.error(
                "Failed to send %d-day reminder to %s [%s]: %s",
                lead_days, user.email, category, exc,
            )
            status = STATUS_BOUNCED if bounced else STATUS_FAILED
            for task in tasks:
                self._ledger.record(
                    user.id, task.id, KIND_DEADLINE, lead_days, task.due_at,
                    status=status, error_detail=str(exc), created_at=attempted_at,
                )
            return False

        for task in tasks:
            self._ledger.record(
                user.id, task.id, KIND_DEADLINE, lead_days, task.due_at,
                status=STATUS_SENT, created_at=attempted_at,
            )
        logger.info(
            "Sent %d-day reminder to %s for %d task(s)", lead_days, user.email, len(tasks),
        )
        return True

    # ------------------------------------------------------------------
    # Daily digest
    # ------------------------------------------------------------------

    async def run_digest_check(self) -> int | None:
        """One digest tick. Returns digests sent, or None if skipped/aborted."""
        return await self._guarded(JOB_DAILY_DIGEST, self._digest_tick)

    async def _digest_tick(self) -> int:
        logger.info("Running daily digest job...")
        try:
            users = self._users.find_users_with_digest_enabled()
        except DirectoryReadError:
            raise
        except Exception as exc:
            raise DirectoryReadError(f"Could not list users: {exc}") from exc

        now = self._clock()
        logger.info("Processing daily digests for %d users...", len(users))

        sent = 0
        for user in users:
            try:
                if await self._process_user_digest(user, now):
                    sent += 1
            except Exception as exc:
                logger.error("Failed to send daily digest to %s: %s", user.email, exc)

        logger.info("Daily digest processing completed. Sent %d digests.", sent)
        return sent

    async def _process_user_digest(self, user: User, now: datetime) -> bool:
        start, end = day_bounds(now.astimezone(self._tz).date(), self._tz)
        today_tasks = self._tasks.find_tasks_for_user_in_range(user.id, start, end)

        up_start, up_end = upcoming_window(now, self._lookahead_days, self._tz)
        upcoming_tasks = self._tasks.find_tasks_for_user_in_range(
            user.id, up_start, up_end, limit=self._upcoming_limit,
        )

        if not today_tasks and not upcoming_tasks:
            logger.info("No tasks to report in daily digest for %s", user.email)
            return False

        await self._notifier.send_digest(user, today_tasks, upcoming_tasks)
        logger.info("Sent daily digest to %s", user.email)
        return True

    # ------------------------------------------------------------------
    # Retention
    # ------------------------------------------------------------------

    async def run_retention_sweep(self) -> int | None:
        """Purge ledger rows past the retention window. Returns rows removed."""
        return await self._guarded(JOB_RETENTION_SWEEP, self._retention_tick)

    async def _retention_tick(self) -> int:
        cutoff = self._clock() - timedelta(days=self._retention_days)
        removed = self._ledger.purge_older_than(cutoff)
        logger.info("Retention sweep removed %d reminder log entries", removed)
        return removed
