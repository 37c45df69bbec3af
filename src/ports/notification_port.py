"""Notification port — abstract interface for delivering reminder messages.

Core modules depend on this protocol, never on a specific mail provider.
Implementations raise DeliveryError on failure and never retry on their own;
retries happen on the scheduler's next tick.
"""

from __future__ import annotations

from typing import Protocol

from src.data.models import Task, User

CATEGORY_AUTH = "auth"
CATEGORY_CONNECTION = "connection"
CATEGORY_OTHER = "other"


class DeliveryError(Exception):
    """Raised when a reminder message could not be delivered.

    Attributes:
        category: "auth", "connection" or "other", for logging.
        bounced: True when the provider refused the recipient address.
    """

    def __init__(
        self,
        message: str,
        category: str = CATEGORY_OTHER,
        bounced: bool = False,
    ) -> None:
        super().__init__(message)
        self.category = category
        self.bounced = bounced


class NotificationPort(Protocol):
    """Abstract notification interface used by the reminder scheduler."""

    async def send_deadline_batch(
        self, user: User, tasks: list[Task], lead_days: int
    ) -> None: ...

    async def send_digest(
        self, user: User, today_tasks: list[Task], upcoming_tasks: list[Task]
    ) -> None: ...
