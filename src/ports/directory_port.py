"""Directory ports — the user and task lookups the reminder scheduler reads.

Core modules depend on these protocols, never on a specific store.
"""

from __future__ import annotations

from datetime import datetime
from typing import Protocol

from src.data.models import Task, User


class DirectoryReadError(Exception):
    """Raised when a user or task query cannot be served by the store."""


class UserDirectory(Protocol):
    """Read access to users and their reminder preferences."""

    def get_user(self, user_id: int) -> User | None: ...

    def find_users_with_reminder_enabled(self) -> list[User]: ...

    def find_users_with_digest_enabled(self) -> list[User]: ...


class TaskDirectory(Protocol):
    """Read access to tasks by owner and due date."""

    def find_tasks_for_user_in_range(
        self,
        user_id: int,
        start: datetime,
        end: datetime,
        limit: int | None = None,
    ) -> list[Task]: ...
