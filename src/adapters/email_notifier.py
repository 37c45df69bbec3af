"""SMTP email adapter — implements NotificationPort.

Uses smtplib (sync) wrapped with asyncio.to_thread for async compatibility.
Every smtplib failure is mapped to a DeliveryError with a category the
scheduler can log; no retries happen here.
"""

from __future__ import annotations

import asyncio
import logging
import smtplib
import ssl
from datetime import datetime, timezone
from email.message import EmailMessage
from zoneinfo import ZoneInfo

from src.config import settings
from src.core.email_templates import RenderedEmail, render_deadline_batch, render_digest
from src.data.models import Task, User
from src.ports.notification_port import (
    CATEGORY_AUTH,
    CATEGORY_CONNECTION,
    CATEGORY_OTHER,
    DeliveryError,
)

logger = logging.getLogger(__name__)


def _classify(exc: Exception) -> DeliveryError:
    """Map an smtplib/socket exception to a DeliveryError."""
    if isinstance(exc, smtplib.SMTPAuthenticationError):
        return DeliveryError(f"SMTP authentication failed: {exc}", CATEGORY_AUTH)
    if isinstance(exc, smtplib.SMTPRecipientsRefused):
        return DeliveryError(f"Recipient refused: {exc}", CATEGORY_OTHER, bounced=True)
    if isinstance(exc, (smtplib.SMTPConnectError, smtplib.SMTPServerDisconnected)):
        return DeliveryError(f"SMTP connection failed: {exc}", CATEGORY_CONNECTION)
    if isinstance(exc, smtplib.SMTPException):
        return DeliveryError(f"SMTP error: {exc}", CATEGORY_OTHER)
    if isinstance(exc, OSError):
        return DeliveryError(f"Network error: {exc}", CATEGORY_CONNECTION)
    return DeliveryError(f"Unexpected delivery error: {exc}", CATEGORY_OTHER)


class EmailNotifier:
    """SMTP implementation of NotificationPort."""

    def __init__(
        self,
        host: str | None = None,
        port: int | None = None,
        username: str | None = None,
        password: str | None = None,
        sender: str | None = None,
        use_tls: bool | None = None,
        timeout: float | None = None,
        timezone_name: str | None = None,
    ) -> None:
        self._host = host or settings.SMTP_HOST
        self._port = port or settings.SMTP_PORT
        self._username = username or settings.EMAIL_USER
        self._password = password or settings.EMAIL_PASS
        self._sender = sender or settings.sender
        self._use_tls = settings.SMTP_USE_TLS if use_tls is None else use_tls
        self._timeout = timeout or settings.SMTP_TIMEOUT_SECONDS
        self._tz = ZoneInfo(timezone_name or settings.TIMEZONE)

    def _build_message(self, to: str, rendered: RenderedEmail) -> EmailMessage:
        msg = EmailMessage()
        msg["Subject"] = rendered.subject
        msg["From"] = self._sender
        msg["To"] = to
        msg.set_content(rendered.text)
        msg.add_alternative(rendered.html, subtype="html")
        return msg

    def _deliver(self, msg: EmailMessage) -> None:
        with smtplib.SMTP(self._host, self._port, timeout=self._timeout) as server:
            if self._use_tls:
                server.starttls(context=ssl.create_default_context())
            if self._username:
                server.login(self._username, self._password)
            server.send_message(msg)

    async def _send(self, to: str, rendered: RenderedEmail) -> None:
        msg = self._build_message(to, rendered)
        try:
            await asyncio.to_thread(self._deliver, msg)
        except Exception as exc:
            error = _classify(exc)
            logger.error("Failed to send '%s' to %s [%s]: %s", rendered.subject, to, error.category, exc)
            raise error from exc
        logger.info("Email '%s' sent to %s", rendered.subject, to)

    async def send_deadline_batch(
        self, user: User, tasks: list[Task], lead_days: int
    ) -> None:
        rendered = render_deadline_batch(user, tasks, lead_days, self._tz, settings.APP_NAME)
        await self._send(user.email, rendered)

    async def send_digest(
        self, user: User, today_tasks: list[Task], upcoming_tasks: list[Task]
    ) -> None:
        rendered = render_digest(
            user, today_tasks, upcoming_tasks,
            now=datetime.now(timezone.utc), tz=self._tz, app_name=settings.APP_NAME,
        )
        await self._send(user.email, rendered)
