"""SMTP delivery of ticket notifications."""

from __future__ import annotations

import asyncio
import logging
import smtplib
from dataclasses import dataclass
from email.message import EmailMessage
from email.utils import formataddr
from enum import Enum
from typing import Awaitable, Callable, Protocol

from helpdesk.core.config import Settings
from helpdesk.tickets.models import Ticket

logger = logging.getLogger(__name__)

DEFAULT_MAX_RETRIES = 3
DEFAULT_RETRY_DELAY_SECONDS = 2.0

TICKET_CREATED_SUBJECT = "Support Ticket Created"
TICKET_UPDATED_SUBJECT = "Support Ticket Updated"


class ChangeKind(str, Enum):
    """Kind of update a notification reports."""

    STATUS_CHANGED = "status"
    RESOLUTION_ADDED = "resolution"


def ticket_created_body(ticket_id: str) -> str:
    return f"Your support ticket has been created.\n\nTicket ID: {ticket_id}\n\nWe'll get back to you soon!"


def status_updated_body(status: str, ticket_id: str) -> str:
    return f"Your ticket status has been updated.\n\nTicket ID: {ticket_id}\nNew Status: {status}"


def resolution_added_body(resolution: str, ticket_id: str) -> str:
    return f"Your ticket has been updated with resolution.\n\nTicket ID: {ticket_id}\nResolution: {resolution}"


class TicketNotifier(Protocol):
    async def send_created(self, ticket: Ticket) -> None:
        ...

    async def send_updated(self, ticket: Ticket, change_kind: ChangeKind) -> None:
        ...


@dataclass(slots=True)
class EmailSettings:
    smtp_host: str | None
    smtp_port: int = 587
    smtp_username: str | None = None
    smtp_password: str | None = None
    from_address: str = "support@localhost"
    from_name: str = "Support Team"
    max_retry_attempts: int = DEFAULT_MAX_RETRIES
    retry_delay_seconds: float = DEFAULT_RETRY_DELAY_SECONDS
    timeout_seconds: float = 30.0

    @classmethod
    def from_settings(cls, settings: Settings) -> "EmailSettings":
        return cls(
            smtp_host=settings.smtp_host,
            smtp_port=settings.smtp_port,
            smtp_username=settings.smtp_username,
            smtp_password=settings.smtp_password,
            from_address=settings.email_from_address,
            from_name=settings.email_from_name,
            max_retry_attempts=settings.email_max_retry_attempts,
            retry_delay_seconds=settings.email_retry_delay_seconds,
        )


class SmtpEmailSender:
    """Send ticket emails over SMTP with linear backoff between attempts.

    Attempt ``n`` that fails is followed by a pause of ``n * retry_delay``
    seconds. When the last attempt fails the error is logged and re-raised.
    """

    def __init__(
        self,
        settings: EmailSettings,
        *,
        smtp_factory: Callable[..., smtplib.SMTP] = smtplib.SMTP,
        sleep: Callable[[float], Awaitable[None]] = asyncio.sleep,
    ) -> None:
        self._settings = settings
        self._smtp_factory = smtp_factory
        self._sleep = sleep

    async def send_created(self, ticket: Ticket) -> None:
        await self.send(ticket.email, TICKET_CREATED_SUBJECT, ticket_created_body(str(ticket.id)))

    async def send_updated(self, ticket: Ticket, change_kind: ChangeKind) -> None:
        if change_kind is ChangeKind.STATUS_CHANGED:
            body = status_updated_body(str(ticket.status), str(ticket.id))
        elif change_kind is ChangeKind.RESOLUTION_ADDED:
            body = resolution_added_body(ticket.resolution, str(ticket.id))
        else:  # pragma: no cover - enum is exhaustive
            body = f"Your ticket {ticket.id} has been updated."
        await self.send(ticket.email, TICKET_UPDATED_SUBJECT, body)

    async def send(self, to: str, subject: str, body: str) -> None:
        if not self._settings.smtp_host or not self._settings.smtp_host.strip():
            logger.warning("Cannot send email: SMTP host is not configured")
            return

        message = self._build_message(to, subject, body)
        max_retries = self._settings.max_retry_attempts
        if max_retries <= 0:
            max_retries = DEFAULT_MAX_RETRIES
        retry_delay = self._settings.retry_delay_seconds
        if retry_delay <= 0:
            retry_delay = DEFAULT_RETRY_DELAY_SECONDS

        for attempt in range(1, max_retries + 1):
            try:
                await asyncio.to_thread(self._deliver, message)
                logger.info("Sent '%s' email to %s", subject, to)
                return
            except Exception as exc:
                if attempt >= max_retries:
                    logger.error("Failed to send email to %s after %d attempts", to, max_retries)
                    raise
                delay = retry_delay * attempt
                logger.warning(
                    "Failed to send email to %s (attempt %d/%d): %s. Retrying in %ss",
                    to,
                    attempt,
                    max_retries,
                    exc,
                    delay,
                )
                await self._sleep(delay)

    def _build_message(self, to: str, subject: str, body: str) -> EmailMessage:
        message = EmailMessage()
        message["From"] = formataddr((self._settings.from_name, self._settings.from_address))
        message["To"] = to
        message["Subject"] = subject
        message.set_content(body)
        return message

    def _deliver(self, message: EmailMessage) -> None:
        settings = self._settings
        with self._smtp_factory(settings.smtp_host, settings.smtp_port, timeout=settings.timeout_seconds) as smtp:
            smtp.starttls()
            if settings.smtp_username and settings.smtp_password:
                smtp.login(settings.smtp_username, settings.smtp_password)
            smtp.send_message(message)
