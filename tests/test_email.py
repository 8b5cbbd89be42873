import smtplib

import pytest

from helpdesk.notifications.email import (
    TICKET_CREATED_SUBJECT,
    TICKET_UPDATED_SUBJECT,
    ChangeKind,
    EmailSettings,
    SmtpEmailSender,
    resolution_added_body,
    status_updated_body,
    ticket_created_body,
)
from helpdesk.tickets.state import TicketStatus


class FakeSMTP:
    """Stand-in for :class:`smtplib.SMTP` that records every session."""

    def __init__(self, failures: int = 0) -> None:
        self.failures = failures
        self.connections: list[tuple[str, int]] = []
        self.logins: list[tuple[str, str]] = []
        self.messages = []
        self.tls = 0

    def __call__(self, host, port, timeout=None):
        self.connections.append((host, port))
        return self

    def __enter__(self):
        return self

    def __exit__(self, *exc_info):
        return False

    def starttls(self):
        self.tls += 1

    def login(self, username, password):
        self.logins.append((username, password))

    def send_message(self, message):
        if self.failures:
            self.failures -= 1
            raise smtplib.SMTPServerDisconnected("connection dropped")
        self.messages.append(message)


class RecordingSleep:
    def __init__(self) -> None:
        self.delays: list[float] = []

    async def __call__(self, delay: float) -> None:
        self.delays.append(delay)


def _sender(smtp: FakeSMTP, sleep: RecordingSleep | None = None, **overrides) -> SmtpEmailSender:
    settings = EmailSettings(smtp_host=overrides.pop("smtp_host", "smtp.example.com"), **overrides)
    return SmtpEmailSender(settings, smtp_factory=smtp, sleep=sleep or RecordingSleep())


def test_body_templates_include_ticket_details():
    assert "Ticket ID: t-1" in ticket_created_body("t-1")
    assert "New Status: Resolved" in status_updated_body("Resolved", "t-1")
    assert "Resolution: Swapped the cable" in resolution_added_body("Swapped the cable", "t-1")


@pytest.mark.asyncio
async def test_missing_host_skips_delivery():
    smtp = FakeSMTP()

    await _sender(smtp, smtp_host=" ").send("alice@example.com", "Subject", "Body")

    assert smtp.connections == []


@pytest.mark.asyncio
async def test_send_uses_starttls_and_login():
    smtp = FakeSMTP()
    sender = _sender(smtp, smtp_port=2525, smtp_username="mailer", smtp_password="secret", from_name="Support Team")

    await sender.send("alice@example.com", "Hello", "Body text")

    assert smtp.connections == [("smtp.example.com", 2525)]
    assert smtp.tls == 1
    assert smtp.logins == [("mailer", "secret")]
    message = smtp.messages[0]
    assert message["To"] == "alice@example.com"
    assert message["Subject"] == "Hello"
    assert "Support Team" in message["From"]
    assert message.get_content().strip() == "Body text"


@pytest.mark.asyncio
async def test_login_is_skipped_without_credentials():
    smtp = FakeSMTP()

    await _sender(smtp).send("alice@example.com", "Hello", "Body")

    assert smtp.logins == []
    assert len(smtp.messages) == 1


@pytest.mark.asyncio
async def test_transient_failures_are_retried_with_linear_backoff():
    smtp = FakeSMTP(failures=2)
    sleep = RecordingSleep()

    await _sender(smtp, sleep).send("alice@example.com", "Hello", "Body")

    assert sleep.delays == [2.0, 4.0]
    assert len(smtp.messages) == 1


@pytest.mark.asyncio
async def test_last_failure_is_raised():
    smtp = FakeSMTP(failures=5)
    sleep = RecordingSleep()
    sender = _sender(smtp, sleep, max_retry_attempts=3, retry_delay_seconds=1.0)

    with pytest.raises(smtplib.SMTPServerDisconnected):
        await sender.send("alice@example.com", "Hello", "Body")

    assert sleep.delays == [1.0, 2.0]
    assert len(smtp.connections) == 3


@pytest.mark.asyncio
async def test_ticket_notifications_pick_subject_and_body(ticket_factory):
    smtp = FakeSMTP()
    sender = _sender(smtp)
    ticket = ticket_factory(ticket_id="t-42")
    ticket.status = TicketStatus.IN_PROGRESS
    ticket.resolution = "Restarted the spooler"

    await sender.send_created(ticket)
    await sender.send_updated(ticket, ChangeKind.STATUS_CHANGED)
    await sender.send_updated(ticket, ChangeKind.RESOLUTION_ADDED)

    subjects = [message["Subject"] for message in smtp.messages]
    bodies = [message.get_content() for message in smtp.messages]
    assert subjects == [TICKET_CREATED_SUBJECT, TICKET_UPDATED_SUBJECT, TICKET_UPDATED_SUBJECT]
    assert "Ticket ID: t-42" in bodies[0]
    assert "New Status: In Progress" in bodies[1]
    assert "Resolution: Restarted the spooler" in bodies[2]


class RejectingSMTP(FakeSMTP):
    def send_message(self, message):
        raise ValueError("header contains a newline")


@pytest.mark.asyncio
async def test_any_delivery_error_is_retried_before_raising(caplog):
    smtp = RejectingSMTP()
    sleep = RecordingSleep()

    with pytest.raises(ValueError):
        await _sender(smtp, sleep).send("alice@example.com", "Hello", "Body")

    assert len(smtp.connections) == 3
    assert sleep.delays == [2.0, 4.0]
    assert "after 3 attempts" in caplog.text
