"""Email notifications sent when tickets are created or updated."""

from .dispatcher import NotificationDispatcher, NotificationJob
from .email import ChangeKind, EmailSettings, SmtpEmailSender, TicketNotifier

__all__ = [
    "ChangeKind",
    "EmailSettings",
    "NotificationDispatcher",
    "NotificationJob",
    "SmtpEmailSender",
    "TicketNotifier",
]
