from __future__ import annotations

from datetime import datetime, timedelta, timezone

import pytest

from helpdesk.notifications.email import ChangeKind
from helpdesk.tickets.models import Ticket
from helpdesk.tickets.repository import FileTicketRepository
from helpdesk.tickets.service import TicketService


class RecordingNotifications:
    """Notification sink that remembers what it was asked to send."""

    def __init__(self) -> None:
        self.created: list[Ticket] = []
        self.updated: list[tuple[Ticket, ChangeKind]] = []

    def notify_created(self, ticket: Ticket) -> bool:
        self.created.append(ticket)
        return True

    def notify_updated(self, ticket: Ticket, change_kind: ChangeKind) -> bool:
        self.updated.append((ticket, change_kind))
        return True


class StubSummarizer:
    def __init__(self, result: str | None = None, error: BaseException | None = None) -> None:
        self.result = result
        self.error = error
        self.calls: list[str] = []

    async def generate_summary(self, description: str) -> str | None:
        self.calls.append(description)
        if self.error is not None:
            raise self.error
        return self.result


def make_ticket(
    name: str = "Alice Example",
    *,
    email: str = "alice@example.com",
    description: str = "The printer on floor two is jammed again.",
    minutes_ago: int = 0,
    ticket_id: str | None = None,
) -> Ticket:
    created = datetime(2024, 5, 1, 12, 0, tzinfo=timezone.utc) - timedelta(minutes=minutes_ago)
    return Ticket(
        id=ticket_id,
        name=name,
        email=email,
        description=description,
        created_at=created,
        updated_at=created,
    )


@pytest.fixture
def store_path(tmp_path):
    return tmp_path / "data" / "tickets.json"


@pytest.fixture
def repository(store_path) -> FileTicketRepository:
    return FileTicketRepository(store_path)


@pytest.fixture
def notifications() -> RecordingNotifications:
    return RecordingNotifications()


@pytest.fixture
def summarizer() -> StubSummarizer:
    return StubSummarizer(result="Printer jammed on floor two.")


@pytest.fixture
def service(repository, summarizer, notifications) -> TicketService:
    return TicketService(repository, summarizer=summarizer, notifications=notifications)


@pytest.fixture
def ticket_factory():
    return make_ticket


@pytest.fixture
def summarizer_factory():
    return StubSummarizer
