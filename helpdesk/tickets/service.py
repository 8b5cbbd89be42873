from __future__ import annotations

import logging
from typing import Protocol

from opentelemetry import trace

from helpdesk.metrics import metrics_registry
from helpdesk.notifications.email import ChangeKind

from .constants import invalid_status_message
from .models import PagedResult, Ticket, TicketFilters, utc_now
from .repository import FileTicketRepository, TicketConflictError
from .state import TicketStatus
from .summary import TicketSummarizer

logger = logging.getLogger(__name__)
tracer = trace.get_tracer(__name__)


class TicketServiceError(RuntimeError):
    """Base error for ticket service issues."""


class InvalidTicketStatusError(TicketServiceError, ValueError):
    """Raised when an update names a status outside the fixed status set."""

    def __init__(self, value: str) -> None:
        super().__init__(invalid_status_message(value))
        self.value = value


class NotificationSink(Protocol):
    def notify_created(self, ticket: Ticket) -> bool:
        ...

    def notify_updated(self, ticket: Ticket, change_kind: ChangeKind) -> bool:
        ...


def _matches(ticket: Ticket, status: str | None, search: str | None) -> bool:
    if status and not ticket.status.matches(status):
        return False
    if search:
        return any(search in (field or "").casefold() for field in (ticket.name, ticket.email, ticket.description))
    return True


class TicketService:
    """Query shaping, status validation and side effects around the ticket store.

    Summaries are generated before a ticket is stored; notifications are handed
    to the notification sink after the store succeeded and are never awaited.
    """

    def __init__(
        self,
        repository: FileTicketRepository,
        *,
        summarizer: TicketSummarizer,
        notifications: NotificationSink,
    ) -> None:
        self._repository = repository
        self._summarizer = summarizer
        self._notifications = notifications

    async def get_tickets(self, filters: TicketFilters) -> PagedResult[Ticket]:
        tickets = await self._repository.get_all()
        status = filters.status.strip() if filters.status and filters.status.strip() else None
        search = filters.search.casefold() if filters.search and filters.search.strip() else None

        filtered = [ticket for ticket in tickets if _matches(ticket, status, search)]
        filtered.sort(key=lambda ticket: ticket.created_at, reverse=True)

        if filters.page < 1 or filters.page_size <= 0:
            items: list[Ticket] = []
        else:
            start = (filters.page - 1) * filters.page_size
            items = filtered[start : start + filters.page_size]

        return PagedResult(
            items=items,
            total_count=len(filtered),
            page=filters.page,
            page_size=filters.page_size,
        )

    async def get_ticket_by_id(self, ticket_id: str) -> Ticket | None:
        ticket = await self._repository.get_by_id(ticket_id)
        if ticket is None:
            logger.warning("Ticket %s not found", ticket_id)
        return ticket

    async def create_ticket(self, *, name: str, email: str, description: str) -> Ticket:
        with tracer.start_as_current_span("tickets.create"):
            summary = await self._generate_summary(description)

            now = utc_now()
            ticket = Ticket(
                name=name,
                email=email,
                description=description,
                summary=summary,
                image_url="",
                status=TicketStatus.initial_state(),
                resolution="",
                created_at=now,
                updated_at=now,
            )
            created = await self._repository.create(ticket)
            metrics_registry.counter("tickets_created_total").inc()
            logger.info("Created ticket %s (summary=%s)", created.id, "yes" if summary else "no")

            self._notifications.notify_created(created)
            return created

    async def update_ticket(
        self,
        ticket_id: str,
        *,
        status: str | None = None,
        resolution: str | None = None,
    ) -> Ticket | None:
        with tracer.start_as_current_span("tickets.update") as span:
            span.set_attribute("ticket.id", ticket_id)
            changes: set[ChangeKind] = set()

            def apply(ticket: Ticket) -> None:
                if status is not None and status.strip() and not ticket.status.matches(status):
                    new_status = TicketStatus.lookup(status)
                    if new_status is None:
                        logger.warning("Invalid status %r for ticket %s", status, ticket_id)
                        raise InvalidTicketStatusError(status)
                    ticket.status = new_status
                    changes.add(ChangeKind.STATUS_CHANGED)

                if resolution is not None and resolution != ticket.resolution:
                    ticket.resolution = resolution
                    changes.add(ChangeKind.RESOLUTION_ADDED)

            updated = await self._repository.modify(ticket_id, apply)
            if updated is None:
                logger.warning("Ticket %s not found for update", ticket_id)
                return None
            metrics_registry.counter("tickets_updated_total").inc()

            # A status change takes priority: only one notification per update.
            if ChangeKind.STATUS_CHANGED in changes:
                self._notifications.notify_updated(updated, ChangeKind.STATUS_CHANGED)
            elif ChangeKind.RESOLUTION_ADDED in changes:
                self._notifications.notify_updated(updated, ChangeKind.RESOLUTION_ADDED)

            return updated

    async def _generate_summary(self, description: str) -> str | None:
        try:
            return await self._summarizer.generate_summary(description)
        except Exception:
            logger.warning("Summary generation failed, creating ticket without summary", exc_info=True)
            return None


__all__ = [
    "InvalidTicketStatusError",
    "NotificationSink",
    "TicketConflictError",
    "TicketService",
    "TicketServiceError",
]
