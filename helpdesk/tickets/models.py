from __future__ import annotations

import math
from dataclasses import dataclass, field
from datetime import datetime, timezone
from typing import Generic, Sequence, TypeVar

from .constants import DEFAULT_PAGE, DEFAULT_PAGE_SIZE
from .state import TicketStatus

T = TypeVar("T")


def utc_now() -> datetime:
    return datetime.now(timezone.utc)


@dataclass(slots=True)
class Ticket:
    """Customer support request as persisted by the repository."""

    name: str
    email: str
    description: str
    id: str | None = None
    summary: str | None = None
    image_url: str = ""
    status: TicketStatus = TicketStatus.NEW
    resolution: str = ""
    created_at: datetime = field(default_factory=utc_now)
    updated_at: datetime = field(default_factory=utc_now)


@dataclass(slots=True)
class TicketFilters:
    """Query options accepted by :meth:`TicketService.get_tickets`."""

    status: str | None = None
    search: str | None = None
    page: int = DEFAULT_PAGE
    page_size: int = DEFAULT_PAGE_SIZE


@dataclass(slots=True)
class PagedResult(Generic[T]):
    """One page of a filtered result set."""

    items: Sequence[T]
    total_count: int
    page: int
    page_size: int

    @property
    def total_pages(self) -> int:
        if self.page_size <= 0:
            return 0
        return math.ceil(self.total_count / self.page_size)
