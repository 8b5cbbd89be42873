from __future__ import annotations

import asyncio
import logging
import os
import tempfile
import uuid
from datetime import datetime, timezone
from pathlib import Path
from typing import Any, Callable, Sequence

from pydantic import AliasChoices, BaseModel, ConfigDict, Field, TypeAdapter, ValidationError, field_validator

from helpdesk.metrics import metrics_registry

from .models import Ticket, utc_now
from .state import TicketStatus, same_key

logger = logging.getLogger(__name__)


class TicketConflictError(RuntimeError):
    """Raised when a ticket id is already present in the store."""

    def __init__(self, ticket_id: str) -> None:
        super().__init__(f"Ticket with ID {ticket_id} already exists")
        self.ticket_id = ticket_id


def _stored(name: str, **kwargs: Any) -> Any:
    # Accept the PascalCase keys written by older deployments, always write camelCase.
    pascal = name[0].upper() + name[1:]
    return Field(validation_alias=AliasChoices(name, pascal), serialization_alias=name, **kwargs)


class StoredTicket(BaseModel):
    """On-disk shape of a ticket record."""

    model_config = ConfigDict(extra="ignore")

    id: str = _stored("id")
    name: str = _stored("name")
    email: str = _stored("email")
    description: str = _stored("description")
    summary: str | None = _stored("summary", default=None)
    image_url: str | None = _stored("imageUrl", default="")
    status: TicketStatus = _stored("status", default=TicketStatus.NEW)
    resolution: str | None = _stored("resolution", default="")
    created_at: datetime = _stored("createdAt")
    updated_at: datetime = _stored("updatedAt")

    @field_validator("status", mode="before")
    @classmethod
    def _parse_status(cls, value: Any) -> TicketStatus:
        if isinstance(value, TicketStatus):
            return value
        status = TicketStatus.lookup(str(value))
        if status is None:
            raise ValueError(f"unknown ticket status {value!r}")
        return status

    @field_validator("created_at", "updated_at")
    @classmethod
    def _ensure_utc(cls, value: datetime) -> datetime:
        if value.tzinfo is None:
            return value.replace(tzinfo=timezone.utc)
        return value.astimezone(timezone.utc)


_RECORDS = TypeAdapter(list[StoredTicket])


class FileTicketRepository:
    """Ticket store backed by a single JSON document.

    Every operation holds the repository lock for its whole read or
    read-modify-write span, so mutations are applied one at a time in lock
    acquisition order and reads never observe a half written file. The file is
    replaced atomically on each write.

    ``update`` stores the record it is handed as is. Changes derived from the
    current record go through ``modify``, which reads, edits and writes under
    the lock so a concurrent writer's change is never overwritten.

    A store that cannot be decoded reads as empty. The unreadable file is moved
    aside to ``<name>.corrupt-<timestamp>`` before the next write replaces it.
    """

    def __init__(self, file_path: str | os.PathLike[str]) -> None:
        self._path = Path(file_path)
        self._lock = asyncio.Lock()
        self._initialised = False

    @property
    def path(self) -> Path:
        return self._path

    async def get_all(self) -> list[Ticket]:
        async with self._lock:
            tickets, _ = await self._read_all()
            return tickets

    async def get_by_id(self, ticket_id: str | None) -> Ticket | None:
        if ticket_id is None or not ticket_id.strip():
            return None
        for ticket in await self.get_all():
            if same_key(ticket.id, ticket_id):
                return ticket
        return None

    async def create(self, ticket: Ticket) -> Ticket:
        if ticket is None:
            raise ValueError("ticket is required")
        if not ticket.id or not ticket.id.strip():
            ticket.id = str(uuid.uuid4())

        async with self._lock:
            tickets, malformed = await self._read_all()
            if any(same_key(existing.id, ticket.id) for existing in tickets):
                raise TicketConflictError(ticket.id)
            tickets.append(ticket)
            await self._write_all(tickets, backup_existing=malformed)
        logger.info("Stored ticket %s", ticket.id)
        return ticket

    async def update(self, ticket: Ticket | None) -> Ticket | None:
        if ticket is None or not ticket.id or not ticket.id.strip():
            return None

        async with self._lock:
            tickets, malformed = await self._read_all()
            index = _position(tickets, ticket.id)
            if index is None:
                return None
            ticket.updated_at = utc_now()
            tickets[index] = ticket
            await self._write_all(tickets, backup_existing=malformed)
        return ticket

    async def modify(self, ticket_id: str | None, mutate: Callable[[Ticket], None]) -> Ticket | None:
        """Apply ``mutate`` to the stored ticket and persist it in one lock span.

        ``mutate`` edits the ticket in place. If it raises, nothing is written
        and the exception propagates. Returns ``None`` when the id is blank or
        unknown.
        """

        if ticket_id is None or not ticket_id.strip():
            return None

        async with self._lock:
            tickets, malformed = await self._read_all()
            index = _position(tickets, ticket_id)
            if index is None:
                return None
            ticket = tickets[index]
            mutate(ticket)
            ticket.updated_at = utc_now()
            await self._write_all(tickets, backup_existing=malformed)
        return ticket

    async def _read_all(self) -> tuple[list[Ticket], bool]:
        """Return the stored tickets and whether the store was malformed."""

        await self._ensure_store()
        with metrics_registry.time_distribution(
            "ticket_store_operation_seconds", labels={"operation": "read"}
        ):
            raw = await asyncio.to_thread(self._path.read_bytes)
        if not raw.strip():
            return [], False
        try:
            records = _RECORDS.validate_json(raw)
        except ValidationError as exc:
            logger.error(
                "Ticket store %s is malformed, treating it as empty (%d errors)",
                self._path,
                exc.error_count(),
            )
            return [], True
        return [_record_to_ticket(record) for record in records], False

    async def _write_all(self, tickets: Sequence[Ticket], *, backup_existing: bool = False) -> None:
        payload = _RECORDS.dump_json(
            [_ticket_to_record(ticket) for ticket in tickets], by_alias=True, indent=2
        )
        with metrics_registry.time_distribution(
            "ticket_store_operation_seconds", labels={"operation": "write"}
        ):
            if backup_existing:
                backup = await asyncio.to_thread(self._backup_corrupt_store)
                logger.warning("Moved malformed ticket store to %s", backup)
            await asyncio.to_thread(self._replace_store, payload)

    async def _ensure_store(self) -> None:
        if self._initialised:
            return
        await asyncio.to_thread(self._create_if_missing)
        self._initialised = True

    def _create_if_missing(self) -> None:
        self._path.parent.mkdir(parents=True, exist_ok=True)
        if not self._path.exists():
            self._path.write_text("[]", encoding="utf-8")
            logger.info("Initialised empty ticket store at %s", self._path)

    def _backup_corrupt_store(self) -> Path:
        stamp = datetime.now(timezone.utc).strftime("%Y%m%dT%H%M%S%fZ")
        backup = self._path.with_name(f"{self._path.name}.corrupt-{stamp}")
        os.replace(self._path, backup)
        return backup

    def _replace_store(self, payload: bytes) -> None:
        fd, tmp_name = tempfile.mkstemp(dir=self._path.parent, prefix=f".{self._path.name}.", suffix=".tmp")
        try:
            with os.fdopen(fd, "wb") as handle:
                handle.write(payload)
                handle.flush()
                os.fsync(handle.fileno())
            os.replace(tmp_name, self._path)
        except BaseException:
            Path(tmp_name).unlink(missing_ok=True)
            raise


def _record_to_ticket(record: StoredTicket) -> Ticket:
    return Ticket(
        id=record.id,
        name=record.name,
        email=record.email,
        description=record.description,
        summary=record.summary,
        image_url=record.image_url or "",
        status=record.status,
        resolution=record.resolution or "",
        created_at=record.created_at,
        updated_at=record.updated_at,
    )


def _ticket_to_record(ticket: Ticket) -> StoredTicket:
    return StoredTicket.model_validate(
        {
            "id": ticket.id,
            "name": ticket.name,
            "email": ticket.email,
            "description": ticket.description,
            "summary": ticket.summary,
            "imageUrl": ticket.image_url,
            "status": ticket.status,
            "resolution": ticket.resolution,
            "createdAt": ticket.created_at,
            "updatedAt": ticket.updated_at,
        }
    )


def _position(tickets: Sequence[Ticket], ticket_id: str) -> int | None:
    return next(
        (index for index, existing in enumerate(tickets) if same_key(existing.id, ticket_id)),
        None,
    )
