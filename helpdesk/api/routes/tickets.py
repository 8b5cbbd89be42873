from __future__ import annotations

import logging
from datetime import datetime

from fastapi import APIRouter, HTTPException, Query, Response, status
from pydantic import BaseModel, ConfigDict, Field, field_validator
from pydantic.alias_generators import to_camel
from pydantic.networks import validate_email

from helpdesk.dependencies.tickets import StaffUser, TicketServiceDep
from helpdesk.tickets.constants import (
    DEFAULT_PAGE,
    DEFAULT_PAGE_SIZE,
    MAX_DESCRIPTION_LENGTH,
    MAX_EMAIL_LENGTH,
    MAX_NAME_LENGTH,
    MAX_PAGE_SIZE,
    MIN_DESCRIPTION_LENGTH,
    MIN_NAME_LENGTH,
    MIN_PAGE_SIZE,
    TICKET_NOT_FOUND,
)
from helpdesk.tickets.models import PagedResult, Ticket, TicketFilters
from helpdesk.tickets.service import InvalidTicketStatusError, TicketConflictError
from helpdesk.tickets.state import TicketStatus

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/api/tickets", tags=["tickets"])


class _CamelModel(BaseModel):
    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True, from_attributes=True)


class TicketCreateRequest(BaseModel):
    name: str = Field(..., min_length=MIN_NAME_LENGTH, max_length=MAX_NAME_LENGTH)
    email: str
    description: str = Field(..., min_length=MIN_DESCRIPTION_LENGTH, max_length=MAX_DESCRIPTION_LENGTH)

    @field_validator("name", "description")
    @classmethod
    def _not_blank(cls, value: str) -> str:
        if not value.strip():
            raise ValueError("must not be blank")
        return value

    @field_validator("email")
    @classmethod
    def _email_shape(cls, value: str) -> str:
        # Only the shape is checked; the address is stored exactly as submitted.
        if len(value) > MAX_EMAIL_LENGTH:
            raise ValueError(f"must be at most {MAX_EMAIL_LENGTH} characters")
        _, address = validate_email(value)
        if address.casefold() != value.casefold():
            raise ValueError("value is not a valid email address")
        return value


class TicketUpdateRequest(BaseModel):
    status: str | None = None
    resolution: str | None = None


class TicketResponse(_CamelModel):
    id: str
    name: str
    email: str
    description: str
    summary: str | None
    image_url: str | None
    status: TicketStatus
    resolution: str
    created_at: datetime
    updated_at: datetime


class TicketPageResponse(_CamelModel):
    items: list[TicketResponse]
    total_count: int
    page: int
    page_size: int
    total_pages: int


def _to_response(ticket: Ticket) -> TicketResponse:
    return TicketResponse.model_validate(ticket)


def _to_page_response(result: PagedResult[Ticket]) -> TicketPageResponse:
    return TicketPageResponse(
        items=[_to_response(ticket) for ticket in result.items],
        total_count=result.total_count,
        page=result.page,
        page_size=result.page_size,
        total_pages=result.total_pages,
    )


def _internal_error(operation: str) -> HTTPException:
    logger.exception("Error %s", operation)
    return HTTPException(status_code=500, detail=f"An error occurred while {operation}")


@router.get("", response_model=TicketPageResponse)
async def list_tickets(
    _: StaffUser,
    service: TicketServiceDep,
    status_filter: str | None = Query(default=None, alias="status"),
    search: str | None = Query(default=None),
    page: int = Query(default=DEFAULT_PAGE, ge=1),
    page_size: int = Query(default=DEFAULT_PAGE_SIZE, alias="pageSize", ge=MIN_PAGE_SIZE, le=MAX_PAGE_SIZE),
) -> TicketPageResponse:
    filters = TicketFilters(status=status_filter, search=search, page=page, page_size=page_size)
    try:
        result = await service.get_tickets(filters)
    except OSError as exc:
        raise _internal_error("listing tickets") from exc
    return _to_page_response(result)


@router.get("/{ticket_id}", response_model=TicketResponse)
async def get_ticket(ticket_id: str, _: StaffUser, service: TicketServiceDep) -> TicketResponse:
    try:
        ticket = await service.get_ticket_by_id(ticket_id)
    except OSError as exc:
        raise _internal_error(f"fetching ticket {ticket_id}") from exc
    if ticket is None:
        raise HTTPException(status_code=404, detail=TICKET_NOT_FOUND)
    return _to_response(ticket)


@router.post("", response_model=TicketResponse, status_code=status.HTTP_201_CREATED)
async def create_ticket(
    payload: TicketCreateRequest,
    response: Response,
    user: StaffUser,
    service: TicketServiceDep,
) -> TicketResponse:
    try:
        ticket = await service.create_ticket(
            name=payload.name,
            email=payload.email,
            description=payload.description,
        )
    except TicketConflictError as exc:
        raise HTTPException(status_code=409, detail=str(exc)) from exc
    except OSError as exc:
        raise _internal_error("creating ticket") from exc
    logger.info("User %s created ticket %s", user.username, ticket.id)
    response.headers["Location"] = f"{router.prefix}/{ticket.id}"
    return _to_response(ticket)


@router.put("/{ticket_id}", response_model=TicketResponse)
async def update_ticket(
    ticket_id: str,
    payload: TicketUpdateRequest,
    user: StaffUser,
    service: TicketServiceDep,
) -> TicketResponse:
    try:
        ticket = await service.update_ticket(
            ticket_id,
            status=payload.status,
            resolution=payload.resolution,
        )
    except InvalidTicketStatusError as exc:
        raise HTTPException(status_code=400, detail=str(exc)) from exc
    except OSError as exc:
        raise _internal_error(f"updating ticket {ticket_id}") from exc
    if ticket is None:
        raise HTTPException(status_code=404, detail=TICKET_NOT_FOUND)
    logger.info("User %s updated ticket %s", user.username, ticket.id)
    return _to_response(ticket)
