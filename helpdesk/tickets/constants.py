"""Limits shared by the API boundary and the ticket collaborators."""

MIN_NAME_LENGTH = 1
MAX_NAME_LENGTH = 100
MAX_EMAIL_LENGTH = 256
MIN_DESCRIPTION_LENGTH = 10
MAX_DESCRIPTION_LENGTH = 5000

DEFAULT_PAGE = 1
DEFAULT_PAGE_SIZE = 20
MIN_PAGE_SIZE = 1
MAX_PAGE_SIZE = 100

TICKET_NOT_FOUND = "Ticket not found"


def invalid_status_message(status: str) -> str:
    return f"Invalid status: {status}"
