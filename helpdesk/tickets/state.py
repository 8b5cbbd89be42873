from __future__ import annotations

from enum import Enum


def normalize_key(value: str | None) -> str:
    """Canonical form used for case-insensitive id and status comparisons."""

    return (value or "").strip().casefold()


def same_key(left: str | None, right: str | None) -> bool:
    return normalize_key(left) == normalize_key(right)


def _compact(value: str) -> str:
    return normalize_key(value).replace(" ", "").replace("_", "").replace("-", "")


class TicketStatus(str, Enum):
    """Fixed, ordered set of ticket states.

    Membership is validated, transitions are not: any status may follow any
    other status.
    """

    NEW = "New"
    IN_PROGRESS = "In Progress"
    RESOLVED = "Resolved"
    CLOSED = "Closed"

    @classmethod
    def initial_state(cls) -> TicketStatus:
        return cls.NEW

    @classmethod
    def lookup(cls, value: str | None) -> TicketStatus | None:
        """Return the status matching ``value`` ignoring case, or ``None``.

        ``"in progress"``, ``"InProgress"`` and ``"in_progress"`` all resolve to
        :attr:`IN_PROGRESS`.
        """

        if value is None:
            return None
        wanted = _compact(value)
        if not wanted:
            return None
        for status in cls:
            if _compact(status.value) == wanted:
                return status
        return None

    @classmethod
    def is_valid(cls, value: str | None) -> bool:
        return cls.lookup(value) is not None

    def matches(self, value: str | None) -> bool:
        return self.lookup(value) is self

    def __str__(self) -> str:
        return self.value
