# src/domain/ticket_status.py

from datetime import datetime, timezone
from enum import Enum

from src.domain.exceptions import (
    AlreadyCheckedError,
    TooEarlyError,
    TooLateError,
)

CHECK_IN_LEAD_MINUTES = 30
LATE_GRACE_MINUTES = 15


class TicketStatus(str, Enum):
    UNUSED = "UNUSED"
    AVAILABLE_SOON = "AVAILABLE_SOON"
    AVAILABLE_NOW = "AVAILABLE_NOW"
    LATE = "LATE"
    EXPIRED = "EXPIRED"
    USED = "USED"


CHECK_IN_ALLOWED = frozenset({TicketStatus.AVAILABLE_NOW, TicketStatus.LATE})


def as_utc(value: datetime) -> datetime:
    """Naive datetimes (as returned by SQLite) are treated as UTC."""
    if value.tzinfo is None:
        return value.replace(tzinfo=timezone.utc)
    return value


def _minutes_between(earlier: datetime, later: datetime) -> float:
    return (as_utc(later) - as_utc(earlier)).total_seconds() / 60


def ticket_status(
    now: datetime,
    start_time: datetime,
    end_time: datetime,
    checked_at: datetime | None,
) -> TicketStatus:
    """
    Derive the ticket status from the showtime window.

    Check-in opens CHECK_IN_LEAD_MINUTES before the start and stays open,
    flagged as LATE, until LATE_GRACE_MINUTES after the showtime ends.
    """
    if checked_at is not None:
        return TicketStatus.USED

    minutes_to_start = _minutes_between(now, start_time)
    minutes_since_end = _minutes_between(end_time, now)

    if minutes_to_start > CHECK_IN_LEAD_MINUTES:
        return TicketStatus.AVAILABLE_SOON
    if minutes_to_start > 0:
        return TicketStatus.AVAILABLE_NOW
    if minutes_since_end <= LATE_GRACE_MINUTES:
        return TicketStatus.LATE
    return TicketStatus.EXPIRED


def ensure_can_check_in(
    order_id: str,
    now: datetime,
    start_time: datetime,
    end_time: datetime,
    checked_at: datetime | None,
) -> TicketStatus:
    """
    Returns the status the ticket is checked in under, or raises the
    typed rejection for every status that does not permit check-in.
    """
    status = ticket_status(now, start_time, end_time, checked_at)

    if status == TicketStatus.USED:
        raise AlreadyCheckedError(order_id, checked_at)
    if status == TicketStatus.AVAILABLE_SOON:
        raise TooEarlyError(as_utc(start_time))
    if status not in CHECK_IN_ALLOWED:
        raise TooLateError(as_utc(start_time))
    return status
