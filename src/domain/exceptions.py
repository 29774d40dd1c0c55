from datetime import datetime
from enum import Enum


class ErrorCode(str, Enum):
    SEATS_UNAVAILABLE = "SEATS_UNAVAILABLE"
    INVALID_SEATS = "INVALID_SEATS"
    EMPTY_SELECTION = "EMPTY_SELECTION"
    INVALID_TRANSITION = "INVALID_TRANSITION"
    TOO_EARLY = "TOO_EARLY"
    TOO_LATE = "TOO_LATE"
    ALREADY_CHECKED = "ALREADY_CHECKED"
    NOT_FOUND = "NOT_FOUND"
    INVALID_TICKET_TYPE = "INVALID_TICKET_TYPE"
    INVALID_PAYMENT_METHOD = "INVALID_PAYMENT_METHOD"
    INVALID_SHOWTIME = "INVALID_SHOWTIME"
    REFUND_WINDOW_CLOSED = "REFUND_WINDOW_CLOSED"
    STORAGE_ERROR = "STORAGE_ERROR"


class BookingEngineError(Exception):
    """
    Base exception for all domain-level errors
    inside the Cinema Booking Engine.
    """

    code: ErrorCode

    def __init__(self, message: str):
        self.message = message
        super().__init__(message)

    def __str__(self) -> str:
        return f"{self.code.value}: {self.message}"


class SeatsUnavailableError(BookingEngineError):
    """Raised when one or more requested seats are already held."""

    code = ErrorCode.SEATS_UNAVAILABLE

    def __init__(self, seat_ids: list[str]):
        self.seat_ids = list(seat_ids)
        super().__init__(
            "Some of the selected seats were just taken. Please pick other seats."
        )


class InvalidSeatsError(BookingEngineError):
    """Raised when a seat does not belong to the requested showtime."""

    code = ErrorCode.INVALID_SEATS

    def __init__(self, showtime_id: str, seat_ids: list[str]):
        self.showtime_id = showtime_id
        self.seat_ids = list(seat_ids)
        super().__init__(
            f"Seats {', '.join(self.seat_ids)} do not belong to showtime {showtime_id}"
        )


class EmptySelectionError(BookingEngineError):
    code = ErrorCode.EMPTY_SELECTION

    def __init__(self):
        super().__init__("Select at least one seat.")


class InvalidTransitionError(BookingEngineError):
    """
    Raised when an order is not in the state required
    for the requested action.
    """

    code = ErrorCode.INVALID_TRANSITION

    def __init__(self, from_state: str, to_state: str, reason: str | None = None):
        self.from_state = from_state
        self.to_state = to_state

        message = (
            f"Illegal state transition attempted: "
            f"{from_state} -> {to_state}"
        )
        if reason:
            message = f"{message} ({reason})"
        super().__init__(message)


class CheckInWindowError(BookingEngineError):
    """Base for check-in attempts outside the allowed window."""

    def __init__(self, message: str, showtime_start: datetime):
        self.showtime_start = showtime_start
        super().__init__(message)


class TooEarlyError(CheckInWindowError):
    code = ErrorCode.TOO_EARLY

    def __init__(self, showtime_start: datetime):
        super().__init__(
            "Check-in opens 30 minutes before the showtime starts.",
            showtime_start,
        )


class TooLateError(CheckInWindowError):
    code = ErrorCode.TOO_LATE

    def __init__(self, showtime_start: datetime):
        super().__init__(
            "The check-in window for this showtime has closed.",
            showtime_start,
        )


class AlreadyCheckedError(BookingEngineError):
    code = ErrorCode.ALREADY_CHECKED

    def __init__(self, order_id: str, checked_at: datetime):
        self.order_id = order_id
        self.checked_at = checked_at
        super().__init__(
            f"Ticket {order_id} was already checked in at {checked_at.isoformat()}"
        )


class NotFoundError(BookingEngineError):
    code = ErrorCode.NOT_FOUND

    def __init__(self, entity: str, entity_id: str):
        self.entity = entity
        self.entity_id = entity_id
        super().__init__(f"{entity} not found")


class InvalidTicketTypeError(BookingEngineError):
    code = ErrorCode.INVALID_TICKET_TYPE

    def __init__(self, showtime_id: str, ticket_type: str):
        self.showtime_id = showtime_id
        self.ticket_type = ticket_type
        super().__init__(
            f"Ticket type {ticket_type} is not sold for showtime {showtime_id}"
        )


class InvalidPaymentMethodError(BookingEngineError):
    code = ErrorCode.INVALID_PAYMENT_METHOD

    def __init__(self, payment_method: str):
        self.payment_method = payment_method
        super().__init__(f"Payment method {payment_method} is not accepted")


class InvalidShowtimeError(BookingEngineError):
    """Raised when a showtime cannot be scheduled as requested."""

    code = ErrorCode.INVALID_SHOWTIME


class RefundWindowClosedError(BookingEngineError):
    code = ErrorCode.REFUND_WINDOW_CLOSED

    def __init__(self, showtime_start: datetime):
        self.showtime_start = showtime_start
        super().__init__("Tickets cannot be refunded once the showtime has started.")


class StorageError(BookingEngineError):
    """
    Raised when the underlying transaction or lock fails.
    Always propagated; never returned as a business result.
    """

    code = ErrorCode.STORAGE_ERROR
