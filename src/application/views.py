"""
Plain snapshots handed back to callers once a unit of work has closed,
so nothing outside the engine touches a live ORM session.
"""

from dataclasses import dataclass
from datetime import datetime
from decimal import Decimal

from src.domain.pricing import SeatType, TicketType
from src.domain.staff_operations import OperationDetails, StaffOperationType, load_details
from src.domain.state_machine import OrderStatus
from src.domain.ticket_status import TicketStatus, as_utc, ticket_status
from src.infrastructure.db.models import Order, Seat, Showtime, StaffOperation


def _utc(value: datetime | None) -> datetime | None:
    return as_utc(value) if value is not None else None


@dataclass(frozen=True)
class SeatView:
    id: str
    showtime_id: str
    row: int
    column: int
    label: str
    seat_type: SeatType
    available: bool

    @classmethod
    def from_model(cls, seat: Seat) -> "SeatView":
        return cls(
            id=seat.id,
            showtime_id=seat.showtime_id,
            row=seat.row_num,
            column=seat.column_num,
            label=seat.label,
            seat_type=seat.seat_type,
            available=seat.is_available,
        )


@dataclass(frozen=True)
class ShowtimeView:
    id: str
    movie_id: str
    theater_id: str
    start_time: datetime
    end_time: datetime
    prices: dict[TicketType, Decimal]
    seats: list[SeatView]

    @property
    def available_count(self) -> int:
        return sum(1 for seat in self.seats if seat.available)

    @classmethod
    def from_model(cls, showtime: Showtime, seats: list[Seat]) -> "ShowtimeView":
        return cls(
            id=showtime.id,
            movie_id=showtime.movie_id,
            theater_id=showtime.theater_id,
            start_time=as_utc(showtime.start_time),
            end_time=as_utc(showtime.end_time),
            prices={price.ticket_type: price.amount for price in showtime.prices},
            seats=[SeatView.from_model(seat) for seat in seats],
        )


@dataclass(frozen=True)
class OrderView:
    id: str
    order_no: str
    user_id: str
    showtime_id: str
    seat_ids: list[str]
    seat_labels: list[str]
    ticket_type: TicketType
    total_price: Decimal
    status: OrderStatus
    ticket_status: TicketStatus
    created_at: datetime
    showtime_start: datetime
    paid_at: datetime | None = None
    cancelled_at: datetime | None = None
    refunded_at: datetime | None = None
    checked_at: datetime | None = None
    payment_method: str | None = None
    refund_amount: Decimal | None = None
    refund_reason: str | None = None

    @classmethod
    def from_model(cls, order: Order, now: datetime) -> "OrderView":
        showtime = order.showtime
        if order.status == OrderStatus.PAID:
            current = ticket_status(now, showtime.start_time, showtime.end_time, order.checked_at)
        else:
            current = order.ticket_status

        return cls(
            id=order.id,
            order_no=order.order_no,
            user_id=order.user_id,
            showtime_id=order.showtime_id,
            seat_ids=order.seat_ids,
            seat_labels=[seat.label for seat in order.seats],
            ticket_type=order.ticket_type,
            total_price=order.total_price,
            status=order.status,
            ticket_status=current,
            created_at=as_utc(order.created_at),
            showtime_start=as_utc(showtime.start_time),
            paid_at=_utc(order.paid_at),
            cancelled_at=_utc(order.cancelled_at),
            refunded_at=_utc(order.refunded_at),
            checked_at=_utc(order.checked_at),
            payment_method=order.payment_method,
            refund_amount=order.refund_amount,
            refund_reason=order.refund_reason,
        )


@dataclass(frozen=True)
class StaffOperationView:
    id: int
    staff_id: str
    type: StaffOperationType
    order_id: str | None
    showtime_id: str | None
    details: OperationDetails
    created_at: datetime

    @classmethod
    def from_model(cls, operation: StaffOperation) -> "StaffOperationView":
        return cls(
            id=operation.id,
            staff_id=operation.staff_id,
            type=operation.operation_type,
            order_id=operation.order_id,
            showtime_id=operation.showtime_id,
            details=load_details(operation.details),
            created_at=as_utc(operation.created_at),
        )
