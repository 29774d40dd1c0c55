from datetime import datetime
from decimal import Decimal

from pydantic import BaseModel, Field

from src.domain.payments import PaymentMethod
from src.domain.pricing import SeatType, TicketType
from src.domain.staff_operations import OperationDetails, StaffOperationType
from src.domain.state_machine import OrderStatus
from src.domain.ticket_status import TicketStatus


class ErrorDetail(BaseModel):
    code: str
    message: str
    showtime_start: datetime | None = None


class TheaterCreate(BaseModel):
    name: str
    rows: int = Field(gt=0)
    columns: int = Field(gt=0)
    layout: list[list[str]] | None = None


class TheaterResponse(BaseModel):
    id: str


class ShowtimeCreate(BaseModel):
    movie_id: str
    theater_id: str
    start_time: datetime
    end_time: datetime | None = None
    prices: dict[TicketType, Decimal] = Field(min_length=1)


class SeatResponse(BaseModel):
    id: str
    label: str
    row: int
    column: int
    seat_type: SeatType
    available: bool


class ShowtimeResponse(BaseModel):
    id: str
    movie_id: str
    theater_id: str
    start_time: datetime
    end_time: datetime
    prices: dict[TicketType, Decimal]
    available_count: int
    seats: list[SeatResponse]


class OrderCreate(BaseModel):
    user_id: str
    showtime_id: str
    seat_ids: list[str]
    ticket_type: TicketType = TicketType.NORMAL


class PaymentRequest(BaseModel):
    payment_method: PaymentMethod = PaymentMethod.CASH


class CancelRequest(BaseModel):
    actor_id: str


class OrderResponse(BaseModel):
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


class ExpireStaleResponse(BaseModel):
    expired: int


class SellRequest(BaseModel):
    showtime_id: str
    seat_ids: list[str]
    ticket_type: TicketType = TicketType.NORMAL
    payment_method: PaymentMethod = PaymentMethod.CASH


class RefundRequest(BaseModel):
    reason: str = Field(min_length=1)


class ChangeSeatsRequest(BaseModel):
    seat_ids: list[str]


class StaffOperationResponse(BaseModel):
    id: int
    staff_id: str
    type: StaffOperationType
    order_id: str | None = None
    showtime_id: str | None = None
    details: OperationDetails
    created_at: datetime


class RazorpayCheckoutResponse(BaseModel):
    order_id: str
    provider_order_id: str
    amount: int
    currency: str
    key_id: str


class RazorpayVerifyRequest(BaseModel):
    razorpay_order_id: str
    razorpay_payment_id: str
    razorpay_signature: str
