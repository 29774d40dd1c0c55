# src/infrastructure/db/models.py

from sqlalchemy import (
    String,
    Integer,
    Boolean,
    DateTime,
    Enum,
    Numeric,
    Text,
    JSON,
    UniqueConstraint,
    CheckConstraint,
    ForeignKey,
    Index,
    func,
)
from sqlalchemy.orm import Mapped, mapped_column, relationship
from datetime import datetime
from decimal import Decimal
from uuid import uuid4

from src.infrastructure.db.session import Base
from src.domain.pricing import ConditionType, SeatType, TicketType
from src.domain.seat_layout import seat_label
from src.domain.staff_operations import StaffOperationType
from src.domain.state_machine import OrderStatus
from src.domain.ticket_status import TicketStatus


def _values(enum_cls):
    return [member.value for member in enum_cls]


def _uuid() -> str:
    return str(uuid4())


class Movie(Base):
    __tablename__ = "movies"

    id: Mapped[str] = mapped_column(String(36), primary_key=True, default=_uuid)
    title: Mapped[str] = mapped_column(String(128), nullable=False)
    movie_type: Mapped[str | None] = mapped_column(String(32), nullable=True)
    duration_minutes: Mapped[int] = mapped_column(Integer, nullable=False)
    created_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True),
        server_default=func.now(),
        nullable=False,
    )

    __table_args__ = (
        CheckConstraint("duration_minutes > 0", name="ck_movie_duration_positive"),
    )


class Theater(Base):
    __tablename__ = "theaters"

    id: Mapped[str] = mapped_column(String(36), primary_key=True, default=_uuid)
    name: Mapped[str] = mapped_column(String(128), nullable=False)
    row_count: Mapped[int] = mapped_column(Integer, nullable=False)
    column_count: Mapped[int] = mapped_column(Integer, nullable=False)
    created_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True),
        server_default=func.now(),
        nullable=False,
    )

    seat_layout: Mapped["TheaterSeatLayout | None"] = relationship(
        back_populates="theater",
        uselist=False,
        cascade="all, delete-orphan",
    )

    __table_args__ = (
        CheckConstraint("row_count > 0", name="ck_theater_rows_positive"),
        CheckConstraint("column_count > 0", name="ck_theater_columns_positive"),
    )


class TheaterSeatLayout(Base):
    """
    Saved per-theater seat-type overlay.
    Two-dimensional array of type tags; "empty" marks aisles.
    """

    __tablename__ = "theater_seat_layouts"

    id: Mapped[str] = mapped_column(String(36), primary_key=True, default=_uuid)
    theater_id: Mapped[str] = mapped_column(
        String(36),
        ForeignKey("theaters.id", ondelete="CASCADE"),
        nullable=False,
        unique=True,
    )
    layout: Mapped[list] = mapped_column(JSON, nullable=False)
    updated_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True),
        server_default=func.now(),
        onupdate=func.now(),
        nullable=False,
    )

    theater: Mapped[Theater] = relationship(back_populates="seat_layout")


class Showtime(Base):
    __tablename__ = "showtimes"

    id: Mapped[str] = mapped_column(String(36), primary_key=True, default=_uuid)
    movie_id: Mapped[str] = mapped_column(
        String(36),
        ForeignKey("movies.id"),
        nullable=False,
    )
    theater_id: Mapped[str] = mapped_column(
        String(36),
        ForeignKey("theaters.id"),
        nullable=False,
    )
    start_time: Mapped[datetime] = mapped_column(DateTime(timezone=True), nullable=False)
    end_time: Mapped[datetime] = mapped_column(DateTime(timezone=True), nullable=False)
    created_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True),
        server_default=func.now(),
        nullable=False,
    )

    movie: Mapped[Movie] = relationship()
    theater: Mapped[Theater] = relationship()
    prices: Mapped[list["ShowtimePrice"]] = relationship(
        back_populates="showtime",
        cascade="all, delete-orphan",
        lazy="selectin",
    )
    seats: Mapped[list["Seat"]] = relationship(
        back_populates="showtime",
        cascade="all, delete-orphan",
        passive_deletes=True,
    )

    __table_args__ = (
        CheckConstraint("end_time > start_time", name="ck_showtime_end_after_start"),
        Index("ix_showtimes_start_time", "start_time"),
    )

    def base_price(self, ticket_type: TicketType) -> Decimal | None:
        for price in self.prices:
            if price.ticket_type == ticket_type:
                return price.amount
        return None


class ShowtimePrice(Base):
    __tablename__ = "showtime_prices"

    id: Mapped[str] = mapped_column(String(36), primary_key=True, default=_uuid)
    showtime_id: Mapped[str] = mapped_column(
        String(36),
        ForeignKey("showtimes.id", ondelete="CASCADE"),
        nullable=False,
    )
    ticket_type: Mapped[TicketType] = mapped_column(
        Enum(TicketType, name="ticket_type", values_callable=_values),
        nullable=False,
    )
    amount: Mapped[Decimal] = mapped_column(Numeric(10, 2), nullable=False)

    showtime: Mapped[Showtime] = relationship(back_populates="prices")

    __table_args__ = (
        UniqueConstraint("showtime_id", "ticket_type", name="uq_showtime_ticket_type"),
        CheckConstraint("amount >= 0", name="ck_showtime_price_nonnegative"),
    )


class Seat(Base):
    """
    One seat of one showtime's inventory.
    is_available is False iff a PENDING or PAID order holds it.
    """

    __tablename__ = "seats"

    id: Mapped[str] = mapped_column(String(36), primary_key=True, default=_uuid)
    showtime_id: Mapped[str] = mapped_column(
        String(36),
        ForeignKey("showtimes.id", ondelete="CASCADE"),
        nullable=False,
    )
    row_num: Mapped[int] = mapped_column(Integer, nullable=False)
    column_num: Mapped[int] = mapped_column(Integer, nullable=False)
    seat_type: Mapped[SeatType] = mapped_column(
        Enum(SeatType, name="seat_type", values_callable=_values),
        nullable=False,
        default=SeatType.NORMAL,
    )
    is_available: Mapped[bool] = mapped_column(Boolean, nullable=False, default=True)
    updated_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True),
        server_default=func.now(),
        onupdate=func.now(),
        nullable=False,
    )

    showtime: Mapped[Showtime] = relationship(back_populates="seats")

    __table_args__ = (
        UniqueConstraint(
            "showtime_id",
            "row_num",
            "column_num",
            name="uq_seat_showtime_position",
        ),
        CheckConstraint("row_num > 0", name="ck_seat_row_positive"),
        CheckConstraint("column_num > 0", name="ck_seat_column_positive"),
        Index("ix_seats_showtime_available", "showtime_id", "is_available"),
    )

    @property
    def label(self) -> str:
        return seat_label(self.row_num, self.column_num)


class Order(Base):
    """
    Order table reflecting domain state.
    Domain controls transitions.
    DB stores current state safely.
    """

    __tablename__ = "orders"

    id: Mapped[str] = mapped_column(String(36), primary_key=True, default=_uuid)
    order_no: Mapped[str] = mapped_column(String(32), nullable=False)
    user_id: Mapped[str] = mapped_column(String(64), nullable=False)
    showtime_id: Mapped[str] = mapped_column(
        String(36),
        ForeignKey("showtimes.id"),
        nullable=False,
    )
    ticket_type: Mapped[TicketType] = mapped_column(
        Enum(TicketType, name="ticket_type", values_callable=_values),
        nullable=False,
    )
    total_price: Mapped[Decimal] = mapped_column(Numeric(10, 2), nullable=False)
    status: Mapped[OrderStatus] = mapped_column(
        Enum(OrderStatus, name="order_status"),
        nullable=False,
        default=OrderStatus.PENDING,
    )
    ticket_status: Mapped[TicketStatus] = mapped_column(
        Enum(TicketStatus, name="ticket_status"),
        nullable=False,
        default=TicketStatus.UNUSED,
    )
    payment_method: Mapped[str | None] = mapped_column(String(32), nullable=True)
    provider_order_id: Mapped[str | None] = mapped_column(String(64), nullable=True)
    cancelled_by: Mapped[str | None] = mapped_column(String(64), nullable=True)
    checked_by: Mapped[str | None] = mapped_column(String(64), nullable=True)
    refund_amount: Mapped[Decimal | None] = mapped_column(Numeric(10, 2), nullable=True)
    refund_reason: Mapped[str | None] = mapped_column(Text, nullable=True)
    created_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True),
        server_default=func.now(),
        nullable=False,
    )
    paid_at: Mapped[datetime | None] = mapped_column(DateTime(timezone=True), nullable=True)
    cancelled_at: Mapped[datetime | None] = mapped_column(DateTime(timezone=True), nullable=True)
    refunded_at: Mapped[datetime | None] = mapped_column(DateTime(timezone=True), nullable=True)
    checked_at: Mapped[datetime | None] = mapped_column(DateTime(timezone=True), nullable=True)
    updated_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True),
        server_default=func.now(),
        onupdate=func.now(),
        nullable=False,
    )

    showtime: Mapped[Showtime] = relationship()
    seat_links: Mapped[list["OrderSeat"]] = relationship(
        back_populates="order",
        cascade="all, delete-orphan",
        lazy="selectin",
        order_by="OrderSeat.position",
    )

    __table_args__ = (
        UniqueConstraint("order_no", name="uq_order_no"),
        CheckConstraint("total_price >= 0", name="ck_order_total_nonnegative"),
        Index("ix_orders_showtime_status", "showtime_id", "status"),
        Index("ix_orders_status_created_at", "status", "created_at"),
    )

    @property
    def seats(self) -> list["Seat"]:
        return [link.seat for link in self.seat_links]

    @property
    def seat_ids(self) -> list[str]:
        return [link.seat_id for link in self.seat_links]


class OrderSeat(Base):
    __tablename__ = "order_seats"

    id: Mapped[str] = mapped_column(String(36), primary_key=True, default=_uuid)
    order_id: Mapped[str] = mapped_column(
        String(36),
        ForeignKey("orders.id", ondelete="CASCADE"),
        nullable=False,
    )
    seat_id: Mapped[str] = mapped_column(
        String(36),
        ForeignKey("seats.id"),
        nullable=False,
    )
    position: Mapped[int] = mapped_column(Integer, nullable=False, default=0)

    order: Mapped[Order] = relationship(back_populates="seat_links")
    seat: Mapped[Seat] = relationship(lazy="joined")

    __table_args__ = (
        UniqueConstraint("order_id", "seat_id", name="uq_order_seat"),
    )


class Payment(Base):
    __tablename__ = "payments"

    id: Mapped[str] = mapped_column(String(36), primary_key=True, default=_uuid)
    order_id: Mapped[str] = mapped_column(
        String(36),
        ForeignKey("orders.id"),
        nullable=False,
    )
    method: Mapped[str] = mapped_column(String(32), nullable=False)
    amount: Mapped[Decimal] = mapped_column(Numeric(10, 2), nullable=False)
    status: Mapped[str] = mapped_column(String(32), nullable=False, default="SUCCESS")
    provider_payment_id: Mapped[str | None] = mapped_column(String(128), nullable=True)
    created_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True),
        server_default=func.now(),
        nullable=False,
    )

    __table_args__ = (
        UniqueConstraint("provider_payment_id", name="uq_payment_provider_payment_id"),
        CheckConstraint("amount >= 0", name="ck_payment_amount_nonnegative"),
    )


class PaymentWebhookEvent(Base):
    __tablename__ = "payment_webhook_events"

    id: Mapped[str] = mapped_column(String(36), primary_key=True, default=_uuid)
    provider: Mapped[str] = mapped_column(String(32), nullable=False)
    payment_id: Mapped[str] = mapped_column(String(128), nullable=False)
    order_id: Mapped[str] = mapped_column(String(36), nullable=False)
    payload_hash: Mapped[str] = mapped_column(String(64), nullable=False)
    status: Mapped[str] = mapped_column(String(32), nullable=False, default="PROCESSED")
    created_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True),
        server_default=func.now(),
        nullable=False,
    )

    __table_args__ = (
        UniqueConstraint("provider", "payment_id", name="uq_webhook_provider_payment_id"),
    )


class PricingStrategyRecord(Base):
    __tablename__ = "pricing_strategies"

    id: Mapped[int] = mapped_column(Integer, primary_key=True, autoincrement=True)
    name: Mapped[str] = mapped_column(String(128), nullable=False)
    description: Mapped[str | None] = mapped_column(Text, nullable=True)
    condition_type: Mapped[ConditionType] = mapped_column(
        Enum(ConditionType, name="pricing_condition_type", values_callable=_values),
        nullable=False,
    )
    condition_value: Mapped[str | None] = mapped_column(String(255), nullable=True)
    discount_percentage: Mapped[Decimal | None] = mapped_column(Numeric(5, 2), nullable=True)
    extra_charge: Mapped[Decimal | None] = mapped_column(Numeric(10, 2), nullable=True)
    is_active: Mapped[bool] = mapped_column(Boolean, nullable=False, default=True)
    created_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True),
        server_default=func.now(),
        nullable=False,
    )

    __table_args__ = (
        CheckConstraint(
            "discount_percentage IS NULL OR (discount_percentage >= 0 AND discount_percentage <= 100)",
            name="ck_strategy_discount_range",
        ),
    )


class StaffOperation(Base):
    """Append-only audit row; never updated or deleted."""

    __tablename__ = "staff_operations"

    id: Mapped[int] = mapped_column(Integer, primary_key=True, autoincrement=True)
    staff_id: Mapped[str] = mapped_column(String(64), nullable=False)
    operation_type: Mapped[StaffOperationType] = mapped_column(
        Enum(StaffOperationType, name="staff_operation_type"),
        nullable=False,
    )
    order_id: Mapped[str | None] = mapped_column(
        String(36),
        ForeignKey("orders.id"),
        nullable=True,
    )
    showtime_id: Mapped[str | None] = mapped_column(String(36), nullable=True)
    details: Mapped[dict] = mapped_column(JSON, nullable=False)
    created_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True),
        server_default=func.now(),
        nullable=False,
    )

    __table_args__ = (
        Index("ix_staff_operations_staff_created", "staff_id", "created_at"),
    )
