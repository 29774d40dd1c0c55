# src/infrastructure/repositories/order_repository.py

from datetime import datetime
from decimal import Decimal
from uuid import uuid4

from sqlalchemy.orm import Session
from sqlalchemy import select, update

from src.infrastructure.db.models import Order, OrderSeat, Seat
from src.domain.pricing import TicketType
from src.domain.state_machine import OrderStatus


class OrderRepository:

    def __init__(self, db: Session):
        self.db = db

    def get_by_id(
        self,
        order_id: str,
        lock: bool = False,
    ) -> Order | None:

        stmt = select(Order).where(Order.id == order_id)
        if lock:
            stmt = stmt.with_for_update()
        return self.db.execute(stmt).scalar_one_or_none()

    def create_order(
        self,
        user_id: str,
        showtime_id: str,
        ticket_type: TicketType,
        seats: list[Seat],
        total_price: Decimal,
        created_at: datetime,
    ) -> Order:

        order = Order(
            order_no=self._order_no(created_at),
            user_id=user_id,
            showtime_id=showtime_id,
            ticket_type=ticket_type,
            total_price=total_price,
            status=OrderStatus.PENDING,
            created_at=created_at,
        )
        order.seat_links = [
            OrderSeat(seat=seat, seat_id=seat.id, position=position)
            for position, seat in enumerate(seats)
        ]

        self.db.add(order)
        self.db.flush()
        return order

    def replace_seats(
        self,
        order: Order,
        seats: list[Seat],
    ) -> None:
        order.seat_links.clear()
        self.db.flush()
        order.seat_links.extend(
            OrderSeat(seat=seat, seat_id=seat.id, position=position)
            for position, seat in enumerate(seats)
        )
        self.db.flush()

    def pending_created_before(
        self,
        cutoff: datetime,
        showtime_id: str | None = None,
    ) -> list[Order]:
        stmt = (
            select(Order)
            .where(Order.status == OrderStatus.PENDING)
            .where(Order.created_at < cutoff)
            .order_by(Order.created_at)
        )
        if showtime_id is not None:
            stmt = stmt.where(Order.showtime_id == showtime_id)
        return list(self.db.execute(stmt).scalars().all())

    def cancel_if_pending(
        self,
        order: Order,
        cancelled_at: datetime,
        cancelled_by: str,
    ) -> bool:
        """
        Conditional PENDING -> CANCELLED flip.
        Returns False when another transaction already moved the order on.
        """

        result = self.db.execute(
            update(Order)
            .where(Order.id == order.id)
            .where(Order.status == OrderStatus.PENDING)
            .values(
                status=OrderStatus.CANCELLED,
                cancelled_at=cancelled_at,
                cancelled_by=cancelled_by,
            )
            .execution_options(synchronize_session="evaluate")
        )
        return result.rowcount == 1

    @staticmethod
    def _order_no(created_at: datetime) -> str:
        return f"TK{created_at:%y%m%d}{uuid4().hex[:6].upper()}"
