import logging
from datetime import datetime
from decimal import Decimal
from typing import Iterable

from sqlalchemy.orm import Session

from src.application.policies import BookingPolicy
from src.application.results import OperationResult
from src.application.unit_of_work import Clock, UnitOfWorkService, utc_now
from src.application.views import OrderView
from src.domain.exceptions import (
    EmptySelectionError,
    InvalidPaymentMethodError,
    InvalidTicketTypeError,
    InvalidTransitionError,
    NotFoundError,
    RefundWindowClosedError,
)
from src.domain.payments import PaymentMethod
from src.domain.pricing import TicketType, order_total, seat_price
from src.domain.staff_operations import (
    CheckDetails,
    ModifyDetails,
    RefundDetails,
    SellDetails,
)
from src.domain.state_machine import OrderStateMachine, OrderStatus
from src.domain.ticket_status import TicketStatus, as_utc, ensure_can_check_in
from src.infrastructure.db.models import Order, Seat, Showtime
from src.infrastructure.db.session import SessionFactory, SessionLocal
from src.infrastructure.repositories.catalog_repository import CatalogRepository
from src.infrastructure.repositories.order_repository import OrderRepository
from src.infrastructure.repositories.payment_repository import PaymentRepository
from src.infrastructure.repositories.seat_repository import SeatRepository
from src.infrastructure.repositories.staff_operation_repository import StaffOperationRepository

logger = logging.getLogger(__name__)

SYSTEM_ACTOR = "system"
STAFF_CANCEL_REASON = "cancelled by staff"


class OrderLifecycleService(UnitOfWorkService):
    """
    Application service coordinating the order lifecycle.

    Every public method is one atomic unit: seat availability, the order
    row, payments and staff-operation appends commit together or not at all.
    """

    def __init__(
        self,
        session_factory: SessionFactory = SessionLocal,
        clock: Clock = utc_now,
        policy: BookingPolicy | None = None,
    ):
        super().__init__(session_factory=session_factory, clock=clock)
        self.policy = policy or BookingPolicy.from_env()

    # -----------------------------
    # Customer operations
    # -----------------------------
    def create_order(
        self,
        user_id: str,
        showtime_id: str,
        seat_ids: Iterable[str],
        ticket_type: TicketType | str,
    ) -> OperationResult[OrderView]:
        seat_ids = list(seat_ids)

        def work(db: Session, now: datetime) -> OrderView:
            order = self._create_order(db, now, user_id, showtime_id, seat_ids, ticket_type)
            return OrderView.from_model(order, now)

        return self._run("create_order", work)

    def mark_paid(
        self,
        order_id: str,
        payment_method: PaymentMethod | str = PaymentMethod.CASH,
        provider_payment_id: str | None = None,
    ) -> OperationResult[OrderView]:

        def work(db: Session, now: datetime) -> OrderView:
            order = self._get_order(db, order_id, lock=True)
            method = self._payment_method(payment_method)
            self._mark_paid(db, now, order, method, provider_payment_id)
            return OrderView.from_model(order, now)

        return self._run("mark_paid", work)

    def cancel_order(
        self,
        order_id: str,
        actor_id: str,
        by_staff: bool = False,
    ) -> OperationResult[OrderView]:
        """
        Customers cancel PENDING orders. A staff cancel of a PAID order
        becomes a refund under the refund policy and ends REFUNDED.
        """

        def work(db: Session, now: datetime) -> OrderView:
            order = self._get_order(db, order_id, lock=True)
            if order.status == OrderStatus.PAID:
                if not by_staff:
                    raise InvalidTransitionError(
                        from_state=order.status.value,
                        to_state=OrderStatus.CANCELLED.value,
                        reason="paid orders are refunded by staff",
                    )
                self._refund(db, now, order, actor_id, STAFF_CANCEL_REASON)
                return OrderView.from_model(order, now)
            OrderStateMachine.validate_transition(order.status, OrderStatus.CANCELLED)

            if not self._cancel_pending(db, order, now, actor_id):
                raise InvalidTransitionError(
                    from_state=order.status.value,
                    to_state=OrderStatus.CANCELLED.value,
                    reason="order changed concurrently",
                )
            logger.info("Order cancelled. order_id=%s actor_id=%s", order.id, actor_id)
            return OrderView.from_model(order, now)

        return self._run("cancel_order", work)

    def expire_if_unpaid(self, order_id: str) -> OperationResult[OrderView]:
        """Safe to call redundantly: non-PENDING orders are returned unchanged."""

        def work(db: Session, now: datetime) -> OrderView:
            order = self._get_order(db, order_id, lock=True)
            if order.status == OrderStatus.PENDING and self._payment_window_elapsed(order, now):
                if self._cancel_pending(db, order, now, SYSTEM_ACTOR):
                    logger.info("Unpaid order expired. order_id=%s", order.id)
            return OrderView.from_model(order, now)

        return self._run("expire_if_unpaid", work)

    def expire_stale_orders(self) -> OperationResult[int]:
        """Periodic sweep over every PENDING order past the payment window."""

        def work(db: Session, now: datetime) -> int:
            return self._sweep_expired(db, now)

        return self._run("expire_stale_orders", work)

    def get_order(self, order_id: str) -> OperationResult[OrderView]:

        def work(db: Session, now: datetime) -> OrderView:
            return OrderView.from_model(self._get_order(db, order_id), now)

        return self._run("get_order", work)

    # -----------------------------
    # Payment provider checkout
    # -----------------------------
    def attach_provider_order(
        self,
        order_id: str,
        provider_order_id: str,
    ) -> OperationResult[OrderView]:

        def work(db: Session, now: datetime) -> OrderView:
            order = self._get_order(db, order_id, lock=True)
            OrderStateMachine.validate_transition(order.status, OrderStatus.PAID)
            if self._payment_window_elapsed(order, now):
                raise InvalidTransitionError(
                    from_state=order.status.value,
                    to_state=OrderStatus.PAID.value,
                    reason="payment window elapsed",
                )
            order.provider_order_id = provider_order_id
            return OrderView.from_model(order, now)

        return self._run("attach_provider_order", work)

    def confirm_provider_payment(
        self,
        order_id: str,
        provider: str,
        provider_order_id: str,
        payment_id: str,
        payload_hash: str,
    ) -> OperationResult[OrderView]:
        """
        Marks the order paid from a verified provider confirmation.
        A repeated delivery of the same payment is answered with the
        current order instead of a second transition.
        """

        def work(db: Session, now: datetime) -> OrderView:
            order = self._get_order(db, order_id, lock=True)
            if order.provider_order_id != provider_order_id:
                raise InvalidTransitionError(
                    from_state=order.status.value,
                    to_state=OrderStatus.PAID.value,
                    reason="provider order does not match this order",
                )

            payments = PaymentRepository(db)
            seen = payments.get_webhook_event(provider, payment_id)
            if seen:
                if seen.order_id != order.id:
                    raise InvalidTransitionError(
                        from_state=order.status.value,
                        to_state=OrderStatus.PAID.value,
                        reason="payment already linked with another order",
                    )
                logger.info(
                    "Duplicate payment confirmation ignored. order_id=%s payment_id=%s",
                    order.id,
                    payment_id,
                )
                return OrderView.from_model(order, now)

            self._mark_paid(db, now, order, PaymentMethod.RAZORPAY, payment_id)
            payments.record_webhook_event(provider, payment_id, order.id, payload_hash)
            return OrderView.from_model(order, now)

        return self._run("confirm_provider_payment", work)

    # -----------------------------
    # Staff operations
    # -----------------------------
    def sell_ticket(
        self,
        staff_id: str,
        showtime_id: str,
        seat_ids: Iterable[str],
        ticket_type: TicketType | str,
        payment_method: PaymentMethod | str,
    ) -> OperationResult[OrderView]:
        seat_ids = list(seat_ids)

        def work(db: Session, now: datetime) -> OrderView:
            method = self._payment_method(payment_method)
            order = self._create_order(db, now, staff_id, showtime_id, seat_ids, ticket_type)
            self._mark_paid(db, now, order, method, None)
            StaffOperationRepository(db).record(
                staff_id=staff_id,
                details=SellDetails(
                    ticket_type=order.ticket_type.value,
                    seats=[seat.label for seat in order.seats],
                    total_price=order.total_price,
                    payment_method=method.value,
                ),
                created_at=now,
                order_id=order.id,
                showtime_id=order.showtime_id,
            )
            return OrderView.from_model(order, now)

        return self._run("sell_ticket", work)

    def refund_ticket(
        self,
        order_id: str,
        staff_id: str,
        reason: str,
    ) -> OperationResult[OrderView]:

        def work(db: Session, now: datetime) -> OrderView:
            order = self._get_order(db, order_id, lock=True)
            self._refund(db, now, order, staff_id, reason)
            return OrderView.from_model(order, now)

        return self._run("refund_ticket", work)

    def check_ticket(self, order_id: str, staff_id: str) -> OperationResult[OrderView]:

        def work(db: Session, now: datetime) -> OrderView:
            order = self._get_order(db, order_id, lock=True)
            if order.status != OrderStatus.PAID:
                raise InvalidTransitionError(
                    from_state=order.status.value,
                    to_state=TicketStatus.USED.value,
                    reason="only paid tickets can be checked in",
                )

            showtime = order.showtime
            status_at_check = ensure_can_check_in(
                order.id,
                now,
                showtime.start_time,
                showtime.end_time,
                order.checked_at,
            )

            order.checked_at = now
            order.checked_by = staff_id
            order.ticket_status = TicketStatus.USED

            StaffOperationRepository(db).record(
                staff_id=staff_id,
                details=CheckDetails(
                    ticket_status_at_check=status_at_check.value,
                    seats=[seat.label for seat in order.seats],
                ),
                created_at=now,
                order_id=order.id,
                showtime_id=order.showtime_id,
            )
            logger.info(
                "Ticket checked in. order_id=%s staff_id=%s status_at_check=%s",
                order.id,
                staff_id,
                status_at_check.value,
            )
            return OrderView.from_model(order, now)

        return self._run("check_ticket", work)

    def change_seats(
        self,
        order_id: str,
        staff_id: str,
        new_seat_ids: Iterable[str],
    ) -> OperationResult[OrderView]:
        """
        Move a paid, unchecked ticket to other seats of the same showtime.
        total_price stays as charged; the repriced difference is logged.
        """
        requested = list(dict.fromkeys(new_seat_ids))

        def work(db: Session, now: datetime) -> OrderView:
            if not requested:
                raise EmptySelectionError()

            order = self._get_order(db, order_id, lock=True)
            self._ensure_modifiable(order, now)

            showtime = order.showtime
            seat_repository = SeatRepository(db)
            current = order.seat_ids
            seats = seat_repository.ensure_belong_to_showtime(showtime.id, requested)

            to_reserve = [seat_id for seat_id in requested if seat_id not in current]
            to_release = [seat_id for seat_id in current if seat_id not in requested]
            if to_reserve:
                seat_repository.reserve_seats(showtime.id, to_reserve)
            seat_repository.release_seats(showtime.id, to_release)

            repriced = self._price_seats(db, showtime, order.ticket_type, seats)
            from_labels = [seat.label for seat in order.seats]
            OrderRepository(db).replace_seats(order, seats)

            StaffOperationRepository(db).record(
                staff_id=staff_id,
                details=ModifyDetails(
                    from_seats=from_labels,
                    to_seats=[seat.label for seat in seats],
                    price_difference=repriced - order.total_price,
                ),
                created_at=now,
                order_id=order.id,
                showtime_id=showtime.id,
            )
            logger.info(
                "Order seats changed. order_id=%s staff_id=%s from=%s to=%s",
                order.id,
                staff_id,
                from_labels,
                [seat.label for seat in seats],
            )
            return OrderView.from_model(order, now)

        return self._run("change_seats", work)

    # -----------------------------
    # Internals (run inside a unit of work)
    # -----------------------------
    def _create_order(
        self,
        db: Session,
        now: datetime,
        user_id: str,
        showtime_id: str,
        seat_ids: list[str],
        ticket_type: TicketType | str,
    ) -> Order:
        requested = list(dict.fromkeys(seat_ids))
        if not requested:
            raise EmptySelectionError()

        showtime = CatalogRepository(db).get_showtime(showtime_id)
        if not showtime:
            raise NotFoundError("Showtime", showtime_id)
        ticket_type = self._ticket_type(showtime, ticket_type)

        # Lazily free seats still held by orders whose payment window lapsed.
        self._sweep_expired(db, now, showtime_id)

        seats = SeatRepository(db).reserve_seats(showtime_id, requested)
        total_price = self._price_seats(db, showtime, ticket_type, seats)

        order = OrderRepository(db).create_order(
            user_id=user_id,
            showtime_id=showtime_id,
            ticket_type=ticket_type,
            seats=seats,
            total_price=total_price,
            created_at=now,
        )
        order.showtime = showtime
        logger.info(
            "Order created. order_id=%s showtime_id=%s seats=%s total_price=%s",
            order.id,
            showtime_id,
            len(seats),
            total_price,
        )
        return order

    def _mark_paid(
        self,
        db: Session,
        now: datetime,
        order: Order,
        method: PaymentMethod,
        provider_payment_id: str | None,
    ) -> None:
        OrderStateMachine.validate_transition(order.status, OrderStatus.PAID)
        if self._payment_window_elapsed(order, now):
            raise InvalidTransitionError(
                from_state=order.status.value,
                to_state=OrderStatus.PAID.value,
                reason="payment window elapsed",
            )

        order.status = OrderStatus.PAID
        order.paid_at = now
        order.payment_method = method.value
        PaymentRepository(db).record_payment(
            order_id=order.id,
            method=method.value,
            amount=order.total_price,
            created_at=now,
            provider_payment_id=provider_payment_id,
        )
        logger.info("Order paid. order_id=%s method=%s", order.id, method.value)

    def _refund(
        self,
        db: Session,
        now: datetime,
        order: Order,
        staff_id: str,
        reason: str,
    ) -> None:
        OrderStateMachine.validate_transition(order.status, OrderStatus.REFUNDED)
        if order.checked_at is not None:
            raise InvalidTransitionError(
                from_state=order.status.value,
                to_state=OrderStatus.REFUNDED.value,
                reason="ticket already checked in",
            )

        start_time = as_utc(order.showtime.start_time)
        minutes_before_start = (start_time - now).total_seconds() / 60
        refund_amount = self.policy.refund.refund_amount(order.total_price, minutes_before_start)
        if refund_amount is None:
            raise RefundWindowClosedError(start_time)

        seat_labels = [seat.label for seat in order.seats]
        order.status = OrderStatus.REFUNDED
        order.refunded_at = now
        order.refund_amount = refund_amount
        order.refund_reason = reason
        SeatRepository(db).release_seats(order.showtime_id, order.seat_ids)

        StaffOperationRepository(db).record(
            staff_id=staff_id,
            details=RefundDetails(
                reason=reason,
                refund_amount=refund_amount,
                seats=seat_labels,
            ),
            created_at=now,
            order_id=order.id,
            showtime_id=order.showtime_id,
        )
        logger.info(
            "Order refunded. order_id=%s staff_id=%s refund_amount=%s",
            order.id,
            staff_id,
            refund_amount,
        )

    def _cancel_pending(self, db: Session, order: Order, now: datetime, actor_id: str) -> bool:
        if not OrderRepository(db).cancel_if_pending(order, now, actor_id):
            return False
        SeatRepository(db).release_seats(order.showtime_id, order.seat_ids)
        return True

    def _sweep_expired(self, db: Session, now: datetime, showtime_id: str | None = None) -> int:
        cutoff = now - self.policy.payment_window
        expired = 0
        for order in OrderRepository(db).pending_created_before(cutoff, showtime_id):
            if self._cancel_pending(db, order, now, SYSTEM_ACTOR):
                expired += 1
        if expired:
            logger.info(
                "Expired unpaid orders. count=%s showtime_id=%s",
                expired,
                showtime_id or "*",
            )
        return expired

    def _price_seats(
        self,
        db: Session,
        showtime: Showtime,
        ticket_type: TicketType,
        seats: list[Seat],
    ) -> Decimal:
        base_price = showtime.base_price(ticket_type)
        if base_price is None:
            raise InvalidTicketTypeError(showtime.id, ticket_type.value)
        strategies = CatalogRepository(db).get_active_pricing_strategies(
            showtime,
            self.policy.cinema_timezone,
        )
        logger.debug(
            "Pricing seats. showtime_id=%s per_seat=%s",
            showtime.id,
            [str(seat_price(base_price, seat.seat_type, strategies)) for seat in seats],
        )
        return order_total(base_price, [seat.seat_type for seat in seats], strategies)

    def _payment_window_elapsed(self, order: Order, now: datetime) -> bool:
        return now - as_utc(order.created_at) > self.policy.payment_window

    def _ensure_modifiable(self, order: Order, now: datetime) -> None:
        reason = None
        if order.status != OrderStatus.PAID:
            reason = "only paid tickets can change seats"
        elif order.checked_at is not None:
            reason = "ticket already checked in"
        elif now >= as_utc(order.showtime.start_time):
            reason = "showtime already started"
        if reason:
            raise InvalidTransitionError(
                from_state=order.status.value,
                to_state=order.status.value,
                reason=reason,
            )

    @staticmethod
    def _ticket_type(showtime: Showtime, ticket_type: TicketType | str) -> TicketType:
        try:
            ticket_type = TicketType(ticket_type)
        except ValueError:
            raise InvalidTicketTypeError(showtime.id, str(ticket_type)) from None
        if showtime.base_price(ticket_type) is None:
            raise InvalidTicketTypeError(showtime.id, ticket_type.value)
        return ticket_type

    @staticmethod
    def _payment_method(payment_method: PaymentMethod | str) -> PaymentMethod:
        try:
            return PaymentMethod(payment_method)
        except ValueError:
            raise InvalidPaymentMethodError(str(payment_method)) from None

    @staticmethod
    def _get_order(db: Session, order_id: str, lock: bool = False) -> Order:
        order = OrderRepository(db).get_by_id(order_id, lock=lock)
        if not order:
            raise NotFoundError("Order", order_id)
        return order
