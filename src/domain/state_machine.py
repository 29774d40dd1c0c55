# src/domain/state_machine.py

from enum import Enum
from typing import Dict, Set

from src.domain.exceptions import InvalidTransitionError


class OrderStatus(str, Enum):
    PENDING = "PENDING"
    PAID = "PAID"
    CANCELLED = "CANCELLED"
    REFUNDED = "REFUNDED"


class OrderStateMachine:
    """
    Central lifecycle controller for order transitions.
    Defines the legal state transitions.
    """

    _ALLOWED_TRANSITIONS: Dict[OrderStatus, Set[OrderStatus]] = {
        OrderStatus.PENDING: {
            OrderStatus.PAID,
            OrderStatus.CANCELLED,
        },
        OrderStatus.PAID: {
            OrderStatus.REFUNDED,
        },
        OrderStatus.CANCELLED: set(),
        OrderStatus.REFUNDED: set(),
    }

    @classmethod
    def can_transition(
        cls,
        from_status: OrderStatus,
        to_status: OrderStatus,
    ) -> bool:
        """
        Returns True if transition is allowed.
        """
        cls._ensure_valid_status(from_status)
        cls._ensure_valid_status(to_status)

        return to_status in cls._ALLOWED_TRANSITIONS.get(from_status, set())

    @classmethod
    def validate_transition(
        cls,
        from_status: OrderStatus,
        to_status: OrderStatus,
        reason: str | None = None,
    ) -> None:
        """
        Raises InvalidTransitionError if transition is illegal.
        """
        if not cls.can_transition(from_status, to_status):
            raise InvalidTransitionError(
                from_state=from_status.value,
                to_state=to_status.value,
                reason=reason,
            )

    @staticmethod
    def _ensure_valid_status(status: OrderStatus) -> None:
        if not isinstance(status, OrderStatus):
            raise TypeError(
                f"Expected OrderStatus, got {type(status)}"
            )
