# tests/unit/test_state_machine.py

import pytest

from src.domain.state_machine import OrderStateMachine, OrderStatus
from src.domain.exceptions import ErrorCode, InvalidTransitionError


# ---------------------
# VALID TRANSITIONS
# ---------------------

def test_valid_happy_path():
    assert OrderStateMachine.can_transition(
        OrderStatus.PENDING,
        OrderStatus.PAID,
    )

    assert OrderStateMachine.can_transition(
        OrderStatus.PAID,
        OrderStatus.REFUNDED,
    )


def test_pending_can_be_cancelled():
    assert OrderStateMachine.can_transition(OrderStatus.PENDING, OrderStatus.CANCELLED)


# ---------------------
# INVALID TRANSITIONS
# ---------------------

def test_cannot_pay_twice():
    with pytest.raises(InvalidTransitionError) as exc_info:
        OrderStateMachine.validate_transition(
            OrderStatus.PAID,
            OrderStatus.PAID,
        )

    assert exc_info.value.code == ErrorCode.INVALID_TRANSITION
    assert exc_info.value.from_state == "PAID"


def test_paid_order_cannot_be_cancelled():
    assert not OrderStateMachine.can_transition(
        OrderStatus.PAID,
        OrderStatus.CANCELLED,
    )


def test_cannot_refund_pending_order():
    with pytest.raises(InvalidTransitionError):
        OrderStateMachine.validate_transition(
            OrderStatus.PENDING,
            OrderStatus.REFUNDED,
        )


def test_terminal_state_cancelled():
    assert not any(
        OrderStateMachine.can_transition(OrderStatus.CANCELLED, target) for target in OrderStatus
    )

    with pytest.raises(InvalidTransitionError):
        OrderStateMachine.validate_transition(
            OrderStatus.CANCELLED,
            OrderStatus.PAID,
        )


def test_terminal_state_refunded():
    assert not any(
        OrderStateMachine.can_transition(OrderStatus.REFUNDED, target) for target in OrderStatus
    )

    with pytest.raises(InvalidTransitionError):
        OrderStateMachine.validate_transition(
            OrderStatus.REFUNDED,
            OrderStatus.PAID,
        )


def test_invalid_type_guard():
    with pytest.raises(TypeError):
        OrderStateMachine.validate_transition(
            "PENDING",  # invalid type
            OrderStatus.PAID,
        )
