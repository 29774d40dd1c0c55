# src/domain/pricing.py

"""
Seat pricing.

A seat's price is the showtime's base price for the order's ticket type,
scaled by the seat-type multiplier, then every matching active strategy
discount (compounded, ascending strategy id), then every matching
surcharge. Discounts are always applied before surcharges.
"""

import logging
from dataclasses import dataclass
from datetime import date, datetime, time
from decimal import ROUND_HALF_UP, Decimal
from enum import Enum
from typing import Iterable, Sequence

logger = logging.getLogger(__name__)

CENT = Decimal("0.01")
HUNDRED = Decimal("100")


class SeatType(str, Enum):
    NORMAL = "normal"
    VIP = "vip"
    COUPLE = "couple"
    DISABLED = "disabled"


class TicketType(str, Enum):
    NORMAL = "normal"
    STUDENT = "student"
    SENIOR = "senior"
    CHILD = "child"


class ConditionType(str, Enum):
    WEEKDAY = "weekday"
    WEEKEND = "weekend"
    TIME = "time"
    MOVIE_TYPE = "movie_type"
    HOLIDAY = "holiday"


SEAT_TYPE_MULTIPLIERS: dict[SeatType, Decimal] = {
    SeatType.NORMAL: Decimal("1.0"),
    SeatType.VIP: Decimal("1.2"),
    SeatType.COUPLE: Decimal("1.0"),
    SeatType.DISABLED: Decimal("0.6"),
}

_WEEKDAY_NAMES = {
    "mon": 1,
    "tue": 2,
    "wed": 3,
    "thu": 4,
    "fri": 5,
    "sat": 6,
    "sun": 7,
}


@dataclass(frozen=True)
class PricingStrategy:
    id: int
    condition_type: ConditionType
    condition_value: str | None = None
    discount_percentage: Decimal | None = None
    extra_charge: Decimal | None = None
    is_active: bool = True
    name: str = ""


@dataclass(frozen=True)
class PricingContext:
    """What a strategy condition is evaluated against."""

    starts_at: datetime  # showtime start in the cinema's local zone
    movie_type: str | None = None


def _split(value: str | None) -> list[str]:
    if not value:
        return []
    return [part.strip().lower() for part in value.split(",") if part.strip()]


def _parse_weekday(token: str) -> int:
    if token in _WEEKDAY_NAMES:
        return _WEEKDAY_NAMES[token]
    number = int(token)
    if not 1 <= number <= 7:
        raise ValueError(f"weekday out of range: {token}")
    return number


def _parse_time_range(value: str) -> tuple[time, time]:
    start_text, end_text = value.split("-")
    return time.fromisoformat(start_text.strip()), time.fromisoformat(end_text.strip())


def _condition_matches(strategy: PricingStrategy, context: PricingContext) -> bool:
    starts_at = context.starts_at
    condition = strategy.condition_type

    if condition == ConditionType.WEEKEND:
        return starts_at.isoweekday() >= 6

    if condition == ConditionType.WEEKDAY:
        tokens = _split(strategy.condition_value)
        if not tokens:
            return starts_at.isoweekday() <= 5
        return starts_at.isoweekday() in {_parse_weekday(token) for token in tokens}

    if condition == ConditionType.TIME:
        if not strategy.condition_value:
            raise ValueError("time condition requires HH:MM-HH:MM")
        window_start, window_end = _parse_time_range(strategy.condition_value)
        current = starts_at.time().replace(tzinfo=None)
        if window_start <= window_end:
            return window_start <= current < window_end
        # wraps past midnight
        return current >= window_start or current < window_end

    if condition == ConditionType.MOVIE_TYPE:
        if not context.movie_type:
            return False
        return context.movie_type.strip().lower() in _split(strategy.condition_value)

    if condition == ConditionType.HOLIDAY:
        holidays = {date.fromisoformat(token) for token in _split(strategy.condition_value)}
        return starts_at.date() in holidays

    return False


def strategy_applies(strategy: PricingStrategy, context: PricingContext) -> bool:
    """
    Returns True when an active strategy's condition holds for the context.
    Malformed condition values never match.
    """
    if not strategy.is_active:
        return False
    try:
        return _condition_matches(strategy, context)
    except ValueError:
        logger.warning(
            "Ignoring pricing strategy with malformed condition. strategy_id=%s condition_type=%s condition_value=%r",
            strategy.id,
            strategy.condition_type.value,
            strategy.condition_value,
        )
        return False


def applicable_strategies(
    strategies: Iterable[PricingStrategy],
    context: PricingContext,
) -> list[PricingStrategy]:
    return sorted(
        (strategy for strategy in strategies if strategy_applies(strategy, context)),
        key=lambda strategy: strategy.id,
    )


def seat_price(
    base_price: Decimal,
    seat_type: SeatType,
    strategies: Sequence[PricingStrategy] = (),
) -> Decimal:
    """
    Price of one seat. Pure: identical inputs always give identical output.
    """
    active = sorted(
        (strategy for strategy in strategies if strategy.is_active),
        key=lambda strategy: strategy.id,
    )

    price = Decimal(base_price) * SEAT_TYPE_MULTIPLIERS[SeatType(seat_type)]

    for strategy in active:
        if strategy.discount_percentage:
            price *= (HUNDRED - Decimal(strategy.discount_percentage)) / HUNDRED

    for strategy in active:
        if strategy.extra_charge:
            price += Decimal(strategy.extra_charge)

    price = price.quantize(CENT, rounding=ROUND_HALF_UP)
    if price < 0:
        logger.warning(
            "Computed negative seat price; clamping to zero. base_price=%s seat_type=%s strategy_ids=%s price=%s",
            base_price,
            SeatType(seat_type).value,
            [strategy.id for strategy in active],
            price,
        )
        return Decimal("0.00")
    return price


def order_total(
    base_price: Decimal,
    seat_types: Iterable[SeatType],
    strategies: Sequence[PricingStrategy] = (),
) -> Decimal:
    """Sum of per-seat prices for one ticket type applied to every seat."""
    total = sum(
        (seat_price(base_price, seat_type, strategies) for seat_type in seat_types),
        Decimal("0.00"),
    )
    return total.quantize(CENT, rounding=ROUND_HALF_UP)
