# tests/unit/test_pricing.py

from datetime import datetime
from decimal import Decimal

from src.domain.pricing import (
    ConditionType,
    PricingContext,
    PricingStrategy,
    SeatType,
    applicable_strategies,
    order_total,
    seat_price,
    strategy_applies,
)

# Saturday 2026-03-14 19:30
SATURDAY_EVENING = PricingContext(starts_at=datetime(2026, 3, 14, 19, 30), movie_type="IMAX")
# Wednesday 2026-03-11 11:00
WEDNESDAY_MORNING = PricingContext(starts_at=datetime(2026, 3, 11, 11, 0), movie_type="2D")


def _discount(strategy_id: int, percent: str) -> PricingStrategy:
    return PricingStrategy(
        id=strategy_id,
        condition_type=ConditionType.WEEKEND,
        discount_percentage=Decimal(percent),
    )


def _surcharge(strategy_id: int, amount: str) -> PricingStrategy:
    return PricingStrategy(
        id=strategy_id,
        condition_type=ConditionType.WEEKEND,
        extra_charge=Decimal(amount),
    )


# ---------------------
# SEAT PRICE
# ---------------------

def test_seat_type_multipliers():
    base = Decimal("50")

    assert seat_price(base, SeatType.NORMAL) == Decimal("50.00")
    assert seat_price(base, SeatType.VIP) == Decimal("60.00")
    assert seat_price(base, SeatType.COUPLE) == Decimal("50.00")
    assert seat_price(base, SeatType.DISABLED) == Decimal("30.00")


def test_discount_applied_before_surcharge():
    strategies = [_surcharge(1, "5"), _discount(2, "10")]

    assert seat_price(Decimal("100"), SeatType.VIP, strategies) == Decimal("113.00")


def test_discounts_compound():
    strategies = [_discount(1, "10"), _discount(2, "10")]

    assert seat_price(Decimal("100"), SeatType.NORMAL, strategies) == Decimal("81.00")


def test_rounds_half_up_to_cents():
    strategies = [_discount(1, "12.5")]

    # 33.33 * 0.875 = 29.16375
    assert seat_price(Decimal("33.33"), SeatType.NORMAL, strategies) == Decimal("29.16")
    assert seat_price(Decimal("0.05"), SeatType.DISABLED) == Decimal("0.03")


def test_negative_price_clamped_to_zero(caplog):
    strategies = [_surcharge(1, "-80")]

    with caplog.at_level("WARNING"):
        price = seat_price(Decimal("50"), SeatType.NORMAL, strategies)

    assert price == Decimal("0.00")
    assert "clamping to zero" in caplog.text


def test_inactive_strategy_ignored():
    inactive = PricingStrategy(
        id=1,
        condition_type=ConditionType.WEEKEND,
        discount_percentage=Decimal("50"),
        is_active=False,
    )

    assert seat_price(Decimal("40"), SeatType.NORMAL, [inactive]) == Decimal("40.00")


def test_order_total_sums_seat_prices():
    total = order_total(Decimal("50"), [SeatType.NORMAL, SeatType.VIP])

    assert total == Decimal("110.00")


# ---------------------
# STRATEGY MATCHING
# ---------------------

def test_weekend_and_default_weekday():
    weekend = PricingStrategy(id=1, condition_type=ConditionType.WEEKEND)
    weekday = PricingStrategy(id=2, condition_type=ConditionType.WEEKDAY)

    assert strategy_applies(weekend, SATURDAY_EVENING)
    assert not strategy_applies(weekend, WEDNESDAY_MORNING)
    assert strategy_applies(weekday, WEDNESDAY_MORNING)
    assert not strategy_applies(weekday, SATURDAY_EVENING)


def test_weekday_list_accepts_names_and_numbers():
    strategy = PricingStrategy(id=1, condition_type=ConditionType.WEEKDAY, condition_value="Mon, 3")

    assert strategy_applies(strategy, WEDNESDAY_MORNING)
    assert not strategy_applies(strategy, SATURDAY_EVENING)


def test_time_window_end_exclusive():
    strategy = PricingStrategy(id=1, condition_type=ConditionType.TIME, condition_value="10:00-11:00")

    assert strategy_applies(
        strategy, PricingContext(starts_at=datetime(2026, 3, 11, 10, 0))
    )
    assert not strategy_applies(
        strategy, PricingContext(starts_at=datetime(2026, 3, 11, 11, 0))
    )


def test_time_window_wraps_midnight():
    strategy = PricingStrategy(id=1, condition_type=ConditionType.TIME, condition_value="22:00-02:00")

    assert strategy_applies(strategy, PricingContext(starts_at=datetime(2026, 3, 11, 23, 30)))
    assert strategy_applies(strategy, PricingContext(starts_at=datetime(2026, 3, 12, 1, 0)))
    assert not strategy_applies(strategy, PricingContext(starts_at=datetime(2026, 3, 12, 12, 0)))


def test_movie_type_case_insensitive():
    strategy = PricingStrategy(id=1, condition_type=ConditionType.MOVIE_TYPE, condition_value="imax,3d")

    assert strategy_applies(strategy, SATURDAY_EVENING)
    assert not strategy_applies(strategy, WEDNESDAY_MORNING)


def test_holiday_dates():
    strategy = PricingStrategy(
        id=1,
        condition_type=ConditionType.HOLIDAY,
        condition_value="2026-03-14,2026-12-25",
    )

    assert strategy_applies(strategy, SATURDAY_EVENING)
    assert not strategy_applies(strategy, WEDNESDAY_MORNING)


def test_malformed_condition_never_matches(caplog):
    strategy = PricingStrategy(id=7, condition_type=ConditionType.TIME, condition_value="evening")

    with caplog.at_level("WARNING"):
        assert not strategy_applies(strategy, SATURDAY_EVENING)

    assert "malformed" in caplog.text


def test_applicable_strategies_sorted_by_id():
    strategies = [
        PricingStrategy(id=3, condition_type=ConditionType.WEEKEND),
        PricingStrategy(id=1, condition_type=ConditionType.MOVIE_TYPE, condition_value="imax"),
        PricingStrategy(id=2, condition_type=ConditionType.WEEKDAY),
    ]

    matched = applicable_strategies(strategies, SATURDAY_EVENING)

    assert [strategy.id for strategy in matched] == [1, 3]
