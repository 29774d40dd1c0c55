# tests/unit/test_refund_policy.py

from datetime import timedelta
from decimal import Decimal

import pytest

from src.application.policies import BookingPolicy, RefundPolicy, parse_refund_tiers


def test_default_tiers():
    policy = RefundPolicy()

    assert policy.refund_amount(Decimal("110.00"), 180) == Decimal("110.00")
    assert policy.refund_amount(Decimal("110.00"), 120) == Decimal("110.00")
    assert policy.refund_amount(Decimal("110.00"), 119.5) == Decimal("88.00")
    assert policy.refund_amount(Decimal("110.00"), 0) == Decimal("88.00")


def test_no_refund_after_start():
    assert RefundPolicy().refund_amount(Decimal("110.00"), -1) is None


def test_tiers_sorted_widest_first():
    tiers = parse_refund_tiers("0:0.5, 1440:1, 60:0.75")

    assert [tier.min_minutes_before_start for tier in tiers] == [1440, 60, 0]


def test_refund_amount_rounded_to_cents():
    policy = RefundPolicy(tiers=parse_refund_tiers("0:0.333"))

    assert policy.refund_amount(Decimal("10.00"), 30) == Decimal("3.33")


def test_ratio_out_of_range_rejected():
    with pytest.raises(ValueError):
        parse_refund_tiers("60:1.5")


def test_policy_from_env(monkeypatch):
    monkeypatch.setenv("PAYMENT_WINDOW_MINUTES", "5")
    monkeypatch.setenv("REFUND_TIERS", "60:0.9")
    monkeypatch.setenv("CINEMA_TIMEZONE", "Asia/Shanghai")

    policy = BookingPolicy.from_env()

    assert policy.payment_window == timedelta(minutes=5)
    assert policy.refund.refund_amount(Decimal("100"), 90) == Decimal("90.00")
    assert policy.refund.refund_amount(Decimal("100"), 30) is None
    assert policy.cinema_timezone == "Asia/Shanghai"
