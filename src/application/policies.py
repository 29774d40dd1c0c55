import os
from dataclasses import dataclass, field
from datetime import timedelta
from decimal import ROUND_HALF_UP, Decimal

from src.domain.pricing import CENT

DEFAULT_PAYMENT_WINDOW_MINUTES = 15
# Full refund two hours or more before the start, 20% fee afterwards.
DEFAULT_REFUND_TIERS = "120:1.0,0:0.8"


@dataclass(frozen=True)
class RefundTier:
    min_minutes_before_start: int
    refund_ratio: Decimal


def parse_refund_tiers(raw: str) -> tuple[RefundTier, ...]:
    """Parse ``"<minutes>:<ratio>,..."`` into tiers, widest window first."""
    tiers = []
    for chunk in raw.split(","):
        chunk = chunk.strip()
        if not chunk:
            continue
        minutes_text, ratio_text = chunk.split(":")
        ratio = Decimal(ratio_text.strip())
        if not Decimal("0") <= ratio <= Decimal("1"):
            raise ValueError(f"Refund ratio must be between 0 and 1: {chunk}")
        tiers.append(RefundTier(int(minutes_text.strip()), ratio))
    return tuple(sorted(tiers, key=lambda tier: tier.min_minutes_before_start, reverse=True))


@dataclass(frozen=True)
class RefundPolicy:
    tiers: tuple[RefundTier, ...] = field(
        default_factory=lambda: parse_refund_tiers(DEFAULT_REFUND_TIERS)
    )

    def refund_amount(self, total_price: Decimal, minutes_before_start: float) -> Decimal | None:
        """
        Amount to give back, or None when no tier covers the moment
        of the request (the showtime has started).
        """
        for tier in self.tiers:
            if minutes_before_start >= tier.min_minutes_before_start:
                return (Decimal(total_price) * tier.refund_ratio).quantize(
                    CENT, rounding=ROUND_HALF_UP
                )
        return None


@dataclass(frozen=True)
class BookingPolicy:
    payment_window: timedelta = timedelta(minutes=DEFAULT_PAYMENT_WINDOW_MINUTES)
    refund: RefundPolicy = field(default_factory=RefundPolicy)
    cinema_timezone: str = "UTC"

    @classmethod
    def from_env(cls) -> "BookingPolicy":
        return cls(
            payment_window=timedelta(
                minutes=float(
                    os.getenv("PAYMENT_WINDOW_MINUTES", str(DEFAULT_PAYMENT_WINDOW_MINUTES))
                )
            ),
            refund=RefundPolicy(
                tiers=parse_refund_tiers(os.getenv("REFUND_TIERS", DEFAULT_REFUND_TIERS))
            ),
            cinema_timezone=os.getenv("CINEMA_TIMEZONE", "UTC"),
        )
