# tests/conftest.py

import os

# Must be set before src.infrastructure.db.session is imported.
os.environ.setdefault("DATABASE_URL", "sqlite://")

from datetime import datetime, timedelta, timezone
from decimal import Decimal

import pytest
from fastapi.testclient import TestClient
from sqlalchemy.orm import sessionmaker
from sqlalchemy.pool import StaticPool

from src.api.routes.routes import get_gateway, get_order_service, get_showtime_service, get_staff_log
from src.application.order_service import OrderLifecycleService
from src.application.policies import BookingPolicy
from src.application.showtime_service import ShowtimeService
from src.application.staff_operation_log import StaffOperationLog
from src.domain.pricing import TicketType
from src.infrastructure.db.models import Base
from src.infrastructure.db.session import build_engine
from src.infrastructure.payments.razorpay_gateway import (
    InvalidPaymentSignature,
    ProviderOrder,
    to_minor_units,
)
from src.main import app

# Saturday afternoon.
T0 = datetime(2026, 3, 14, 12, 0, tzinfo=timezone.utc)

# Row A: A1 normal, A2 vip; row C ends with an aisle gap.
HALL_LAYOUT = [
    ["normal", "vip", "vip", "normal"],
    ["normal", "normal", "normal", "normal"],
    ["couple", "couple", "disabled", "empty"],
]


class FakeClock:
    def __init__(self, now: datetime):
        self.now = now

    def __call__(self) -> datetime:
        return self.now

    def advance(self, **kwargs) -> None:
        self.now += timedelta(**kwargs)

    def set(self, now: datetime) -> None:
        self.now = now


class FakeGateway:
    provider_order_id = "order_test_0001"
    valid_signature = "valid-signature"

    def __init__(self):
        self.created = []

    def create_order(self, receipt: str, amount: Decimal) -> ProviderOrder:
        self.created.append(receipt)
        return ProviderOrder(
            provider_order_id=self.provider_order_id,
            amount=to_minor_units(amount),
            currency="INR",
            key_id="rzp_test_key",
        )

    def verify_signature(self, provider_order_id: str, payment_id: str, signature: str) -> None:
        if signature != self.valid_signature:
            raise InvalidPaymentSignature("Invalid payment signature")


@pytest.fixture
def db_engine():
    engine = build_engine("sqlite://", poolclass=StaticPool)
    Base.metadata.create_all(bind=engine)
    yield engine
    engine.dispose()


@pytest.fixture
def session_factory(db_engine):
    return sessionmaker(bind=db_engine, autoflush=False, autocommit=False)


@pytest.fixture
def clock():
    return FakeClock(T0)


@pytest.fixture
def policy():
    return BookingPolicy()


@pytest.fixture
def order_service(session_factory, clock, policy):
    return OrderLifecycleService(session_factory=session_factory, clock=clock, policy=policy)


@pytest.fixture
def showtime_service(session_factory, clock):
    return ShowtimeService(session_factory=session_factory, clock=clock)


@pytest.fixture
def staff_log(session_factory, clock):
    return StaffOperationLog(session_factory=session_factory, clock=clock)


@pytest.fixture
def make_showtime(showtime_service):
    """Schedules a two-hour showtime starting `starts_in` after T0."""

    def _make(starts_in: timedelta = timedelta(hours=3), movie_type: str = "2D"):
        movie_id = showtime_service.create_movie("Test Feature", duration_minutes=120, movie_type=movie_type)
        theater_id = showtime_service.create_theater("Hall 1", rows=3, columns=4, layout=HALL_LAYOUT)
        result = showtime_service.create_showtime(
            movie_id=movie_id,
            theater_id=theater_id,
            start_time=T0 + starts_in,
            prices={TicketType.NORMAL: Decimal("50.00"), TicketType.STUDENT: Decimal("40.00")},
        )
        return result.unwrap()

    return _make


@pytest.fixture
def showtime(make_showtime):
    return make_showtime()


@pytest.fixture
def seats(showtime):
    """Seat ids by label."""
    return {seat.label: seat.id for seat in showtime.seats}


@pytest.fixture
def gateway():
    return FakeGateway()


@pytest.fixture
def client(order_service, showtime_service, staff_log, gateway):
    app.dependency_overrides[get_order_service] = lambda: order_service
    app.dependency_overrides[get_showtime_service] = lambda: showtime_service
    app.dependency_overrides[get_staff_log] = lambda: staff_log
    app.dependency_overrides[get_gateway] = lambda: gateway
    yield TestClient(app)
    app.dependency_overrides.clear()
