from datetime import datetime, timedelta, timezone
from decimal import Decimal

from src.application.showtime_service import ShowtimeService
from src.domain.pricing import ConditionType, TicketType
from src.infrastructure.db.models import Base
from src.infrastructure.db.session import engine


def _dt(days_from_now: int, hour: int, minute: int) -> datetime:
    now = datetime.now(timezone.utc)
    target = now + timedelta(days=days_from_now)
    return target.replace(hour=hour, minute=minute, second=0, microsecond=0)


def seed_pricing(service: ShowtimeService) -> None:
    strategies = [
        {
            "name": "Weekday matinee",
            "condition_type": ConditionType.TIME,
            "condition_value": "10:00-14:00",
            "discount_percentage": Decimal("20"),
        },
        {
            "name": "Weekend surcharge",
            "condition_type": ConditionType.WEEKEND,
            "extra_charge": Decimal("5.00"),
        },
        {
            "name": "IMAX premium",
            "condition_type": ConditionType.MOVIE_TYPE,
            "condition_value": "imax",
            "extra_charge": Decimal("10.00"),
        },
    ]
    for strategy in strategies:
        service.add_pricing_strategy(**strategy)


def seed_showtimes(service: ShowtimeService) -> list[str]:
    standard_prices = {
        TicketType.NORMAL: Decimal("45.00"),
        TicketType.STUDENT: Decimal("35.00"),
        TicketType.SENIOR: Decimal("30.00"),
        TicketType.CHILD: Decimal("25.00"),
    }

    hall_one = service.create_theater("Hall 1", rows=8, columns=12)
    hall_two = service.create_theater(
        "Hall 2 (IMAX)",
        rows=4,
        columns=6,
        layout=[
            ["couple", "couple", "empty", "empty", "couple", "couple"],
            ["normal", "normal", "normal", "normal", "normal", "normal"],
            ["vip", "vip", "vip", "vip", "vip", "vip"],
            ["disabled", "normal", "normal", "normal", "normal", "disabled"],
        ],
    )

    drama = service.create_movie("The Long Night", duration_minutes=128, movie_type="2D")
    blockbuster = service.create_movie("Orbit", duration_minutes=142, movie_type="IMAX")

    showtimes = [
        service.create_showtime(drama, hall_one, _dt(1, 11, 0), standard_prices),
        service.create_showtime(drama, hall_one, _dt(1, 19, 30), standard_prices),
        service.create_showtime(blockbuster, hall_two, _dt(2, 20, 0), standard_prices),
    ]
    return [result.unwrap().id for result in showtimes]


def main() -> None:
    Base.metadata.create_all(bind=engine)
    service = ShowtimeService()
    seed_pricing(service)
    showtime_ids = seed_showtimes(service)
    print(f"Seed complete: 2 movies, 2 theaters, {len(showtime_ids)} showtimes, 3 pricing strategies added.")


if __name__ == "__main__":
    main()
