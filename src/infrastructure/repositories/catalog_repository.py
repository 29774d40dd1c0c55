# src/infrastructure/repositories/catalog_repository.py

from datetime import datetime
from decimal import Decimal
from zoneinfo import ZoneInfo

from sqlalchemy.orm import Session
from sqlalchemy import select

from src.infrastructure.db.models import (
    Movie,
    PricingStrategyRecord,
    Showtime,
    ShowtimePrice,
    Theater,
    TheaterSeatLayout,
)
from src.domain.pricing import (
    ConditionType,
    PricingContext,
    PricingStrategy,
    TicketType,
    applicable_strategies,
)
from src.domain.seat_layout import Layout, validate_layout
from src.domain.ticket_status import as_utc


class CatalogRepository:
    """Movies, theaters, showtimes and pricing strategies."""

    def __init__(self, db: Session):
        self.db = db

    def get_movie(self, movie_id: str) -> Movie | None:
        return self.db.get(Movie, movie_id)

    def add_movie(
        self,
        title: str,
        duration_minutes: int,
        movie_type: str | None = None,
    ) -> Movie:
        movie = Movie(title=title, duration_minutes=duration_minutes, movie_type=movie_type)
        self.db.add(movie)
        self.db.flush()
        return movie

    def get_theater(self, theater_id: str) -> Theater | None:
        return self.db.get(Theater, theater_id)

    def add_theater(
        self,
        name: str,
        rows: int,
        columns: int,
        layout: Layout | None = None,
    ) -> Theater:
        theater = Theater(name=name, row_count=rows, column_count=columns)
        self.db.add(theater)
        self.db.flush()
        if layout is not None:
            self.save_theater_layout(theater, layout)
        return theater

    def get_theater_layout(self, theater_id: str) -> Layout | None:
        stmt = select(TheaterSeatLayout).where(TheaterSeatLayout.theater_id == theater_id)
        saved = self.db.execute(stmt).scalar_one_or_none()
        return saved.layout if saved else None

    def save_theater_layout(self, theater: Theater, layout: Layout) -> TheaterSeatLayout:
        validate_layout(layout, theater.row_count, theater.column_count)
        stmt = select(TheaterSeatLayout).where(TheaterSeatLayout.theater_id == theater.id)
        saved = self.db.execute(stmt).scalar_one_or_none()
        if saved:
            saved.layout = layout
            return saved
        saved = TheaterSeatLayout(theater_id=theater.id, layout=layout)
        self.db.add(saved)
        return saved

    def get_showtime(self, showtime_id: str) -> Showtime | None:
        return self.db.get(Showtime, showtime_id)

    def add_showtime(
        self,
        movie_id: str,
        theater_id: str,
        start_time: datetime,
        end_time: datetime,
        prices: dict[TicketType, Decimal],
    ) -> Showtime:
        showtime = Showtime(
            movie_id=movie_id,
            theater_id=theater_id,
            start_time=start_time,
            end_time=end_time,
        )
        showtime.prices = [
            ShowtimePrice(ticket_type=TicketType(ticket_type), amount=Decimal(amount))
            for ticket_type, amount in prices.items()
        ]
        self.db.add(showtime)
        self.db.flush()
        return showtime

    def add_pricing_strategy(
        self,
        name: str,
        condition_type: ConditionType,
        condition_value: str | None = None,
        discount_percentage: Decimal | None = None,
        extra_charge: Decimal | None = None,
        is_active: bool = True,
    ) -> PricingStrategyRecord:
        record = PricingStrategyRecord(
            name=name,
            condition_type=ConditionType(condition_type),
            condition_value=condition_value,
            discount_percentage=discount_percentage,
            extra_charge=extra_charge,
            is_active=is_active,
        )
        self.db.add(record)
        self.db.flush()
        return record

    def get_active_pricing_strategies(
        self,
        showtime: Showtime,
        cinema_timezone: str = "UTC",
    ) -> list[PricingStrategy]:
        """Active strategies whose condition holds for this showtime."""

        stmt = (
            select(PricingStrategyRecord)
            .where(PricingStrategyRecord.is_active.is_(True))
            .order_by(PricingStrategyRecord.id)
        )
        records = self.db.execute(stmt).scalars().all()

        context = PricingContext(
            starts_at=as_utc(showtime.start_time).astimezone(ZoneInfo(cinema_timezone)),
            movie_type=showtime.movie.movie_type if showtime.movie else None,
        )
        return applicable_strategies(
            (
                PricingStrategy(
                    id=record.id,
                    name=record.name,
                    condition_type=record.condition_type,
                    condition_value=record.condition_value,
                    discount_percentage=record.discount_percentage,
                    extra_charge=record.extra_charge,
                    is_active=record.is_active,
                )
                for record in records
            ),
            context,
        )
