import logging
from datetime import datetime, timedelta
from decimal import Decimal

from sqlalchemy.orm import Session

from src.application.unit_of_work import UnitOfWorkService
from src.application.results import OperationResult
from src.application.views import ShowtimeView
from src.domain.exceptions import InvalidShowtimeError, InvalidTicketTypeError, NotFoundError
from src.domain.pricing import ConditionType, TicketType
from src.domain.seat_layout import Layout, seats_from_layout
from src.domain.ticket_status import as_utc
from src.infrastructure.repositories.catalog_repository import CatalogRepository
from src.infrastructure.repositories.seat_repository import SeatRepository

logger = logging.getLogger(__name__)


class ShowtimeService(UnitOfWorkService):
    """
    Catalog writes the engine needs to stand up a showtime:
    movies, theaters (with optional layout) and showtimes with their seats.
    """

    def create_movie(
        self,
        title: str,
        duration_minutes: int,
        movie_type: str | None = None,
    ) -> str:

        def work(db: Session, now: datetime) -> str:
            movie = CatalogRepository(db).add_movie(title, duration_minutes, movie_type)
            logger.info("Movie created. movie_id=%s title=%s", movie.id, title)
            return movie.id

        return self._read("create_movie", work)

    def create_theater(
        self,
        name: str,
        rows: int,
        columns: int,
        layout: Layout | None = None,
    ) -> str:
        """Raises ValueError when the layout does not fit the grid."""

        def work(db: Session, now: datetime) -> str:
            theater = CatalogRepository(db).add_theater(name, rows, columns, layout)
            logger.info(
                "Theater created. theater_id=%s rows=%s columns=%s custom_layout=%s",
                theater.id,
                rows,
                columns,
                layout is not None,
            )
            return theater.id

        return self._read("create_theater", work)

    def add_pricing_strategy(
        self,
        name: str,
        condition_type: ConditionType | str,
        condition_value: str | None = None,
        discount_percentage: Decimal | None = None,
        extra_charge: Decimal | None = None,
        is_active: bool = True,
    ) -> int:

        def work(db: Session, now: datetime) -> int:
            record = CatalogRepository(db).add_pricing_strategy(
                name=name,
                condition_type=ConditionType(condition_type),
                condition_value=condition_value,
                discount_percentage=discount_percentage,
                extra_charge=extra_charge,
                is_active=is_active,
            )
            return record.id

        return self._read("add_pricing_strategy", work)

    def create_showtime(
        self,
        movie_id: str,
        theater_id: str,
        start_time: datetime,
        prices: dict[TicketType | str, Decimal],
        end_time: datetime | None = None,
    ) -> OperationResult[ShowtimeView]:
        """
        Schedules a showtime and generates its seats from the theater's
        saved layout, or the default layout when none is saved.
        end_time defaults to start + movie duration.
        """

        def work(db: Session, now: datetime) -> ShowtimeView:
            catalog = CatalogRepository(db)
            movie = catalog.get_movie(movie_id)
            if not movie:
                raise NotFoundError("Movie", movie_id)
            theater = catalog.get_theater(theater_id)
            if not theater:
                raise NotFoundError("Theater", theater_id)

            starts = as_utc(start_time)
            ends = as_utc(end_time) if end_time else starts + timedelta(
                minutes=movie.duration_minutes
            )
            if ends <= starts:
                raise InvalidShowtimeError("Showtime must end after it starts")

            try:
                specs = seats_from_layout(
                    theater.row_count,
                    theater.column_count,
                    catalog.get_theater_layout(theater.id),
                )
            except ValueError as exc:
                raise InvalidShowtimeError(f"Theater {theater.id} has an unusable layout: {exc}") from exc

            showtime = catalog.add_showtime(
                movie_id=movie.id,
                theater_id=theater.id,
                start_time=starts,
                end_time=ends,
                prices=self._prices(prices),
            )
            seats = SeatRepository(db).create_seats(showtime.id, specs)
            db.flush()

            logger.info(
                "Showtime created. showtime_id=%s theater_id=%s seats=%s",
                showtime.id,
                theater.id,
                len(seats),
            )
            return ShowtimeView.from_model(showtime, seats)

        return self._run("create_showtime", work)

    @staticmethod
    def _prices(prices: dict[TicketType | str, Decimal]) -> dict[TicketType, Decimal]:
        parsed = {}
        for key, amount in prices.items():
            try:
                parsed[TicketType(key)] = Decimal(amount)
            except ValueError:
                raise InvalidTicketTypeError("new showtime", str(key)) from None
        return parsed

    def seat_map(self, showtime_id: str) -> OperationResult[ShowtimeView]:

        def work(db: Session, now: datetime) -> ShowtimeView:
            showtime = CatalogRepository(db).get_showtime(showtime_id)
            if not showtime:
                raise NotFoundError("Showtime", showtime_id)
            seats = SeatRepository(db).list_for_showtime(showtime_id)
            return ShowtimeView.from_model(showtime, seats)

        return self._run("seat_map", work)
