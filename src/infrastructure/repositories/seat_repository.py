# src/infrastructure/repositories/seat_repository.py

import logging
from typing import Iterable

from sqlalchemy.orm import Session
from sqlalchemy import func, select, update

from src.infrastructure.db.models import Seat
from src.domain.exceptions import InvalidSeatsError, SeatsUnavailableError
from src.domain.seat_layout import SeatSpec

logger = logging.getLogger(__name__)


def _unique(seat_ids: Iterable[str]) -> list[str]:
    return list(dict.fromkeys(seat_ids))


class SeatRepository:

    def __init__(self, db: Session):
        self.db = db

    def create_seats(self, showtime_id: str, specs: list[SeatSpec]) -> list[Seat]:
        seats = [
            Seat(
                showtime_id=showtime_id,
                row_num=spec.row,
                column_num=spec.column,
                seat_type=spec.seat_type,
                is_available=True,
            )
            for spec in specs
        ]
        self.db.add_all(seats)
        return seats

    def list_for_showtime(self, showtime_id: str) -> list[Seat]:
        stmt = (
            select(Seat)
            .where(Seat.showtime_id == showtime_id)
            .order_by(Seat.row_num, Seat.column_num)
        )
        return list(self.db.execute(stmt).scalars().all())

    def available_count(self, showtime_id: str) -> int:
        stmt = (
            select(func.count())
            .select_from(Seat)
            .where(Seat.showtime_id == showtime_id)
            .where(Seat.is_available.is_(True))
        )
        return self.db.execute(stmt).scalar_one()

    def lock_seats(self, seat_ids: list[str]) -> list[Seat]:
        """
        SELECT ... FOR UPDATE
        Rows are locked in id order so concurrent callers
        with overlapping selections cannot deadlock.
        """

        stmt = (
            select(Seat)
            .where(Seat.id.in_(seat_ids))
            .order_by(Seat.id)
            .with_for_update()
        )
        return list(self.db.execute(stmt).scalars().all())

    def ensure_belong_to_showtime(self, showtime_id: str, seat_ids: Iterable[str]) -> list[Seat]:
        requested = _unique(seat_ids)
        seats = {seat.id: seat for seat in self.lock_seats(requested)}
        foreign = [
            seat_id
            for seat_id in requested
            if seat_id not in seats or seats[seat_id].showtime_id != showtime_id
        ]
        if foreign:
            raise InvalidSeatsError(showtime_id, foreign)
        return [seats[seat_id] for seat_id in requested]

    def reserve_seats(self, showtime_id: str, seat_ids: Iterable[str]) -> list[Seat]:
        """
        All-or-nothing claim. Raises InvalidSeatsError or
        SeatsUnavailableError without flipping any seat; the
        conditional UPDATE only succeeds when every row is still free.
        """

        requested = _unique(seat_ids)
        seats = self.ensure_belong_to_showtime(showtime_id, requested)

        taken = [seat.id for seat in seats if not seat.is_available]
        if taken:
            raise SeatsUnavailableError(taken)

        result = self.db.execute(
            update(Seat)
            .where(Seat.showtime_id == showtime_id)
            .where(Seat.id.in_(requested))
            .where(Seat.is_available.is_(True))
            .values(is_available=False)
            .execution_options(synchronize_session="evaluate")
        )

        if result.rowcount != len(requested):
            # Lost a race with a concurrent reservation; the caller's
            # transaction is rolled back, undoing the partial update.
            raise SeatsUnavailableError(requested)

        return seats

    def release_seats(self, showtime_id: str, seat_ids: Iterable[str]) -> int:
        """Idempotent: already-available seats are left untouched."""

        requested = _unique(seat_ids)
        if not requested:
            return 0

        result = self.db.execute(
            update(Seat)
            .where(Seat.showtime_id == showtime_id)
            .where(Seat.id.in_(requested))
            .where(Seat.is_available.is_(False))
            .values(is_available=True)
            .execution_options(synchronize_session="evaluate")
        )
        logger.debug(
            "Released seats. showtime_id=%s requested=%s released=%s",
            showtime_id,
            len(requested),
            result.rowcount,
        )
        return result.rowcount
