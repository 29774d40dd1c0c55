# src/infrastructure/repositories/staff_operation_repository.py

from datetime import datetime

from sqlalchemy.orm import Session
from sqlalchemy import select

from src.infrastructure.db.models import StaffOperation
from src.domain.staff_operations import OperationDetails, dump_details, operation_type


class StaffOperationRepository:
    """Append-only: exposes no update or delete."""

    def __init__(self, db: Session):
        self.db = db

    def record(
        self,
        staff_id: str,
        details: OperationDetails,
        created_at: datetime,
        order_id: str | None = None,
        showtime_id: str | None = None,
    ) -> StaffOperation:
        operation = StaffOperation(
            staff_id=staff_id,
            operation_type=operation_type(details),
            order_id=order_id,
            showtime_id=showtime_id,
            details=dump_details(details),
            created_at=created_at,
        )
        self.db.add(operation)
        self.db.flush()
        return operation

    def by_staff(self, staff_id: str) -> list[StaffOperation]:
        stmt = (
            select(StaffOperation)
            .where(StaffOperation.staff_id == staff_id)
            .order_by(StaffOperation.created_at.desc(), StaffOperation.id.desc())
        )
        return list(self.db.execute(stmt).scalars().all())

    def all(self) -> list[StaffOperation]:
        stmt = select(StaffOperation).order_by(
            StaffOperation.created_at.desc(),
            StaffOperation.id.desc(),
        )
        return list(self.db.execute(stmt).scalars().all())
