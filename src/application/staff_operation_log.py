from datetime import datetime

from sqlalchemy.orm import Session

from src.application.unit_of_work import UnitOfWorkService
from src.application.views import StaffOperationView
from src.domain.staff_operations import OperationDetails
from src.infrastructure.repositories.staff_operation_repository import StaffOperationRepository


class StaffOperationLog(UnitOfWorkService):
    """
    Read side of the staff audit trail, newest first.

    Lifecycle operations append their entries inside their own unit of
    work; ``record`` is for staff actions that happen outside of one.
    """

    def record(
        self,
        staff_id: str,
        details: OperationDetails,
        order_id: str | None = None,
        showtime_id: str | None = None,
    ) -> StaffOperationView:

        def work(db: Session, now: datetime) -> StaffOperationView:
            operation = StaffOperationRepository(db).record(
                staff_id=staff_id,
                details=details,
                created_at=now,
                order_id=order_id,
                showtime_id=showtime_id,
            )
            return StaffOperationView.from_model(operation)

        return self._read("record_staff_operation", work)

    def by_staff(self, staff_id: str) -> list[StaffOperationView]:

        def work(db: Session, now: datetime) -> list[StaffOperationView]:
            return [
                StaffOperationView.from_model(operation)
                for operation in StaffOperationRepository(db).by_staff(staff_id)
            ]

        return self._read("staff_operations_by_staff", work)

    def all(self) -> list[StaffOperationView]:

        def work(db: Session, now: datetime) -> list[StaffOperationView]:
            return [
                StaffOperationView.from_model(operation)
                for operation in StaffOperationRepository(db).all()
            ]

        return self._read("staff_operations", work)
