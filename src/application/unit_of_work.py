import logging
from datetime import datetime, timezone
from typing import Callable, TypeVar

from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import Session

from src.application.results import OperationResult
from src.domain.exceptions import BookingEngineError, SeatsUnavailableError, StorageError
from src.infrastructure.db.session import SessionFactory, SessionLocal, session_scope

logger = logging.getLogger(__name__)

T = TypeVar("T")
Clock = Callable[[], datetime]


def utc_now() -> datetime:
    return datetime.now(timezone.utc)


class UnitOfWorkService:
    """
    Runs each engine operation in its own transaction.

    Business errors raised inside the work roll the transaction back and
    come back as a failed OperationResult; storage failures are raised as
    StorageError.
    """

    def __init__(
        self,
        session_factory: SessionFactory = SessionLocal,
        clock: Clock = utc_now,
    ):
        self.session_factory = session_factory
        self.clock = clock

    def _run(
        self,
        operation: str,
        work: Callable[[Session, datetime], T],
    ) -> OperationResult[T]:
        now = self.clock()
        try:
            with session_scope(self.session_factory) as db:
                return OperationResult.success(work(db, now))
        except StorageError:
            raise
        except SeatsUnavailableError as exc:
            # Expected under concurrent load; not an incident.
            logger.info("%s rejected: seats unavailable. seat_ids=%s", operation, exc.seat_ids)
            return OperationResult.failure(exc)
        except BookingEngineError as exc:
            logger.warning("%s rejected: %s", operation, exc)
            return OperationResult.failure(exc)
        except SQLAlchemyError as exc:
            logger.exception("%s failed on storage", operation)
            raise StorageError(f"{operation} could not be completed; retry later") from exc

    def _read(
        self,
        operation: str,
        work: Callable[[Session, datetime], T],
    ) -> T:
        now = self.clock()
        try:
            with session_scope(self.session_factory) as db:
                return work(db, now)
        except SQLAlchemyError as exc:
            logger.exception("%s failed on storage", operation)
            raise StorageError(f"{operation} could not be completed; retry later") from exc
