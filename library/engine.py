"""Circulation engine — borrow, return, reserve and overdue fines.

Each public operation runs as one transaction in its own session:

- borrow_book: compare-and-set decrement of copies_available plus the
  borrow record insert, committed together or not at all.
- return_book: locks the record, fines it if overdue, closes it and
  gives the copy back.
- reserve_book: records a reservation dated today.
- sweep_overdue: fines every overdue, unfined active borrow.

Lock contention (OperationalError) is retried with exponential backoff;
when retries run out the caller gets Retryable. Semantic failures are
raised as LibraryError subclasses and roll the transaction back, so no
partial change is ever visible.
"""

import logging
from datetime import date, datetime
from typing import Awaitable, Callable, TypeVar

from sqlalchemy.exc import IntegrityError, OperationalError
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker

from core.models.base import utcnow
from core.resilience import retry_async
from library.exceptions import (
    AlreadyReserved,
    BookNotFound,
    Retryable,
    UserNotFound,
)
from library.models.db_models import BorrowRecord, Fine, Reservation
from library.repository import CirculationRepository
from library.rules import check_fine_eligibility, overdue_cutoff
from patterns.domain_config import CirculationConfig

logger = logging.getLogger(__name__)

T = TypeVar("T")


class CirculationEngine:
    """Enforces the circulation rules over a session factory.

    The factory must create sessions with expire_on_commit=False so that
    returned records stay readable after the transaction closes (see
    core.database.build_session_factory).
    """

    def __init__(
        self,
        session_factory: async_sessionmaker[AsyncSession],
        config: CirculationConfig | None = None,
        clock: Callable[[], datetime] = utcnow,
    ):
        self.session_factory = session_factory
        self.config = config or CirculationConfig.default()
        self.clock = clock

    def today(self) -> date:
        return self.clock().date()

    # -- Transaction runner --

    async def _run(
        self,
        operation: str,
        work: Callable[[CirculationRepository], Awaitable[T]],
        retry_on: tuple[type[Exception], ...] = (OperationalError,),
    ) -> T:
        async def attempt() -> T:
            async with self.session_factory() as session:
                async with session.begin():
                    return await work(CirculationRepository(session))

        def log_retry(attempt_no: int, error: BaseException) -> None:
            logger.warning("%s contended (attempt %d): %s", operation, attempt_no, error)

        try:
            return await retry_async(
                attempt,
                retry_on=retry_on,
                max_retries=self.config.max_retries,
                backoff_base=self.config.retry_backoff_base,
                backoff_max=self.config.retry_backoff_max,
                on_retry=log_retry,
            )
        except retry_on as exc:
            attempts = self.config.max_retries + 1
            logger.error("%s gave up after %d attempts", operation, attempts)
            raise Retryable(operation, attempts) from exc

    # -- Overdue rule --

    async def _issue_overdue_fine(
        self, repo: CirculationRepository, record: BorrowRecord, today: date
    ) -> Fine | None:
        """Fine an overdue active record, at most once per record."""
        existing = await repo.get_fine_for_record(record.id)
        eligibility = check_fine_eligibility(
            borrow_date=record.borrow_date,
            returned=record.return_date is not None,
            already_fined=existing is not None,
            today=today,
            loan_period_days=self.config.loan_period_days,
        )
        if not eligibility.passed:
            return None

        fine = await repo.insert_fine(
            user_id=record.user_id,
            amount=self.config.overdue_fine_amount,
            issue_date=today,
            borrow_record_id=record.id,
        )
        logger.info(
            "Fined user %s %s for record %s (%s days since borrow)",
            record.user_id,
            fine.amount,
            record.id,
            eligibility.details["days_elapsed"],
        )
        return fine

    # -- Operations --

    async def borrow_book(self, user_id: int, book_id: int) -> BorrowRecord:
        """Lend one copy of book_id to user_id.

        Raises BookUnavailable when no copy is left, BookNotFound (a
        BookUnavailable) for an unknown book and UserNotFound for an unknown
        member.
        """
        borrowed_at = self.clock()

        async def work(repo: CirculationRepository) -> BorrowRecord:
            if not await repo.user_exists(user_id):
                raise UserNotFound(user_id)
            return await repo.decrement_availability_and_insert_borrow(
                user_id, book_id, borrowed_at
            )

        record = await self._run("borrow_book", work)
        logger.info("User %s borrowed book %s (record %s)", user_id, book_id, record.id)
        return record

    async def return_book(self, record_id: int) -> BorrowRecord:
        """Close an active borrow record and restore the copy.

        An overdue record is fined before it is closed. Raises
        RecordNotFound or AlreadyReturned (both InvalidRecord). A concurrent
        return that fined the record first trips the unique fine link; the
        retry then sees the record closed and raises AlreadyReturned.
        """
        today = self.today()

        async def work(repo: CirculationRepository) -> BorrowRecord:
            record = await repo.find_active_borrow_record(record_id)
            await self._issue_overdue_fine(repo, record, today)
            return await repo.mark_returned_and_increment_availability(record_id, today)

        record = await self._run(
            "return_book", work, retry_on=(OperationalError, IntegrityError)
        )
        logger.info("Record %s returned (book %s)", record_id, record.book_id)
        return record

    async def reserve_book(self, user_id: int, book_id: int) -> Reservation:
        """Record a reservation dated today.

        With strict_reservations the member and book must exist and the
        member may hold only one reservation per book; otherwise the insert
        is unconditional.
        """
        today = self.today()
        strict = self.config.strict_reservations

        async def work(repo: CirculationRepository) -> Reservation:
            if strict:
                if not await repo.user_exists(user_id):
                    raise UserNotFound(user_id)
                if not await repo.book_exists(book_id):
                    raise BookNotFound(book_id)
                if await repo.find_reservation(user_id, book_id) is not None:
                    raise AlreadyReserved(user_id, book_id)
            return await repo.insert_reservation(user_id, book_id, today)

        reservation = await self._run("reserve_book", work)
        logger.info("User %s reserved book %s", user_id, book_id)
        return reservation

    async def sweep_overdue(self) -> list[Fine]:
        """Fine every active borrow past its loan period that has no fine yet.

        Safe to run repeatedly: a record is fined at most once. A concurrent
        return fining the same record trips the unique fine link and the
        sweep is retried.
        """
        today = self.today()
        cutoff = overdue_cutoff(today, self.config.loan_period_days)

        async def work(repo: CirculationRepository) -> list[Fine]:
            issued = []
            for record in await repo.list_unfined_overdue(cutoff):
                fine = await self._issue_overdue_fine(repo, record, today)
                if fine is not None:
                    issued.append(fine)
            return issued

        fines = await self._run(
            "sweep_overdue", work, retry_on=(OperationalError, IntegrityError)
        )
        logger.info("Overdue sweep issued %d fines", len(fines))
        return fines
