"""Test the circulation engine against a real SQLite database."""
import asyncio
from datetime import date
from decimal import Decimal

import pytest
from sqlalchemy import func, select
from sqlalchemy.exc import OperationalError

from library.engine import CirculationEngine
from library.exceptions import (
    AlreadyReserved,
    AlreadyReturned,
    BookNotFound,
    BookUnavailable,
    InvalidRecord,
    RecordNotFound,
    Retryable,
    UserNotFound,
)
from library.models.db_models import BorrowRecord, Fine, Reservation, User
from library.repository import CirculationRepository
from patterns.domain_config import CirculationConfig


async def count_rows(session_factory, model) -> int:
    async with session_factory() as session:
        return (await session.execute(select(func.count()).select_from(model))).scalar()


# -- Borrow --

@pytest.mark.asyncio
async def test_borrow_decrements_and_records(circulation, member, make_book, copies_of, clock):
    book = await make_book(copies=2)
    record = await circulation.borrow_book(member.id, book.id)
    assert record.id is not None
    assert record.user_id == member.id
    assert record.book_id == book.id
    assert record.borrow_date == clock.now
    assert record.return_date is None
    assert await copies_of(book.id) == 1


@pytest.mark.asyncio
async def test_borrow_unavailable_changes_nothing(circulation, member, make_book, copies_of, session_factory):
    book = await make_book(copies=0)
    with pytest.raises(BookUnavailable):
        await circulation.borrow_book(member.id, book.id)
    assert await copies_of(book.id) == 0
    assert await count_rows(session_factory, BorrowRecord) == 0


@pytest.mark.asyncio
async def test_borrow_unknown_book(circulation, member, session_factory):
    with pytest.raises(BookNotFound) as exc_info:
        await circulation.borrow_book(member.id, 999)
    # Unknown books surface as unavailable too
    assert isinstance(exc_info.value, BookUnavailable)
    assert exc_info.value.code == "book_not_found"
    assert await count_rows(session_factory, BorrowRecord) == 0


@pytest.mark.asyncio
async def test_borrow_unknown_user(circulation, make_book, copies_of):
    book = await make_book(copies=1)
    with pytest.raises(UserNotFound):
        await circulation.borrow_book(999, book.id)
    assert await copies_of(book.id) == 1


@pytest.mark.asyncio
async def test_worked_example(circulation, member, other_member, make_book, copies_of):
    book = await make_book(copies=1)

    record = await circulation.borrow_book(member.id, book.id)
    assert await copies_of(book.id) == 0

    with pytest.raises(BookUnavailable):
        await circulation.borrow_book(other_member.id, book.id)

    await circulation.return_book(record.id)
    assert await copies_of(book.id) == 1


@pytest.mark.asyncio
async def test_concurrent_borrows_never_oversell(session_factory, config, clock, make_book, copies_of):
    async with session_factory() as session, session.begin():
        users = [User(full_name=f"Member {i}", email=f"member{i}@example.com") for i in range(10)]
        session.add_all(users)
    book = await make_book(copies=3)
    circulation = CirculationEngine(
        session_factory,
        CirculationConfig(max_retries=10, retry_backoff_base=0.01, retry_backoff_max=0.05),
        clock=clock,
    )

    results = await asyncio.gather(
        *(circulation.borrow_book(u.id, book.id) for u in users),
        return_exceptions=True,
    )

    successes = [r for r in results if isinstance(r, BorrowRecord)]
    failures = [r for r in results if isinstance(r, BookUnavailable)]
    assert len(successes) == 3
    assert len(failures) == 7
    assert await copies_of(book.id) == 0
    assert await count_rows(session_factory, BorrowRecord) == 3


# -- Return --

@pytest.mark.asyncio
async def test_borrow_then_return_restores_availability(circulation, member, make_book, copies_of, clock):
    book = await make_book(copies=4)
    record = await circulation.borrow_book(member.id, book.id)
    returned = await circulation.return_book(record.id)
    assert returned.return_date == clock.now.date()
    assert await copies_of(book.id) == 4


@pytest.mark.asyncio
async def test_double_return_does_not_double_increment(circulation, member, make_book, copies_of):
    book = await make_book(copies=1)
    record = await circulation.borrow_book(member.id, book.id)
    await circulation.return_book(record.id)

    with pytest.raises(AlreadyReturned) as exc_info:
        await circulation.return_book(record.id)
    assert isinstance(exc_info.value, InvalidRecord)
    assert await copies_of(book.id) == 1


@pytest.mark.asyncio
async def test_return_unknown_record(circulation):
    with pytest.raises(RecordNotFound):
        await circulation.return_book(12345)


@pytest.mark.asyncio
async def test_concurrent_returns_increment_once(circulation, member, make_book, copies_of):
    book = await make_book(copies=1)
    record = await circulation.borrow_book(member.id, book.id)

    results = await asyncio.gather(
        *(circulation.return_book(record.id) for _ in range(5)),
        return_exceptions=True,
    )

    assert sum(isinstance(r, BorrowRecord) for r in results) == 1
    assert sum(isinstance(r, AlreadyReturned) for r in results) == 4
    assert await copies_of(book.id) == 1


@pytest.mark.asyncio
async def test_concurrent_overdue_returns_fine_once(circulation, member, make_book, copies_of, clock, session_factory):
    book = await make_book(copies=1)
    record = await circulation.borrow_book(member.id, book.id)
    clock.advance(days=20)

    results = await asyncio.gather(
        *(circulation.return_book(record.id) for _ in range(5)),
        return_exceptions=True,
    )

    assert sum(isinstance(r, BorrowRecord) for r in results) == 1
    assert sum(isinstance(r, AlreadyReturned) for r in results) == 4
    assert await copies_of(book.id) == 1
    assert await count_rows(session_factory, Fine) == 1


# -- Overdue fines --

@pytest.mark.asyncio
async def test_return_within_loan_period_is_not_fined(circulation, member, make_book, clock, session_factory):
    book = await make_book()
    record = await circulation.borrow_book(member.id, book.id)
    clock.advance(days=14)
    await circulation.return_book(record.id)
    assert await count_rows(session_factory, Fine) == 0


@pytest.mark.asyncio
async def test_overdue_return_issues_one_fine(circulation, member, make_book, clock, session_factory):
    book = await make_book()
    record = await circulation.borrow_book(member.id, book.id)
    clock.advance(days=15)

    await circulation.return_book(record.id)

    async with session_factory() as session:
        fines = (await session.execute(select(Fine))).scalars().all()
    assert len(fines) == 1
    assert fines[0].amount == Decimal("5.00")
    assert fines[0].user_id == member.id
    assert fines[0].issue_date == date(2025, 6, 16)
    assert fines[0].paid is False
    assert fines[0].borrow_record_id == record.id


@pytest.mark.asyncio
async def test_sweep_then_return_fines_once(circulation, member, make_book, clock, session_factory):
    book = await make_book()
    record = await circulation.borrow_book(member.id, book.id)
    clock.advance(days=20)

    first = await circulation.sweep_overdue()
    second = await circulation.sweep_overdue()
    await circulation.return_book(record.id)

    assert len(first) == 1
    assert second == []
    assert await count_rows(session_factory, Fine) == 1


@pytest.mark.asyncio
async def test_failed_returns_do_not_add_fines(circulation, member, make_book, clock, session_factory):
    book = await make_book()
    record = await circulation.borrow_book(member.id, book.id)
    clock.advance(days=30)
    await circulation.return_book(record.id)

    for _ in range(3):
        with pytest.raises(AlreadyReturned):
            await circulation.return_book(record.id)
    await circulation.sweep_overdue()

    assert await count_rows(session_factory, Fine) == 1


@pytest.mark.asyncio
async def test_sweep_skips_records_within_loan_period(circulation, member, make_book, clock):
    book = await make_book(copies=2)
    await circulation.borrow_book(member.id, book.id)
    clock.advance(days=10)
    await circulation.borrow_book(member.id, book.id)
    clock.advance(days=5)

    fines = await circulation.sweep_overdue()

    assert len(fines) == 1
    assert fines[0].issue_date == clock.now.date()


@pytest.mark.asyncio
async def test_configured_fine_amount_and_loan_period(session_factory, member, make_book, clock):
    circulation = CirculationEngine(
        session_factory,
        CirculationConfig(loan_period_days=7, overdue_fine_amount=Decimal("2.50")),
        clock=clock,
    )
    book = await make_book()
    await circulation.borrow_book(member.id, book.id)
    clock.advance(days=8)

    fines = await circulation.sweep_overdue()

    assert [f.amount for f in fines] == [Decimal("2.50")]


# -- Reservations --

@pytest.mark.asyncio
async def test_reserve_book(circulation, member, make_book, clock):
    book = await make_book(copies=0)
    reservation = await circulation.reserve_book(member.id, book.id)
    assert reservation.id is not None
    assert reservation.reservation_date == clock.now.date()


@pytest.mark.asyncio
async def test_reserve_rejects_duplicates(circulation, member, make_book, session_factory):
    book = await make_book()
    await circulation.reserve_book(member.id, book.id)
    with pytest.raises(AlreadyReserved):
        await circulation.reserve_book(member.id, book.id)
    assert await count_rows(session_factory, Reservation) == 1


@pytest.mark.asyncio
async def test_reserve_validates_references(circulation, member, make_book):
    book = await make_book()
    with pytest.raises(UserNotFound):
        await circulation.reserve_book(999, book.id)
    with pytest.raises(BookNotFound):
        await circulation.reserve_book(member.id, 999)


@pytest.mark.asyncio
async def test_lenient_reservations_insert_unconditionally(session_factory, member, make_book, clock):
    circulation = CirculationEngine(
        session_factory, CirculationConfig(strict_reservations=False), clock=clock
    )
    book = await make_book()
    await circulation.reserve_book(member.id, book.id)
    await circulation.reserve_book(member.id, book.id)
    assert await count_rows(session_factory, Reservation) == 2


# -- Lock contention --

@pytest.mark.asyncio
async def test_lock_contention_surfaces_as_retryable(circulation, member, make_book, copies_of, monkeypatch):
    book = await make_book(copies=1)
    calls = 0

    async def locked(self, user_id, book_id, borrowed_at):
        nonlocal calls
        calls += 1
        raise OperationalError("UPDATE books", {}, Exception("database is locked"))

    monkeypatch.setattr(CirculationRepository, "decrement_availability_and_insert_borrow", locked)

    with pytest.raises(Retryable) as exc_info:
        await circulation.borrow_book(member.id, book.id)
    assert calls == circulation.config.max_retries + 1
    assert exc_info.value.attempts == calls
    assert await copies_of(book.id) == 1


@pytest.mark.asyncio
async def test_transient_contention_is_retried(circulation, member, make_book, copies_of, monkeypatch):
    book = await make_book(copies=1)
    original = CirculationRepository.decrement_availability_and_insert_borrow
    calls = 0

    async def flaky(self, user_id, book_id, borrowed_at):
        nonlocal calls
        calls += 1
        if calls == 1:
            raise OperationalError("UPDATE books", {}, Exception("database is locked"))
        return await original(self, user_id, book_id, borrowed_at)

    monkeypatch.setattr(CirculationRepository, "decrement_availability_and_insert_borrow", flaky)

    record = await circulation.borrow_book(member.id, book.id)
    assert record.id is not None
    assert calls == 2
    assert await copies_of(book.id) == 0
