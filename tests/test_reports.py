"""Test reporting views and the sample data set."""
from datetime import date, datetime
from decimal import Decimal

import pytest
from sqlalchemy import select

from library.models.db_models import Book, Fine
from library.repository import FineRepository, ReportRepository
from library.seed import seed_sample_data


@pytest.mark.asyncio
async def test_active_borrows_exclude_returned(circulation, member, other_member, make_book, session_factory, clock):
    book = await make_book(copies=2, title="Animal Farm")
    first = await circulation.borrow_book(member.id, book.id)
    clock.advance(hours=1)
    await circulation.borrow_book(other_member.id, book.id)
    await circulation.return_book(first.id)

    async with session_factory() as session:
        rows = await ReportRepository(session).active_borrows()

    assert len(rows) == 1
    assert rows[0]["full_name"] == "Mary Owiti"
    assert rows[0]["title"] == "Animal Farm"
    assert rows[0]["borrow_date"] == datetime(2025, 6, 1, 11, 0, 0)


@pytest.mark.asyncio
async def test_active_borrows_ordered_by_borrow_date(circulation, member, make_book, session_factory, clock):
    book = await make_book(copies=3)
    ids = []
    for _ in range(3):
        ids.append((await circulation.borrow_book(member.id, book.id)).id)
        clock.advance(days=1)

    async with session_factory() as session:
        rows = await ReportRepository(session).active_borrows()

    assert [r["record_id"] for r in rows] == ids


@pytest.mark.asyncio
async def test_overdue_books_days_overdue(circulation, member, make_book, session_factory, clock):
    book = await make_book(copies=2)
    old = await circulation.borrow_book(member.id, book.id)
    clock.advance(days=5)
    await circulation.borrow_book(member.id, book.id)
    clock.advance(days=13)  # first borrow is now 18 days old, second 13

    async with session_factory() as session:
        rows = await ReportRepository(session).overdue_books(today=clock.now.date())

    assert len(rows) == 1
    assert rows[0]["record_id"] == old.id
    assert rows[0]["days_overdue"] == 18


@pytest.mark.asyncio
async def test_overdue_boundary_is_strictly_after_loan_period(circulation, member, make_book, session_factory, clock):
    book = await make_book()
    await circulation.borrow_book(member.id, book.id)

    async with session_factory() as session:
        reports = ReportRepository(session)
        assert await reports.overdue_books(today=date(2025, 6, 15)) == []
        rows = await reports.overdue_books(today=date(2025, 6, 16))

    assert [r["days_overdue"] for r in rows] == [15]


@pytest.mark.asyncio
async def test_overdue_borrow_produces_one_unpaid_fine(circulation, member, make_book, session_factory, clock):
    book = await make_book()
    await circulation.borrow_book(member.id, book.id)
    clock.advance(days=15)
    await circulation.sweep_overdue()
    await circulation.sweep_overdue()

    async with session_factory() as session:
        overdue = await ReportRepository(session).overdue_books(today=clock.now.date())
        fines = await FineRepository(session).list_for_user(member.id, unpaid_only=True)

    assert overdue[0]["days_overdue"] == 15
    assert len(fines) == 1
    assert fines[0]["amount"] == "5.00"


@pytest.mark.asyncio
async def test_user_fines_totals_unpaid(session_factory, member, other_member):
    async with session_factory() as session, session.begin():
        session.add_all([
            Fine(user_id=member.id, amount=Decimal("5.00"), issue_date=date(2025, 5, 1)),
            Fine(user_id=member.id, amount=Decimal("2.50"), issue_date=date(2025, 5, 2)),
            Fine(user_id=member.id, amount=Decimal("9.99"), issue_date=date(2025, 5, 3), paid=True),
            Fine(user_id=other_member.id, amount=Decimal("5.00"), issue_date=date(2025, 5, 3), paid=True),
        ])

    async with session_factory() as session:
        rows = await ReportRepository(session).user_fines()

    assert rows == [
        {
            "user_id": member.id,
            "full_name": "John Kamau",
            "total_fines": Decimal("7.50"),
            "fine_count": 2,
        }
    ]


@pytest.mark.asyncio
async def test_user_fines_omits_user_after_paying(session_factory, member):
    async with session_factory() as session, session.begin():
        fine = Fine(user_id=member.id, amount=Decimal("5.00"), issue_date=date(2025, 5, 1))
        session.add(fine)

    async with session_factory() as session, session.begin():
        paid = await FineRepository(session).mark_paid(fine.id)
    assert paid["paid"] is True

    async with session_factory() as session:
        assert await ReportRepository(session).user_fines() == []


@pytest.mark.asyncio
async def test_seed_sample_data(session_factory):
    async with session_factory() as session, session.begin():
        assert await seed_sample_data(session) is True

    async with session_factory() as session, session.begin():
        assert await seed_sample_data(session) is False

    async with session_factory() as session:
        reports = ReportRepository(session)
        active = await reports.active_borrows()
        overdue = await reports.overdue_books(today=date(2025, 5, 10))
        fines = await reports.user_fines()
        books = (await session.execute(select(Book).order_by(Book.id))).scalars().all()

    assert [r["full_name"] for r in active] == ["Mary Owiti", "John Kamau"]
    assert [(r["title"], r["days_overdue"]) for r in overdue] == [("1984", 20)]
    assert fines == [
        {"user_id": 2, "full_name": "Mary Owiti", "total_fines": Decimal("5.00"), "fine_count": 1}
    ]
    assert [b.copies_available for b in books] == [4, 2]
