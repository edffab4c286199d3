"""Library repositories — async database access.

Three groups live here:

- Catalog and membership stores (books, authors, categories, users):
  BaseRepository CRUD plus search and the book–author association.
- The fine ledger: append-only fines, and the paid toggle used by the
  external payment collaborator.
- The circulation persistence boundary used by the engine. Its mutating
  methods run inside the caller's transaction; the engine owns commit,
  rollback and retry.

Reporting views are read-only projections over the same tables.
"""

from datetime import date, datetime
from decimal import Decimal
from typing import Any

from fastapi import Depends
from sqlalchemy import delete, func, insert, select, update
from sqlalchemy.ext.asyncio import AsyncSession

from core.database import get_session
from library.exceptions import (
    AlreadyReturned,
    BookNotFound,
    BookUnavailable,
    RecordNotFound,
)
from library.models.db_models import (
    Author,
    Book,
    BorrowRecord,
    Category,
    Fine,
    Reservation,
    User,
    book_authors,
)
from library.rules import days_elapsed, overdue_cutoff
from patterns.repository import BaseRepository


# ---------------------------------------------------------------------------
# Catalog store
# ---------------------------------------------------------------------------

class BookRepository(BaseRepository[Book]):
    """Repository for book CRUD, search and author links."""

    model = Book
    # copies_available is only moved by borrow/return
    immutable_fields = ("id", "copies_available")

    async def search(
        self,
        query: str | None = None,
        category_id: int | None = None,
        available: bool | None = None,
        page: int = 1,
        limit: int = 50,
    ) -> tuple[list[dict], int]:
        """Search books by title/ISBN with optional filters."""
        conditions = []

        if query:
            pattern = f"%{query}%"
            conditions.append((Book.title.ilike(pattern)) | (Book.isbn.ilike(pattern)))

        if category_id is not None:
            conditions.append(Book.category_id == category_id)

        if available is True:
            conditions.append(Book.copies_available > 0)
        elif available is False:
            conditions.append(Book.copies_available == 0)

        stmt = select(Book).where(*conditions)
        count_stmt = select(func.count()).select_from(Book).where(*conditions)

        offset = (page - 1) * limit
        stmt = stmt.order_by(Book.title, Book.id).offset(offset).limit(limit)

        result = await self.session.execute(stmt)
        books = [row.to_dict() for row in result.scalars().all()]

        count_result = await self.session.execute(count_stmt)
        total = count_result.scalar() or 0

        return books, total

    async def add_author(self, book_id: int, author_id: int) -> bool:
        """Link an author to a book. Returns False if already linked."""
        existing = await self.session.execute(
            select(book_authors.c.book_id).where(
                book_authors.c.book_id == book_id,
                book_authors.c.author_id == author_id,
            )
        )
        if existing.first() is not None:
            return False

        await self.session.execute(
            insert(book_authors).values(book_id=book_id, author_id=author_id)
        )
        return True

    async def remove_author(self, book_id: int, author_id: int) -> bool:
        result = await self.session.execute(
            delete(book_authors).where(
                book_authors.c.book_id == book_id,
                book_authors.c.author_id == author_id,
            )
        )
        return result.rowcount > 0

    async def list_authors(self, book_id: int) -> list[dict]:
        stmt = (
            select(Author)
            .join(book_authors, book_authors.c.author_id == Author.id)
            .where(book_authors.c.book_id == book_id)
            .order_by(Author.name)
        )
        result = await self.session.execute(stmt)
        return [row.to_dict() for row in result.scalars().all()]


class AuthorRepository(BaseRepository[Author]):
    model = Author


class CategoryRepository(BaseRepository[Category]):
    model = Category


# ---------------------------------------------------------------------------
# Membership store
# ---------------------------------------------------------------------------

class UserRepository(BaseRepository[User]):
    """Repository for library members."""

    model = User
    immutable_fields = ("id", "membership_date")

    async def get_by_email(self, email: str) -> dict | None:
        result = await self.session.execute(select(User).where(User.email == email))
        user = result.scalar_one_or_none()
        return user.to_dict() if user else None


# ---------------------------------------------------------------------------
# Fine ledger
# ---------------------------------------------------------------------------

class FineRepository(BaseRepository[Fine]):
    """Append-only fine ledger; only the paid flag ever changes."""

    model = Fine

    async def list_for_user(self, user_id: int, unpaid_only: bool = False) -> list[dict]:
        stmt = select(Fine).where(Fine.user_id == user_id)
        if unpaid_only:
            stmt = stmt.where(Fine.paid.is_(False))
        result = await self.session.execute(stmt.order_by(Fine.issue_date, Fine.id))
        return [row.to_dict() for row in result.scalars().all()]

    async def mark_paid(self, fine_id: int) -> dict | None:
        """Flag a fine as paid. Returns None if the fine does not exist."""
        fine = await self.session.get(Fine, fine_id)
        if not fine:
            return None
        fine.paid = True
        await self.session.flush()
        return fine.to_dict()


# ---------------------------------------------------------------------------
# Circulation persistence boundary
# ---------------------------------------------------------------------------

class CirculationRepository:
    """Store operations the circulation engine composes into transactions."""

    def __init__(self, session: AsyncSession):
        self.session = session

    async def user_exists(self, user_id: int) -> bool:
        result = await self.session.execute(select(User.id).where(User.id == user_id))
        return result.scalar_one_or_none() is not None

    async def book_exists(self, book_id: int) -> bool:
        result = await self.session.execute(select(Book.id).where(Book.id == book_id))
        return result.scalar_one_or_none() is not None

    async def get_book_availability(self, book_id: int) -> int:
        """Current copies_available, or BookNotFound."""
        result = await self.session.execute(
            select(Book.copies_available).where(Book.id == book_id)
        )
        available = result.scalar_one_or_none()
        if available is None:
            raise BookNotFound(book_id)
        return available

    async def decrement_availability_and_insert_borrow(
        self, user_id: int, book_id: int, borrowed_at: datetime
    ) -> BorrowRecord:
        """Take one copy and record the borrow.

        The decrement is a compare-and-set: it only matches while
        copies_available > 0, so concurrent borrowers can never drive the
        counter below zero.
        """
        result = await self.session.execute(
            update(Book)
            .where(Book.id == book_id, Book.copies_available > 0)
            .values(copies_available=Book.copies_available - 1)
            .execution_options(synchronize_session=False)
        )
        if result.rowcount == 0:
            # Raises BookNotFound for an unknown id
            available = await self.get_book_availability(book_id)
            raise BookUnavailable(book_id, f"Book {book_id} is not available ({available} copies)")

        record = BorrowRecord(
            user_id=user_id,
            book_id=book_id,
            borrow_date=borrowed_at,
            return_date=None,
        )
        self.session.add(record)
        await self.session.flush()
        return record

    async def find_active_borrow_record(self, record_id: int) -> BorrowRecord:
        """Load and lock an unreturned borrow record.

        Raises RecordNotFound for an unknown id and AlreadyReturned when a
        return date is already set.
        """
        result = await self.session.execute(
            select(BorrowRecord)
            .where(BorrowRecord.id == record_id)
            .with_for_update()
        )
        record = result.scalar_one_or_none()
        if record is None:
            raise RecordNotFound(record_id)
        if not record.is_active:
            raise AlreadyReturned(record_id)
        return record

    async def mark_returned_and_increment_availability(
        self, record_id: int, returned_on: date
    ) -> BorrowRecord:
        """Close the record and give its copy back.

        The update only matches an unreturned record, so a second call can
        never increment availability twice.
        """
        result = await self.session.execute(
            update(BorrowRecord)
            .where(BorrowRecord.id == record_id, BorrowRecord.return_date.is_(None))
            .values(return_date=returned_on)
            .execution_options(synchronize_session=False)
        )
        if result.rowcount == 0:
            if await self.session.get(BorrowRecord, record_id) is None:
                raise RecordNotFound(record_id)
            raise AlreadyReturned(record_id)

        book_id = (
            await self.session.execute(
                select(BorrowRecord.book_id).where(BorrowRecord.id == record_id)
            )
        ).scalar_one()
        await self.session.execute(
            update(Book)
            .where(Book.id == book_id)
            .values(copies_available=Book.copies_available + 1)
            .execution_options(synchronize_session=False)
        )
        return await self.session.get(BorrowRecord, record_id, populate_existing=True)

    async def find_reservation(self, user_id: int, book_id: int) -> Reservation | None:
        result = await self.session.execute(
            select(Reservation)
            .where(Reservation.user_id == user_id, Reservation.book_id == book_id)
            .limit(1)
        )
        return result.scalar_one_or_none()

    async def insert_reservation(
        self, user_id: int, book_id: int, reserved_on: date
    ) -> Reservation:
        reservation = Reservation(user_id=user_id, book_id=book_id, reservation_date=reserved_on)
        self.session.add(reservation)
        await self.session.flush()
        return reservation

    async def get_fine_for_record(self, record_id: int) -> Fine | None:
        result = await self.session.execute(
            select(Fine).where(Fine.borrow_record_id == record_id)
        )
        return result.scalar_one_or_none()

    async def insert_fine(
        self,
        user_id: int,
        amount: Decimal,
        issue_date: date,
        borrow_record_id: int | None = None,
    ) -> Fine:
        fine = Fine(
            user_id=user_id,
            amount=amount,
            issue_date=issue_date,
            paid=False,
            borrow_record_id=borrow_record_id,
        )
        self.session.add(fine)
        await self.session.flush()
        return fine

    async def list_unfined_overdue(self, cutoff: datetime) -> list[BorrowRecord]:
        """Active records borrowed before cutoff that have no fine yet."""
        stmt = (
            select(BorrowRecord)
            .outerjoin(Fine, Fine.borrow_record_id == BorrowRecord.id)
            .where(
                BorrowRecord.return_date.is_(None),
                BorrowRecord.borrow_date < cutoff,
                Fine.id.is_(None),
            )
            .order_by(BorrowRecord.borrow_date, BorrowRecord.id)
        )
        result = await self.session.execute(stmt)
        return list(result.scalars().all())


# ---------------------------------------------------------------------------
# Reporting views
# ---------------------------------------------------------------------------

class ReportRepository:
    """Read-only projections: active borrows, overdue books, user fines."""

    def __init__(self, session: AsyncSession):
        self.session = session

    def _active_borrows_stmt(self):
        return (
            select(
                BorrowRecord.id.label("record_id"),
                BorrowRecord.user_id,
                User.full_name,
                BorrowRecord.book_id,
                Book.title,
                BorrowRecord.borrow_date,
            )
            .select_from(BorrowRecord)
            .join(User, BorrowRecord.user_id == User.id)
            .join(Book, BorrowRecord.book_id == Book.id)
            .where(BorrowRecord.return_date.is_(None))
            .order_by(BorrowRecord.borrow_date, BorrowRecord.id)
        )

    async def active_borrows(self) -> list[dict[str, Any]]:
        result = await self.session.execute(self._active_borrows_stmt())
        return [dict(row._mapping) for row in result.all()]

    async def overdue_books(self, today: date, loan_period_days: int = 14) -> list[dict[str, Any]]:
        """Active borrows past the loan period, with days_overdue.

        days_overdue is the whole-day difference between today and the
        borrow day.
        """
        stmt = self._active_borrows_stmt().where(
            BorrowRecord.borrow_date < overdue_cutoff(today, loan_period_days)
        )
        result = await self.session.execute(stmt)
        return [
            {**row._mapping, "days_overdue": days_elapsed(row.borrow_date, today)}
            for row in result.all()
        ]

    async def user_fines(self) -> list[dict[str, Any]]:
        """Unpaid fine total and count per user; users without any are omitted."""
        stmt = (
            select(
                User.id.label("user_id"),
                User.full_name,
                func.sum(Fine.amount).label("total_fines"),
                func.count(Fine.id).label("fine_count"),
            )
            .select_from(Fine)
            .join(User, Fine.user_id == User.id)
            .where(Fine.paid.is_(False))
            .group_by(User.id, User.full_name)
            .order_by(User.id)
        )
        result = await self.session.execute(stmt)
        return [
            {
                **row._mapping,
                "total_fines": Decimal(row.total_fines).quantize(Decimal("0.01")),
            }
            for row in result.all()
        ]


# ---------------------------------------------------------------------------
# FastAPI dependency factories
# ---------------------------------------------------------------------------

def get_book_repository(
    session: AsyncSession = Depends(get_session),
) -> BookRepository:
    """FastAPI dependency for BookRepository."""
    return BookRepository(session)


def get_author_repository(session: AsyncSession = Depends(get_session)) -> AuthorRepository:
    return AuthorRepository(session)


def get_category_repository(session: AsyncSession = Depends(get_session)) -> CategoryRepository:
    return CategoryRepository(session)


def get_user_repository(session: AsyncSession = Depends(get_session)) -> UserRepository:
    return UserRepository(session)


def get_fine_repository(session: AsyncSession = Depends(get_session)) -> FineRepository:
    return FineRepository(session)


def get_report_repository(
    session: AsyncSession = Depends(get_session),
) -> ReportRepository:
    """FastAPI dependency for ReportRepository."""
    return ReportRepository(session)
