"""SQLAlchemy models for the library circulation domain.

Foreign keys carry the referential rules: deleting a user or book cascades
to its borrow records and reservations, deleting a user cascades to its
fines, and deleting a category leaves its books uncategorised. The
to_dict() method provides the serialisation used by repositories and
routers.
"""

from datetime import date, datetime
from decimal import Decimal

from sqlalchemy import (
    Boolean,
    CheckConstraint,
    Column,
    Date,
    DateTime,
    ForeignKey,
    Integer,
    Numeric,
    String,
    Table,
    Text,
)
from sqlalchemy.orm import Mapped, mapped_column

from core.models.base import Base, IntPKMixin, utcnow


book_authors = Table(
    "book_authors",
    Base.metadata,
    Column("book_id", ForeignKey("books.id", ondelete="CASCADE"), primary_key=True),
    Column("author_id", ForeignKey("authors.id", ondelete="CASCADE"), primary_key=True),
)


class User(IntPKMixin, Base):
    """A library member."""

    __tablename__ = "users"

    full_name: Mapped[str] = mapped_column(String(100), nullable=False)
    email: Mapped[str] = mapped_column(String(100), unique=True, index=True, nullable=False)
    phone: Mapped[str | None] = mapped_column(String(20), nullable=True)
    membership_date: Mapped[datetime] = mapped_column(DateTime, nullable=False, default=utcnow)

    def to_dict(self) -> dict:
        return {
            "id": self.id,
            "full_name": self.full_name,
            "email": self.email,
            "phone": self.phone,
            "membership_date": self.membership_date.isoformat() if self.membership_date else None,
        }


class Author(IntPKMixin, Base):
    __tablename__ = "authors"

    name: Mapped[str] = mapped_column(String(100), nullable=False)
    bio: Mapped[str | None] = mapped_column(Text, nullable=True)

    def to_dict(self) -> dict:
        return {"id": self.id, "name": self.name, "bio": self.bio}


class Category(IntPKMixin, Base):
    __tablename__ = "categories"

    name: Mapped[str] = mapped_column(String(50), unique=True, nullable=False)

    def to_dict(self) -> dict:
        return {"id": self.id, "name": self.name}


class Book(IntPKMixin, Base):
    """A catalogued title and its lendable copy count."""

    __tablename__ = "books"
    __table_args__ = (
        CheckConstraint("copies_available >= 0", name="ck_books_copies_available_non_negative"),
    )

    title: Mapped[str] = mapped_column(String(150), nullable=False)
    category_id: Mapped[int | None] = mapped_column(
        ForeignKey("categories.id", ondelete="SET NULL"), nullable=True
    )
    isbn: Mapped[str | None] = mapped_column(String(20), unique=True, index=True, nullable=True)
    published_year: Mapped[int | None] = mapped_column(Integer, nullable=True)
    copies_available: Mapped[int] = mapped_column(Integer, nullable=False, default=1)

    def to_dict(self) -> dict:
        return {
            "id": self.id,
            "title": self.title,
            "category_id": self.category_id,
            "isbn": self.isbn,
            "published_year": self.published_year,
            "copies_available": self.copies_available,
        }


class BorrowRecord(IntPKMixin, Base):
    """One lending of a book; active while return_date is null."""

    __tablename__ = "borrow_records"

    user_id: Mapped[int] = mapped_column(
        ForeignKey("users.id", ondelete="CASCADE"), nullable=False, index=True
    )
    book_id: Mapped[int] = mapped_column(
        ForeignKey("books.id", ondelete="CASCADE"), nullable=False, index=True
    )
    borrow_date: Mapped[datetime] = mapped_column(DateTime, nullable=False, default=utcnow)
    return_date: Mapped[date | None] = mapped_column(Date, nullable=True)

    @property
    def is_active(self) -> bool:
        return self.return_date is None

    def to_dict(self) -> dict:
        return {
            "id": self.id,
            "user_id": self.user_id,
            "book_id": self.book_id,
            "borrow_date": self.borrow_date.isoformat() if self.borrow_date else None,
            "return_date": self.return_date.isoformat() if self.return_date else None,
        }


class Fine(IntPKMixin, Base):
    """A fine in the append-only ledger.

    borrow_record_id is unique, so an overdue borrow record can be fined at
    most once.
    """

    __tablename__ = "fines"

    user_id: Mapped[int] = mapped_column(
        ForeignKey("users.id", ondelete="CASCADE"), nullable=False, index=True
    )
    amount: Mapped[Decimal] = mapped_column(Numeric(10, 2), nullable=False)
    issue_date: Mapped[date] = mapped_column(
        Date, nullable=False, default=lambda: utcnow().date()
    )
    paid: Mapped[bool] = mapped_column(Boolean, nullable=False, default=False)
    borrow_record_id: Mapped[int | None] = mapped_column(
        ForeignKey("borrow_records.id", ondelete="SET NULL"), unique=True, nullable=True
    )

    def to_dict(self) -> dict:
        return {
            "id": self.id,
            "user_id": self.user_id,
            "amount": str(self.amount) if self.amount is not None else None,
            "issue_date": self.issue_date.isoformat() if self.issue_date else None,
            "paid": self.paid,
            "borrow_record_id": self.borrow_record_id,
        }


class Reservation(IntPKMixin, Base):
    __tablename__ = "reservations"

    user_id: Mapped[int] = mapped_column(
        ForeignKey("users.id", ondelete="CASCADE"), nullable=False, index=True
    )
    book_id: Mapped[int] = mapped_column(
        ForeignKey("books.id", ondelete="CASCADE"), nullable=False, index=True
    )
    reservation_date: Mapped[date] = mapped_column(
        Date, nullable=False, default=lambda: utcnow().date()
    )

    def to_dict(self) -> dict:
        return {
            "id": self.id,
            "user_id": self.user_id,
            "book_id": self.book_id,
            "reservation_date": self.reservation_date.isoformat() if self.reservation_date else None,
        }
