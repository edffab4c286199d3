"""Sample data for local runs and demos.

Loads two members, two authors, two categories, two books with their author
links, two borrow records, one fine and one reservation. copies_available
is stored net of the seeded active borrows (5 and 3 owned copies, one of
each lent out).
"""

import logging
from datetime import date, datetime
from decimal import Decimal

from sqlalchemy import func, insert, select
from sqlalchemy.ext.asyncio import AsyncSession

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

logger = logging.getLogger(__name__)


async def seed_sample_data(session: AsyncSession) -> bool:
    """Insert the sample rows into an empty database.

    Returns False without touching anything if members already exist.
    """
    existing = await session.execute(select(func.count()).select_from(User))
    if existing.scalar():
        logger.info("Sample data skipped: database already has members")
        return False

    john = User(full_name="John Kamau", email="k.john@gmail.com", phone="123-456-7890")
    mary = User(full_name="Mary Owiti", email="owiti.mary@gmail.com", phone="987-654-3210")
    rowling = Author(name="J.K. Rowling", bio="British author, best known for Harry Potter series")
    orwell = Author(name="George Orwell", bio="English novelist, known for 1984 and Animal Farm")
    fantasy = Category(name="Fantasy")
    dystopian = Category(name="Dystopian")
    session.add_all([john, mary, rowling, orwell, fantasy, dystopian])
    await session.flush()

    potter = Book(
        title="Harry Potter and the Sorcerer's Stone",
        category_id=fantasy.id,
        isbn="978-0439708180",
        published_year=1997,
        copies_available=4,
    )
    nineteen_eighty_four = Book(
        title="1984",
        category_id=dystopian.id,
        isbn="978-0451524935",
        published_year=1949,
        copies_available=2,
    )
    session.add_all([potter, nineteen_eighty_four])
    await session.flush()

    await session.execute(
        insert(book_authors),
        [
            {"book_id": potter.id, "author_id": rowling.id},
            {"book_id": nineteen_eighty_four.id, "author_id": orwell.id},
        ],
    )

    johns_borrow = BorrowRecord(user_id=john.id, book_id=potter.id, borrow_date=datetime(2025, 5, 1))
    marys_borrow = BorrowRecord(
        user_id=mary.id, book_id=nineteen_eighty_four.id, borrow_date=datetime(2025, 4, 20)
    )
    session.add_all([johns_borrow, marys_borrow])
    await session.flush()

    session.add_all([
        Fine(
            user_id=mary.id,
            amount=Decimal("5.00"),
            issue_date=date(2025, 5, 8),
            paid=False,
            borrow_record_id=marys_borrow.id,
        ),
        Reservation(user_id=john.id, book_id=nineteen_eighty_four.id, reservation_date=date(2025, 5, 9)),
    ])
    await session.flush()

    logger.info("Sample data loaded")
    return True
