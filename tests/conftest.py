"""Shared fixtures: a throwaway SQLite database per test and a frozen clock."""
from datetime import datetime, timedelta

import pytest
import pytest_asyncio

from core.database import build_session_factory, create_engine_from_url, init_db
from library.engine import CirculationEngine
from library.models.db_models import Book, User
from patterns.domain_config import CirculationConfig


class FrozenClock:
    """Callable clock that only moves when told to."""

    def __init__(self, now: datetime):
        self.now = now

    def __call__(self) -> datetime:
        return self.now

    def advance(self, days: int = 0, hours: int = 0) -> None:
        self.now = self.now + timedelta(days=days, hours=hours)


@pytest.fixture
def clock():
    return FrozenClock(datetime(2025, 6, 1, 10, 0, 0))


@pytest.fixture
def config():
    return CirculationConfig(retry_backoff_base=0.0, retry_backoff_max=0.0)


@pytest_asyncio.fixture
async def db_engine(tmp_path):
    engine = create_engine_from_url(f"sqlite+aiosqlite:///{tmp_path / 'library.db'}")
    await init_db(engine)
    yield engine
    await engine.dispose()


@pytest.fixture
def session_factory(db_engine):
    return build_session_factory(db_engine)


@pytest.fixture
def circulation(session_factory, config, clock):
    return CirculationEngine(session_factory, config, clock=clock)


@pytest_asyncio.fixture
async def member(session_factory):
    async with session_factory() as session, session.begin():
        user = User(full_name="John Kamau", email="k.john@gmail.com", phone="123-456-7890")
        session.add(user)
    return user


@pytest_asyncio.fixture
async def other_member(session_factory):
    async with session_factory() as session, session.begin():
        user = User(full_name="Mary Owiti", email="owiti.mary@gmail.com")
        session.add(user)
    return user


@pytest.fixture
def make_book(session_factory):
    async def _make_book(copies: int = 1, title: str = "1984", isbn: str | None = None) -> Book:
        async with session_factory() as session, session.begin():
            book = Book(title=title, isbn=isbn, published_year=1949, copies_available=copies)
            session.add(book)
        return book

    return _make_book


@pytest.fixture
def copies_of(session_factory):
    async def _copies_of(book_id: int) -> int:
        async with session_factory() as session:
            book = await session.get(Book, book_id)
            return book.copies_available

    return _copies_of
