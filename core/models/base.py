"""Base model and mixins for all SQLAlchemy models.

Provides:
- Base: Declarative base class for all models
- IntPKMixin: Auto-incrementing integer primary key
- utcnow: Naive UTC timestamp used for column defaults and the engine clock

Timestamps are stored naive (UTC) so that SQLite and PostgreSQL round-trip
the same values.
"""

from datetime import datetime, timezone

from sqlalchemy import Integer
from sqlalchemy.orm import DeclarativeBase, Mapped, mapped_column


def utcnow() -> datetime:
    return datetime.now(timezone.utc).replace(tzinfo=None)


class Base(DeclarativeBase):
    """Declarative base for all library models."""
    pass


class IntPKMixin:
    """Mixin providing an auto-incrementing integer primary key."""

    id: Mapped[int] = mapped_column(
        Integer,
        primary_key=True,
        autoincrement=True,
    )
