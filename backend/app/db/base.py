"""SQLAlchemy declarative base and common utilities."""

from datetime import datetime, timezone

from sqlalchemy import Integer, func
from sqlalchemy.orm import DeclarativeBase, Mapped, mapped_column

from app.db.types import UTCDateTime


def utcnow() -> datetime:
    return datetime.now(timezone.utc)


class Base(DeclarativeBase):
    """Base class for all models."""

    pass


class TimestampMixin:
    """Mixin for created_at and updated_at timestamps."""

    created_at: Mapped[datetime] = mapped_column(
        UTCDateTime(),
        default=utcnow,
        server_default=func.now(),
        nullable=False,
    )
    updated_at: Mapped[datetime] = mapped_column(
        UTCDateTime(),
        default=utcnow,
        server_default=func.now(),
        onupdate=utcnow,
        nullable=False,
    )


class VersionMixin:
    """Optimistic locking via a version counter.

    Models using this mixin gain a ``version`` column that starts at 1
    and is incremented on every guarded update. Conditional updates filter on
    the version that was read, so a concurrent writer makes the statement
    match zero rows instead of silently overwriting.
    """

    version: Mapped[int] = mapped_column(Integer, default=1, server_default="1", nullable=False)

    @classmethod
    def version_matches(cls, expected: int):
        """SQLAlchemy filter expression: ``WHERE version = :expected``."""
        return cls.version == expected

    @classmethod
    def next_version(cls):
        """SQL expression that bumps the counter inside an UPDATE."""
        return cls.version + 1
