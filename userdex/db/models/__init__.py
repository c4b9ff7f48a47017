"""SQLAlchemy ORM models for the locally persisted favorites."""

from __future__ import annotations

from datetime import datetime, timezone

from sqlalchemy import DateTime, String
from sqlalchemy.orm import DeclarativeBase, Mapped, mapped_column


def utcnow() -> datetime:
    """Return current UTC datetime."""
    return datetime.now(timezone.utc)


class Base(DeclarativeBase):
    pass


class FavoriteUser(Base):
    """One row per favorited directory record, keyed by the record identifier."""

    __tablename__ = "favorite_users"

    identifier: Mapped[str] = mapped_column(
        "uuid",
        String(64),
        primary_key=True,
        doc="Remote login UUID; at most one row per directory record.",
    )
    full_name: Mapped[str] = mapped_column(String(255), nullable=False)
    email: Mapped[str] = mapped_column(String(255), nullable=False, default="")
    country: Mapped[str] = mapped_column(String(128), nullable=False, default="")
    picture_url: Mapped[str] = mapped_column(String(1024), nullable=False, default="")
    added_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True),
        nullable=False,
        default=utcnow,
    )


__all__ = ["Base", "FavoriteUser", "utcnow"]
