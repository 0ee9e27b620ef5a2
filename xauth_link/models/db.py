"""SQLAlchemy 2.0 ORM models.

The same model works against PostgreSQL in production and SQLite in tests.
"""

from __future__ import annotations

from datetime import datetime, timezone

from sqlalchemy import DateTime, String, Text
from sqlalchemy.orm import DeclarativeBase, Mapped, mapped_column


def _utcnow() -> datetime:
    return datetime.now(timezone.utc)


class Base(DeclarativeBase):
    """Shared declarative base for all ORM models."""


class LinkedRole(Base):
    """A Discord user linked to an XAuth account within one community."""

    __tablename__ = "linked_roles"

    discord_id: Mapped[str] = mapped_column(String(255), primary_key=True)
    site: Mapped[str] = mapped_column(String(255), primary_key=True, index=True)
    xauth_id: Mapped[str] = mapped_column(String(255), nullable=False)
    xauth_username: Mapped[str] = mapped_column(String(255), nullable=False)
    discord_access_token: Mapped[str] = mapped_column(Text, nullable=False)
    discord_refresh_token: Mapped[str] = mapped_column(Text, nullable=False)
    created_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), default=_utcnow)
    updated_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), default=_utcnow, onupdate=_utcnow
    )

    def __repr__(self) -> str:
        return f"<LinkedRole {self.site}/{self.discord_id} -> {self.xauth_username}>"
