"""Declarative base and the timestamp columns shared by the triage tables.

``triage_sessions`` and ``patient_profiles`` both carry ``created_at`` and
``updated_at``; they come from :class:`Timestamped` so the two tables stamp
rows the same way (UTC, set client-side).
"""

from datetime import datetime, timezone

from sqlalchemy.dialects.postgresql import TIMESTAMP
from sqlalchemy.orm import DeclarativeBase, Mapped, mapped_column


def utcnow() -> datetime:
    return datetime.now(timezone.utc)


class Base(DeclarativeBase):
    """Registry for the session store tables."""


class Timestamped:
    """Mixin: row creation and last-write times."""

    created_at: Mapped[datetime] = mapped_column(
        TIMESTAMP(timezone=True), nullable=False, default=utcnow,
    )
    updated_at: Mapped[datetime] = mapped_column(
        TIMESTAMP(timezone=True), nullable=False, default=utcnow, onupdate=utcnow,
    )
