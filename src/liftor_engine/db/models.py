"""
SQLAlchemy ORM models for persisted plan collections.
"""

from __future__ import annotations

from datetime import UTC, datetime
from typing import Any

from sqlalchemy import JSON, DateTime, String
from sqlalchemy.orm import DeclarativeBase, Mapped, mapped_column


class Base(DeclarativeBase):
    """Base class for all ORM models."""

    pass


class StoredPlans(Base):
    """One user's full base-plan collection, stored as a single JSON blob."""

    __tablename__ = "stored_plans"
    user_id: Mapped[str] = mapped_column(String(128), primary_key=True)
    plans: Mapped[list[dict[str, Any]]] = mapped_column(JSON, default=list)
    last_created_at: Mapped[datetime | None] = mapped_column(DateTime(timezone=True), nullable=True)
    updated_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), default=lambda: datetime.now(UTC)
    )

    def __repr__(self) -> str:  # pragma: no cover - repr is trivial
        return f"<StoredPlans user_id={self.user_id} plans={len(self.plans or [])}>"
