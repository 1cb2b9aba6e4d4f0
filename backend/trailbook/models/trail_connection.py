"""TrailConnection ("walked together") model."""

from datetime import datetime, timezone
from typing import List

import ulid
from sqlalchemy import Boolean, CheckConstraint, DateTime, Integer, String, UniqueConstraint
from sqlalchemy.orm import Mapped, mapped_column
from sqlalchemy.types import JSON as SAJSON

from ..database import Base


def _utcnow() -> datetime:
    return datetime.now(timezone.utc)


class TrailConnection(Base):
    """
    Deep connection between two users.

    The pair is normalized on write (``user_a < user_b``) so each pair maps
    to exactly one row. Rows are deactivated, never deleted.
    """

    __tablename__ = "trail_connections"

    id: Mapped[str] = mapped_column(String(26), primary_key=True, default=lambda: str(ulid.ULID()))
    user_a: Mapped[str] = mapped_column(String(26), nullable=False, index=True)
    user_b: Mapped[str] = mapped_column(String(26), nullable=False, index=True)
    mutual_album_ids: Mapped[List[str]] = mapped_column(SAJSON, nullable=False, default=list)
    reflection_count: Mapped[int] = mapped_column(Integer, nullable=False, default=0)
    is_active: Mapped[bool] = mapped_column(Boolean, nullable=False, default=True)
    created_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), nullable=False, default=_utcnow)
    updated_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), nullable=False, default=_utcnow, onupdate=_utcnow
    )

    __table_args__ = (
        UniqueConstraint("user_a", "user_b", name="unique_trail_connection_pair"),
        CheckConstraint("user_a < user_b", name="ck_trail_connection_normalized"),
    )

    def counterpart_of(self, user_id: str) -> str:
        return self.user_b if self.user_a == user_id else self.user_a

    def __repr__(self) -> str:
        return f"<TrailConnection(id={self.id}, {self.user_a}<->{self.user_b}, active={self.is_active})>"
