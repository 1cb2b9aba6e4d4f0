"""Reflection model: a user's annotation on a media item."""

from datetime import datetime, timezone
from enum import Enum
from typing import Optional

import ulid
from sqlalchemy import Boolean, DateTime, ForeignKey, String, UniqueConstraint
from sqlalchemy.orm import Mapped, mapped_column

from ..database import Base
from .base_enum import create_safe_enum


class ReflectionReason(str, Enum):
    COMPOSITION = "composition"
    MOMENT = "moment"
    EMOTION = "emotion"
    STORY = "story"


class Reflection(Base):
    """
    Reflection edge: user -> media.

    Anonymity only affects how the reflection is displayed; it still counts
    toward connection eligibility.
    """

    __tablename__ = "reflections"

    id: Mapped[str] = mapped_column(String(26), primary_key=True, default=lambda: str(ulid.ULID()))
    media_id: Mapped[str] = mapped_column(
        String(26), ForeignKey("media.id", ondelete="CASCADE"), nullable=False, index=True
    )
    user_id: Mapped[str] = mapped_column(String(26), nullable=False, index=True)
    reason: Mapped[ReflectionReason] = mapped_column(
        create_safe_enum(ReflectionReason, "reflection_reason"), nullable=False
    )
    note: Mapped[Optional[str]] = mapped_column(String(500), nullable=True)
    is_anonymous: Mapped[bool] = mapped_column(Boolean, nullable=False, default=False)
    created_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), nullable=False, default=lambda: datetime.now(timezone.utc)
    )

    __table_args__ = (UniqueConstraint("user_id", "media_id", name="unique_user_media_reflection"),)
