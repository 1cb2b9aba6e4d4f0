# backend/trailbook/models/message.py
"""
Message model for direct chat between connected users.

Content is written synchronously on send. Only two field groups change
afterwards: ``is_file_uploaded``/``file_url`` (set by the file-upload
consumer) and ``is_read``/``read_at`` (set when the receiver pages through
the conversation).
"""

from datetime import datetime, timezone
from typing import Optional

import ulid
from sqlalchemy import Boolean, DateTime, Index, Integer, String, Text
from sqlalchemy.orm import Mapped, mapped_column

from ..database import Base


class Message(Base):
    __tablename__ = "messages"

    id: Mapped[str] = mapped_column(String(26), primary_key=True, default=lambda: str(ulid.ULID()))
    sender_id: Mapped[str] = mapped_column(String(26), nullable=False, index=True)
    receiver_id: Mapped[str] = mapped_column(String(26), nullable=False, index=True)
    content: Mapped[str] = mapped_column(Text, nullable=False, default="")

    has_file: Mapped[bool] = mapped_column(Boolean, nullable=False, default=False)
    file_key: Mapped[Optional[str]] = mapped_column(String(1024), nullable=True)
    file_url: Mapped[Optional[str]] = mapped_column(String(2048), nullable=True)
    file_name: Mapped[Optional[str]] = mapped_column(String(255), nullable=True)
    file_type: Mapped[Optional[str]] = mapped_column(String(255), nullable=True)
    file_size: Mapped[Optional[int]] = mapped_column(Integer, nullable=True)
    is_file_uploaded: Mapped[bool] = mapped_column(Boolean, nullable=False, default=False)

    is_read: Mapped[bool] = mapped_column(Boolean, nullable=False, default=False)
    read_at: Mapped[Optional[datetime]] = mapped_column(DateTime(timezone=True), nullable=True)
    created_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), nullable=False, default=lambda: datetime.now(timezone.utc)
    )

    __table_args__ = (
        Index("ix_messages_sender_receiver_created", "sender_id", "receiver_id", "created_at"),
        Index("ix_messages_receiver_unread", "receiver_id", "is_read"),
    )

    def __repr__(self) -> str:
        return f"<Message(id={self.id}, {self.sender_id}->{self.receiver_id})>"
