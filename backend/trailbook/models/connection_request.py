# backend/trailbook/models/connection_request.py
"""
Connection request model.

A request moves ``pending -> accepted`` or ``pending -> rejected`` exactly
once and is never deleted. The unordered pair is stored twice: as the
directional requester/recipient columns, and normalized as
``pair_low``/``pair_high`` so the database can enforce at most one pending
request per pair regardless of direction.
"""

from datetime import datetime, timezone
from enum import Enum

import ulid
from sqlalchemy import DateTime, Index, String, text
from sqlalchemy.orm import Mapped, mapped_column

from ..database import Base
from .base_enum import create_safe_enum


def _utcnow() -> datetime:
    return datetime.now(timezone.utc)


class ConnectionRequestStatus(str, Enum):
    PENDING = "pending"
    ACCEPTED = "accepted"
    REJECTED = "rejected"


class ConnectionRequest(Base):
    __tablename__ = "connection_requests"

    id: Mapped[str] = mapped_column(String(26), primary_key=True, default=lambda: str(ulid.ULID()))
    requester_id: Mapped[str] = mapped_column(String(26), nullable=False, index=True)
    recipient_id: Mapped[str] = mapped_column(String(26), nullable=False, index=True)
    pair_low: Mapped[str] = mapped_column(String(26), nullable=False)
    pair_high: Mapped[str] = mapped_column(String(26), nullable=False)
    status: Mapped[ConnectionRequestStatus] = mapped_column(
        create_safe_enum(ConnectionRequestStatus, "connection_request_status"),
        nullable=False,
        default=ConnectionRequestStatus.PENDING,
    )
    created_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), nullable=False, default=_utcnow)
    updated_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), nullable=False, default=_utcnow, onupdate=_utcnow
    )

    __table_args__ = (
        Index(
            "uq_connection_requests_pending_pair",
            "pair_low",
            "pair_high",
            unique=True,
            postgresql_where=text("status = 'pending'"),
            sqlite_where=text("status = 'pending'"),
        ),
        Index("ix_connection_requests_pair_status", "pair_low", "pair_high", "status"),
    )

    def counterpart_of(self, user_id: str) -> str:
        return self.recipient_id if self.requester_id == user_id else self.requester_id

    def __repr__(self) -> str:
        return (
            f"<ConnectionRequest(id={self.id}, {self.requester_id}->{self.recipient_id}, "
            f"status={self.status})>"
        )
