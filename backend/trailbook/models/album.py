"""Album, media and favorite models read by the eligibility engine."""

from datetime import datetime, timezone
from typing import List, Optional

import ulid
from sqlalchemy import Boolean, DateTime, ForeignKey, String, UniqueConstraint
from sqlalchemy.orm import Mapped, mapped_column, relationship

from ..database import Base


def _utcnow() -> datetime:
    return datetime.now(timezone.utc)


class Album(Base):
    """A user-owned photo album. Album CRUD lives outside this service."""

    __tablename__ = "albums"

    id: Mapped[str] = mapped_column(String(26), primary_key=True, default=lambda: str(ulid.ULID()))
    user_id: Mapped[str] = mapped_column(String(26), nullable=False, index=True)
    title: Mapped[str] = mapped_column(String(200), nullable=False)
    cover_image: Mapped[Optional[str]] = mapped_column(String(1024), nullable=True)
    is_public: Mapped[bool] = mapped_column(Boolean, nullable=False, default=True)
    is_deleted: Mapped[bool] = mapped_column(Boolean, nullable=False, default=False)
    created_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), nullable=False, default=_utcnow)

    media: Mapped[List["Media"]] = relationship("Media", back_populates="album")

    def __repr__(self) -> str:
        return f"<Album(id={self.id}, owner={self.user_id})>"


class Media(Base):
    """A single photo or video inside an album."""

    __tablename__ = "media"

    id: Mapped[str] = mapped_column(String(26), primary_key=True, default=lambda: str(ulid.ULID()))
    album_id: Mapped[str] = mapped_column(
        String(26), ForeignKey("albums.id", ondelete="CASCADE"), nullable=False, index=True
    )
    url: Mapped[Optional[str]] = mapped_column(String(1024), nullable=True)
    is_deleted: Mapped[bool] = mapped_column(Boolean, nullable=False, default=False)
    created_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), nullable=False, default=_utcnow)

    album: Mapped["Album"] = relationship("Album", back_populates="media")


class AlbumFavorite(Base):
    """Favorite edge: user -> album."""

    __tablename__ = "album_favorites"

    id: Mapped[str] = mapped_column(String(26), primary_key=True, default=lambda: str(ulid.ULID()))
    user_id: Mapped[str] = mapped_column(String(26), nullable=False, index=True)
    album_id: Mapped[str] = mapped_column(
        String(26), ForeignKey("albums.id", ondelete="CASCADE"), nullable=False, index=True
    )
    created_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), nullable=False, default=_utcnow)

    __table_args__ = (UniqueConstraint("user_id", "album_id", name="unique_user_album_favorite"),)

    def __repr__(self) -> str:
        return f"<AlbumFavorite(user={self.user_id}, album={self.album_id})>"
