# backend/trailbook/repositories/eligibility_repository.py
"""
Read-only queries over favorites, albums and reflections.

These tables are owned by the album/media services; this repository only
reads them to evaluate connection eligibility.
"""

from typing import Iterable, List, Optional, Set

from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import Session

from ..core.exceptions import RepositoryException
from ..models.album import Album, AlbumFavorite, Media
from ..models.reflection import Reflection
from .base_repository import BaseRepository


class EligibilityRepository(BaseRepository[AlbumFavorite]):
    def __init__(self, db: Session):
        super().__init__(db, AlbumFavorite)

    def get_favorited_album_ids(self, user_id: str) -> Set[str]:
        query = self.db.query(AlbumFavorite.album_id).filter(AlbumFavorite.user_id == user_id)
        return {row.album_id for row in self._execute_query(query)}

    def get_live_albums(self, album_ids: Iterable[str], owner_id: Optional[str] = None) -> List[Album]:
        """Non-deleted albums among ``album_ids``, optionally owned by ``owner_id``, ordered by id."""
        ids = list(album_ids)
        if not ids:
            return []
        query = self.db.query(Album).filter(Album.id.in_(ids), Album.is_deleted.is_(False))
        if owner_id is not None:
            query = query.filter(Album.user_id == owner_id)
        return self._execute_query(query.order_by(Album.id))

    def count_reflections_on_owner(self, author_id: str, owner_id: str) -> int:
        """
        Reflections written by ``author_id`` on live media inside live albums
        owned by ``owner_id``. Anonymous reflections are included.
        """
        query = (
            self.db.query(Reflection.id)
            .join(Media, Media.id == Reflection.media_id)
            .join(Album, Album.id == Media.album_id)
            .filter(
                Reflection.user_id == author_id,
                Album.user_id == owner_id,
                Album.is_deleted.is_(False),
                Media.is_deleted.is_(False),
            )
        )
        try:
            return query.count()
        except SQLAlchemyError as e:
            self.logger.error(f"Error counting reflections: {str(e)}")
            raise RepositoryException(f"Failed to count reflections: {str(e)}")
