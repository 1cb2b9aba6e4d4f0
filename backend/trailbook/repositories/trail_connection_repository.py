"""Trail Connection Repository."""

from typing import List, Optional

from sqlalchemy import or_
from sqlalchemy.orm import Session

from ..core.pairs import normalize_pair
from ..models.trail_connection import TrailConnection
from .base_repository import BaseRepository


class TrailConnectionRepository(BaseRepository[TrailConnection]):
    def __init__(self, db: Session):
        super().__init__(db, TrailConnection)

    def find_by_pair(self, user_id_1: str, user_id_2: str) -> Optional[TrailConnection]:
        """Look up the single row for the pair, active or not."""
        user_a, user_b = normalize_pair(user_id_1, user_id_2)
        return self.find_one_by(user_a=user_a, user_b=user_b)

    def find_active_by_pair(self, user_id_1: str, user_id_2: str) -> Optional[TrailConnection]:
        user_a, user_b = normalize_pair(user_id_1, user_id_2)
        return self.find_one_by(user_a=user_a, user_b=user_b, is_active=True)

    def create_for_pair(
        self,
        user_id_1: str,
        user_id_2: str,
        *,
        mutual_album_ids: List[str],
        reflection_count: int,
    ) -> TrailConnection:
        user_a, user_b = normalize_pair(user_id_1, user_id_2)
        return self.create(
            user_a=user_a,
            user_b=user_b,
            mutual_album_ids=mutual_album_ids,
            reflection_count=reflection_count,
            is_active=True,
        )

    def list_active_for_user(self, user_id: str) -> List[TrailConnection]:
        query = (
            self._build_query()
            .filter(
                or_(TrailConnection.user_a == user_id, TrailConnection.user_b == user_id),
                TrailConnection.is_active.is_(True),
            )
            .order_by(TrailConnection.created_at.desc(), TrailConnection.id.desc())
        )
        return self._execute_query(query)

    def list_active_ids(self) -> List[str]:
        query = self.db.query(TrailConnection.id).filter(TrailConnection.is_active.is_(True))
        return [row.id for row in self._execute_query(query)]
