"""User Profile Repository (read-only lookups for display and push)."""

from typing import Dict, Iterable, Optional

from sqlalchemy.orm import Session

from ..models.user_profile import UserProfile
from .base_repository import BaseRepository


class UserProfileRepository(BaseRepository[UserProfile]):
    def __init__(self, db: Session):
        super().__init__(db, UserProfile)

    def get_by_user_id(self, user_id: str) -> Optional[UserProfile]:
        return self.find_one_by(user_id=user_id)

    def get_by_user_ids(self, user_ids: Iterable[str]) -> Dict[str, UserProfile]:
        """Batch lookup; users without a profile are simply absent from the result."""
        ids = list(set(user_ids))
        if not ids:
            return {}
        query = self._build_query().filter(UserProfile.user_id.in_(ids))
        return {profile.user_id: profile for profile in self._execute_query(query)}
