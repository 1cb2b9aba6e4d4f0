# backend/trailbook/services/eligibility_service.py
"""
Connection eligibility engine.

Two users qualify for a trail connection when:

1. Each has favorited at least one live album the *other* owns. The albums
   favorited across the pair in either direction are reported as mutual.
2. Each has reflected on at least one live media item inside the other's
   live albums. Anonymous reflections count.

The engine only reads. Persisting the outcome, and deactivating connections
that stop qualifying, is the caller's job.
"""

import logging

from sqlalchemy.orm import Session

from ..core.exceptions import ValidationException
from ..core.ulid_helper import is_valid_ulid
from ..repositories.factory import RepositoryFactory
from ..schemas.trail_connection import AlbumSummary, EligibilityResult
from .base import BaseService

logger = logging.getLogger(__name__)

REASON_SELF = "Cannot connect with yourself"
REASON_NO_MUTUAL_FAVORITES = "No mutual album favorites"
REASON_ONE_SIDED_FAVORITES = "No mutual album favorites (both directions required)"
REASON_NO_BIDIRECTIONAL_REFLECTIONS = (
    "No bidirectional reflections found (both users must reflect on each other's media)"
)


class EligibilityService(BaseService):
    def __init__(self, db: Session):
        super().__init__(db)
        self.repository = RepositoryFactory.create_eligibility_repository(db)

    @BaseService.measure_operation("check_eligibility")
    def check_connection_eligibility(self, user_id_1: str, user_id_2: str) -> EligibilityResult:
        """
        Evaluate whether the pair may form a trail connection.

        The result is identical for both argument orders.

        Raises:
            ValidationException: either id is malformed
        """
        if not is_valid_ulid(user_id_1) or not is_valid_ulid(user_id_2):
            raise ValidationException("Invalid userId")

        if user_id_1 == user_id_2:
            return EligibilityResult(eligible=False, reasons=[REASON_SELF])

        favorites_1 = self.repository.get_favorited_album_ids(user_id_1)
        favorites_2 = self.repository.get_favorited_album_ids(user_id_2)
        toward_2 = self.repository.get_live_albums(favorites_1, owner_id=user_id_2)
        toward_1 = self.repository.get_live_albums(favorites_2, owner_id=user_id_1)
        if not toward_1 and not toward_2:
            return EligibilityResult(eligible=False, reasons=[REASON_NO_MUTUAL_FAVORITES])

        mutual_albums = [
            AlbumSummary(id=album.id, title=album.title, cover_image=album.cover_image)
            for album in sorted(toward_1 + toward_2, key=lambda album: album.id)
        ]
        if not toward_1 or not toward_2:
            return EligibilityResult(
                eligible=False,
                mutual_albums=mutual_albums,
                reasons=[REASON_ONE_SIDED_FAVORITES],
            )

        forward = self.repository.count_reflections_on_owner(user_id_1, user_id_2)
        backward = self.repository.count_reflections_on_owner(user_id_2, user_id_1)
        reflection_count = forward + backward
        self.logger.debug(
            f"Reflection counts {user_id_1}->{user_id_2}={forward}, "
            f"{user_id_2}->{user_id_1}={backward}"
        )

        if forward == 0 or backward == 0:
            return EligibilityResult(
                eligible=False,
                mutual_albums=mutual_albums,
                reflection_count=reflection_count,
                reasons=[REASON_NO_BIDIRECTIONAL_REFLECTIONS],
            )

        return EligibilityResult(
            eligible=True,
            mutual_albums=mutual_albums,
            reflection_count=reflection_count,
            reasons=[],
        )
