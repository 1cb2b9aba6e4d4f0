# backend/trailbook/services/trail_connection_service.py
"""
Trail connections ("walked together").

Rows are keyed by the normalized pair and are deactivated rather than
deleted, so re-connecting a pair reuses the same row.
"""

import logging
from typing import Dict, List, Optional

from sqlalchemy.orm import Session

from ..core.exceptions import (
    NotEligibleException,
    NotFoundException,
    RepositoryConflictException,
    ValidationException,
)
from ..core.ulid_helper import is_valid_ulid
from ..models.trail_connection import TrailConnection
from ..repositories.factory import RepositoryFactory
from ..schemas.profile import UserSummary
from ..schemas.trail_connection import (
    AlbumSummary,
    ConnectionDetails,
    ConnectResult,
    EligibilityResult,
    WalkedTogetherItem,
)
from .base import BaseService
from .eligibility_service import REASON_SELF, EligibilityService

logger = logging.getLogger(__name__)

MESSAGE_CREATED = "Connection created"
MESSAGE_ALREADY_CONNECTED = "Already connected"
MESSAGE_REACTIVATED = "Connection reactivated"


class TrailConnectionService(BaseService):
    def __init__(self, db: Session, eligibility_service: Optional[EligibilityService] = None):
        super().__init__(db)
        self.repository = RepositoryFactory.create_trail_connection_repository(db)
        self.eligibility_repository = RepositoryFactory.create_eligibility_repository(db)
        self.profile_repository = RepositoryFactory.create_user_profile_repository(db)
        self.eligibility_service = eligibility_service or EligibilityService(db)

    def _validate_pair(self, user_id_1: str, user_id_2: str) -> None:
        if not is_valid_ulid(user_id_1) or not is_valid_ulid(user_id_2):
            raise ValidationException("Invalid userId")

    def check_eligibility(self, user_id_1: str, user_id_2: str) -> EligibilityResult:
        return self.eligibility_service.check_connection_eligibility(user_id_1, user_id_2)

    @BaseService.measure_operation("create_connection")
    def create_connection(self, user_id_1: str, user_id_2: str) -> ConnectResult:
        """
        Create (or reactivate) the trail connection for the pair.

        Raises:
            ValidationException: malformed ids or a self-connection
            NotEligibleException: the pair does not satisfy eligibility
        """
        self._validate_pair(user_id_1, user_id_2)
        if user_id_1 == user_id_2:
            raise ValidationException(REASON_SELF)

        eligibility = self.check_eligibility(user_id_1, user_id_2)
        if not eligibility.eligible:
            raise NotEligibleException(", ".join(eligibility.reasons))

        album_ids = [album.id for album in eligibility.mutual_albums]
        existing = self.repository.find_by_pair(user_id_1, user_id_2)
        if existing is not None:
            if existing.is_active:
                self.logger.info(f"Trail connection {existing.id} already active")
                return ConnectResult(
                    connected=True, message=MESSAGE_ALREADY_CONNECTED, connection_id=existing.id
                )
            with self.transaction():
                existing.is_active = True
                existing.mutual_album_ids = album_ids
                existing.reflection_count = eligibility.reflection_count
                self.repository.flush()
            self.logger.info(f"Trail connection {existing.id} reactivated")
            return ConnectResult(connected=True, message=MESSAGE_REACTIVATED, connection_id=existing.id)

        try:
            with self.transaction():
                connection = self.repository.create_for_pair(
                    user_id_1,
                    user_id_2,
                    mutual_album_ids=album_ids,
                    reflection_count=eligibility.reflection_count,
                )
        except RepositoryConflictException:
            # A concurrent create won; report the row that exists now
            winner = self.repository.find_by_pair(user_id_1, user_id_2)
            if winner is None:
                raise
            return ConnectResult(
                connected=True, message=MESSAGE_ALREADY_CONNECTED, connection_id=winner.id
            )

        self.logger.info(f"Trail connection {connection.id} created")
        return ConnectResult(connected=True, message=MESSAGE_CREATED, connection_id=connection.id)

    def _album_summaries(self, album_ids: List[str]) -> Dict[str, AlbumSummary]:
        return {
            album.id: AlbumSummary(id=album.id, title=album.title, cover_image=album.cover_image)
            for album in self.eligibility_repository.get_live_albums(album_ids)
        }

    @BaseService.measure_operation("get_connections")
    def get_connections(self, user_id: str) -> List[WalkedTogetherItem]:
        """Active connections of the user, newest first."""
        if not is_valid_ulid(user_id):
            raise ValidationException("Invalid userId")

        connections = self.repository.list_active_for_user(user_id)
        profiles = self.profile_repository.get_by_user_ids(c.counterpart_of(user_id) for c in connections)
        albums = self._album_summaries(
            [album_id for c in connections for album_id in (c.mutual_album_ids or [])]
        )

        return [
            WalkedTogetherItem(
                connection_id=connection.id,
                user_id=connection.counterpart_of(user_id),
                user=UserSummary.from_profile(profiles.get(connection.counterpart_of(user_id))),
                mutual_albums=[
                    albums[album_id]
                    for album_id in (connection.mutual_album_ids or [])
                    if album_id in albums
                ],
                reflection_count=connection.reflection_count,
                connected_at=connection.created_at,
            )
            for connection in connections
        ]

    @BaseService.measure_operation("get_connection_details")
    def get_connection_details(self, user_id: str, other_user_id: str) -> ConnectionDetails:
        """Active connection for the pair together with a fresh eligibility check."""
        self._validate_pair(user_id, other_user_id)
        connection = self.repository.find_active_by_pair(user_id, other_user_id)
        if connection is None:
            raise NotFoundException("Connection not found")

        eligibility = self.check_eligibility(user_id, other_user_id)
        profile = self.profile_repository.get_by_user_id(other_user_id)
        return ConnectionDetails(
            connection_id=connection.id,
            user_id=other_user_id,
            user=UserSummary.from_profile(profile),
            mutual_albums=eligibility.mutual_albums,
            reflection_count=eligibility.reflection_count,
            connected_at=connection.created_at,
            eligibility=eligibility,
        )

    @BaseService.measure_operation("remove_connection")
    def remove_connection(self, user_id: str, other_user_id: str) -> TrailConnection:
        """Soft-remove the pair's connection."""
        self._validate_pair(user_id, other_user_id)
        connection = self.repository.find_by_pair(user_id, other_user_id)
        if connection is None:
            raise NotFoundException("Connection not found")
        with self.transaction():
            connection.is_active = False
            self.repository.flush()
        self.logger.info(f"Trail connection {connection.id} removed by {user_id}")
        return connection

    def update_connection_eligibility(self, user_id_1: str, user_id_2: str) -> Dict[str, object]:
        """
        Refresh stored evidence for an active connection and deactivate it if
        the pair no longer qualifies. Never raises; failures are reported in
        the result.
        """
        try:
            connection = self.repository.find_active_by_pair(user_id_1, user_id_2)
            if connection is None:
                return {"updated": False, "message": "No active connection found"}

            eligibility = self.check_eligibility(user_id_1, user_id_2)
            with self.transaction():
                connection.mutual_album_ids = [album.id for album in eligibility.mutual_albums]
                connection.reflection_count = eligibility.reflection_count
                if not eligibility.eligible:
                    connection.is_active = False
                self.repository.flush()

            if not eligibility.eligible:
                self.logger.info(
                    f"Trail connection {connection.id} deactivated: {', '.join(eligibility.reasons)}"
                )
                return {"updated": True, "message": "Connection deactivated (no longer eligible)"}
            return {"updated": True, "message": "Connection updated"}
        except Exception as exc:
            self.logger.error(
                f"Failed to re-evaluate connection {user_id_1}<->{user_id_2}: {exc}", exc_info=True
            )
            return {"updated": False, "error": str(exc)}

    @BaseService.measure_operation("reevaluate_all")
    def reevaluate_all(self) -> Dict[str, int]:
        """Re-run eligibility for every active connection."""
        summary = {"checked": 0, "deactivated": 0, "failed": 0}
        for connection_id in self.repository.list_active_ids():
            connection = self.repository.get_by_id(connection_id)
            if connection is None or not connection.is_active:
                continue
            result = self.update_connection_eligibility(connection.user_a, connection.user_b)
            summary["checked"] += 1
            if not result.get("updated"):
                summary["failed"] += 1
            elif not connection.is_active:
                summary["deactivated"] += 1
        return summary
