# backend/trailbook/repositories/connection_request_repository.py
"""
Connection Request Repository.

Every pair lookup goes through the normalized ``pair_low``/``pair_high``
columns so direction never matters for matching.
"""

from datetime import datetime, timezone
import logging
from typing import List, Optional

from sqlalchemy import and_, or_
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import Session

from ..core.exceptions import RepositoryException
from ..core.pairs import normalize_pair
from ..models.connection_request import ConnectionRequest, ConnectionRequestStatus
from .base_repository import BaseRepository

logger = logging.getLogger(__name__)


class ConnectionRequestRepository(BaseRepository[ConnectionRequest]):
    def __init__(self, db: Session):
        super().__init__(db, ConnectionRequest)

    def create_pending(self, requester_id: str, recipient_id: str) -> ConnectionRequest:
        """
        Insert a pending request.

        Raises:
            RepositoryConflictException: a pending request already exists for the pair
        """
        low, high = normalize_pair(requester_id, recipient_id)
        return self.create(
            requester_id=requester_id,
            recipient_id=recipient_id,
            pair_low=low,
            pair_high=high,
            status=ConnectionRequestStatus.PENDING,
        )

    def find_for_pair(
        self, user_id_1: str, user_id_2: str, status: ConnectionRequestStatus
    ) -> Optional[ConnectionRequest]:
        low, high = normalize_pair(user_id_1, user_id_2)
        query = (
            self._build_query()
            .filter(
                ConnectionRequest.pair_low == low,
                ConnectionRequest.pair_high == high,
                ConnectionRequest.status == status,
            )
            .order_by(ConnectionRequest.updated_at.desc())
        )
        return self._execute_first(query)

    def find_pending_for_pair(self, user_id_1: str, user_id_2: str) -> Optional[ConnectionRequest]:
        return self.find_for_pair(user_id_1, user_id_2, ConnectionRequestStatus.PENDING)

    def find_accepted_for_pair(self, user_id_1: str, user_id_2: str) -> Optional[ConnectionRequest]:
        return self.find_for_pair(user_id_1, user_id_2, ConnectionRequestStatus.ACCEPTED)

    def settle_pending(self, request_id: str, status: ConnectionRequestStatus) -> bool:
        """
        Move a request out of ``pending`` with a conditional update.

        Returns:
            False when the row was no longer pending, so concurrent responders
            cannot both settle the same request
        """
        try:
            updated = (
                self._build_query()
                .filter(
                    ConnectionRequest.id == request_id,
                    ConnectionRequest.status == ConnectionRequestStatus.PENDING,
                )
                .update(
                    {
                        ConnectionRequest.status: status,
                        ConnectionRequest.updated_at: datetime.now(timezone.utc),
                    },
                    synchronize_session=False,
                )
            )
        except SQLAlchemyError as e:
            self.logger.error(f"Error settling request {request_id}: {str(e)}")
            raise RepositoryException(f"Failed to settle request: {str(e)}")
        return updated == 1

    def list_for_user(self, user_id: str, status: ConnectionRequestStatus) -> List[ConnectionRequest]:
        """
        Requests touching the user in the given status.

        Pending requests are ordered by creation time, settled ones by the
        time they were settled, newest first.
        """
        order_column = (
            ConnectionRequest.created_at
            if status == ConnectionRequestStatus.PENDING
            else ConnectionRequest.updated_at
        )
        query = (
            self._build_query()
            .filter(
                and_(
                    or_(
                        ConnectionRequest.requester_id == user_id,
                        ConnectionRequest.recipient_id == user_id,
                    ),
                    ConnectionRequest.status == status,
                )
            )
            .order_by(order_column.desc(), ConnectionRequest.id.desc())
        )
        return self._execute_query(query)
