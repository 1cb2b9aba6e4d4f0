# backend/trailbook/services/connection_request_service.py
"""
Connection request state machine.

A request starts ``pending`` and is settled exactly once. The pending
uniqueness per unordered pair is enforced by a partial unique index; the
lookups here only produce clearer error messages on the common path.
"""

import logging
from typing import List, Union

from sqlalchemy.orm import Session

from ..core.exceptions import (
    ConflictException,
    ForbiddenException,
    NotFoundException,
    RepositoryConflictException,
    ValidationException,
)
from ..core.ulid_helper import is_valid_ulid
from ..models.connection_request import ConnectionRequest, ConnectionRequestStatus
from ..repositories.factory import RepositoryFactory
from ..schemas.connection_request import (
    ConnectedItem,
    ListableStatus,
    PendingItem,
    RejectedItem,
    RequestDecision,
)
from ..schemas.profile import UserSummary
from .base import BaseService

logger = logging.getLogger(__name__)

ListItem = Union[ConnectedItem, RejectedItem, PendingItem]

_LISTABLE_TO_STATUS = {
    ListableStatus.CONNECTED: ConnectionRequestStatus.ACCEPTED,
    ListableStatus.REJECTED: ConnectionRequestStatus.REJECTED,
    ListableStatus.PENDING: ConnectionRequestStatus.PENDING,
}


class ConnectionRequestService(BaseService):
    """Send, settle and list connection requests."""

    def __init__(self, db: Session):
        super().__init__(db)
        self.repository = RepositoryFactory.create_connection_request_repository(db)
        self.profile_repository = RepositoryFactory.create_user_profile_repository(db)

    @BaseService.measure_operation("send_request")
    def send_request(self, requester_id: str, recipient_id: str) -> ConnectionRequest:
        """
        Create a pending request from ``requester_id`` to ``recipient_id``.

        Raises:
            ValidationException: malformed ids or a self-request
            ConflictException: already connected, or a pending request exists
                in either direction
        """
        if not is_valid_ulid(requester_id) or not is_valid_ulid(recipient_id):
            raise ValidationException("Invalid userId")
        if requester_id == recipient_id:
            raise ValidationException("Cannot send request to yourself")

        if self.repository.find_accepted_for_pair(requester_id, recipient_id):
            raise ConflictException("Already connected", code="ALREADY_CONNECTED")

        pending = self.repository.find_pending_for_pair(requester_id, recipient_id)
        if pending:
            if pending.requester_id == requester_id:
                raise ConflictException("Request already sent", code="REQUEST_ALREADY_SENT")
            raise ConflictException(
                "You have a pending request from this user", code="REQUEST_PENDING_FROM_USER"
            )

        try:
            with self.transaction():
                request = self.repository.create_pending(requester_id, recipient_id)
        except RepositoryConflictException as exc:
            # Lost the race against a concurrent send for the same pair
            raise ConflictException("A pending request already exists for this pair") from exc

        self.logger.info(f"Connection request {request.id} sent: {requester_id} -> {recipient_id}")
        return request

    @BaseService.measure_operation("respond_to_request")
    def respond(self, user_id: str, request_id: str, decision: RequestDecision) -> ConnectionRequest:
        """
        Accept or reject a pending request. Only the recipient may respond.

        Raises:
            ValidationException: malformed ids
            NotFoundException: unknown request
            ForbiddenException: caller is not the recipient
            ConflictException: request already settled
        """
        if not is_valid_ulid(user_id) or not is_valid_ulid(request_id):
            raise ValidationException("Invalid userId or requestId")

        request = self.repository.get_by_id(request_id)
        if request is None:
            raise NotFoundException("Request not found")
        if request.recipient_id != user_id:
            raise ForbiddenException("You are not the recipient of this request")
        if request.status != ConnectionRequestStatus.PENDING:
            raise ConflictException(
                f"Request is already {request.status.value}", code="REQUEST_ALREADY_SETTLED"
            )

        new_status = (
            ConnectionRequestStatus.ACCEPTED
            if decision == RequestDecision.ACCEPT
            else ConnectionRequestStatus.REJECTED
        )
        with self.transaction():
            settled = self.repository.settle_pending(request.id, new_status)

        # Reload either the new state or whatever a concurrent responder wrote
        self.db.refresh(request)
        if not settled:
            raise ConflictException(
                f"Request is already {request.status.value}", code="REQUEST_ALREADY_SETTLED"
            )

        self.logger.info(f"Connection request {request.id} {new_status.value} by {user_id}")
        return request

    @BaseService.measure_operation("list_requests")
    def list_by_status(self, user_id: str, status: ListableStatus) -> List[ListItem]:
        """
        Requests the user takes part in, with the counterpart's profile.

        Profiles are fetched in one batch; a missing profile yields ``user=None``.
        """
        if not is_valid_ulid(user_id):
            raise ValidationException("Invalid userId")

        requests = self.repository.list_for_user(user_id, _LISTABLE_TO_STATUS[status])
        profiles = self.profile_repository.get_by_user_ids(r.counterpart_of(user_id) for r in requests)

        items: List[ListItem] = []
        for request in requests:
            counterpart = request.counterpart_of(user_id)
            common = {
                "request_id": request.id,
                "user_id": counterpart,
                "user": UserSummary.from_profile(profiles.get(counterpart)),
                "is_received": request.recipient_id == user_id,
            }
            if status == ListableStatus.CONNECTED:
                items.append(ConnectedItem(connected_at=request.updated_at, **common))
            elif status == ListableStatus.REJECTED:
                items.append(
                    RejectedItem(
                        rejected_at=request.updated_at,
                        was_requester=request.requester_id == user_id,
                        **common,
                    )
                )
            else:
                items.append(PendingItem(requested_at=request.created_at, **common))

        self.logger.debug(f"Found {len(items)} {status.value} requests for {user_id}")
        return items

    def are_connected(self, user_id_1: str, user_id_2: str) -> bool:
        """True iff an accepted request exists for the pair in either direction."""
        return self.repository.find_accepted_for_pair(user_id_1, user_id_2) is not None
