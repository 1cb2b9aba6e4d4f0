# backend/trailbook/schemas/connection_request.py
"""Schemas for connection requests."""

from datetime import datetime
from enum import Enum
from typing import Optional

from ._strict_base import StrictModel
from .profile import UserSummary


class RequestDecision(str, Enum):
    ACCEPT = "accept"
    REJECT = "reject"


class ListableStatus(str, Enum):
    """Path values accepted by the listing endpoint."""

    CONNECTED = "connected"
    REJECTED = "rejected"
    PENDING = "pending"


class ConnectionRequestView(StrictModel):
    id: str
    requester_id: str
    recipient_id: str
    status: str
    created_at: datetime
    updated_at: datetime


class _ListItem(StrictModel):
    request_id: str
    user_id: str
    user: Optional[UserSummary] = None
    is_received: bool


class ConnectedItem(_ListItem):
    connected_at: datetime


class RejectedItem(_ListItem):
    rejected_at: datetime
    was_requester: bool


class PendingItem(_ListItem):
    requested_at: datetime
