# backend/trailbook/routes/v1/connection_requests.py
"""
Connection request routes - API v1

Endpoints:
    POST /send/{user_id}        - Send a connection request
    PUT /accept/{request_id}    - Accept a request (recipient only)
    PUT /reject/{request_id}    - Reject a request (recipient only)
    GET /{status}               - List connected / rejected / pending
"""

import asyncio
import logging
from typing import Any, Dict

from fastapi import APIRouter, Depends, status

from ...api.dependencies.auth import get_current_user_id
from ...api.dependencies.services import get_connection_request_service
from ...models.connection_request import ConnectionRequest
from ...schemas.common import envelope
from ...schemas.connection_request import ConnectionRequestView, ListableStatus, RequestDecision
from ...services.connection_request_service import ConnectionRequestService

logger = logging.getLogger(__name__)

# V1 router - no prefix here, will be added when mounting in main.py
router = APIRouter(tags=["connection-requests-v1"])

_LIST_KEYS = {
    ListableStatus.CONNECTED: ("Connected people fetched", "connections"),
    ListableStatus.REJECTED: ("Rejected people fetched", "rejected"),
    ListableStatus.PENDING: ("Pending requests fetched", "pending"),
}


def _view(request: ConnectionRequest) -> ConnectionRequestView:
    return ConnectionRequestView(
        id=request.id,
        requester_id=request.requester_id,
        recipient_id=request.recipient_id,
        status=request.status.value,
        created_at=request.created_at,
        updated_at=request.updated_at,
    )


@router.post("/send/{user_id}", status_code=status.HTTP_201_CREATED)
async def send_request(
    user_id: str,
    current_user_id: str = Depends(get_current_user_id),
    service: ConnectionRequestService = Depends(get_connection_request_service),
) -> Dict[str, Any]:
    request = await asyncio.to_thread(service.send_request, current_user_id, user_id)
    return envelope("Connection request sent", _view(request))


@router.put("/accept/{request_id}")
async def accept_request(
    request_id: str,
    current_user_id: str = Depends(get_current_user_id),
    service: ConnectionRequestService = Depends(get_connection_request_service),
) -> Dict[str, Any]:
    request = await asyncio.to_thread(
        service.respond, current_user_id, request_id, RequestDecision.ACCEPT
    )
    return envelope("Connection request accepted", _view(request))


@router.put("/reject/{request_id}")
async def reject_request(
    request_id: str,
    current_user_id: str = Depends(get_current_user_id),
    service: ConnectionRequestService = Depends(get_connection_request_service),
) -> Dict[str, Any]:
    request = await asyncio.to_thread(
        service.respond, current_user_id, request_id, RequestDecision.REJECT
    )
    return envelope("Connection request rejected", _view(request))


@router.get("/{list_status}")
async def list_requests(
    list_status: ListableStatus,
    current_user_id: str = Depends(get_current_user_id),
    service: ConnectionRequestService = Depends(get_connection_request_service),
) -> Dict[str, Any]:
    """List requests the caller takes part in, by status."""
    items = await asyncio.to_thread(service.list_by_status, current_user_id, list_status)
    message, key = _LIST_KEYS[list_status]
    return envelope(message, {key: [item.to_wire() for item in items]})
