# backend/trailbook/routes/v1/messages.py
"""
Messages routes - API v1

Versioned message endpoints under /api/v1/messages.
All business logic delegated to MessageService.

Endpoints (static routes BEFORE dynamic routes):
    GET /conversations            - Latest message and unread count per counterpart
    GET /unread-count             - Total unread messages for the caller
    POST /send                    - Send a message (also pushed over the chat socket)
    GET /with/{other_user_id}     - Cursor-paginated history; marks the page read
"""

import asyncio
import logging
from typing import Any, Dict, Optional

from fastapi import APIRouter, Depends, Query, status

from ...api.dependencies.auth import get_current_user_id
from ...api.dependencies.services import get_chat_gateway_dep, get_message_service
from ...core.constants import MESSAGE_PAGE_DEFAULT_LIMIT
from ...schemas.common import envelope
from ...schemas.message import PageDirection, SendMessageRequest, UnreadCount
from ...services.message_service import MessageService
from ...services.messaging import ChatGateway

logger = logging.getLogger(__name__)

router = APIRouter(tags=["messages-v1"])


@router.get("/conversations")
async def get_conversations(
    current_user_id: str = Depends(get_current_user_id),
    service: MessageService = Depends(get_message_service),
) -> Dict[str, Any]:
    conversations = await asyncio.to_thread(service.get_conversations, current_user_id)
    return envelope(
        "Conversations fetched", {"conversations": [c.to_wire() for c in conversations]}
    )


@router.get("/unread-count")
async def get_unread_count(
    current_user_id: str = Depends(get_current_user_id),
    service: MessageService = Depends(get_message_service),
) -> Dict[str, Any]:
    count = await asyncio.to_thread(service.get_unread_count, current_user_id)
    return envelope("Unread count fetched", UnreadCount(unread_count=count))


@router.post("/send", status_code=status.HTTP_201_CREATED)
async def send_message(
    payload: SendMessageRequest,
    current_user_id: str = Depends(get_current_user_id),
    service: MessageService = Depends(get_message_service),
    gateway: ChatGateway = Depends(get_chat_gateway_dep),
) -> Dict[str, Any]:
    """
    Persist a message, push it to the receiver's live sessions, then queue
    the background jobs. Neither the push nor the dispatch can fail the send.
    """
    message = await asyncio.to_thread(
        service.send_message,
        current_user_id,
        payload.receiver_id,
        payload.content,
        payload.attachment(),
    )
    await gateway.broadcast_new_message(message)
    await gateway.dispatch_background(message)
    return envelope("Message sent", message)


@router.get("/with/{other_user_id}")
async def get_messages(
    other_user_id: str,
    cursor: Optional[str] = Query(None, description="Message id the page is anchored on"),
    limit: int = Query(MESSAGE_PAGE_DEFAULT_LIMIT),
    direction: PageDirection = Query(PageDirection.BEFORE),
    current_user_id: str = Depends(get_current_user_id),
    service: MessageService = Depends(get_message_service),
) -> Dict[str, Any]:
    page = await asyncio.to_thread(
        service.get_messages, current_user_id, other_user_id, cursor, limit, direction
    )
    return envelope("Messages fetched", page)
