# backend/trailbook/routes/v1/chat.py
"""
Chat socket - API v1

    WS /ws  - realtime channel; see ``services.messaging.gateway`` for frames
"""

from fastapi import APIRouter, WebSocket

from ...services.messaging import get_chat_gateway

router = APIRouter(tags=["chat-v1"])


@router.websocket("/ws")
async def chat_socket(websocket: WebSocket) -> None:
    await get_chat_gateway().serve(websocket)
