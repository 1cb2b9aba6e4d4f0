# backend/trailbook/services/messaging/gateway.py
"""
Realtime chat gateway.

Every frame on the socket is ``{"event": <name>, "data": {...}}``.

Connect:
    The bearer token is taken from the handshake in priority order: the
    ``bearer`` subprotocol pair (``Sec-WebSocket-Protocol: bearer, <token>``),
    the ``Authorization`` header, then the ``token`` query parameter. A missing
    or invalid token gets an ``error`` frame and the socket is closed before
    any event handler runs.

Events:
    send_message -> persist, ``new_message`` to every receiver session,
                    ``message_sent`` to the sending session, then dispatch
                    the background jobs (best effort)
    typing       -> ``user_typing`` relayed to the receiver
    mark_read    -> ``messages_read`` acknowledgment on the caller's session

Handler errors become ``error`` frames; a verified session is never closed
because of a bad event.
"""

from __future__ import annotations

import asyncio
import json
import logging
from typing import Any, Awaitable, Callable, Dict, Optional, Sequence

from fastapi import WebSocket, WebSocketDisconnect, status
from pydantic import ValidationError
from starlette.websockets import WebSocketState

from ...auth import strip_bearer, verify_access_token
from ...core.constants import (
    EVENT_CONNECTED,
    EVENT_ERROR,
    EVENT_MARK_READ,
    EVENT_MESSAGE_SENT,
    EVENT_MESSAGES_READ,
    EVENT_NEW_MESSAGE,
    EVENT_SEND_MESSAGE,
    EVENT_TYPING,
    EVENT_USER_TYPING,
)
from ...core.exceptions import DomainException, UnauthorizedException
from ...core.ulid_helper import generate_ulid
from ...database import session_scope
from ...monitoring.prometheus_metrics import prometheus_metrics
from ...schemas.chat_events import MarkReadEvent, RealtimeFrame, TypingEvent
from ...schemas.message import MessageView, SendMessageRequest
from ..message_service import MessageService
from ..task_dispatcher import TaskDispatcher
from .session_registry import RealtimeSession, SessionRegistry

logger = logging.getLogger(__name__)

BEARER_SUBPROTOCOL = "bearer"

Handler = Callable[[RealtimeSession, Dict[str, Any]], Awaitable[None]]
RelayPublisher = Callable[[str, str, Dict[str, Any]], Awaitable[None]]


def validation_error_details(exc: ValidationError) -> list[Dict[str, str]]:
    """Flatten pydantic errors to ``[{field, message}]``."""
    return [
        {
            "field": ".".join(str(part) for part in error.get("loc", ())) or "body",
            "message": str(error.get("msg", "Invalid value")),
        }
        for error in exc.errors()
    ]


def extract_token(
    auth_token: Optional[str],
    authorization: Optional[str],
    query_token: Optional[str],
) -> Optional[str]:
    """First non-empty token from: handshake auth, Authorization header, query."""
    for candidate in (auth_token, strip_bearer(authorization), query_token):
        if candidate and candidate.strip():
            return candidate.strip()
    return None


def subprotocol_token(subprotocols: Sequence[str]) -> Optional[str]:
    """Token from a ``bearer, <token>`` subprotocol offer."""
    offered = list(subprotocols or ())
    if len(offered) >= 2 and offered[0].lower() == BEARER_SUBPROTOCOL:
        return offered[1]
    return None


class WebSocketSession:
    """One accepted WebSocket, identified by a ULID."""

    def __init__(self, websocket: WebSocket, session_id: Optional[str] = None):
        self.websocket = websocket
        self.id = session_id or generate_ulid()
        self.user_id: Optional[str] = None

    async def send(self, event: str, data: Dict[str, Any]) -> None:
        await self.websocket.send_json({"event": event, "data": data})

    async def close(self, code: int = status.WS_1000_NORMAL_CLOSURE) -> None:
        if self.websocket.application_state != WebSocketState.DISCONNECTED:
            await self.websocket.close(code=code)


class ChatGateway:
    """Session registry plus the event handlers of the chat socket."""

    def __init__(
        self,
        registry: Optional[SessionRegistry] = None,
        *,
        dispatcher: Optional[TaskDispatcher] = None,
        session_factory: Optional[Callable[[], Any]] = None,
    ):
        self.registry = registry or SessionRegistry()
        self.dispatcher = dispatcher or TaskDispatcher()
        self.session_factory = session_factory or session_scope
        self.relay_publisher: Optional[RelayPublisher] = None
        self._handlers: Dict[str, Handler] = {
            EVENT_SEND_MESSAGE: self.on_send_message,
            EVENT_TYPING: self.on_typing,
            EVENT_MARK_READ: self.on_mark_read,
        }

    # ------------------------------------------------------------------
    # Lifecycle
    # ------------------------------------------------------------------

    async def authenticate(self, session: RealtimeSession, token: Optional[str]) -> Optional[str]:
        """Verify the handshake token; on failure emit ``error`` and close."""
        try:
            return verify_access_token(token)
        except UnauthorizedException as exc:
            logger.warning(f"[REALTIME] Rejecting session {session.id}: {exc.message}")
            await self._safe_send(session, EVENT_ERROR, {"message": exc.message, "code": exc.code})
            await session.close(code=status.WS_1008_POLICY_VIOLATION)
            return None

    async def connect(self, session: RealtimeSession, token: Optional[str]) -> bool:
        user_id = await self.authenticate(session, token)
        if user_id is None:
            return False
        session.user_id = user_id
        self.registry.register(user_id, session)
        await session.send(EVENT_CONNECTED, {"userId": user_id, "message": "Connected to chat server"})
        return True

    def disconnect(self, session: RealtimeSession) -> None:
        if session.user_id:
            self.registry.unregister(session.user_id, session.id)

    async def serve(self, websocket: WebSocket) -> None:
        """Run one WebSocket from handshake to disconnect."""
        offered = websocket.scope.get("subprotocols") or []
        auth_token = subprotocol_token(offered)
        token = extract_token(
            auth_token,
            websocket.headers.get("authorization"),
            websocket.query_params.get("token"),
        )

        await websocket.accept(subprotocol=BEARER_SUBPROTOCOL if auth_token else None)
        session = WebSocketSession(websocket)
        if not await self.connect(session, token):
            return

        try:
            while True:
                raw = await websocket.receive_text()
                try:
                    frame = json.loads(raw)
                except ValueError:
                    await session.send(EVENT_ERROR, {"message": "Malformed frame", "code": "BAD_FRAME"})
                    continue
                await self.handle_frame(session, frame)
        except WebSocketDisconnect:
            logger.debug(f"[REALTIME] Session {session.id} closed by client")
        finally:
            self.disconnect(session)

    # ------------------------------------------------------------------
    # Dispatch
    # ------------------------------------------------------------------

    async def handle_frame(self, session: RealtimeSession, raw_frame: Any) -> None:
        try:
            frame = RealtimeFrame.model_validate(raw_frame)
        except ValidationError:
            await session.send(EVENT_ERROR, {"message": "Malformed frame", "code": "BAD_FRAME"})
            return

        handler = self._handlers.get(frame.event)
        if handler is None:
            await session.send(
                EVENT_ERROR, {"message": f"Unknown event: {frame.event}", "code": "UNKNOWN_EVENT"}
            )
            return

        prometheus_metrics.record_realtime_event(frame.event)
        try:
            await handler(session, frame.data)
        except DomainException as exc:
            logger.warning(f"[REALTIME] {frame.event} from {session.user_id} rejected: {exc.message}")
            await self._safe_send(session, EVENT_ERROR, {"message": exc.message, "code": exc.code})
        except ValidationError as exc:
            await self._safe_send(
                session,
                EVENT_ERROR,
                {
                    "message": "Validation failed",
                    "code": "VALIDATION_ERROR",
                    "details": validation_error_details(exc),
                },
            )
        except Exception as exc:
            logger.error(f"[REALTIME] {frame.event} handler failed: {exc}", exc_info=True)
            await self._safe_send(
                session, EVENT_ERROR, {"message": "Failed to process event", "code": "INTERNAL_ERROR"}
            )

    # ------------------------------------------------------------------
    # Fan-out
    # ------------------------------------------------------------------

    async def _safe_send(self, session: RealtimeSession, event: str, data: Dict[str, Any]) -> bool:
        try:
            await session.send(event, data)
            return True
        except Exception as exc:
            logger.warning(f"[REALTIME] Failed to emit {event} to session {session.id}: {exc}")
            return False

    async def deliver_local(self, user_id: str, event: str, data: Dict[str, Any]) -> int:
        """Send to every session of ``user_id`` in this process."""
        delivered = 0
        for session in self.registry.sessions_for(user_id):
            if await self._safe_send(session, event, data):
                delivered += 1
        return delivered

    async def emit_to_user(self, user_id: str, event: str, data: Dict[str, Any]) -> int:
        """Deliver locally and, when a relay is attached, to other processes."""
        delivered = await self.deliver_local(user_id, event, data)
        if self.relay_publisher is not None:
            try:
                await self.relay_publisher(user_id, event, data)
            except Exception as exc:
                logger.error(f"[REALTIME] Relay publish failed for {event}: {exc}")
        return delivered

    async def broadcast_new_message(self, message: MessageView) -> Dict[str, Any]:
        payload = {"message": message.to_wire()}
        await self.emit_to_user(message.receiver_id, EVENT_NEW_MESSAGE, payload)
        return payload

    async def dispatch_background(self, message: MessageView) -> None:
        """Queue file completion and notification; never raises."""
        try:
            await asyncio.to_thread(self.dispatcher.dispatch_for_message, message)
        except Exception as exc:
            logger.error(f"[REALTIME] Background dispatch for {message.id} failed: {exc}")

    # ------------------------------------------------------------------
    # Handlers
    # ------------------------------------------------------------------

    def _persist_message(self, sender_id: str, request: SendMessageRequest) -> MessageView:
        with self.session_factory() as db:
            return MessageService(db).send_message(
                sender_id, request.receiver_id, request.content, request.attachment()
            )

    async def on_send_message(self, session: RealtimeSession, data: Dict[str, Any]) -> None:
        sender_id = _require_user(session)
        request = SendMessageRequest.model_validate(data)

        message = await asyncio.to_thread(self._persist_message, sender_id, request)

        payload = await self.broadcast_new_message(message)
        await session.send(EVENT_MESSAGE_SENT, payload)
        logger.info(f"[REALTIME] Message {message.id} delivered: {sender_id} -> {message.receiver_id}")

        await self.dispatch_background(message)

    async def on_typing(self, session: RealtimeSession, data: Dict[str, Any]) -> None:
        sender_id = _require_user(session)
        event = TypingEvent.model_validate(data)
        await self.emit_to_user(
            event.receiver_id, EVENT_USER_TYPING, {"userId": sender_id, "isTyping": event.is_typing}
        )

    async def on_mark_read(self, session: RealtimeSession, data: Dict[str, Any]) -> None:
        _require_user(session)
        event = MarkReadEvent.model_validate(data)
        # Read state is persisted by paging through the log
        await session.send(EVENT_MESSAGES_READ, {"senderId": event.sender_id})

    # ------------------------------------------------------------------
    # Presence
    # ------------------------------------------------------------------

    def is_user_online(self, user_id: str) -> bool:
        return self.registry.is_online(user_id)

    def session_ids(self, user_id: str) -> list[str]:
        return self.registry.session_ids_for(user_id)


def _require_user(session: RealtimeSession) -> str:
    if not session.user_id:
        raise UnauthorizedException("Unauthorized", code="NOT_AUTHENTICATED")
    return session.user_id


_gateway: Optional[ChatGateway] = None


def get_chat_gateway() -> ChatGateway:
    """Process-wide gateway instance."""
    global _gateway
    if _gateway is None:
        _gateway = ChatGateway()
    return _gateway


def set_chat_gateway(gateway: Optional[ChatGateway]) -> None:
    global _gateway
    _gateway = gateway

