"""
Realtime messaging package.

- ``SessionRegistry``: per-process map of live sessions per user
- ``ChatGateway``: WebSocket handshake auth, event handlers and fan-out
- ``BroadcastRelay``: optional cross-process fan-out via Broadcaster
"""

from .gateway import ChatGateway, WebSocketSession, get_chat_gateway, set_chat_gateway
from .relay import BroadcastRelay
from .session_registry import RealtimeSession, SessionRegistry

__all__ = [
    "BroadcastRelay",
    "ChatGateway",
    "RealtimeSession",
    "SessionRegistry",
    "WebSocketSession",
    "get_chat_gateway",
    "set_chat_gateway",
]
