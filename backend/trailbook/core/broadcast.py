# backend/trailbook/core/broadcast.py
"""
Shared broadcast manager for cross-instance chat relay.

Each API process holds one Broadcaster instance, which keeps a single Redis
PubSub connection. Gateway events destined for users connected to another
process are published on a relay channel and re-emitted by the instance
that owns the session.
"""
import logging
from typing import Optional

from broadcaster import Broadcast

from .config import settings

logger = logging.getLogger(__name__)

_broadcast: Optional[Broadcast] = None


def get_broadcast() -> Broadcast:
    """
    Get the shared broadcast instance.

    Raises:
        RuntimeError: If broadcast is not initialized (call connect_broadcast first)
    """
    if _broadcast is None:
        raise RuntimeError("Broadcast not initialized. Call connect_broadcast() during startup.")
    return _broadcast


async def connect_broadcast() -> None:
    """Connect to Redis via Broadcaster. Call during application startup."""
    global _broadcast

    redis_url = settings.redis_url or "redis://localhost:6379"
    _broadcast = Broadcast(redis_url)
    await _broadcast.connect()
    logger.info("[BROADCAST] Connected to Redis for chat relay: %s", redis_url)


async def disconnect_broadcast() -> None:
    global _broadcast

    if _broadcast is not None:
        await _broadcast.disconnect()
        _broadcast = None
        logger.info("[BROADCAST] Disconnected from Redis")
