# backend/trailbook/services/messaging/relay.py
"""
Cross-process fan-out over Broadcaster.

Each API process keeps its own session registry. With the relay enabled,
every gateway emit is also published on one Redis channel; each process
re-delivers frames for the users connected to it and skips its own. A
dropped subscription is logged and re-established with backoff.
"""

from __future__ import annotations

import asyncio
import json
import logging
from typing import Any, Dict, Optional

from ...core.broadcast import get_broadcast
from ...core.constants import CHAT_RELAY_CHANNEL
from ...core.ulid_helper import generate_ulid
from .gateway import ChatGateway

logger = logging.getLogger(__name__)


class BroadcastRelay:
    """Publishes gateway emits to Redis and re-emits frames from other processes."""

    def __init__(
        self,
        gateway: ChatGateway,
        *,
        channel: str = CHAT_RELAY_CHANNEL,
        reconnect_delay: float = 1.0,
        max_reconnect_delay: float = 30.0,
    ):
        self.gateway = gateway
        self.channel = channel
        self.instance_id = generate_ulid()
        self.reconnect_delay = reconnect_delay
        self.max_reconnect_delay = max_reconnect_delay
        self.subscribed = False
        self._task: Optional[asyncio.Task[None]] = None

    def encode(self, user_id: str, event: str, data: Dict[str, Any]) -> str:
        return json.dumps({"origin": self.instance_id, "userId": user_id, "event": event, "data": data})

    async def publish(self, user_id: str, event: str, data: Dict[str, Any]) -> None:
        broadcast = get_broadcast()
        await broadcast.publish(channel=self.channel, message=self.encode(user_id, event, data))

    async def handle(self, raw: str) -> int:
        """Deliver one relayed frame locally; returns the number of sessions reached."""
        try:
            frame = json.loads(raw)
        except json.JSONDecodeError as e:
            logger.warning(f"[RELAY] Invalid JSON on {self.channel}: {e}")
            return 0
        if frame.get("origin") == self.instance_id:
            return 0
        user_id, event = frame.get("userId"), frame.get("event")
        if not user_id or not event:
            return 0
        return await self.gateway.deliver_local(user_id, event, frame.get("data") or {})

    async def _consume(self) -> None:
        broadcast = get_broadcast()
        async with broadcast.subscribe(channel=self.channel) as subscriber:
            logger.info(f"[RELAY] Subscribed to {self.channel} as {self.instance_id}")
            self.subscribed = True
            async for event in subscriber:
                await self.handle(event.message)

    async def _listen(self) -> None:
        """Keep the subscription alive, resubscribing with capped exponential backoff."""
        delay = self.reconnect_delay
        while True:
            self.subscribed = False
            try:
                await self._consume()
                logger.warning(f"[RELAY] Subscription to {self.channel} ended; resubscribing")
            except Exception as exc:
                logger.error(
                    f"[RELAY] Subscription to {self.channel} failed, retrying in {delay:g}s: {exc}"
                )
            if self.subscribed:
                delay = self.reconnect_delay
            await asyncio.sleep(delay)
            delay = min(delay * 2, self.max_reconnect_delay)

    def start(self) -> None:
        self.gateway.relay_publisher = self.publish
        self._task = asyncio.create_task(self._listen())

    async def stop(self) -> None:
        self.gateway.relay_publisher = None
        if self._task is not None:
            self._task.cancel()
            try:
                await self._task
            except asyncio.CancelledError:
                pass
            self._task = None
