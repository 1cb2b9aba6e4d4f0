# backend/trailbook/services/messaging/session_registry.py
"""
Per-process registry of live realtime sessions.

A user may hold several sessions at once (phone + browser); the registry maps
``user_id -> {session_id: session}`` so fan-out reaches every device and a
disconnect only ever removes the session that actually closed.
"""

from __future__ import annotations

import logging
from typing import Any, Dict, List, Optional, Protocol

from ...monitoring.prometheus_metrics import prometheus_metrics

logger = logging.getLogger(__name__)


class RealtimeSession(Protocol):
    """What the gateway needs from a transport session."""

    id: str
    user_id: Optional[str]

    async def send(self, event: str, data: Dict[str, Any]) -> None: ...

    async def close(self, code: int = 1000) -> None: ...


class SessionRegistry:
    """In-memory ``user_id -> sessions`` map. Not shared between processes."""

    def __init__(self) -> None:
        self._sessions: Dict[str, Dict[str, RealtimeSession]] = {}

    def register(self, user_id: str, session: RealtimeSession) -> None:
        self._sessions.setdefault(user_id, {})[session.id] = session
        self._report()
        logger.info(f"[REALTIME] Registered session {session.id} for user {user_id}")

    def unregister(self, user_id: str, session_id: str) -> bool:
        """
        Remove one session. Returns False when it was already gone, so a
        stale disconnect never evicts a newer session of the same user.
        """
        sessions = self._sessions.get(user_id)
        if not sessions or session_id not in sessions:
            return False
        del sessions[session_id]
        if not sessions:
            del self._sessions[user_id]
        self._report()
        logger.info(f"[REALTIME] Unregistered session {session_id} for user {user_id}")
        return True

    def sessions_for(self, user_id: str) -> List[RealtimeSession]:
        return list(self._sessions.get(user_id, {}).values())

    def session_ids_for(self, user_id: str) -> List[str]:
        return list(self._sessions.get(user_id, {}).keys())

    def is_online(self, user_id: str) -> bool:
        return bool(self._sessions.get(user_id))

    def session_count(self) -> int:
        return sum(len(sessions) for sessions in self._sessions.values())

    def _report(self) -> None:
        prometheus_metrics.set_realtime_sessions(self.session_count())
