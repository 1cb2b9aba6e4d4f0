"""Version 1 API routers, mounted under ``/api/v1``."""

from . import chat, connection_requests, messages, trail_connections

__all__ = ["chat", "connection_requests", "messages", "trail_connections"]
