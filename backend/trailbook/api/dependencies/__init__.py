"""FastAPI dependency providers."""

from .auth import get_current_user_id
from .services import (
    get_chat_gateway_dep,
    get_connection_request_service,
    get_eligibility_service,
    get_message_service,
    get_trail_connection_service,
)

__all__ = [
    "get_chat_gateway_dep",
    "get_connection_request_service",
    "get_current_user_id",
    "get_eligibility_service",
    "get_message_service",
    "get_trail_connection_service",
]
