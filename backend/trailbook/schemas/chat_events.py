"""Realtime channel frames and client event payloads."""

from typing import Any, Dict

from pydantic import BaseModel, ConfigDict, Field

from ..core.constants import ULID_PATH_PATTERN
from ._strict_base import StrictRequestModel


class RealtimeFrame(BaseModel):
    """Envelope for every frame on the socket: ``{"event": ..., "data": {...}}``."""

    model_config = ConfigDict(extra="ignore")

    event: str = Field(..., min_length=1, max_length=64)
    data: Dict[str, Any] = Field(default_factory=dict)


class TypingEvent(StrictRequestModel):
    receiver_id: str = Field(..., pattern=ULID_PATH_PATTERN)
    is_typing: bool


class MarkReadEvent(StrictRequestModel):
    sender_id: str = Field(..., pattern=ULID_PATH_PATTERN)
