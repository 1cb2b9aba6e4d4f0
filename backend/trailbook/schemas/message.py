# backend/trailbook/schemas/message.py
"""
Schemas for the chat message log.

``SendMessageRequest`` is shared by the HTTP endpoint and the realtime
``send_message`` event.
"""

from datetime import datetime
from enum import Enum
from typing import List, Optional

from pydantic import Field, model_validator

from ..core.constants import ULID_PATH_PATTERN
from ._strict_base import StrictModel, StrictRequestModel
from .profile import UserSummary


class PageDirection(str, Enum):
    BEFORE = "before"
    AFTER = "after"


class AttachmentDescriptor(StrictModel):
    """Object already placed in storage through a presigned upload."""

    file_key: str = Field(..., min_length=1, max_length=1024)
    file_name: Optional[str] = Field(default=None, max_length=255)
    content_type: Optional[str] = Field(default=None, max_length=255)
    file_size: Optional[int] = Field(default=None, ge=0)


class SendMessageRequest(StrictRequestModel):
    receiver_id: str = Field(..., pattern=ULID_PATH_PATTERN)
    content: str = ""
    file_key: Optional[str] = Field(default=None, min_length=1, max_length=1024)
    file_name: Optional[str] = Field(default=None, max_length=255)
    content_type: Optional[str] = Field(default=None, max_length=255)
    file_size: Optional[int] = Field(default=None, ge=0)

    @model_validator(mode="after")
    def _require_body(self) -> "SendMessageRequest":
        if not self.content and not self.file_key:
            raise ValueError("content or fileKey is required")
        return self

    def attachment(self) -> Optional[AttachmentDescriptor]:
        if not self.file_key:
            return None
        return AttachmentDescriptor(
            file_key=self.file_key,
            file_name=self.file_name,
            content_type=self.content_type,
            file_size=self.file_size,
        )


class MessageView(StrictModel):
    id: str
    sender_id: str
    receiver_id: str
    content: str
    has_file: bool
    file_key: Optional[str] = None
    file_url: Optional[str] = None
    file_name: Optional[str] = None
    file_type: Optional[str] = None
    file_size: Optional[int] = None
    is_file_uploaded: bool
    is_read: bool
    read_at: Optional[datetime] = None
    created_at: datetime


class MessagePage(StrictModel):
    messages: List[MessageView]
    next_cursor: Optional[str] = None
    has_more: bool
    direction: PageDirection


class ConversationSummary(StrictModel):
    user_id: str
    user: Optional[UserSummary] = None
    latest_message: Optional[MessageView] = None
    unread_count: int = 0


class UnreadCount(StrictModel):
    unread_count: int
