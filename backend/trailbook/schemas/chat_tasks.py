# backend/trailbook/schemas/chat_tasks.py
"""
Background task payloads.

One explicit payload type per queue. Consumers validate strictly; anything
that does not parse is dead-lettered without retries.
"""

from typing import Optional

from pydantic import Field

from ._strict_base import StrictModel


class FileUploadTask(StrictModel):
    message_id: str = Field(..., min_length=1)
    file_key: str = Field(..., min_length=1)
    file_name: Optional[str] = None
    content_type: Optional[str] = None
    size: Optional[int] = Field(default=None, ge=0)
    sender_id: str
    receiver_id: str


class NotificationTask(StrictModel):
    receiver_id: str = Field(..., min_length=1)
    sender_id: str = Field(..., min_length=1)
    message_id: str = Field(..., min_length=1)
    content: str = ""
    has_file: bool = False
    file_name: Optional[str] = None
    file_type: Optional[str] = None
