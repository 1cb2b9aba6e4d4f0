# backend/trailbook/services/message_service.py
"""
Message Service for direct chat.

Handles the synchronous half of the pipeline: persisting messages, paging
through a pair's log (which doubles as the read-receipt mechanism), unread
counts and the conversation list. Background work (attachment completion,
push) is dispatched by the caller once ``send_message`` has returned.
"""

import logging
from typing import List, Optional

from sqlalchemy.orm import Session

from ..core.config import settings
from ..core.constants import MESSAGE_PAGE_DEFAULT_LIMIT, MESSAGE_PAGE_MAX_LIMIT
from ..core.exceptions import BusinessRuleException, ValidationException
from ..core.timezone_utils import ensure_utc, utc_now
from ..core.ulid_helper import is_valid_ulid
from ..models.message import Message
from ..repositories.factory import RepositoryFactory
from ..schemas.message import (
    AttachmentDescriptor,
    ConversationSummary,
    MessagePage,
    MessageView,
    PageDirection,
)
from ..schemas.profile import UserSummary
from .base import BaseService

logger = logging.getLogger(__name__)


def to_message_view(message: Message, viewer_id: Optional[str] = None) -> MessageView:
    """
    Serialize a message. Messages the viewer sent are always reported as read
    from the viewer's perspective.
    """
    is_read = bool(message.is_read)
    if viewer_id is not None and message.sender_id == viewer_id:
        is_read = True
    return MessageView(
        id=message.id,
        sender_id=message.sender_id,
        receiver_id=message.receiver_id,
        content=message.content or "",
        has_file=bool(message.has_file),
        file_key=message.file_key,
        file_url=message.file_url,
        file_name=message.file_name,
        file_type=message.file_type,
        file_size=message.file_size,
        is_file_uploaded=bool(message.is_file_uploaded),
        is_read=is_read,
        read_at=ensure_utc(message.read_at),
        created_at=ensure_utc(message.created_at),
    )


class MessageService(BaseService):
    """Service layer for the pair-scoped message log."""

    def __init__(self, db: Session):
        super().__init__(db)
        self.repository = RepositoryFactory.create_message_repository(db)
        self.connection_repository = RepositoryFactory.create_connection_request_repository(db)
        self.profile_repository = RepositoryFactory.create_user_profile_repository(db)

    def _require_connected(self, user_id_1: str, user_id_2: str, action: str) -> None:
        if self.connection_repository.find_accepted_for_pair(user_id_1, user_id_2) is None:
            raise BusinessRuleException(
                f"Users must be connected to {action} messages", code="NOT_CONNECTED"
            )

    @BaseService.measure_operation("send_message")
    def send_message(
        self,
        sender_id: str,
        receiver_id: str,
        content: str,
        attachment: Optional[AttachmentDescriptor] = None,
    ) -> MessageView:
        """
        Persist a message between two connected users.

        Raises:
            ValidationException: malformed ids, self-send, or empty message
            BusinessRuleException: the users are not connected
        """
        if not is_valid_ulid(sender_id) or not is_valid_ulid(receiver_id):
            raise ValidationException("Invalid userId")
        if sender_id == receiver_id:
            raise ValidationException("Cannot send message to yourself")
        content = content or ""
        if not content and attachment is None:
            raise ValidationException("Message content or attachment is required")
        if len(content) > settings.chat_message_max_length:
            raise ValidationException(
                f"Message content exceeds {settings.chat_message_max_length} characters"
            )

        self._require_connected(sender_id, receiver_id, "send")

        fields = {
            "sender_id": sender_id,
            "receiver_id": receiver_id,
            "content": content,
            "has_file": attachment is not None,
            "is_file_uploaded": False,
            "is_read": False,
        }
        if attachment is not None:
            fields.update(
                file_key=attachment.file_key,
                file_name=attachment.file_name,
                file_type=attachment.content_type,
                file_size=attachment.file_size,
            )

        with self.transaction():
            message = self.repository.create(**fields)

        self.logger.info(f"Message {message.id} sent: {sender_id} -> {receiver_id}")
        return to_message_view(message, viewer_id=sender_id)

    @BaseService.measure_operation("get_messages")
    def get_messages(
        self,
        user_id: str,
        other_user_id: str,
        cursor: Optional[str] = None,
        limit: int = MESSAGE_PAGE_DEFAULT_LIMIT,
        direction: PageDirection = PageDirection.BEFORE,
    ) -> MessagePage:
        """
        One page of the pair's log in chronological order.

        Without a cursor the newest ``limit`` messages are returned. Any
        returned message the caller received and had not read is marked read.

        Raises:
            ValidationException: malformed ids, bad limit, or unknown cursor
            BusinessRuleException: the users are not connected
        """
        if not is_valid_ulid(user_id) or not is_valid_ulid(other_user_id):
            raise ValidationException("Invalid userId")
        if limit < 1 or limit > MESSAGE_PAGE_MAX_LIMIT:
            raise ValidationException(f"Limit must be between 1 and {MESSAGE_PAGE_MAX_LIMIT}")
        direction = PageDirection(direction)

        self._require_connected(user_id, other_user_id, "view")

        cursor_message = None
        if cursor:
            if not is_valid_ulid(cursor):
                raise ValidationException("Invalid cursor")
            cursor_message = self.repository.get_by_id(cursor)
            if cursor_message is None or {cursor_message.sender_id, cursor_message.receiver_id} != {
                user_id,
                other_user_id,
            }:
                raise ValidationException("Cursor message not found")

        rows = self.repository.get_page(
            user_id,
            other_user_id,
            limit=limit + 1,
            direction=direction.value,
            cursor=cursor_message,
        )
        has_more = len(rows) > limit
        rows = rows[:limit]
        if direction == PageDirection.BEFORE:
            rows.reverse()

        unread_ids = [m.id for m in rows if m.receiver_id == user_id and not m.is_read]
        if unread_ids:
            read_at = utc_now()
            with self.transaction():
                self.repository.mark_read_for_receiver(unread_ids, user_id, read_at)
            for message in rows:
                if message.id in unread_ids:
                    message.is_read = True
                    message.read_at = read_at

        next_cursor = None
        if rows:
            next_cursor = rows[0].id if direction == PageDirection.BEFORE else rows[-1].id

        return MessagePage(
            messages=[to_message_view(m, viewer_id=user_id) for m in rows],
            next_cursor=next_cursor,
            has_more=has_more,
            direction=direction,
        )

    def get_unread_count(self, user_id: str) -> int:
        if not is_valid_ulid(user_id):
            raise ValidationException("Invalid userId")
        return self.repository.count_unread(user_id)

    @BaseService.measure_operation("get_conversations")
    def get_conversations(self, user_id: str) -> List[ConversationSummary]:
        """
        One entry per counterpart with the latest message and the number of
        unread messages from them, most recent conversation first.
        """
        if not is_valid_ulid(user_id):
            raise ValidationException("Invalid userId")

        latest = self.repository.latest_per_counterpart(user_id)
        unread = self.repository.count_unread_by_sender(user_id)
        profiles = self.profile_repository.get_by_user_ids(latest.keys())

        conversations = [
            ConversationSummary(
                user_id=counterpart,
                user=UserSummary.from_profile(profiles.get(counterpart)),
                latest_message=to_message_view(message, viewer_id=user_id),
                unread_count=unread.get(counterpart, 0),
            )
            for counterpart, message in latest.items()
        ]

        def _sort_key(item: ConversationSummary):
            created = item.latest_message.created_at if item.latest_message else None
            return (created is None, -(created.timestamp()) if created else 0.0)

        conversations.sort(key=_sort_key)
        self.logger.debug(f"Found {len(conversations)} conversations for {user_id}")
        return conversations
