# backend/trailbook/repositories/message_repository.py
"""
Message Repository for the chat system.

The log for a pair is ordered by the compound key (created_at, id); cursor
pages compare against both columns so equal timestamps never cause a gap or
a duplicate across page boundaries.
"""

from datetime import datetime
import logging
from typing import Dict, List, Optional

from sqlalchemy import and_, func, or_
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import Session

from ..core.exceptions import RepositoryException
from ..models.message import Message
from .base_repository import BaseRepository

logger = logging.getLogger(__name__)

DIRECTION_BEFORE = "before"
DIRECTION_AFTER = "after"


class MessageRepository(BaseRepository[Message]):
    """
    Repository for message data access.

    Handles the pair-scoped log queries, read-state updates and attachment
    completion.
    """

    def __init__(self, db: Session):
        super().__init__(db, Message)
        self.logger = logging.getLogger(__name__)

    @staticmethod
    def _pair_filter(user_id_1: str, user_id_2: str):
        return or_(
            and_(Message.sender_id == user_id_1, Message.receiver_id == user_id_2),
            and_(Message.sender_id == user_id_2, Message.receiver_id == user_id_1),
        )

    def get_page(
        self,
        user_id_1: str,
        user_id_2: str,
        *,
        limit: int,
        direction: str = DIRECTION_BEFORE,
        cursor: Optional[Message] = None,
    ) -> List[Message]:
        """
        Fetch up to ``limit`` messages of the pair relative to ``cursor``.

        Rows come back in query order: newest first for ``before``, oldest
        first for ``after``. Callers pass ``limit + 1`` to detect more pages.

        Args:
            user_id_1: One side of the pair
            user_id_2: The other side
            limit: Maximum number of rows
            direction: ``before`` (older than cursor) or ``after`` (newer)
            cursor: Message the page is anchored on; None means "now"
        """
        query = self._build_query().filter(self._pair_filter(user_id_1, user_id_2))

        if direction == DIRECTION_AFTER:
            if cursor is not None:
                query = query.filter(
                    or_(
                        Message.created_at > cursor.created_at,
                        and_(Message.created_at == cursor.created_at, Message.id > cursor.id),
                    )
                )
            query = query.order_by(Message.created_at.asc(), Message.id.asc())
        else:
            if cursor is not None:
                query = query.filter(
                    or_(
                        Message.created_at < cursor.created_at,
                        and_(Message.created_at == cursor.created_at, Message.id < cursor.id),
                    )
                )
            query = query.order_by(Message.created_at.desc(), Message.id.desc())

        return self._execute_query(query.limit(limit))

    def mark_read_for_receiver(self, message_ids: List[str], receiver_id: str, read_at: datetime) -> int:
        """
        Mark the given messages read where ``receiver_id`` is the receiver.

        Returns:
            Number of rows that flipped from unread to read
        """
        if not message_ids:
            return 0
        try:
            count = (
                self.db.query(Message)
                .filter(
                    Message.id.in_(message_ids),
                    Message.receiver_id == receiver_id,
                    Message.is_read.is_(False),
                )
                .update(
                    {Message.is_read: True, Message.read_at: read_at},
                    synchronize_session="fetch",
                )
            )
            self.logger.debug(f"Marked {count} messages as read for user {receiver_id}")
            return int(count)
        except SQLAlchemyError as e:
            self.logger.error(f"Error marking messages as read: {str(e)}")
            raise RepositoryException(f"Failed to mark messages as read: {str(e)}")

    def count_unread(self, user_id: str) -> int:
        return self.count(receiver_id=user_id, is_read=False)

    def count_unread_by_sender(self, user_id: str) -> Dict[str, int]:
        """Unread counts for ``user_id`` keyed by the sender."""
        query = (
            self.db.query(Message.sender_id, func.count(Message.id))
            .filter(Message.receiver_id == user_id, Message.is_read.is_(False))
            .group_by(Message.sender_id)
        )
        try:
            return {sender_id: int(count) for sender_id, count in query.all()}
        except SQLAlchemyError as e:
            self.logger.error(f"Error counting unread messages: {str(e)}")
            raise RepositoryException(f"Failed to count unread messages: {str(e)}")

    def latest_per_counterpart(self, user_id: str) -> Dict[str, Message]:
        """Most recent message exchanged with each counterpart of ``user_id``."""
        query = (
            self._build_query()
            .filter(or_(Message.sender_id == user_id, Message.receiver_id == user_id))
            .order_by(Message.created_at.desc(), Message.id.desc())
        )
        latest: Dict[str, Message] = {}
        for message in self._execute_query(query):
            counterpart = message.receiver_id if message.sender_id == user_id else message.sender_id
            latest.setdefault(counterpart, message)
        return latest

    def mark_file_uploaded(self, message: Message, file_url: str) -> Message:
        message.is_file_uploaded = True
        message.file_url = file_url
        try:
            self.db.flush()
        except SQLAlchemyError as e:
            self.logger.error(f"Error recording upload for message {message.id}: {str(e)}")
            raise RepositoryException(f"Failed to record file upload: {str(e)}")
        return message
