# backend/trailbook/services/chat_consumers.py
"""
Queue consumers for the chat pipeline.

Both consumers share one delivery protocol (``QueueConsumer.handle``):

- payload fails strict validation -> dead-letter immediately
- processing succeeds -> done (the broker acks)
- processing fails with ``retry_count < max_retries`` -> republish the same
  payload with ``retry_count + 1`` after ``base * 2**retry_count`` seconds
- processing fails with ``retry_count >= max_retries`` -> dead-letter the
  unmodified payload

In every case the delivery being handled is acknowledged, so the republished
copy is the only live one.
"""

from contextlib import AbstractContextManager
import logging
from typing import Any, Callable, Dict, Generic, Optional, Type, TypeVar

from pydantic import BaseModel, ValidationError
from sqlalchemy.orm import Session

from ..core.config import settings
from ..core.constants import (
    FILE_UPLOAD_QUEUE,
    NOTIFICATION_DEFAULT_TITLE,
    NOTIFICATION_FILE_LABELS,
    NOTIFY_QUEUE,
)
from ..core.exceptions import NotFoundException
from ..database import session_scope
from ..monitoring.prometheus_metrics import prometheus_metrics
from ..repositories.factory import RepositoryFactory
from ..schemas.chat_tasks import FileUploadTask, NotificationTask
from .push_notification_service import PushNotificationService
from .storage_client import StorageClient
from .task_dispatcher import TaskDispatcher

logger = logging.getLogger(__name__)

P = TypeVar("P", bound=BaseModel)

SessionFactory = Callable[[], AbstractContextManager]

OUTCOME_PROCESSED = "processed"
OUTCOME_RETRIED = "retried"
OUTCOME_DEAD_LETTERED = "dead_lettered"
OUTCOME_INVALID = "invalid"


class QueueConsumer(Generic[P]):
    """Retry/dead-letter protocol shared by every chat queue."""

    queue: str = ""
    payload_model: Type[P]

    def __init__(
        self,
        dispatcher: Optional[TaskDispatcher] = None,
        *,
        session_factory: Optional[SessionFactory] = None,
        max_retries: Optional[int] = None,
        retry_base_seconds: Optional[float] = None,
    ):
        self.dispatcher = dispatcher or TaskDispatcher()
        self.session_factory = session_factory or session_scope
        self.max_retries = settings.chat_max_retries if max_retries is None else max_retries
        self.retry_base_seconds = (
            settings.chat_retry_base_seconds if retry_base_seconds is None else retry_base_seconds
        )
        self.logger = logging.getLogger(self.__class__.__name__)

    def process(self, payload: P) -> None:  # pragma: no cover - abstract
        raise NotImplementedError

    def retry_delay(self, retry_count: int) -> float:
        return self.retry_base_seconds * (2**retry_count)

    def handle(self, raw_payload: Any, retry_count: int = 0) -> str:
        """
        Run one delivery through the protocol and return its outcome.

        Raises:
            DispatchException: the republish or dead-letter publish itself failed
        """
        try:
            payload = self.payload_model.model_validate(raw_payload)
        except ValidationError as exc:
            self.logger.error(f"[{self.queue}] Invalid payload, dead-lettering: {exc}")
            self.dispatcher.dead_letter(self.queue, raw_payload)
            prometheus_metrics.record_chat_task(self.queue, OUTCOME_INVALID)
            return OUTCOME_INVALID

        try:
            self.process(payload)
        except Exception as exc:
            if retry_count < self.max_retries:
                delay = self.retry_delay(retry_count)
                self.logger.warning(
                    f"[{self.queue}] Processing failed (attempt {retry_count + 1}), "
                    f"retrying in {delay:g}s: {exc}"
                )
                self.dispatcher.republish(self.queue, raw_payload, retry_count + 1, delay)
                prometheus_metrics.record_chat_task(self.queue, OUTCOME_RETRIED)
                return OUTCOME_RETRIED

            self.logger.error(
                f"[{self.queue}] Giving up after {retry_count} retries, dead-lettering: {exc}",
                exc_info=True,
            )
            self.dispatcher.dead_letter(self.queue, raw_payload)
            prometheus_metrics.record_chat_task(self.queue, OUTCOME_DEAD_LETTERED)
            return OUTCOME_DEAD_LETTERED

        prometheus_metrics.record_chat_task(self.queue, OUTCOME_PROCESSED)
        return OUTCOME_PROCESSED


class FileUploadConsumer(QueueConsumer[FileUploadTask]):
    """Records attachment completion for messages whose bytes are already stored."""

    queue = FILE_UPLOAD_QUEUE
    payload_model = FileUploadTask

    def __init__(
        self,
        dispatcher: Optional[TaskDispatcher] = None,
        *,
        storage: Optional[StorageClient] = None,
        **kwargs: Any,
    ):
        super().__init__(dispatcher, **kwargs)
        self.storage = storage or StorageClient()

    def process(self, payload: FileUploadTask) -> None:
        with self.session_factory() as db:
            repository = RepositoryFactory.create_message_repository(db)
            message = repository.get_by_id(payload.message_id)
            if message is None:
                raise NotFoundException(f"Message {payload.message_id} not found")
            if message.is_file_uploaded:
                self.logger.info(f"Message {message.id} already has its file; skipping")
                return

            file_url = self.storage.confirm_upload(payload.file_key)
            repository.mark_file_uploaded(message, file_url)
            self.logger.info(f"Attached {payload.file_key} to message {message.id}")


def notification_body(payload: NotificationTask) -> str:
    """Body text templated on the attachment's MIME category."""
    if not payload.has_file:
        return payload.content

    file_type = (payload.file_type or "").lower()
    if file_type.startswith("image/"):
        return NOTIFICATION_FILE_LABELS["image"]
    if file_type == "application/pdf":
        return NOTIFICATION_FILE_LABELS["application/pdf"]
    if file_type.startswith("text/"):
        return NOTIFICATION_FILE_LABELS["text/plain"]
    return f"📎 Sent {payload.file_name or 'a file'}"


class NotificationConsumer(QueueConsumer[NotificationTask]):
    """Pushes a Web Push notification to the message receiver."""

    queue = NOTIFY_QUEUE
    payload_model = NotificationTask

    def __init__(
        self,
        dispatcher: Optional[TaskDispatcher] = None,
        *,
        push_service: Optional[PushNotificationService] = None,
        **kwargs: Any,
    ):
        super().__init__(dispatcher, **kwargs)
        self.push_service = push_service or PushNotificationService()

    def _load_recipient(self, db: Session, payload: NotificationTask) -> Optional[Dict[str, Any]]:
        profiles = RepositoryFactory.create_user_profile_repository(db)
        receiver = profiles.get_by_user_id(payload.receiver_id)
        if receiver is None or not receiver.push_subscription:
            return None
        sender = profiles.get_by_user_id(payload.sender_id)
        title = (sender.full_name if sender and sender.full_name else None) or NOTIFICATION_DEFAULT_TITLE
        return {"subscription": dict(receiver.push_subscription), "title": title}

    def process(self, payload: NotificationTask) -> None:
        with self.session_factory() as db:
            recipient = self._load_recipient(db, payload)

        if recipient is None:
            self.logger.info(f"No push registration for {payload.receiver_id}; skipping notification")
            return

        delivered = self.push_service.send(
            recipient["subscription"],
            title=recipient["title"],
            body=notification_body(payload),
            data={
                "type": "chat_message",
                "messageId": payload.message_id,
                "senderId": payload.sender_id,
            },
        )
        if delivered:
            self.logger.info(f"Notified {payload.receiver_id} about message {payload.message_id}")
