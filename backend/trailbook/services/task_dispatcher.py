# backend/trailbook/services/task_dispatcher.py
"""
Task Dispatcher for the chat pipeline.

Publishes at-least-once jobs onto the two fixed queues (``file-upload``,
``notify``) and their dead-letter twins. The retry count travels in the
``x-retry-count`` header, never in the payload.

A failed publish is logged and raised as ``DispatchException``. Callers on
the request path go through ``dispatch_for_message``, which contains the
failure so the already-committed message is never affected.
"""

import logging
from typing import Any, Callable, Dict, Optional

from ..core.constants import (
    DEAD_LETTER_SUFFIX,
    FILE_UPLOAD_QUEUE,
    FILE_UPLOAD_TASK,
    NOTIFY_QUEUE,
    NOTIFY_TASK,
    RETRY_COUNT_HEADER,
)
from ..core.exceptions import DispatchException
from ..monitoring.prometheus_metrics import prometheus_metrics
from ..schemas.chat_tasks import FileUploadTask, NotificationTask
from ..schemas.message import MessageView

logger = logging.getLogger(__name__)

QUEUE_TASKS: Dict[str, str] = {
    FILE_UPLOAD_QUEUE: FILE_UPLOAD_TASK,
    NOTIFY_QUEUE: NOTIFY_TASK,
}

Publisher = Callable[..., Any]


def dead_letter_queue(queue: str) -> str:
    return f"{queue}{DEAD_LETTER_SUFFIX}"


def _default_publisher(task_name: str, args: Any = None, kwargs: Any = None, **options: Any) -> Any:
    from ..tasks.enqueue import enqueue_task

    return enqueue_task(task_name, args=args, kwargs=kwargs, **options)


class TaskDispatcher:
    """Hands chat jobs to the broker."""

    def __init__(self, publisher: Optional[Publisher] = None):
        self._publisher = publisher or _default_publisher

    def _publish(
        self,
        queue: str,
        payload: Dict[str, Any],
        *,
        retry_count: int = 0,
        countdown: Optional[float] = None,
        target_queue: Optional[str] = None,
    ) -> None:
        if queue not in QUEUE_TASKS:
            raise ValueError(f"Unknown queue: {queue}")

        destination = target_queue or queue
        options: Dict[str, Any] = {
            "queue": destination,
            "headers": {RETRY_COUNT_HEADER: retry_count},
        }
        if countdown:
            options["countdown"] = countdown

        try:
            self._publisher(QUEUE_TASKS[queue], args=(payload,), **options)
        except Exception as exc:
            prometheus_metrics.record_dispatch_failure(destination)
            logger.error(f"Failed to publish to {destination}: {exc}", exc_info=True)
            raise DispatchException(f"Failed to publish to {destination}: {exc}") from exc

        logger.debug(f"Published to {destination} (retry={retry_count}, countdown={countdown})")

    def publish_file_upload(self, task: FileUploadTask) -> None:
        self._publish(FILE_UPLOAD_QUEUE, task.to_wire())

    def publish_notification(self, task: NotificationTask) -> None:
        self._publish(NOTIFY_QUEUE, task.to_wire())

    def republish(self, queue: str, payload: Dict[str, Any], retry_count: int, delay_seconds: float) -> None:
        """Put the same payload back on ``queue`` after ``delay_seconds``."""
        self._publish(queue, payload, retry_count=retry_count, countdown=delay_seconds)

    def dead_letter(self, queue: str, payload: Any) -> None:
        """Park the raw payload on the paired dead-letter queue."""
        self._publish(queue, payload, target_queue=dead_letter_queue(queue))

    def dispatch_for_message(self, message: MessageView) -> Dict[str, bool]:
        """
        Fire the background jobs for a freshly persisted message.

        File completion is queued only for attachments; a notification is
        always queued. Failures are logged and reported, never raised.
        """
        outcome: Dict[str, bool] = {}

        if message.has_file and message.file_key:
            try:
                self.publish_file_upload(
                    FileUploadTask(
                        message_id=message.id,
                        file_key=message.file_key,
                        file_name=message.file_name,
                        content_type=message.file_type,
                        size=message.file_size,
                        sender_id=message.sender_id,
                        receiver_id=message.receiver_id,
                    )
                )
                outcome[FILE_UPLOAD_QUEUE] = True
            except DispatchException:
                logger.warning(f"File upload task for message {message.id} was not queued")
                outcome[FILE_UPLOAD_QUEUE] = False

        try:
            self.publish_notification(
                NotificationTask(
                    receiver_id=message.receiver_id,
                    sender_id=message.sender_id,
                    message_id=message.id,
                    content=message.content,
                    has_file=message.has_file,
                    file_name=message.file_name,
                    file_type=message.file_type,
                )
            )
            outcome[NOTIFY_QUEUE] = True
        except DispatchException:
            logger.warning(f"Notification task for message {message.id} was not queued")
            outcome[NOTIFY_QUEUE] = False

        return outcome
