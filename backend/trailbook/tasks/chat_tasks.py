# backend/trailbook/tasks/chat_tasks.py
"""
Celery entry points for the chat pipeline.

Each task hands the raw payload and its ``x-retry-count`` header to the
matching consumer. Celery's own retry machinery is disabled here; the
consumer republishes or dead-letters instead. If that publish fails the
delivery is rejected back onto its queue.
"""

from __future__ import annotations

from functools import lru_cache
from typing import Any

from celery.app.task import Task  # noqa: F401 - used for type hints
from celery.exceptions import Reject
from celery.utils.log import get_task_logger

from ..core.constants import (
    FILE_UPLOAD_QUEUE,
    FILE_UPLOAD_TASK,
    NOTIFY_QUEUE,
    NOTIFY_TASK,
    RETRY_COUNT_HEADER,
)
from ..core.exceptions import DispatchException
from ..core.request_context import reset_request_id, set_request_id
from ..services.chat_consumers import FileUploadConsumer, NotificationConsumer
from .celery_app import celery_app

logger = get_task_logger(__name__)


@lru_cache(maxsize=1)
def get_file_upload_consumer() -> FileUploadConsumer:
    return FileUploadConsumer()


@lru_cache(maxsize=1)
def get_notification_consumer() -> NotificationConsumer:
    return NotificationConsumer()


def _header(request: Any, name: str) -> Any:
    headers = getattr(request, "headers", None) or {}
    if name in headers:
        return headers[name]
    return getattr(request, name, None)


def retry_count_from(request: Any) -> int:
    """Read ``x-retry-count`` from the delivery; missing or garbage means 0."""
    try:
        return max(int(_header(request, RETRY_COUNT_HEADER) or 0), 0)
    except (TypeError, ValueError):
        return 0


def _run(consumer: Any, request: Any, payload: Any) -> str:
    """
    Hand one delivery to ``consumer``.

    When the republish or dead-letter publish itself fails, the delivery is
    rejected with requeue so the broker keeps it instead of acking it away.
    """
    token = set_request_id(_header(request, "request_id"))
    try:
        return str(consumer.handle(payload, retry_count_from(request)))
    except DispatchException as exc:
        logger.error("Could not republish or dead-letter delivery, requeueing: %s", exc)
        raise Reject(exc, requeue=True) from exc
    finally:
        reset_request_id(token)


@celery_app.task(
    name=FILE_UPLOAD_TASK,
    bind=True,
    queue=FILE_UPLOAD_QUEUE,
    acks_late=True,
    max_retries=0,
)
def process_file_upload(self: "Task[Any, Any]", payload: Any) -> str:
    """Record attachment completion for a message."""
    outcome = _run(get_file_upload_consumer(), self.request, payload)
    logger.info("file-upload delivery %s: %s", self.request.id, outcome)
    return outcome


@celery_app.task(
    name=NOTIFY_TASK,
    bind=True,
    queue=NOTIFY_QUEUE,
    acks_late=True,
    max_retries=0,
)
def send_notification(self: "Task[Any, Any]", payload: Any) -> str:
    """Push a notification about a new message."""
    outcome = _run(get_notification_consumer(), self.request, payload)
    logger.info("notify delivery %s: %s", self.request.id, outcome)
    return outcome
