# backend/trailbook/tasks/celery_app.py
"""
Celery application configuration for Trailbook.

The broker carries the chat pipeline queues. ``file-upload`` and ``notify``
are consumed by workers one message at a time with late acks; their
``.dlq`` twins are only ever published to and are inspected by operators.
"""

from typing import Any, Dict, Type, cast

from celery import Celery, Task
from celery.signals import setup_logging

from ..core.config import settings
from ..core.constants import (
    FILE_UPLOAD_QUEUE,
    FILE_UPLOAD_TASK,
    NOTIFY_QUEUE,
    NOTIFY_TASK,
)

DEFAULT_QUEUE = "celery"

# Queue configuration; only these are consumed by workers
CELERY_TASK_QUEUES: Dict[str, Dict[str, Any]] = {
    DEFAULT_QUEUE: {"exchange": DEFAULT_QUEUE, "routing_key": DEFAULT_QUEUE},
    FILE_UPLOAD_QUEUE: {"exchange": FILE_UPLOAD_QUEUE, "routing_key": FILE_UPLOAD_QUEUE},
    NOTIFY_QUEUE: {"exchange": NOTIFY_QUEUE, "routing_key": NOTIFY_QUEUE},
}


def create_celery_app() -> Celery:
    """
    Create and configure the Celery application.

    Returns:
        Celery: Configured Celery application instance
    """
    broker_url = settings.get_broker_url()

    celery_app = Celery("trailbook", broker=broker_url)

    base_config: Dict[str, Any] = {
        # Task settings
        "task_serializer": "json",
        "accept_content": ["json"],
        "result_serializer": "json",
        "timezone": "UTC",
        "enable_utc": True,
        "task_ignore_result": True,
        # One in-flight message per worker process, acked after it finishes
        "worker_prefetch_multiplier": 1,
        "task_acks_late": True,
        "task_reject_on_worker_lost": True,
        "task_default_delivery_mode": "persistent",
        "worker_max_tasks_per_child": 1000,
        "task_soft_time_limit": 60,
        "task_time_limit": 120,
        # Queues
        "task_default_queue": DEFAULT_QUEUE,
        "task_queues": CELERY_TASK_QUEUES,
        "task_create_missing_queues": True,
        "worker_hijack_root_logger": False,
        "broker_connection_retry_on_startup": True,
    }
    celery_app.conf.update(base_config)

    celery_app.conf.task_routes = {
        FILE_UPLOAD_TASK: {"queue": FILE_UPLOAD_QUEUE, "routing_key": FILE_UPLOAD_QUEUE},
        NOTIFY_TASK: {"queue": NOTIFY_QUEUE, "routing_key": NOTIFY_QUEUE},
    }

    # Force import of task modules so tasks are registered even if autodiscovery fails
    celery_app.conf.imports = (
        "trailbook.tasks.chat_tasks",
        "trailbook.tasks.trail_connection_tasks",
    )

    from .beat_schedule import get_beat_schedule

    celery_app.conf.beat_schedule = get_beat_schedule()

    return celery_app


# Disable Celery's default logging configuration
@setup_logging.connect  # type: ignore[misc]
def config_loggers(*args: Any, **kwargs: Any) -> None:
    """Configure logging to integrate with the application's logging setup."""
    import logging

    from ..core.request_context import attach_request_id_filter

    logging.basicConfig(
        level=getattr(logging, settings.log_level.upper(), logging.INFO),
        format="%(asctime)s - %(name)s - %(levelname)s - [%(request_id)s] %(message)s",
    )
    attach_request_id_filter()


celery_app = create_celery_app()


class BaseTask(Task):  # type: ignore[misc]
    """Base task that logs outcomes. Retries are owned by each task."""

    def on_failure(self, exc: Exception, task_id: str, args: Any, kwargs: Any, einfo: Any) -> None:
        import logging

        logger = logging.getLogger(__name__)
        logger.error(
            f"Task {self.name}[{task_id}] failed with exception: {exc}",
            exc_info=True,
            extra={"task_id": task_id, "task_name": self.name},
        )
        super().on_failure(exc, task_id, args, kwargs, einfo)

    def on_success(self, retval: Any, task_id: str, args: Any, kwargs: Any) -> None:
        import logging

        logger = logging.getLogger(__name__)
        logger.debug(
            f"Task {self.name}[{task_id}] completed: {retval}",
            extra={"task_id": task_id, "task_name": self.name},
        )
        super().on_success(retval, task_id, args, kwargs)


# Register BaseTask as default task base for the app
celery_app.Task = cast(Type[Task], BaseTask)
