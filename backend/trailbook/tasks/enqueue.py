"""
Centralized task enqueue helper.

Always use enqueue_task() instead of task.delay() or task.apply_async() so
the request id of the triggering HTTP/realtime call travels with the task.
"""

from __future__ import annotations

import logging
from typing import Any, Dict, Optional, Tuple

from celery import current_app

from ..core.request_context import get_request_id

logger = logging.getLogger(__name__)


def enqueue_task(
    task_name: str,
    args: Optional[Tuple[Any, ...]] = None,
    kwargs: Optional[Dict[str, Any]] = None,
    **options: Any,
) -> Any:
    """
    Enqueue a Celery task with request-id propagation.

    Args:
        task_name: Registered task name (e.g., "chat.process_file_upload")
        args: Positional arguments for the task
        kwargs: Keyword arguments for the task
        **options: Additional Celery apply_async options (queue, countdown, headers)

    Returns:
        AsyncResult from Celery
    """
    args = args or ()
    kwargs = kwargs or {}

    headers = options.pop("headers", None) or {}

    request_id = get_request_id()
    if request_id and request_id != "no-request":
        headers.setdefault("request_id", request_id)

    task = current_app.tasks[task_name]
    return task.apply_async(args=args, kwargs=kwargs, headers=headers, **options)
