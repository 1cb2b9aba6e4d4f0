"""
Celery tasks package for Trailbook.

- Chat pipeline consumers (file upload completion, push notifications)
- Periodic trail connection re-evaluation
"""

from .celery_app import BaseTask, celery_app
from .chat_tasks import process_file_upload, send_notification
from .trail_connection_tasks import reevaluate_trail_connections

__all__ = [
    "BaseTask",
    "celery_app",
    "process_file_upload",
    "reevaluate_trail_connections",
    "send_notification",
]
