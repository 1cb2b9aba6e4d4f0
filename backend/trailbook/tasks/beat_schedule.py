# backend/trailbook/tasks/beat_schedule.py
"""Celery Beat schedule for Trailbook."""

from datetime import timedelta
from typing import Any, Dict

from ..core.config import settings
from ..core.constants import REEVALUATE_TRAILS_TASK


def get_beat_schedule() -> Dict[str, Dict[str, Any]]:
    return {
        # Deactivate trail connections whose evidence no longer holds
        "reevaluate-trail-connections": {
            "task": REEVALUATE_TRAILS_TASK,
            "schedule": timedelta(minutes=settings.trail_reevaluation_interval_minutes),
            "options": {"queue": "celery"},
        },
    }
