"""Periodic maintenance of trail connections."""

from __future__ import annotations

from typing import Dict

from celery.utils.log import get_task_logger

from ..core.constants import REEVALUATE_TRAILS_TASK
from ..database import session_scope
from ..services.trail_connection_service import TrailConnectionService
from .celery_app import celery_app

logger = get_task_logger(__name__)


@celery_app.task(name=REEVALUATE_TRAILS_TASK, max_retries=0)
def reevaluate_trail_connections() -> Dict[str, int]:
    """Re-run eligibility for every active trail connection."""
    with session_scope() as session:
        summary = TrailConnectionService(session).reevaluate_all()
    logger.info(
        "Re-evaluated %s trail connections (%s deactivated, %s failed)",
        summary["checked"],
        summary["deactivated"],
        summary["failed"],
    )
    return summary
