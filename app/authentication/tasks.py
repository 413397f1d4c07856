"""
Celery tasks for the user directory.

Scheduled via django-celery-beat (see migrations/0002_presence_beat_schedule.py):
- expire_stale_presence: every minute

Usage:
    from authentication.tasks import expire_stale_presence
    expire_stale_presence.delay()
"""

import logging

from celery import shared_task

logger = logging.getLogger(__name__)


@shared_task
def expire_stale_presence() -> int:
    """
    Mark users offline whose presence heartbeat went stale.

    Returns:
        Number of users marked offline
    """
    from authentication.services import UserDirectoryService

    count = UserDirectoryService.expire_stale_presence()
    logger.debug(f"Presence expiry run complete ({count} users marked offline)")
    return count
