"""
Celery tasks for chat app.

Scheduled via django-celery-beat (see migrations/0002_typing_beat_schedule.py):
- purge_stale_typing_states: every minute

Related files:
    - services.py: TypingService

Usage:
    from chat.tasks import purge_stale_typing_states

    purge_stale_typing_states.delay()
"""

import logging

from celery import shared_task

logger = logging.getLogger(__name__)


@shared_task
def purge_stale_typing_states() -> int:
    """
    Delete typing states whose heartbeat expired.

    Reads already ignore expired states; this keeps the table from
    accumulating rows left behind by clients that disconnected abruptly.

    Returns:
        Number of typing states deleted
    """
    from chat.services import TypingService

    count = TypingService.purge_stale()
    logger.debug(f"Typing purge complete ({count} states deleted)")
    return count
