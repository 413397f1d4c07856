"""
Celery configuration for the chat backend.

Runs the periodic housekeeping tasks:
- authentication.tasks.expire_stale_presence
- chat.tasks.purge_stale_typing_states

Schedules are stored in the database by django-celery-beat (registered by
data migrations in each app). Tasks are auto-discovered from installed apps.

For more information, see:
https://docs.celeryq.dev/en/stable/django/first-steps-with-django.html
"""

import os

from celery import Celery

os.environ.setdefault("DJANGO_SETTINGS_MODULE", "config.settings")

app = Celery("config")

# All Celery settings are prefixed with CELERY_ in settings.py
app.config_from_object("django.conf:settings", namespace="CELERY")

app.autodiscover_tasks()
