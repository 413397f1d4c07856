"""
Add Celery Beat schedule for chat maintenance tasks.

Creates a periodic task that deletes typing states whose heartbeat has
expired, so abrupt disconnects do not leave users "typing" forever.
"""

from django.db import migrations


def create_periodic_tasks(apps, schema_editor):
    """Create periodic task for typing state cleanup."""
    IntervalSchedule = apps.get_model("django_celery_beat", "IntervalSchedule")
    PeriodicTask = apps.get_model("django_celery_beat", "PeriodicTask")

    # Every 1 minute
    schedule_1min, _ = IntervalSchedule.objects.get_or_create(
        every=1,
        period="minutes",
    )

    PeriodicTask.objects.get_or_create(
        name="Chat: Purge Stale Typing States",
        defaults={
            "task": "chat.tasks.purge_stale_typing_states",
            "interval": schedule_1min,
            "enabled": True,
            "description": (
                "Deletes typing indicators whose heartbeat is older than the "
                "typing TTL. Reads already ignore them; this keeps the table small."
            ),
        },
    )


def remove_periodic_tasks(apps, schema_editor):
    """Remove the chat periodic task on migration rollback."""
    PeriodicTask = apps.get_model("django_celery_beat", "PeriodicTask")
    PeriodicTask.objects.filter(name="Chat: Purge Stale Typing States").delete()


class Migration(migrations.Migration):
    dependencies = [
        ("chat", "0001_initial"),
        ("django_celery_beat", "0019_alter_periodictasks_options"),
    ]

    operations = [
        migrations.RunPython(create_periodic_tasks, remove_periodic_tasks),
    ]
