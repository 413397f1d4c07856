"""
Add Celery Beat schedule for presence expiry.

Creates a periodic task that marks users offline when their presence
heartbeat has gone stale.
"""

from django.db import migrations


def create_periodic_tasks(apps, schema_editor):
    """Create periodic task for presence expiry."""
    IntervalSchedule = apps.get_model("django_celery_beat", "IntervalSchedule")
    PeriodicTask = apps.get_model("django_celery_beat", "PeriodicTask")

    # Every 1 minute
    schedule_1min, _ = IntervalSchedule.objects.get_or_create(
        every=1,
        period="minutes",
    )

    PeriodicTask.objects.get_or_create(
        name="Users: Expire Stale Presence",
        defaults={
            "task": "authentication.tasks.expire_stale_presence",
            "interval": schedule_1min,
            "enabled": True,
            "description": (
                "Marks users offline whose last heartbeat is older than the "
                "presence TTL. Handles clients that disconnect without notice."
            ),
        },
    )


def remove_periodic_tasks(apps, schema_editor):
    """Remove the presence periodic task on migration rollback."""
    PeriodicTask = apps.get_model("django_celery_beat", "PeriodicTask")
    PeriodicTask.objects.filter(name="Users: Expire Stale Presence").delete()


class Migration(migrations.Migration):
    dependencies = [
        ("authentication", "0001_initial"),
        ("django_celery_beat", "0019_alter_periodictasks_options"),
    ]

    operations = [
        migrations.RunPython(create_periodic_tasks, remove_periodic_tasks),
    ]
