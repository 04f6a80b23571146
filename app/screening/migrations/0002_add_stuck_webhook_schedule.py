"""
Add celery-beat schedule for sweeping stuck webhook records.

Webhook records left in ``processing`` (worker crash mid-settlement) are
moved to ``error`` for manual review. The sweep runs every 5 minutes.
"""

from django.db import migrations

TASK_NAME = "Sweep Stuck Webhook Records"


def create_periodic_task(apps, schema_editor):
    """Create the periodic task for the stuck webhook sweep."""
    IntervalSchedule = apps.get_model("django_celery_beat", "IntervalSchedule")
    PeriodicTask = apps.get_model("django_celery_beat", "PeriodicTask")

    schedule, _ = IntervalSchedule.objects.get_or_create(
        every=5,
        period="minutes",
    )

    PeriodicTask.objects.get_or_create(
        name=TASK_NAME,
        defaults={
            "task": "screening.tasks.cleanup_stuck_webhooks",
            "interval": schedule,
            "enabled": True,
            "description": (
                "Moves webhook records stuck in processing to error so they "
                "surface for manual review."
            ),
        },
    )


def remove_periodic_task(apps, schema_editor):
    """Remove the periodic task on migration rollback."""
    PeriodicTask = apps.get_model("django_celery_beat", "PeriodicTask")

    PeriodicTask.objects.filter(name=TASK_NAME).delete()


class Migration(migrations.Migration):
    dependencies = [
        ("screening", "0001_initial"),
        ("django_celery_beat", "0019_alter_periodictasks_options"),
    ]

    operations = [
        migrations.RunPython(create_periodic_task, remove_periodic_task),
    ]
