"""
Celery configuration for the screening service.

Celery runs the asynchronous half of webhook intake:
- Settlement of stored webhook records (screening.tasks.process_webhook_record)
- Periodic sweep of records stuck in processing (cleanup_stuck_webhooks),
  scheduled through django-celery-beat

Tasks are auto-discovered from all installed Django apps.

For more information, see:
https://docs.celeryq.dev/en/stable/django/first-steps-with-django.html
"""

import os

from celery import Celery

# Set the default Django settings module for the Celery worker
os.environ.setdefault("DJANGO_SETTINGS_MODULE", "config.settings")

app = Celery("config")

# All Celery settings are prefixed with CELERY_ in settings.py
app.config_from_object("django.conf:settings", namespace="CELERY")

app.autodiscover_tasks()
