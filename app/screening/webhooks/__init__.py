"""
Webhook handling for payment rail notifications.

This module provides the normalizer, views and handlers for payment rail
webhooks. Notifications are stored idempotently, acknowledged at once and
settled asynchronously via Celery tasks.

Usage:
    # In urls.py
    from screening.webhooks.views import rail_webhook

    urlpatterns = [
        path("webhooks/rail/", rail_webhook, name="rail_webhook"),
    ]
"""

from screening.webhooks.handlers import dispatch_webhook, register_handler
from screening.webhooks.views import rail_webhook

__all__ = [
    "dispatch_webhook",
    "register_handler",
    "rail_webhook",
]
