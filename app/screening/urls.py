"""
URL configuration for the screening app.

Routes:
    - POST webhooks/rail/ - Payment rail webhook endpoint
    - GET  webhooks/ - Webhook history
    - GET  pending-payments/ - Review queue
    - POST pending-payments/decision/ - APPROVE / REJECT
    - GET/POST block-list/ - List / add block list entries
    - POST block-list/<id>/deactivate/ - Deactivate an entry
    - POST block-list/check/ - Screen a name
    - GET  blocked-payments/ - Blocked payments
    - GET  blocked-payments/stats/ - Blocked payment stats

All routes are prefixed with /api/v1/screening/ when included in the main URLconf.
"""

from django.urls import path

from screening import views
from screening.webhooks.views import rail_webhook

app_name = "screening"

urlpatterns = [
    # Webhook endpoints
    path("webhooks/rail/", rail_webhook, name="rail_webhook"),
    path("webhooks/", views.WebhookRecordListView.as_view(), name="webhook-list"),
    # Review
    path(
        "pending-payments/",
        views.PendingPaymentListView.as_view(),
        name="pending-payment-list",
    ),
    path(
        "pending-payments/decision/",
        views.ReviewDecisionView.as_view(),
        name="pending-payment-decision",
    ),
    # Block list
    path("block-list/", views.BlockListView.as_view(), name="block-list"),
    path("block-list/check/", views.BlockListCheckView.as_view(), name="block-list-check"),
    path(
        "block-list/<int:entry_id>/deactivate/",
        views.BlockListDeactivateView.as_view(),
        name="block-list-deactivate",
    ),
    # Blocked payments
    path(
        "blocked-payments/",
        views.BlockedPaymentListView.as_view(),
        name="blocked-payment-list",
    ),
    path(
        "blocked-payments/stats/",
        views.BlockedPaymentStatsView.as_view(),
        name="blocked-payment-stats",
    ),
]
