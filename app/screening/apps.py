"""
Screening app configuration.

This app provides the payment intake, AML screening and settlement-reversal
engine:
- Webhook intake from the payment rail
- Block list screening and currency conversion
- Pending payment review (approve / reject with reversal)
"""

from django.apps import AppConfig


class ScreeningConfig(AppConfig):
    """Configuration for the screening application."""

    default_auto_field = "django.db.models.BigAutoField"
    name = "screening"
    verbose_name = "Screening"
