"""
State machine enums and helpers for screening models.

This module defines the state enums used by screening models with django-fsm.
"""

from screening.state_machines.states import (
    BlockListEntryType,
    PendingPaymentStatus,
    ReversalStatus,
    ReviewAction,
    RiskLevel,
    WebhookRecordStatus,
)

__all__ = [
    "BlockListEntryType",
    "PendingPaymentStatus",
    "ReversalStatus",
    "ReviewAction",
    "RiskLevel",
    "WebhookRecordStatus",
]
