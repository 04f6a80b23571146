"""
Webhook event handlers for payment rail notifications.

This module provides a handler registry and implementations for
processing different payment rail event types. Only completed incoming
payments settle; the other known rail events are acknowledged and logged.

Usage:
    from screening.webhooks.handlers import dispatch_webhook, register_handler

    # Register a custom handler
    @register_handler("custom.event")
    def handle_custom_event(webhook_record: WebhookRecord) -> ServiceResult:
        ...

    # Dispatch a record to its handler
    result = dispatch_webhook(webhook_record)
"""

from __future__ import annotations

import logging
from typing import Callable

from core.services import ServiceResult

from screening.models import WebhookRecord


logger = logging.getLogger(__name__)


INCOMING_PAYMENT_COMPLETED = "incoming_payment.completed"

# Known rail events that need no settlement
INFORMATIONAL_EVENT_TYPES = (
    "incoming_payment.created",
    "incoming_payment.expired",
    "outgoing_payment.created",
    "outgoing_payment.completed",
    "outgoing_payment.failed",
    "wallet_address.not_found",
    "wallet_address.web_monetization",
    "asset.liquidity_low",
    "peer.liquidity_low",
)


# =============================================================================
# Handler Registry
# =============================================================================


# Maps event type strings to handler functions
WEBHOOK_HANDLERS: dict[str, Callable[[WebhookRecord], ServiceResult]] = {}


def register_handler(event_type: str) -> Callable:
    """
    Decorator to register a webhook event handler.

    Args:
        event_type: The rail event type (e.g., "incoming_payment.completed")
    """

    def decorator(func: Callable[[WebhookRecord], ServiceResult]) -> Callable:
        WEBHOOK_HANDLERS[event_type] = func
        logger.debug("Registered webhook handler for %s", event_type)
        return func

    return decorator


def dispatch_webhook(webhook_record: WebhookRecord) -> ServiceResult:
    """
    Dispatch a webhook record to the appropriate handler.

    If no handler is registered, logs and returns success so unknown
    event types are marked processed rather than failing.
    """
    handler = WEBHOOK_HANDLERS.get(webhook_record.event_type)

    if not handler:
        logger.info(
            "No handler registered for event type: %s",
            webhook_record.event_type,
            extra={"event_id": webhook_record.event_id},
        )
        return ServiceResult.success({"status": "ignored"})

    logger.info(
        "Dispatching %s to handler",
        webhook_record.event_type,
        extra={"event_id": webhook_record.event_id},
    )

    return handler(webhook_record)


# =============================================================================
# Incoming Payment Handlers
# =============================================================================


@register_handler(INCOMING_PAYMENT_COMPLETED)
def handle_incoming_payment_completed(webhook_record: WebhookRecord) -> ServiceResult:
    """
    Settle a completed incoming payment into quarantine.

    Credits the book balance and creates a PENDING payment, or records a
    BlockedPayment when the block list matches. Webhooks with no resolvable
    account or amount are stored but not settled.
    """
    from screening.services import get_screening_engine

    outcome = get_screening_engine().intake(webhook_record)
    return ServiceResult.success(outcome.to_dict())


def handle_informational_event(webhook_record: WebhookRecord) -> ServiceResult:
    """Acknowledge a rail event that carries nothing to settle."""
    logger.info(
        "Rail event acknowledged: %s",
        webhook_record.event_type,
        extra={
            "event_id": webhook_record.event_id,
            "wallet_address_id": webhook_record.wallet_address_id,
        },
    )
    return ServiceResult.success({"status": "acknowledged"})


for _event_type in INFORMATIONAL_EVENT_TYPES:
    register_handler(_event_type)(handle_informational_event)
