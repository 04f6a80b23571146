"""
Screening domain models.

This module contains all screening-related models:
- Account, Transaction: Account Store balances and the audit trail
  (defined in screening.ledger.models)
- WebhookRecord: Inbound payment-rail notification, idempotency anchor
- PendingPayment: Incoming payment quarantined for review
- BlockListEntry: Sanctioned or high-risk party
- BlockedPayment: Payment stopped by the block list
"""

from screening.ledger.models import Account, Transaction
from screening.models.block_list import BlockedPayment, BlockListEntry
from screening.models.pending_payment import PendingPayment
from screening.models.webhook_record import WebhookRecord

__all__ = [
    "Account",
    "BlockedPayment",
    "BlockListEntry",
    "PendingPayment",
    "Transaction",
    "WebhookRecord",
]
