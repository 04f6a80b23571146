"""
State enums for screening models.

This module defines the state enums used by screening models with django-fsm.
These are Django TextChoices for database storage and admin integration.

State Machines Overview:

WebhookRecord Status (monotonic, never revisited):
    received → processing → processed
    received/processing → error

PendingPayment Status:
    PENDING → APPROVED (terminal)
    PENDING → REJECTED (terminal)
"""

from django.db import models


class WebhookRecordStatus(models.TextChoices):
    """
    Processing status of an inbound payment-rail notification.

    The record is written as RECEIVED before any side effect and moves
    forward only. PROCESSED records are never settled again.
    """

    RECEIVED = "received", "Received"
    PROCESSING = "processing", "Processing"
    PROCESSED = "processed", "Processed"
    ERROR = "error", "Error"


class PendingPaymentStatus(models.TextChoices):
    """
    Screening status of a quarantined incoming payment.

    Terminal states: APPROVED, REJECTED. A payment leaves PENDING
    exactly once.
    """

    PENDING = "PENDING", "Pending"
    APPROVED = "APPROVED", "Approved"
    REJECTED = "REJECTED", "Rejected"


class ReversalStatus(models.TextChoices):
    """Outcome of re-originating funds to the sender after a rejection."""

    COMPLETED = "COMPLETED", "Completed"
    FAILED = "FAILED", "Failed"
    NO_SENDER_INFO = "NO_SENDER_INFO", "No Sender Info"


class ReviewAction(models.TextChoices):
    """Decisions a reviewer can take on a pending payment."""

    APPROVE = "APPROVE", "Approve"
    REJECT = "REJECT", "Reject"


class RiskLevel(models.TextChoices):
    """
    Risk bands derived from the 0-100 risk score.

    LOW: score <= 30
    MEDIUM: 30 < score <= 70
    HIGH: score > 70
    """

    LOW = "LOW", "Low"
    MEDIUM = "MEDIUM", "Medium"
    HIGH = "HIGH", "High"

    @classmethod
    def for_score(cls, score: int) -> "RiskLevel":
        if score <= 30:
            return cls.LOW
        if score <= 70:
            return cls.MEDIUM
        return cls.HIGH


class BlockListEntryType(models.TextChoices):
    """Kinds of parties that can appear on the block list."""

    PERSON = "person", "Person"
    ORGANIZATION = "organization", "Organization"
    ENTITY = "entity", "Entity"
