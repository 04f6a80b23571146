"""
Block list models.

- BlockListEntry: A sanctioned or high-risk party checked against payment
  participants. Entries are only added or deactivated, never edited away.
- BlockedPayment: Write-once audit record of a payment stopped by the
  block list before it reached the ledger.
"""

from __future__ import annotations

from django.core.validators import MaxValueValidator, MinValueValidator
from django.db import models
from django.db.models import Q
from django.utils import timezone

from core.models import BaseModel

from screening.state_machines import BlockListEntryType


class BlockListEntry(BaseModel):
    """
    A party that incoming payments must not come from.

    Matching only considers active entries, highest severity first,
    then by name.

    Fields:
        name: Party name as listed
        type: person, organization, or entity
        reason: Reason code or short description for the listing
        severity: 1 (lowest) to 10 (highest)
        is_active: Inactive entries are kept for audit but never matched
        added_by: Who listed the party
        notes: Free-form notes
    """

    name = models.CharField(
        max_length=255,
        help_text="Party name as listed",
    )
    type = models.CharField(
        max_length=20,
        choices=BlockListEntryType.choices,
        default=BlockListEntryType.PERSON,
        help_text="Kind of party",
    )
    reason = models.CharField(
        max_length=500,
        help_text="Why the party is listed",
    )
    severity = models.PositiveSmallIntegerField(
        default=8,
        validators=[MinValueValidator(1), MaxValueValidator(10)],
        help_text="Severity from 1 (lowest) to 10 (highest)",
    )
    is_active = models.BooleanField(
        default=True,
        db_index=True,
        help_text="Only active entries are matched",
    )
    added_by = models.CharField(
        max_length=255,
        default="ADMIN",
        help_text="Who added the entry",
    )
    notes = models.TextField(
        blank=True,
        help_text="Free-form notes",
    )

    class Meta:
        ordering = ["-severity", "name"]
        verbose_name_plural = "block list entries"
        constraints = [
            models.CheckConstraint(
                condition=Q(severity__gte=1) & Q(severity__lte=10),
                name="block_list_entry_severity_range",
            ),
        ]
        indexes = [
            models.Index(
                fields=["is_active", "-severity", "name"],
                name="blocklist_active_sev_idx",
            ),
        ]

    def __str__(self) -> str:
        return f"{self.name} (severity {self.severity})"


class BlockedPayment(BaseModel):
    """
    Audit record of a payment stopped by block-list screening.

    Created in its own unit of work after the intake transaction has been
    rolled back, so a blocked payment never touches any balance.

    Fields:
        webhook: Originating webhook record
        account: Account the payment was destined for
        matched_entry: Block list entry that matched
        candidate_name: Name that was screened
        amount / currency: Payment amount as received
        blocked_reason: Human-readable match description
        blocked_at: When the payment was blocked
    """

    webhook = models.OneToOneField(
        "screening.WebhookRecord",
        on_delete=models.PROTECT,
        related_name="blocked_payment",
        help_text="Webhook record of the blocked payment",
    )
    account = models.ForeignKey(
        "screening.Account",
        on_delete=models.PROTECT,
        null=True,
        blank=True,
        related_name="blocked_payments",
        help_text="Intended destination account",
    )
    matched_entry = models.ForeignKey(
        BlockListEntry,
        on_delete=models.SET_NULL,
        null=True,
        blank=True,
        related_name="blocked_payments",
        help_text="Block list entry that matched",
    )
    candidate_name = models.CharField(
        max_length=255,
        blank=True,
        help_text="Name screened against the block list",
    )
    amount = models.DecimalField(
        max_digits=18,
        decimal_places=2,
        help_text="Payment amount as received",
    )
    currency = models.CharField(
        max_length=10,
        help_text="Payment currency as received",
    )
    blocked_reason = models.CharField(
        max_length=1000,
        help_text="Why the payment was blocked",
    )
    blocked_at = models.DateTimeField(
        default=timezone.now,
        db_index=True,
        help_text="When the payment was blocked",
    )

    class Meta:
        ordering = ["-blocked_at"]

    def __str__(self) -> str:
        return f"Blocked {self.amount} {self.currency}: {self.blocked_reason}"
