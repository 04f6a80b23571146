"""
Serializers for the screening review API.

Provides:
- PendingPaymentQuerySerializer / PendingPaymentSerializer: Review queue
- ReviewDecisionSerializer: APPROVE / REJECT request body
- WebhookRecordQuerySerializer / WebhookRecordSerializer: Webhook history
- BlockListEntrySerializer / BlockListEntryCreateSerializer: Block list
- BlockListQuerySerializer / BlockListCheckSerializer: Block list queries
- BlockedPaymentSerializer: Blocked payment audit records
- PaginationQuerySerializer: limit/offset shared by list endpoints

Responses use camelCase keys, matching what the review console consumes.
"""

from __future__ import annotations

from rest_framework import serializers

from screening.state_machines import (
    BlockListEntryType,
    PendingPaymentStatus,
    ReversalStatus,
    ReviewAction,
    RiskLevel,
    WebhookRecordStatus,
)

MAX_PAGE_SIZE = 200


# =============================================================================
# Query Parameters
# =============================================================================


class PaginationQuerySerializer(serializers.Serializer):
    """limit/offset pagination parameters."""

    limit = serializers.IntegerField(
        required=False,
        default=50,
        min_value=1,
        max_value=MAX_PAGE_SIZE,
        help_text="Maximum number of results (default: 50)",
    )
    offset = serializers.IntegerField(
        required=False,
        default=0,
        min_value=0,
        help_text="Number of results to skip (default: 0)",
    )


class PendingPaymentQuerySerializer(PaginationQuerySerializer):
    """Filters for the pending payment review queue."""

    status = serializers.ChoiceField(
        choices=PendingPaymentStatus.choices,
        required=False,
        default=PendingPaymentStatus.PENDING,
        help_text="Screening status (default: PENDING)",
    )
    riskLevel = serializers.ChoiceField(
        choices=RiskLevel.choices,
        required=False,
        help_text="LOW (<=30), MEDIUM (31-70) or HIGH (>70)",
    )
    reversalStatus = serializers.ChoiceField(
        choices=ReversalStatus.choices,
        required=False,
        help_text="Outcome of the reversal for rejected payments",
    )


class WebhookRecordQuerySerializer(serializers.Serializer):
    """Filters for the webhook history."""

    type = serializers.CharField(
        required=False,
        max_length=100,
        help_text="Rail event type",
    )
    status = serializers.ChoiceField(
        choices=WebhookRecordStatus.choices,
        required=False,
        help_text="Processing status",
    )
    limit = serializers.IntegerField(
        required=False,
        default=50,
        min_value=1,
        max_value=MAX_PAGE_SIZE,
        help_text="Maximum number of results (default: 50)",
    )


class BlockListQuerySerializer(serializers.Serializer):
    activeOnly = serializers.BooleanField(
        required=False,
        default=True,
        help_text="Only list active entries (default: true)",
    )


# =============================================================================
# Pending Payments
# =============================================================================


class PendingPaymentSerializer(serializers.Serializer):
    """
    Read-only representation of a pending payment for reviewers.

    Joins the account identity and balances and the originating webhook
    payload so a decision can be taken from one row.
    """

    id = serializers.UUIDField(read_only=True)
    webhookId = serializers.UUIDField(source="webhook_id", read_only=True)
    accountId = serializers.IntegerField(source="account_id", read_only=True)
    accountName = serializers.CharField(source="account.name", read_only=True)
    accountEmail = serializers.CharField(source="account.email", read_only=True)
    accountIban = serializers.CharField(source="account.iban", read_only=True, allow_null=True)
    availableBalance = serializers.DecimalField(
        source="account.available_balance", max_digits=18, decimal_places=2, read_only=True
    )
    bookBalance = serializers.DecimalField(
        source="account.book_balance", max_digits=18, decimal_places=2, read_only=True
    )
    amount = serializers.DecimalField(max_digits=18, decimal_places=2, read_only=True)
    currency = serializers.CharField(read_only=True)
    originalAmount = serializers.DecimalField(
        source="original_amount", max_digits=18, decimal_places=2, read_only=True, allow_null=True
    )
    originalCurrency = serializers.CharField(source="original_currency", read_only=True)
    conversionRate = serializers.DecimalField(
        source="conversion_rate", max_digits=14, decimal_places=6, read_only=True, allow_null=True
    )
    riskScore = serializers.IntegerField(source="risk_score", read_only=True)
    riskLevel = serializers.CharField(source="risk_level", read_only=True)
    autoApprovalEligible = serializers.BooleanField(source="auto_approval_eligible", read_only=True)
    status = serializers.CharField(read_only=True)
    paymentReference = serializers.CharField(source="payment_reference", read_only=True)
    paymentSource = serializers.CharField(source="payment_source", read_only=True)
    senderInfo = serializers.JSONField(source="sender_info", read_only=True)
    screeningNotes = serializers.CharField(source="screening_notes", read_only=True)
    screenedBy = serializers.CharField(source="screened_by", read_only=True)
    screenedAt = serializers.DateTimeField(source="screened_at", read_only=True)
    reversalStatus = serializers.CharField(source="reversal_status", read_only=True)
    reversalPaymentId = serializers.CharField(source="reversal_payment_id", read_only=True)
    reversalError = serializers.CharField(source="reversal_error", read_only=True)
    requiresManualIntervention = serializers.BooleanField(
        source="requires_manual_intervention", read_only=True
    )
    webhookData = serializers.JSONField(source="webhook.data", read_only=True)
    createdAt = serializers.DateTimeField(source="created_at", read_only=True)


class ReviewDecisionSerializer(serializers.Serializer):
    """
    Reviewer decision on a pending payment.

    screenedBy defaults to the authenticated reviewer in the view.
    """

    paymentId = serializers.UUIDField(help_text="Pending payment id")
    action = serializers.ChoiceField(
        choices=ReviewAction.choices,
        help_text="APPROVE or REJECT",
    )
    screeningNotes = serializers.CharField(
        required=False,
        allow_blank=True,
        default="",
        max_length=5000,
        help_text="Reviewer notes; attached to the reversal on REJECT",
    )
    screenedBy = serializers.CharField(
        required=False,
        allow_blank=True,
        default="",
        max_length=255,
        help_text="Reviewer identifier",
    )


# =============================================================================
# Webhook Records
# =============================================================================


class WebhookRecordSerializer(serializers.Serializer):
    id = serializers.UUIDField(read_only=True)
    eventId = serializers.CharField(source="event_id", read_only=True)
    type = serializers.CharField(source="event_type", read_only=True)
    status = serializers.CharField(read_only=True)
    accountId = serializers.IntegerField(source="account_id", read_only=True, allow_null=True)
    walletAddressId = serializers.CharField(source="wallet_address_id", read_only=True)
    paymentAmount = serializers.DecimalField(
        source="extracted_amount", max_digits=30, decimal_places=9, read_only=True, allow_null=True
    )
    paymentCurrency = serializers.CharField(source="extracted_currency", read_only=True)
    forwardedBy = serializers.CharField(source="forwarded_by", read_only=True)
    forwardedAt = serializers.CharField(source="forwarded_at", read_only=True)
    originalSource = serializers.CharField(source="original_source", read_only=True)
    processedAt = serializers.DateTimeField(source="processed_at", read_only=True)
    errorMessage = serializers.CharField(source="error_message", read_only=True)
    timestamp = serializers.DateTimeField(source="created_at", read_only=True)
    data = serializers.JSONField(read_only=True)


# =============================================================================
# Block List
# =============================================================================


class BlockListEntrySerializer(serializers.Serializer):
    id = serializers.IntegerField(read_only=True)
    name = serializers.CharField(read_only=True)
    type = serializers.CharField(read_only=True)
    reason = serializers.CharField(read_only=True)
    severity = serializers.IntegerField(read_only=True)
    isActive = serializers.BooleanField(source="is_active", read_only=True)
    addedBy = serializers.CharField(source="added_by", read_only=True)
    notes = serializers.CharField(read_only=True)
    createdAt = serializers.DateTimeField(source="created_at", read_only=True)
    updatedAt = serializers.DateTimeField(source="updated_at", read_only=True)


class BlockListEntryCreateSerializer(serializers.Serializer):
    """New block list entry. name, type and reason are required."""

    name = serializers.CharField(max_length=255)
    type = serializers.ChoiceField(choices=BlockListEntryType.choices)
    reason = serializers.CharField(max_length=500)
    severity = serializers.IntegerField(
        required=False,
        default=8,
        min_value=1,
        max_value=10,
        help_text="1 (lowest) to 10 (highest), default 8",
    )
    addedBy = serializers.CharField(
        required=False,
        allow_blank=True,
        default="ADMIN",
        max_length=255,
    )
    notes = serializers.CharField(required=False, allow_blank=True, default="")

    def validate_name(self, value: str) -> str:
        value = value.strip()
        if not value:
            raise serializers.ValidationError("Name must not be blank.")
        return value


class BlockListCheckSerializer(serializers.Serializer):
    name = serializers.CharField(max_length=255, help_text="Name to screen")


class BlockedPaymentSerializer(serializers.Serializer):
    id = serializers.IntegerField(read_only=True)
    webhookId = serializers.UUIDField(source="webhook_id", read_only=True)
    accountId = serializers.IntegerField(source="account_id", read_only=True, allow_null=True)
    blockListEntryId = serializers.IntegerField(
        source="matched_entry_id", read_only=True, allow_null=True
    )
    blockedEntityName = serializers.CharField(
        source="matched_entry.name", read_only=True, allow_null=True
    )
    severity = serializers.IntegerField(
        source="matched_entry.severity", read_only=True, allow_null=True
    )
    candidateName = serializers.CharField(source="candidate_name", read_only=True)
    amount = serializers.DecimalField(max_digits=18, decimal_places=2, read_only=True)
    currency = serializers.CharField(read_only=True)
    blockedReason = serializers.CharField(source="blocked_reason", read_only=True)
    blockedAt = serializers.DateTimeField(source="blocked_at", read_only=True)
