"""
WebhookRecord model for idempotent payment-rail notification intake.

Every inbound notification is stored before any side effect. The record
is the idempotency anchor: settlement is keyed off its id, and a record
in ``processed`` state is never settled again.

Usage:
    from screening.models import WebhookRecord

    record, created = WebhookRecord.objects.get_or_create(
        event_id=notification["id"],
        defaults={"event_type": notification["type"], "payload": notification},
    )

    record.start_processing()  # received -> processing
    record.save()
    record.mark_processed()    # processing -> processed
    record.save()
"""

from __future__ import annotations

from django.db import models
from django.utils import timezone

from django_fsm import FSMField, transition

from core.models import BaseModel
from core.model_mixins import UUIDPrimaryKeyMixin

from screening.state_machines import WebhookRecordStatus


class WebhookRecord(UUIDPrimaryKeyMixin, BaseModel):
    """
    Immutable receipt of an inbound payment-rail notification.

    State Flow (monotonic):
        RECEIVED -> PROCESSING -> PROCESSED
        RECEIVED/PROCESSING -> ERROR

    Fields:
        event_id: Rail notification id (unique, idempotency key)
        event_type: Rail event type (e.g., incoming_payment.completed)
        payload: Full raw notification body
        status: Current FSM status
        account: Destination account resolved from the wallet id
        wallet_address_id: Rail wallet identifier found in the payload
        extracted_amount: Amount parsed from the payload (major units)
        extracted_currency: Asset code parsed from the payload
        forwarded_by / forwarded_at / original_source: Forwarding headers
        processed_at: When processing finished (either outcome)
        error_message: Failure details when status is ERROR
    """

    event_id = models.CharField(
        max_length=255,
        unique=True,
        help_text="Payment rail notification id",
    )
    event_type = models.CharField(
        max_length=100,
        db_index=True,
        help_text="Payment rail event type",
    )
    payload = models.JSONField(
        default=dict,
        help_text="Raw notification body",
    )
    status = FSMField(
        default=WebhookRecordStatus.RECEIVED,
        choices=WebhookRecordStatus.choices,
        db_index=True,
        protected=True,
        help_text="Processing status",
    )

    # ==========================================================================
    # Normalized fields
    # ==========================================================================

    account = models.ForeignKey(
        "screening.Account",
        on_delete=models.PROTECT,
        null=True,
        blank=True,
        related_name="webhook_records",
        help_text="Destination account resolved from the wallet id",
    )
    wallet_address_id = models.CharField(
        max_length=255,
        blank=True,
        help_text="Rail wallet identifier found in the payload",
    )
    extracted_amount = models.DecimalField(
        max_digits=30,
        decimal_places=9,
        null=True,
        blank=True,
        help_text="Payment amount in major units",
    )
    extracted_currency = models.CharField(
        max_length=10,
        blank=True,
        help_text="Payment asset code",
    )

    # ==========================================================================
    # Forwarding metadata
    # ==========================================================================

    forwarded_by = models.CharField(
        max_length=255,
        blank=True,
        help_text="Service that forwarded the notification",
    )
    forwarded_at = models.CharField(
        max_length=64,
        blank=True,
        help_text="Forwarding timestamp as sent by the forwarder",
    )
    original_source = models.CharField(
        max_length=255,
        blank=True,
        help_text="Original notification source",
    )

    # ==========================================================================
    # Processing outcome
    # ==========================================================================

    processed_at = models.DateTimeField(
        null=True,
        blank=True,
        help_text="When processing finished",
    )
    error_message = models.TextField(
        blank=True,
        help_text="Failure details",
    )

    class Meta:
        ordering = ["-created_at"]
        indexes = [
            models.Index(fields=["status", "created_at"], name="webhook_status_created_idx"),
            models.Index(fields=["event_type", "status"], name="webhook_type_status_idx"),
        ]

    def __str__(self) -> str:
        return f"{self.event_type} ({self.event_id}) [{self.status}]"

    @property
    def data(self) -> dict:
        """The ``data`` object of the notification, or an empty dict."""
        data = (self.payload or {}).get("data")
        return data if isinstance(data, dict) else {}

    @property
    def is_processed(self) -> bool:
        return self.status == WebhookRecordStatus.PROCESSED

    @property
    def is_terminal(self) -> bool:
        return self.status in (WebhookRecordStatus.PROCESSED, WebhookRecordStatus.ERROR)

    # ==========================================================================
    # State transitions
    # ==========================================================================

    @transition(
        field=status,
        source=WebhookRecordStatus.RECEIVED,
        target=WebhookRecordStatus.PROCESSING,
    )
    def start_processing(self):
        """Transition: RECEIVED -> PROCESSING"""

    @transition(
        field=status,
        source=WebhookRecordStatus.PROCESSING,
        target=WebhookRecordStatus.PROCESSED,
    )
    def mark_processed(self):
        """Transition: PROCESSING -> PROCESSED"""
        self.processed_at = timezone.now()

    @transition(
        field=status,
        source=[WebhookRecordStatus.RECEIVED, WebhookRecordStatus.PROCESSING],
        target=WebhookRecordStatus.ERROR,
    )
    def mark_error(self, error_message: str):
        """
        Record a processing failure.

        Transition: RECEIVED/PROCESSING -> ERROR
        """
        self.error_message = error_message[:2000]
        self.processed_at = timezone.now()
