"""
PendingPayment model: an incoming payment quarantined for AML review.

A PendingPayment is created exactly once per qualifying webhook, after the
book balance has been provisionally credited. It leaves PENDING exactly
once, to APPROVED or REJECTED, and is not mutated by screening afterwards
apart from recording the outcome of the outbound reversal.

Usage:
    from screening.models import PendingPayment

    payment = PendingPayment.objects.select_for_update().get(
        pk=payment_id, status=PendingPaymentStatus.PENDING
    )
    payment.approve(screened_by="officer@bank", notes="Verified sender")
    payment.save()
"""

from __future__ import annotations

from django.core.validators import MaxValueValidator, MinValueValidator
from django.db import models
from django.db.models import Q
from django.utils import timezone

from django_fsm import FSMField, transition

from core.models import BaseModel
from core.model_mixins import UUIDPrimaryKeyMixin

from screening.state_machines import PendingPaymentStatus, ReversalStatus, RiskLevel


class PendingPayment(UUIDPrimaryKeyMixin, BaseModel):
    """
    An incoming payment held in quarantine until a reviewer decides.

    State Flow:
        PENDING -> APPROVED (terminal)
        PENDING -> REJECTED (terminal)

    Fields:
        webhook: Originating webhook record (one pending payment per webhook)
        account: Credited account
        amount / currency: Amount credited to the book balance
        original_amount / original_currency / conversion_rate: Set when
            the payment was converted into the account currency
        risk_score: 0-100 risk score
        auto_approval_eligible: Below the currency-specific threshold
        status: Current FSM status
        payment_reference / payment_source / sender_info: Rail context
        screening_notes / screened_by / screened_at: Reviewer decision
        reversal_*: Outcome of the outbound reversal after rejection
    """

    # ==========================================================================
    # Relationships
    # ==========================================================================

    webhook = models.OneToOneField(
        "screening.WebhookRecord",
        on_delete=models.PROTECT,
        related_name="pending_payment",
        help_text="Webhook record that produced this payment",
    )
    account = models.ForeignKey(
        "screening.Account",
        on_delete=models.PROTECT,
        related_name="pending_payments",
        help_text="Account whose book balance was credited",
    )

    # ==========================================================================
    # Amounts
    # ==========================================================================

    amount = models.DecimalField(
        max_digits=18,
        decimal_places=2,
        help_text="Amount credited, in the account currency after conversion",
    )
    currency = models.CharField(
        max_length=3,
        help_text="ISO 4217 currency of amount",
    )
    original_amount = models.DecimalField(
        max_digits=18,
        decimal_places=2,
        null=True,
        blank=True,
        help_text="Amount as sent, before conversion",
    )
    original_currency = models.CharField(
        max_length=3,
        blank=True,
        help_text="Currency as sent, before conversion",
    )
    conversion_rate = models.DecimalField(
        max_digits=14,
        decimal_places=6,
        null=True,
        blank=True,
        help_text="Exchange rate applied during conversion",
    )

    # ==========================================================================
    # Screening
    # ==========================================================================

    risk_score = models.PositiveSmallIntegerField(
        validators=[MinValueValidator(0), MaxValueValidator(100)],
        db_index=True,
        help_text="Risk score from 0 (lowest) to 100 (highest)",
    )
    auto_approval_eligible = models.BooleanField(
        default=False,
        help_text="Below the auto-approval threshold for its currency",
    )
    status = FSMField(
        default=PendingPaymentStatus.PENDING,
        choices=PendingPaymentStatus.choices,
        db_index=True,
        protected=True,
        help_text="Screening status",
    )
    payment_reference = models.CharField(
        max_length=255,
        blank=True,
        help_text="Reference derived from the rail payment id",
    )
    payment_source = models.CharField(
        max_length=500,
        blank=True,
        help_text="Human-readable description of the paying client",
    )
    sender_info = models.JSONField(
        default=dict,
        blank=True,
        help_text="Sender wallet, client and metadata from the notification",
    )
    screening_notes = models.TextField(
        blank=True,
        help_text="Reviewer notes",
    )
    screened_by = models.CharField(
        max_length=255,
        blank=True,
        help_text="Reviewer identifier",
    )
    screened_at = models.DateTimeField(
        null=True,
        blank=True,
        help_text="When the decision was taken",
    )

    # ==========================================================================
    # Reversal outcome (rejections only)
    # ==========================================================================

    reversal_status = models.CharField(
        max_length=20,
        choices=ReversalStatus.choices,
        blank=True,
        db_index=True,
        help_text="Outcome of the outbound reversal",
    )
    reversal_payment_id = models.CharField(
        max_length=255,
        blank=True,
        help_text="Rail payment id of the reversal",
    )
    reversal_recipient = models.CharField(
        max_length=500,
        blank=True,
        help_text="Sender wallet address the reversal was sent to",
    )
    reversal_error = models.TextField(
        blank=True,
        help_text="Why the reversal failed",
    )

    class Meta:
        ordering = ["-created_at"]
        constraints = [
            models.CheckConstraint(
                condition=Q(risk_score__gte=0) & Q(risk_score__lte=100),
                name="pending_payment_risk_score_range",
            ),
        ]
        indexes = [
            models.Index(fields=["status", "risk_score"], name="pending_status_risk_idx"),
            models.Index(fields=["account", "status"], name="pending_account_status_idx"),
        ]

    def __str__(self) -> str:
        return f"PendingPayment {self.amount} {self.currency} [{self.status}]"

    # ==========================================================================
    # Properties
    # ==========================================================================

    @property
    def risk_level(self) -> RiskLevel:
        return RiskLevel.for_score(self.risk_score)

    @property
    def is_terminal(self) -> bool:
        return self.status != PendingPaymentStatus.PENDING

    @property
    def was_converted(self) -> bool:
        return self.original_amount is not None

    @property
    def requires_manual_intervention(self) -> bool:
        """Rejected payments whose funds were not sent back to the sender."""
        return self.status == PendingPaymentStatus.REJECTED and self.reversal_status in (
            ReversalStatus.FAILED,
            ReversalStatus.NO_SENDER_INFO,
        )

    # ==========================================================================
    # State transitions
    # ==========================================================================

    @transition(
        field=status,
        source=PendingPaymentStatus.PENDING,
        target=PendingPaymentStatus.APPROVED,
    )
    def approve(self, screened_by: str = "", notes: str = ""):
        """
        Release the payment to the account holder.

        Transition: PENDING -> APPROVED
        """
        self._record_decision(screened_by, notes)

    @transition(
        field=status,
        source=PendingPaymentStatus.PENDING,
        target=PendingPaymentStatus.REJECTED,
    )
    def reject(self, screened_by: str = "", notes: str = ""):
        """
        Refuse the payment; funds are re-originated to the sender.

        Transition: PENDING -> REJECTED
        """
        self._record_decision(screened_by, notes)

    def _record_decision(self, screened_by: str, notes: str) -> None:
        self.screened_by = screened_by or ""
        self.screening_notes = notes or ""
        self.screened_at = timezone.now()
