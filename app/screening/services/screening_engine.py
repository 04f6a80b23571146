"""
Screening and ledger engine.

The engine owns the pending payment state machine:

    webhook --intake--> PENDING --approve--> APPROVED
                               \\--reject---> REJECTED (+ reversal to sender)

    webhook --intake--> BlockedPayment   (block list hit, no ledger change)

Every transition runs as one atomic unit of work under row locks. The
outbound reversal after a rejection runs only after that unit has
committed, so no ledger lock is held across a network call.

Collaborators are injected so tests can substitute fakes; production code
builds the engine with ``screening.services.get_screening_engine()``.

Usage:
    from screening.services import get_screening_engine

    engine = get_screening_engine()
    outcome = engine.intake(webhook_record)
    decision = engine.decide(payment_id, ReviewAction.REJECT, "officer", "sanctions hit")
"""

from __future__ import annotations

from dataclasses import dataclass
from decimal import ROUND_HALF_UP, Decimal
from typing import TYPE_CHECKING

from django.conf import settings
from django.db import DatabaseError, transaction

from core.services import BaseService

from screening.exceptions import (
    PaymentAlreadyProcessedError,
    PaymentBlockedError,
    PendingPaymentNotFoundError,
)
from screening.ledger import LedgerService
from screening.models import PendingPayment
from screening.services.block_list_service import BlockListService
from screening.services.currency_service import (
    PKR,
    CurrencyConversionService,
    format_currency_amount,
)
from screening.state_machines import PendingPaymentStatus, ReversalStatus, ReviewAction
from screening.webhooks.normalizer import (
    extract_candidate_name,
    resolve_sender_address,
    sender_info,
)

if TYPE_CHECKING:
    from datetime import datetime
    from typing import Any

    from screening.models import BlockedPayment, WebhookRecord
    from screening.services.block_list_service import BlockListMatcher
    from screening.services.currency_service import ConversionResult


CENTS = Decimal("0.01")
NO_SENDER_ERROR = "No sender wallet address available for reversal"


class IntakeStatus:
    PENDING = "pending"
    BLOCKED = "blocked"
    SKIPPED = "skipped"
    DUPLICATE = "duplicate"


# =============================================================================
# Outcomes
# =============================================================================


@dataclass
class IntakeOutcome:
    """Result of settling one incoming payment webhook."""

    status: str
    pending_payment: PendingPayment | None = None
    blocked_payment: BlockedPayment | None = None
    reason: str = ""

    def to_dict(self) -> dict[str, Any]:
        result: dict[str, Any] = {"status": self.status}
        if self.pending_payment is not None:
            result["pendingPaymentId"] = str(self.pending_payment.pk)
            result["riskScore"] = self.pending_payment.risk_score
        if self.blocked_payment is not None:
            result["blockedPaymentId"] = self.blocked_payment.pk
        if self.reason:
            result["reason"] = self.reason
        return result


@dataclass
class ReversalOutcome:
    """Outcome of sending a rejected payment back to its sender."""

    status: str
    amount: Decimal
    currency: str
    recipient: str = ""
    payment_id: str = ""
    error: str = ""

    @property
    def succeeded(self) -> bool:
        return self.status == ReversalStatus.COMPLETED

    def to_dict(self) -> dict[str, Any]:
        result: dict[str, Any] = {
            "status": ReversalStatus.COMPLETED if self.succeeded else ReversalStatus.FAILED,
            "amount": str(self.amount),
            "currency": self.currency,
            "recipient": self.recipient or None,
        }
        if self.succeeded:
            result["paymentId"] = self.payment_id
        else:
            result["error"] = self.error
            result["requiresManualIntervention"] = True
        return result


@dataclass
class DecisionOutcome:
    """Result of an APPROVE or REJECT decision."""

    pending_payment: PendingPayment
    action: str
    processed_at: datetime
    reversal: ReversalOutcome | None = None

    def to_dict(self) -> dict[str, Any]:
        payment = self.pending_payment
        result: dict[str, Any] = {
            "paymentId": str(payment.pk),
            "action": self.action,
            "status": payment.status,
            "screeningNotes": payment.screening_notes,
            "screenedBy": payment.screened_by,
            "processedAt": self.processed_at.isoformat(),
        }
        if self.reversal is not None:
            result["reversal"] = self.reversal.to_dict()
        return result


# =============================================================================
# Risk scoring
# =============================================================================


def heuristic_risk_score(amount: Decimal, data: dict[str, Any]) -> int:
    """
    Risk score for payments that were not currency-converted.

    Base 10; +30 above 10000, +20 above 5000, +10 above 1000; +20 when the
    paying client is missing or unknown; +15 when the description is
    urgent. Capped at 100.
    """
    score = 10

    if amount > 10000:
        score += 30
    elif amount > 5000:
        score += 20
    elif amount > 1000:
        score += 10

    client = data.get("client")
    if not client or "unknown" in str(client).lower():
        score += 20

    metadata = data.get("metadata") if isinstance(data.get("metadata"), dict) else {}
    description = metadata.get("description")
    if isinstance(description, str) and "urgent" in description.lower():
        score += 15

    return min(score, 100)


# =============================================================================
# Engine
# =============================================================================


class ScreeningEngine(BaseService):
    """
    Orchestrates intake, approval and rejection of incoming payments.

    Collaborators:
        block_list_matcher: exposes check(name) -> MatchResult
        currency_service: exposes needs_conversion, convert, calculate_conversion_risk
        reversal_client: exposes reverse(...) -> ReversalResult; must not raise
        auto_approval_limits: currency -> threshold, with "default" as fallback
    """

    def __init__(
        self,
        block_list_matcher: BlockListMatcher,
        currency_service: CurrencyConversionService,
        reversal_client: Any,
        auto_approval_limits: dict[str, Decimal] | None = None,
    ):
        self.block_list_matcher = block_list_matcher
        self.currency_service = currency_service
        self.reversal_client = reversal_client
        self.auto_approval_limits = auto_approval_limits or {
            PKR: Decimal(str(settings.AUTO_APPROVAL_LIMIT_PKR)),
            "default": Decimal(str(settings.AUTO_APPROVAL_LIMIT_DEFAULT)),
        }

    def auto_approval_limit(self, currency: str) -> Decimal:
        return self.auto_approval_limits.get(currency, self.auto_approval_limits["default"])

    # =========================================================================
    # Intake
    # =========================================================================

    def intake(self, webhook: WebhookRecord) -> IntakeOutcome:
        """
        Settle an incoming payment webhook into a PENDING payment.

        Credits the book balance, screens, converts, scores and records the
        pending payment in one unit of work. A block list hit rolls that
        unit back and writes a BlockedPayment on its own instead.

        Raises:
            ScreeningUnavailableError / ExchangeRateUnavailableError: when
                the corresponding collaborator fails closed
            LedgerError: account vanished or balance invariant violated
        """
        logger = self.get_logger()
        log_context = {
            "webhook_record_id": str(webhook.pk),
            "event_id": webhook.event_id,
            "account_id": webhook.account_id,
        }

        if webhook.account_id is None or webhook.extracted_amount is None:
            logger.info("Webhook not settled: no account or amount", extra=log_context)
            return IntakeOutcome(IntakeStatus.SKIPPED, reason="No destination account or amount")

        amount = webhook.extracted_amount.quantize(CENTS, rounding=ROUND_HALF_UP)
        currency = webhook.extracted_currency or "USD"
        if amount <= 0:
            logger.warning("Webhook not settled: non-positive amount", extra=log_context)
            return IntakeOutcome(IntakeStatus.SKIPPED, reason="Non-positive amount")

        data = webhook.data
        candidate_name = extract_candidate_name(data)

        try:
            with transaction.atomic():
                account = LedgerService.lock_account(webhook.account_id)

                existing = PendingPayment.objects.filter(webhook=webhook).first()
                if existing is not None:
                    return IntakeOutcome(IntakeStatus.DUPLICATE, pending_payment=existing)

                if candidate_name:
                    match = self.block_list_matcher.check(candidate_name)
                    if match.is_blocked:
                        raise PaymentBlockedError(match, candidate_name)

                conversion = None
                final_amount, final_currency = amount, currency
                if currency != account.currency and self.currency_service.needs_conversion(
                    currency, account.currency
                ):
                    conversion = self.currency_service.convert(amount)
                    final_amount = conversion.converted_amount
                    final_currency = conversion.converted_currency

                risk_score = self._risk_score(conversion, final_amount, data)

                pending = PendingPayment.objects.create(
                    webhook=webhook,
                    account=account,
                    amount=final_amount,
                    currency=final_currency,
                    original_amount=conversion.original_amount if conversion else None,
                    original_currency=conversion.original_currency if conversion else "",
                    conversion_rate=conversion.exchange_rate if conversion else None,
                    risk_score=risk_score,
                    auto_approval_eligible=final_amount < self.auto_approval_limit(final_currency),
                    payment_reference=f"RAIL-{data.get('id') or webhook.event_id}",
                    payment_source=(
                        f"Incoming payment from wallet: {data.get('client') or 'Unknown'}"
                    ),
                    sender_info=sender_info(data),
                )

                LedgerService.credit_book_balance(
                    account,
                    final_amount,
                    final_currency,
                    pending_payment=pending,
                    reference_number=f"CREDIT-PENDING-{pending.pk}",
                    description=self._intake_description(amount, currency, conversion),
                )

        except PaymentBlockedError as blocked:
            blocked_payment = BlockListService.record_blocked_payment(
                webhook,
                blocked.match,
                blocked.candidate_name,
                amount,
                currency,
            )
            return IntakeOutcome(
                IntakeStatus.BLOCKED,
                blocked_payment=blocked_payment,
                reason=blocked.message,
            )

        logger.info(
            "Payment quarantined for screening: %s",
            format_currency_amount(pending.amount, pending.currency),
            extra={
                **log_context,
                "pending_payment_id": str(pending.pk),
                "risk_score": pending.risk_score,
                "converted": conversion is not None,
                "auto_approval_eligible": pending.auto_approval_eligible,
            },
        )
        return IntakeOutcome(IntakeStatus.PENDING, pending_payment=pending)

    def _risk_score(
        self,
        conversion: ConversionResult | None,
        final_amount: Decimal,
        data: dict[str, Any],
    ) -> int:
        if conversion is not None:
            return self.currency_service.calculate_conversion_risk(conversion.original_amount)
        return heuristic_risk_score(final_amount, data)

    @staticmethod
    def _intake_description(
        amount: Decimal, currency: str, conversion: ConversionResult | None
    ) -> str:
        if conversion is None:
            return f"Incoming payment pending screening: {format_currency_amount(amount, currency)}"
        return (
            "Incoming payment pending screening: "
            f"{format_currency_amount(conversion.original_amount, conversion.original_currency)} "
            f"converted to "
            f"{format_currency_amount(conversion.converted_amount, conversion.converted_currency)} "
            f"at {conversion.exchange_rate}"
        )

    # =========================================================================
    # Decisions
    # =========================================================================

    def decide(
        self,
        payment_id: Any,
        action: str,
        screened_by: str = "",
        notes: str = "",
    ) -> DecisionOutcome:
        if action == ReviewAction.APPROVE:
            return self.approve(payment_id, screened_by, notes)
        if action == ReviewAction.REJECT:
            return self.reject(payment_id, screened_by, notes)
        raise ValueError(f"Unknown review action: {action}")

    def approve(self, payment_id: Any, screened_by: str = "", notes: str = "") -> DecisionOutcome:
        """
        Release a PENDING payment to the account's available balance.

        Raises:
            PendingPaymentNotFoundError: No such payment
            PaymentAlreadyProcessedError: Payment already decided
        """
        with transaction.atomic():
            payment = self._lock_pending(payment_id)
            account = LedgerService.lock_account(payment.account_id)

            LedgerService.release_to_available(account, payment.amount, payment)
            payment.approve(screened_by=screened_by, notes=notes)
            payment.save()

        self.get_logger().info(
            "Pending payment approved",
            extra={
                "pending_payment_id": str(payment.pk),
                "webhook_record_id": str(payment.webhook_id),
                "account_id": payment.account_id,
                "screened_by": payment.screened_by,
            },
        )
        return DecisionOutcome(
            pending_payment=payment,
            action=ReviewAction.APPROVE,
            processed_at=payment.screened_at,
        )

    def reject(self, payment_id: Any, screened_by: str = "", notes: str = "") -> DecisionOutcome:
        """
        Reject a PENDING payment and send the funds back to the sender.

        The ledger records a settled CREDIT and an offsetting reversal DEBIT,
        and the provisional credit is marked REJECTED, all in one unit of
        work. The outbound reversal runs after commit; its failure is
        recorded on the payment and reported, never raised.

        Raises:
            PendingPaymentNotFoundError: No such payment
            PaymentAlreadyProcessedError: Payment already decided
        """
        logger = self.get_logger()

        with transaction.atomic():
            payment = self._lock_pending(payment_id)
            sender_address = resolve_sender_address(payment.webhook)
            account = LedgerService.lock_account(payment.account_id)

            LedgerService.record_settled_credit(
                account,
                payment.amount,
                payment.currency,
                pending_payment=payment,
                reference_number=f"CREDIT-{payment.webhook_id}",
                description="Payment received - to be reversed due to AML rejection",
            )
            LedgerService.record_reversal_debit(
                account,
                payment.amount,
                payment.currency,
                pending_payment=payment,
                reference_number=f"DEBIT-REVERSAL-{payment.webhook_id}",
                description="AML rejection - debit for reversal to sender",
            )
            LedgerService.reject_pending_credit(payment)

            payment.reject(screened_by=screened_by, notes=notes)
            if not sender_address:
                payment.reversal_status = ReversalStatus.NO_SENDER_INFO
                payment.reversal_error = NO_SENDER_ERROR
            payment.save()

        log_context = {
            "pending_payment_id": str(payment.pk),
            "webhook_record_id": str(payment.webhook_id),
            "account_id": payment.account_id,
            "screened_by": payment.screened_by,
        }
        logger.info("Pending payment rejected", extra=log_context)

        reversal = self._send_reversal(payment, sender_address, notes)
        if not reversal.succeeded:
            logger.error(
                "Reversal not completed, manual intervention required: %s",
                reversal.error,
                extra={**log_context, "reversal_status": reversal.status},
            )

        return DecisionOutcome(
            pending_payment=payment,
            action=ReviewAction.REJECT,
            processed_at=payment.screened_at,
            reversal=reversal,
        )

    def _send_reversal(
        self, payment: PendingPayment, sender_address: str, notes: str
    ) -> ReversalOutcome:
        if not sender_address:
            return ReversalOutcome(
                status=ReversalStatus.NO_SENDER_INFO,
                amount=payment.amount,
                currency=payment.currency,
                error=NO_SENDER_ERROR,
            )

        reason_note = f"AML Rejection Reversal: {notes}" if notes else "AML Rejection Reversal"
        try:
            result = self.reversal_client.reverse(
                sender_address=sender_address,
                amount=payment.amount,
                currency=payment.currency,
                correlation_id=str(payment.pk),
                reason_note=reason_note,
            )
        except Exception as e:
            # The rejection has committed; a misbehaving client must not undo the response
            self.get_logger().exception(
                "Reversal client raised",
                extra={"pending_payment_id": str(payment.pk)},
            )
            outcome = ReversalOutcome(
                status=ReversalStatus.FAILED,
                amount=payment.amount,
                currency=payment.currency,
                recipient=sender_address,
                error=f"Reversal client error: {type(e).__name__}",
            )
        else:
            outcome = ReversalOutcome(
                status=ReversalStatus.COMPLETED if result.success else ReversalStatus.FAILED,
                amount=payment.amount,
                currency=payment.currency,
                recipient=sender_address,
                payment_id=result.payment_id or "",
                error="" if result.success else (result.error or "Reversal failed"),
            )

        payment.reversal_status = outcome.status
        payment.reversal_payment_id = outcome.payment_id
        payment.reversal_recipient = outcome.recipient
        payment.reversal_error = outcome.error
        try:
            payment.save(
                update_fields=[
                    "reversal_status",
                    "reversal_payment_id",
                    "reversal_recipient",
                    "reversal_error",
                    "updated_at",
                ]
            )
        except DatabaseError:
            self.get_logger().exception(
                "Could not record reversal outcome",
                extra={"pending_payment_id": str(payment.pk), "reversal_status": outcome.status},
            )
        return outcome

    # =========================================================================
    # Internals
    # =========================================================================

    @staticmethod
    def _lock_pending(payment_id: Any) -> PendingPayment:
        """
        Lock a PENDING payment for the current transaction.

        The status filter is part of the locking read, so the loser of two
        concurrent decisions sees no row and gets PaymentAlreadyProcessedError.
        """
        payment = (
            PendingPayment.objects.select_for_update(of=("self",))
            .select_related("webhook")
            .filter(pk=payment_id, status=PendingPaymentStatus.PENDING)
            .first()
        )
        if payment is not None:
            return payment

        current = (
            PendingPayment.objects.filter(pk=payment_id).values_list("status", flat=True).first()
        )
        if current is None:
            raise PendingPaymentNotFoundError(
                "Pending payment not found",
                details={"payment_id": str(payment_id)},
            )
        raise PaymentAlreadyProcessedError(
            "Pending payment has already been processed",
            details={"payment_id": str(payment_id), "status": current},
        )
