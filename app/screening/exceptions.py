"""
Screening-specific exceptions.

Exception Hierarchy:
    ScreeningError (base)
    ├── InvalidWebhookError - Malformed rail notification (400)
    ├── WebhookSignatureError - Missing or bad rail signature (400)
    ├── PendingPaymentNotFoundError - No such pending payment (404)
    ├── PaymentAlreadyProcessedError - Payment no longer PENDING (409)
    ├── ScreeningUnavailableError - Block list store down, fail-closed (503)
    ├── ExchangeRateUnavailableError - Rate source down, fail-closed (503)
    ├── PaymentBlockedError - Block list match; rolls back intake
    └── ReversalError - Payment rail rejected a reversal step

Usage:
    from screening.exceptions import PaymentAlreadyProcessedError

    raise PaymentAlreadyProcessedError(
        "Pending payment has already been processed",
        details={"payment_id": str(payment_id), "status": payment.status},
    )
"""

from __future__ import annotations

from typing import TYPE_CHECKING

from core.exceptions import (
    BaseApplicationError,
    ConflictError,
    ExternalServiceError,
    NotFoundError,
    ValidationError,
)

if TYPE_CHECKING:
    from screening.services.block_list_service import MatchResult


class ScreeningError(BaseApplicationError):
    """Base exception for screening operations."""

    default_error_code: str = "SCREENING_ERROR"


class InvalidWebhookError(ScreeningError, ValidationError):
    """Raised when a rail notification lacks id, type or data."""

    default_error_code: str = "INVALID_WEBHOOK"


class WebhookSignatureError(ScreeningError, ValidationError):
    """Raised when a rail notification signature is missing or wrong."""

    default_error_code: str = "INVALID_WEBHOOK_SIGNATURE"


class PendingPaymentNotFoundError(ScreeningError, NotFoundError):
    """Raised when a decision targets a payment that does not exist."""

    default_error_code: str = "PENDING_PAYMENT_NOT_FOUND"


class PaymentAlreadyProcessedError(ScreeningError, ConflictError):
    """
    Raised when a decision targets a payment that is no longer PENDING.

    This is how the losing side of two concurrent decisions fails.
    """

    default_error_code: str = "PAYMENT_ALREADY_PROCESSED"


class ScreeningUnavailableError(ScreeningError, ExternalServiceError):
    """Raised when the block list cannot be read and screening fails closed."""

    default_error_code: str = "SCREENING_UNAVAILABLE"


class ExchangeRateUnavailableError(ScreeningError, ExternalServiceError):
    """Raised when no live rate is available and conversion fails closed."""

    default_error_code: str = "EXCHANGE_RATE_UNAVAILABLE"


class PaymentBlockedError(ScreeningError):
    """
    Raised inside the intake unit of work when the block list matches.

    Raising aborts the intake transaction so no balance changes; the
    caller then records a BlockedPayment separately.
    """

    default_error_code: str = "PAYMENT_BLOCKED"

    def __init__(self, match: MatchResult, candidate_name: str):
        self.match = match
        self.candidate_name = candidate_name
        super().__init__(
            match.reason or "Payment blocked by screening",
            details={
                "candidate_name": candidate_name,
                "matched_entry_id": match.entry.pk if match.entry else None,
            },
        )


class ReversalError(ScreeningError, ExternalServiceError):
    """Raised by the rail adapter when a reversal step fails."""

    default_error_code: str = "REVERSAL_FAILED"
