"""
Payment rail adapter for outbound reversals and webhook verification.

This module provides the PaymentRailAdapter class which encapsulates all
calls to the payment rail's GraphQL admin API. Reversing a rejected
payment is a three-step sequence on the rail:

    1. createReceiver        - incoming payment on the sender's wallet
    2. createQuote           - quote from our reversal wallet to that receiver
    3. createOutgoingPayment - send the quoted payment

Features:
- Configurable timeouts on all API calls
- Idempotency keys derived from the pending payment id, so a retried
  reversal never sends funds twice
- Structured logging with timing metrics
- reverse() never raises; failures come back as ReversalResult.success=False

Configuration (via settings):
- PAYMENT_RAIL_GRAPHQL_URL: GraphQL admin endpoint
- PAYMENT_RAIL_API_TOKEN: Bearer token for the admin API
- PAYMENT_RAIL_REVERSAL_WALLET_ID: Wallet address id funds are sent from
- PAYMENT_RAIL_ASSET_SCALE: Asset scale for minor units (default: 2)
- PAYMENT_RAIL_TIMEOUT_SECONDS: API call timeout (default: 15)
- PAYMENT_RAIL_WEBHOOK_SECRET: Webhook signing secret (empty disables checks)

Usage:
    from screening.adapters import PaymentRailAdapter

    result = PaymentRailAdapter.reverse(
        sender_address="https://wallet.example/alice",
        amount=Decimal("1392.50"),
        currency="PKR",
        correlation_id=str(pending_payment.id),
        reason_note="AML Rejection Reversal: sanctions hit",
    )
    if not result.success:
        ...
"""

from __future__ import annotations

import hashlib
import hmac
import logging
import re
import time
import uuid
from dataclasses import dataclass, field
from decimal import ROUND_HALF_UP, Decimal
from typing import TYPE_CHECKING

import requests
from django.conf import settings

from screening.exceptions import ReversalError, WebhookSignatureError

if TYPE_CHECKING:
    from typing import Any


SIGNATURE_HEADER = "Rafiki-Signature"
SIGNATURE_VERSION = "v1"
HEX_DIGEST_RE = re.compile(r"[0-9a-fA-F]{64}")
REVERSAL_REASON = "AML_REJECTION"


# =============================================================================
# Data Types
# =============================================================================


@dataclass
class ReversalResult:
    """
    Outcome of re-originating funds to a sender.

    Attributes:
        success: Whether the outgoing payment was created on the rail
        payment_id: Rail id of the outgoing payment (success only)
        error: Why the reversal failed (failure only)
        raw_response: Outgoing payment object as returned by the rail
    """

    success: bool
    payment_id: str | None = None
    error: str | None = None
    raw_response: dict[str, Any] = field(default_factory=dict)


# =============================================================================
# Idempotency Key Generation
# =============================================================================


class IdempotencyKeyGenerator:
    """
    Generate idempotency keys for payment rail mutations.

    Format: "{operation}:{entity_id}:{attempt}:{hash}"

    The rail deduplicates mutations carrying the same key, so the same
    pending payment always produces the same keys.

    Example:
        key = IdempotencyKeyGenerator.generate(
            operation="create_receiver",
            entity_id=pending_payment.id,
        )
        # Result: "create_receiver:550e8400-e29b-41d4-a716-446655440000:1:a1b2c3d4"
    """

    @staticmethod
    def generate(
        operation: str,
        entity_id: uuid.UUID | str,
        attempt: int = 1,
    ) -> str:
        entity_str = str(entity_id)
        hash_input = f"{operation}:{entity_str}:{attempt}:{settings.SECRET_KEY}"
        short_hash = hashlib.sha256(hash_input.encode()).hexdigest()[:8]

        return f"{operation}:{entity_str}:{attempt}:{short_hash}"


def to_minor_units(amount: Decimal, asset_scale: int) -> int:
    """Convert a major-unit amount to rail minor units, rounding half-up."""
    scaled = Decimal(str(amount)).scaleb(asset_scale)
    return int(scaled.quantize(Decimal("1"), rounding=ROUND_HALF_UP))


# =============================================================================
# GraphQL Documents
# =============================================================================


CREATE_RECEIVER_MUTATION = """
mutation CreateReceiver($input: CreateReceiverInput!) {
  createReceiver(input: $input) {
    receiver {
      id
      walletAddressUrl
      incomingAmount { assetCode assetScale value }
    }
  }
}
"""

CREATE_QUOTE_MUTATION = """
mutation CreateQuote($input: CreateQuoteInput!) {
  createQuote(input: $input) {
    quote {
      id
      receiver
      debitAmount { assetCode assetScale value }
      receiveAmount { assetCode assetScale value }
    }
  }
}
"""

CREATE_OUTGOING_PAYMENT_MUTATION = """
mutation CreateOutgoingPayment($input: CreateOutgoingPaymentInput!) {
  createOutgoingPayment(input: $input) {
    payment {
      id
      state
      receiver
      metadata
    }
  }
}
"""


# =============================================================================
# Payment Rail Adapter
# =============================================================================


class PaymentRailAdapter:
    """
    Adapter for payment rail API operations.

    All methods are classmethods - no instance state is maintained.
    Thread-safe for use from Celery workers.
    """

    @classmethod
    def get_logger(cls) -> logging.Logger:
        """Get logger for this adapter."""
        return logging.getLogger(f"{cls.__module__}.{cls.__name__}")

    # =========================================================================
    # Reversal
    # =========================================================================

    @classmethod
    def reverse(
        cls,
        sender_address: str,
        amount: Decimal,
        currency: str,
        correlation_id: str,
        reason_note: str = "",
    ) -> ReversalResult:
        """
        Send a rejected payment's funds back to the sender's wallet.

        Args:
            sender_address: Sender wallet address URL
            amount: Amount to return, in major units
            currency: Asset code of the amount
            correlation_id: Pending payment id; seeds the idempotency keys
            reason_note: Free-text description attached to the payment

        Returns:
            ReversalResult. Never raises.
        """
        logger = cls.get_logger()
        wallet_id = settings.PAYMENT_RAIL_REVERSAL_WALLET_ID
        asset_scale = settings.PAYMENT_RAIL_ASSET_SCALE

        log_context = {
            "operation": "reverse_payment",
            "correlation_id": correlation_id,
            "amount": str(amount),
            "currency": currency,
            "recipient": sender_address,
        }

        start_time = time.time()
        logger.info("Starting payment rail reversal", extra=log_context)

        metadata = {
            "description": reason_note,
            "originalPaymentId": correlation_id,
            "reversalReason": REVERSAL_REASON,
        }

        try:
            if not settings.PAYMENT_RAIL_GRAPHQL_URL or not wallet_id:
                raise ReversalError("Payment rail is not configured for reversals")

            receiver = cls._execute(
                CREATE_RECEIVER_MUTATION,
                {
                    "walletAddressUrl": sender_address,
                    "incomingAmount": {
                        "assetCode": currency,
                        "assetScale": asset_scale,
                        "value": str(to_minor_units(amount, asset_scale)),
                    },
                    "metadata": metadata,
                    "idempotencyKey": IdempotencyKeyGenerator.generate(
                        "create_receiver", correlation_id
                    ),
                },
                operation="createReceiver",
                result_key="receiver",
            )

            quote = cls._execute(
                CREATE_QUOTE_MUTATION,
                {
                    "walletAddressId": wallet_id,
                    "receiver": receiver["id"],
                    "idempotencyKey": IdempotencyKeyGenerator.generate(
                        "create_quote", correlation_id
                    ),
                },
                operation="createQuote",
                result_key="quote",
            )

            payment = cls._execute(
                CREATE_OUTGOING_PAYMENT_MUTATION,
                {
                    "walletAddressId": wallet_id,
                    "quoteId": quote["id"],
                    "metadata": metadata,
                    "idempotencyKey": IdempotencyKeyGenerator.generate(
                        "create_outgoing_payment", correlation_id
                    ),
                },
                operation="createOutgoingPayment",
                result_key="payment",
            )

        except ReversalError as e:
            logger.error(
                "Payment rail reversal failed",
                extra={
                    **log_context,
                    "error": e.message,
                    "duration_ms": (time.time() - start_time) * 1000,
                },
            )
            return ReversalResult(success=False, error=e.message)

        except requests.RequestException as e:
            logger.error(
                "Payment rail unreachable during reversal",
                extra={
                    **log_context,
                    "error": f"{type(e).__name__}: {e}",
                    "duration_ms": (time.time() - start_time) * 1000,
                },
            )
            return ReversalResult(
                success=False, error=f"Payment rail unreachable: {type(e).__name__}"
            )

        logger.info(
            "Payment rail reversal completed",
            extra={
                **log_context,
                "reversal_payment_id": payment["id"],
                "duration_ms": (time.time() - start_time) * 1000,
            },
        )
        return ReversalResult(success=True, payment_id=payment["id"], raw_response=payment)

    @classmethod
    def _execute(
        cls,
        query: str,
        input_data: dict[str, Any],
        operation: str,
        result_key: str,
    ) -> dict[str, Any]:
        """
        Run one GraphQL mutation and return the object under result_key.

        Raises:
            ReversalError: GraphQL errors or a missing result object
            requests.RequestException: Transport or HTTP status failures
        """
        headers = {"Content-Type": "application/json"}
        if settings.PAYMENT_RAIL_API_TOKEN:
            headers["Authorization"] = f"Bearer {settings.PAYMENT_RAIL_API_TOKEN}"

        response = requests.post(
            settings.PAYMENT_RAIL_GRAPHQL_URL,
            json={"query": query, "variables": {"input": input_data}},
            headers=headers,
            timeout=settings.PAYMENT_RAIL_TIMEOUT_SECONDS,
        )
        response.raise_for_status()

        try:
            body = response.json()
        except ValueError:
            raise ReversalError(f"{operation} returned a non-JSON response")

        errors = body.get("errors") if isinstance(body, dict) else None
        if errors:
            first = errors[0] if isinstance(errors, list) and errors else errors
            message = first.get("message") if isinstance(first, dict) else str(first)
            raise ReversalError(
                f"{operation} failed: {message}",
                details={"operation": operation},
            )

        data = body.get("data") if isinstance(body, dict) else None
        payload = data.get(operation) if isinstance(data, dict) else None
        result = payload.get(result_key) if isinstance(payload, dict) else None
        if not isinstance(result, dict) or not result.get("id"):
            raise ReversalError(f"{operation} returned no {result_key}")
        return result

    # =========================================================================
    # Webhook Verification
    # =========================================================================

    @classmethod
    def verify_webhook_signature(
        cls,
        payload: bytes,
        signature: str,
        secret: str | None = None,
        tolerance_seconds: int = 300,
    ) -> None:
        """
        Verify a payment rail webhook signature.

        The header looks like ``t=1614556800, v1=<hex>`` where the digest is
        HMAC-SHA256 over ``"{t}.{raw body}"`` keyed with the webhook secret.

        Raises:
            WebhookSignatureError: Missing, malformed, stale or wrong signature
        """
        secret = secret if secret is not None else settings.PAYMENT_RAIL_WEBHOOK_SECRET

        parts = {}
        for item in (signature or "").split(","):
            key, _, value = item.strip().partition("=")
            if key and value:
                parts[key] = value

        timestamp = parts.get("t")
        digest = parts.get(SIGNATURE_VERSION)
        if not timestamp or not digest or not timestamp.isdigit():
            raise WebhookSignatureError("Malformed webhook signature header")

        if tolerance_seconds and abs(time.time() - int(timestamp)) > tolerance_seconds:
            raise WebhookSignatureError(
                "Webhook signature timestamp outside tolerance",
                details={"timestamp": timestamp},
            )

        if not HEX_DIGEST_RE.fullmatch(digest):
            raise WebhookSignatureError("Malformed webhook signature header")

        signed_payload = timestamp.encode() + b"." + payload
        expected = hmac.new(secret.encode(), signed_payload, hashlib.sha256).hexdigest()
        if not hmac.compare_digest(expected.encode(), digest.lower().encode()):
            raise WebhookSignatureError("Invalid webhook signature")
