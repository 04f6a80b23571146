"""
Normalization of payment rail notifications.

Rail notifications are ``{id, type, data}`` where ``data`` carries the
payment amount in one of several shapes, a wallet identifier and free-form
metadata. This module turns that into typed values the engine can rely on:

- extract_payment_amount: First recognized amount shape, in major units
- extract_wallet_address_id: Rail wallet identifier of the destination
- resolve_account: Destination Account for a wallet identifier
- extract_candidate_name: Name to screen against the block list
- resolve_sender_address: Wallet address a reversal should go back to
- normalize_notification: Validates the envelope and bundles the above

Usage:
    from screening.webhooks.normalizer import normalize_notification

    notification = normalize_notification(payload)
    notification.amount        # PaymentAmount(value=Decimal("5.00"), currency="USD", ...)
    notification.wallet_address_id
"""

from __future__ import annotations

import logging
import re
from dataclasses import dataclass
from decimal import Decimal, InvalidOperation
from typing import TYPE_CHECKING

from screening.exceptions import InvalidWebhookError
from screening.ledger.models import Account

if TYPE_CHECKING:
    from typing import Any

    from screening.models import WebhookRecord


logger = logging.getLogger(__name__)


DEFAULT_ASSET_SCALE = 2
DEFAULT_ASSET_CODE = "USD"

# Limits of WebhookRecord.extracted_amount (max_digits=30, decimal_places=9)
AMOUNT_MAX_DIGITS = 30
AMOUNT_DECIMAL_PLACES = 9

# Amount shapes in the order they are tried
AMOUNT_PATHS: tuple[tuple[str, ...], ...] = (
    ("receivedAmount",),
    ("incomingAmount",),
    ("payment", "incomingAmount"),
    ("payment", "receivedAmount"),
)

SENDER_NAME_FIELDS = ("senderName", "sender_name", "payerName", "fromName")
RECEIVER_NAME_FIELDS = ("receiverName", "receiver_name", "recipientName", "beneficiaryName")
DESCRIPTION_FIELDS = ("description", "memo", "note")

# Substrings that mark free text as transactional rather than a name
DESCRIPTION_STOP_TERMS = (
    "http",
    "www.",
    "://",
    "@",
    ".com",
    "payment",
    "transfer",
    "invoice",
    "transaction",
    "order",
    "refund",
    "reversal",
    "deposit",
    "withdraw",
    "salary",
    "fee",
    "ref",
    "test",
)

_NAME_TOKEN = re.compile(r"[^\W\d_][\w'.-]*")


# =============================================================================
# Data Types
# =============================================================================


@dataclass(frozen=True)
class PaymentAmount:
    """
    Amount parsed from one recognized shape.

    Attributes:
        value: Amount in major units (value / 10^asset_scale)
        currency: Asset code
        asset_scale: Scale the raw value was expressed in
        source: Which shape the amount came from, e.g. "payment.incomingAmount"
    """

    value: Decimal
    currency: str
    asset_scale: int
    source: str

    def to_dict(self) -> dict[str, Any]:
        return {"amount": str(self.value), "currency": self.currency}


@dataclass(frozen=True)
class NormalizedNotification:
    """Validated rail notification with its settlement-relevant values."""

    event_id: str
    event_type: str
    data: dict[str, Any]
    wallet_address_id: str
    amount: PaymentAmount | None


# =============================================================================
# Extraction
# =============================================================================


def _dig(data: Any, path: tuple[str, ...]) -> Any:
    node = data
    for key in path:
        if not isinstance(node, dict):
            return None
        node = node.get(key)
    return node


def _metadata_sources(data: dict[str, Any]) -> list[dict[str, Any]]:
    sources = []
    for path in (("metadata",), ("payment", "metadata")):
        node = _dig(data, path)
        if isinstance(node, dict):
            sources.append(node)
    return sources


def _parse_amount(node: dict[str, Any], path: tuple[str, ...]) -> PaymentAmount | None:
    raw_value = node.get("value")
    if raw_value is None or isinstance(raw_value, bool):
        return None
    try:
        value = Decimal(str(raw_value))
    except InvalidOperation:
        return None
    if not value.is_finite():
        return None

    scale = node.get("assetScale")
    if isinstance(scale, bool) or not isinstance(scale, int) or scale <= 0:
        scale = DEFAULT_ASSET_SCALE

    value = value.scaleb(-scale)
    integer_digits = max(value.adjusted() + 1, 0)
    if (
        -value.as_tuple().exponent > AMOUNT_DECIMAL_PLACES
        or integer_digits > AMOUNT_MAX_DIGITS - AMOUNT_DECIMAL_PLACES
    ):
        raise InvalidWebhookError(
            "Invalid payment amount",
            details={"amount_source": ".".join(path), "value": str(raw_value)[:64]},
        )

    return PaymentAmount(
        value=value,
        currency=node.get("assetCode") or DEFAULT_ASSET_CODE,
        asset_scale=scale,
        source=".".join(path),
    )


def extract_payment_amount(data: dict[str, Any] | None) -> PaymentAmount | None:
    """
    Parse the payment amount from the first recognized shape.

    Returns None if no shape carries a usable value. Raises
    InvalidWebhookError for a value too large or too precise to store.
    """
    for path in AMOUNT_PATHS:
        node = _dig(data, path)
        if isinstance(node, dict):
            amount = _parse_amount(node, path)
            if amount is not None:
                return amount
    return None


def extract_wallet_address_id(payload: dict[str, Any]) -> str:
    """Rail wallet identifier of the destination, or "" if absent."""
    data = payload.get("data") if isinstance(payload.get("data"), dict) else {}
    for value in (
        data.get("walletAddressId"),
        _dig(data, ("payment", "walletAddressId")),
        data.get("walletAddress"),
        payload.get("walletAddress"),
    ):
        if isinstance(value, str) and value:
            return value
    return ""


def resolve_account(wallet_address_id: str) -> Account | None:
    """Look up the destination account; None (logged) when unresolved."""
    if not wallet_address_id:
        logger.warning("Webhook carries no wallet address id")
        return None

    account = Account.objects.filter(wallet_id=wallet_address_id).first()
    if account is None:
        logger.warning(
            "No account for wallet address id",
            extra={"wallet_address_id": wallet_address_id},
        )
    return account


def _name_from_description(text: str) -> str:
    """
    Conservative guess at a person or company name in free text.

    Accepts 2-4 alphabetic tokens with no URL-like or transactional terms.
    """
    candidate = " ".join(text.split())
    tokens = candidate.split(" ")
    if not 2 <= len(tokens) <= 4:
        return ""
    if not all(_NAME_TOKEN.fullmatch(token) for token in tokens):
        return ""
    lowered = candidate.lower()
    if any(term in lowered for term in DESCRIPTION_STOP_TERMS):
        return ""
    return candidate


def extract_candidate_name(data: dict[str, Any] | None) -> str:
    """
    Name to screen against the block list.

    Priority: sender-name metadata, then receiver-name metadata, then a
    narrow heuristic over description fields. Returns "" if nothing fits.
    """
    if not isinstance(data, dict):
        return ""
    sources = _metadata_sources(data)

    for fields in (SENDER_NAME_FIELDS, RECEIVER_NAME_FIELDS):
        for source in sources:
            for field_name in fields:
                value = source.get(field_name)
                if isinstance(value, str) and value.strip():
                    return value.strip()

    for source in (*sources, data):
        for field_name in DESCRIPTION_FIELDS:
            value = source.get(field_name)
            if isinstance(value, str) and value.strip():
                name = _name_from_description(value)
                if name:
                    return name
    return ""


def resolve_sender_address(webhook: WebhookRecord) -> str:
    """
    Wallet address a reversal should be sent to.

    Uses ``metadata.senderWalletAddress`` when present, otherwise looks up
    the sender's account by ``metadata.senderWalletAddressId``. Returns ""
    when neither resolves.
    """
    sources = _metadata_sources(webhook.data)

    for source in sources:
        address = source.get("senderWalletAddress")
        if isinstance(address, str) and address:
            return address

    for source in sources:
        sender_wallet_id = source.get("senderWalletAddressId")
        if isinstance(sender_wallet_id, str) and sender_wallet_id:
            address = (
                Account.objects.filter(wallet_id=sender_wallet_id)
                .exclude(wallet_address="")
                .values_list("wallet_address", flat=True)
                .first()
            )
            if address:
                return address

    logger.warning(
        "No sender wallet address for webhook",
        extra={"webhook_record_id": str(webhook.pk)},
    )
    return ""


def sender_info(data: dict[str, Any]) -> dict[str, Any]:
    metadata = data.get("metadata")
    return {
        "walletAddressId": data.get("walletAddressId"),
        "client": data.get("client"),
        "metadata": metadata if isinstance(metadata, dict) else {},
    }


# =============================================================================
# Envelope
# =============================================================================


def normalize_notification(payload: Any) -> NormalizedNotification:
    """
    Validate a rail notification envelope.

    Raises:
        InvalidWebhookError: id, type or data missing or of the wrong type
    """
    if not isinstance(payload, dict):
        raise InvalidWebhookError("Invalid webhook format")

    event_id = payload.get("id")
    event_type = payload.get("type")
    data = payload.get("data")

    if not event_id or not isinstance(event_id, str):
        raise InvalidWebhookError("Invalid webhook format", details={"missing": "id"})
    if not event_type or not isinstance(event_type, str):
        raise InvalidWebhookError("Invalid webhook format", details={"missing": "type"})
    if not isinstance(data, dict):
        raise InvalidWebhookError("Invalid webhook format", details={"missing": "data"})

    return NormalizedNotification(
        event_id=event_id,
        event_type=event_type,
        data=data,
        wallet_address_id=extract_wallet_address_id(payload),
        amount=extract_payment_amount(data),
    )
