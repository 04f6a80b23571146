"""
Tests for PaymentRailAdapter.

Tests cover:
- The createReceiver / createQuote / createOutgoingPayment sequence
- Failure mapping (reverse never raises)
- Idempotency keys and minor-unit conversion
- Webhook signature verification
"""

import hashlib
import hmac
import time
from decimal import Decimal
from unittest.mock import MagicMock, patch

import pytest
import requests

from screening.adapters import IdempotencyKeyGenerator, PaymentRailAdapter, to_minor_units
from screening.exceptions import WebhookSignatureError

PAYMENT_ID = "8a5f1c9e-2b0d-4c35-9f61-6f5b0d3c2a11"


@pytest.fixture
def rail_settings(settings):
    settings.PAYMENT_RAIL_GRAPHQL_URL = "https://rail.test/graphql"
    settings.PAYMENT_RAIL_API_TOKEN = "token-123"
    settings.PAYMENT_RAIL_REVERSAL_WALLET_ID = "wallet-reversals"
    settings.PAYMENT_RAIL_ASSET_SCALE = 2
    settings.PAYMENT_RAIL_TIMEOUT_SECONDS = 15
    return settings


def graphql_response(operation, key, obj=None, errors=None):
    response = MagicMock()
    response.raise_for_status.return_value = None
    if errors is not None:
        response.json.return_value = {"errors": errors}
    else:
        response.json.return_value = {"data": {operation: {key: obj}}}
    return response


def successful_sequence():
    return [
        graphql_response(
            "createReceiver", "receiver", {"id": "https://wallet.example/alice/incoming/1"}
        ),
        graphql_response("createQuote", "quote", {"id": "quote-1"}),
        graphql_response("createOutgoingPayment", "payment", {"id": "out-1", "state": "FUNDING"}),
    ]


def reverse(**overrides):
    kwargs = {
        "sender_address": "https://wallet.example/alice",
        "amount": Decimal("1392.50"),
        "currency": "PKR",
        "correlation_id": PAYMENT_ID,
        "reason_note": "AML Rejection Reversal: sanctions hit",
    }
    kwargs.update(overrides)
    return PaymentRailAdapter.reverse(**kwargs)


# =============================================================================
# Reversal
# =============================================================================


class TestReverse:
    @patch("screening.adapters.rail_adapter.requests.post")
    def test_successful_reversal(self, mock_post, rail_settings):
        mock_post.side_effect = successful_sequence()

        result = reverse()

        assert result.success is True
        assert result.payment_id == "out-1"
        assert result.raw_response["state"] == "FUNDING"
        assert mock_post.call_count == 3

    @patch("screening.adapters.rail_adapter.requests.post")
    def test_request_contents(self, mock_post, rail_settings):
        mock_post.side_effect = successful_sequence()

        reverse()

        receiver_call, quote_call, payment_call = mock_post.call_args_list
        assert receiver_call.args[0] == "https://rail.test/graphql"
        assert receiver_call.kwargs["headers"]["Authorization"] == "Bearer token-123"
        assert receiver_call.kwargs["timeout"] == 15

        receiver_input = receiver_call.kwargs["json"]["variables"]["input"]
        assert receiver_input["walletAddressUrl"] == "https://wallet.example/alice"
        assert receiver_input["incomingAmount"] == {
            "assetCode": "PKR",
            "assetScale": 2,
            "value": "139250",
        }
        assert receiver_input["metadata"] == {
            "description": "AML Rejection Reversal: sanctions hit",
            "originalPaymentId": PAYMENT_ID,
            "reversalReason": "AML_REJECTION",
        }

        quote_input = quote_call.kwargs["json"]["variables"]["input"]
        assert quote_input["walletAddressId"] == "wallet-reversals"
        assert quote_input["receiver"] == "https://wallet.example/alice/incoming/1"

        payment_input = payment_call.kwargs["json"]["variables"]["input"]
        assert payment_input["quoteId"] == "quote-1"

    @patch("screening.adapters.rail_adapter.requests.post")
    def test_idempotency_keys_are_stable(self, mock_post, rail_settings):
        mock_post.side_effect = successful_sequence() + successful_sequence()

        reverse()
        reverse()

        keys = [
            c.kwargs["json"]["variables"]["input"]["idempotencyKey"]
            for c in mock_post.call_args_list
        ]
        assert keys[:3] == keys[3:]
        assert keys[0].startswith(f"create_receiver:{PAYMENT_ID}:1:")
        assert len(set(keys[:3])) == 3

    def test_not_configured(self, settings):
        settings.PAYMENT_RAIL_GRAPHQL_URL = ""

        with patch("screening.adapters.rail_adapter.requests.post") as mock_post:
            result = reverse()

        assert result.success is False
        assert result.error == "Payment rail is not configured for reversals"
        mock_post.assert_not_called()

    @patch("screening.adapters.rail_adapter.requests.post")
    def test_graphql_error_stops_sequence(self, mock_post, rail_settings):
        mock_post.side_effect = [
            graphql_response("createReceiver", "receiver", {"id": "recv-1"}),
            graphql_response(
                "createQuote", "quote", errors=[{"message": "insufficient liquidity"}]
            ),
        ]

        result = reverse()

        assert result.success is False
        assert result.error == "createQuote failed: insufficient liquidity"
        assert mock_post.call_count == 2

    @patch("screening.adapters.rail_adapter.requests.post")
    def test_missing_result_object(self, mock_post, rail_settings):
        mock_post.return_value = graphql_response("createReceiver", "receiver", None)

        result = reverse()

        assert result.error == "createReceiver returned no receiver"

    @patch("screening.adapters.rail_adapter.requests.post")
    def test_non_json_response(self, mock_post, rail_settings):
        response = MagicMock()
        response.raise_for_status.return_value = None
        response.json.side_effect = ValueError("no json")
        mock_post.return_value = response

        result = reverse()

        assert result.error == "createReceiver returned a non-JSON response"

    @pytest.mark.parametrize(
        "body",
        [
            {"data": ["unexpected"]},
            {"data": {"createReceiver": "unexpected"}},
            {"data": None},
            ["unexpected"],
        ],
    )
    @patch("screening.adapters.rail_adapter.requests.post")
    def test_unexpected_response_shape(self, mock_post, rail_settings, body):
        response = MagicMock()
        response.raise_for_status.return_value = None
        response.json.return_value = body
        mock_post.return_value = response

        result = reverse()

        assert result.success is False
        assert result.error == "createReceiver returned no receiver"

    @pytest.mark.parametrize(
        "error",
        [requests.Timeout("slow"), requests.ConnectionError("refused"), requests.HTTPError("502")],
    )
    def test_transport_failures(self, rail_settings, error):
        with patch("screening.adapters.rail_adapter.requests.post", side_effect=error):
            result = reverse()

        assert result.success is False
        assert result.error == f"Payment rail unreachable: {type(error).__name__}"


# =============================================================================
# Helpers
# =============================================================================


class TestHelpers:
    @pytest.mark.parametrize(
        "amount,scale,expected",
        [
            (Decimal("1392.50"), 2, 139250),
            (Decimal("5"), 2, 500),
            (Decimal("0.005"), 2, 1),
            (Decimal("1.2345"), 3, 1235),
            (Decimal("10"), 0, 10),
        ],
    )
    def test_to_minor_units(self, amount, scale, expected):
        assert to_minor_units(amount, scale) == expected

    def test_idempotency_key_format(self):
        key = IdempotencyKeyGenerator.generate("create_quote", PAYMENT_ID, attempt=2)

        operation, entity, attempt, digest = key.split(":")
        assert (operation, entity, attempt) == ("create_quote", PAYMENT_ID, "2")
        assert len(digest) == 8

    def test_idempotency_key_differs_per_attempt(self):
        first = IdempotencyKeyGenerator.generate("create_quote", PAYMENT_ID, attempt=1)
        second = IdempotencyKeyGenerator.generate("create_quote", PAYMENT_ID, attempt=2)

        assert first != second


# =============================================================================
# Webhook Signatures
# =============================================================================


def _signature(body, secret="whsec_test", timestamp=None):
    timestamp = timestamp or int(time.time())
    digest = hmac.new(secret.encode(), f"{timestamp}.".encode() + body, hashlib.sha256).hexdigest()
    return f"t={timestamp}, v1={digest}"


class TestVerifyWebhookSignature:
    body = b'{"id": "evt-1"}'

    def test_valid(self):
        PaymentRailAdapter.verify_webhook_signature(
            self.body, _signature(self.body), secret="whsec_test"
        )

    def test_tampered_body(self):
        with pytest.raises(WebhookSignatureError, match="Invalid webhook signature"):
            PaymentRailAdapter.verify_webhook_signature(
                b'{"id": "evt-2"}', _signature(self.body), secret="whsec_test"
            )

    def test_stale(self):
        old = _signature(self.body, timestamp=int(time.time()) - 600)

        with pytest.raises(WebhookSignatureError, match="outside tolerance"):
            PaymentRailAdapter.verify_webhook_signature(self.body, old, secret="whsec_test")

    def test_tolerance_disabled(self):
        old = _signature(self.body, timestamp=int(time.time()) - 600)

        PaymentRailAdapter.verify_webhook_signature(
            self.body, old, secret="whsec_test", tolerance_seconds=0
        )

    @pytest.mark.parametrize("header", ["", "v1=abc", "t=123", "t=now, v1=abc"])
    def test_malformed(self, header):
        with pytest.raises(WebhookSignatureError, match="Malformed"):
            PaymentRailAdapter.verify_webhook_signature(self.body, header, secret="whsec_test")

    @pytest.mark.parametrize("digest", ["\u00e9\u00e9", "zz" * 32, "ab" * 31])
    def test_non_hex_digest_is_malformed(self, digest):
        header = f"t={int(time.time())}, v1={digest}"

        with pytest.raises(WebhookSignatureError, match="Malformed"):
            PaymentRailAdapter.verify_webhook_signature(self.body, header, secret="whsec_test")

    def test_uppercase_digest_accepted(self):
        timestamp, digest = _signature(self.body).split(", v1=")

        PaymentRailAdapter.verify_webhook_signature(
            self.body, f"{timestamp}, v1={digest.upper()}", secret="whsec_test"
        )
