"""
Pytest fixtures for screening tests.

Sections:
    - Accounts and Users: PKR account, staff reviewer, API clients
    - Collaborators: fixed-rate currency service, fake reversal client
    - Engine: engine wired with the fakes, intake helpers
"""

from decimal import Decimal
from unittest.mock import MagicMock

import pytest
from rest_framework.test import APIClient

from screening.adapters import ReversalResult
from screening.services import BlockListMatcher, CurrencyConversionService, ScreeningEngine
from screening.tests.factories import (
    AccountFactory,
    StaffUserFactory,
    WebhookRecordFactory,
    rail_payload,
)

FIXED_RATE = Decimal("278.50")
SENDER_ADDRESS = "https://wallet.example/alice"


# =============================================================================
# Accounts and Users
# =============================================================================


@pytest.fixture
def account(db):
    """Empty PKR account reachable at wallet-pkr-1."""
    return AccountFactory(wallet_id="wallet-pkr-1", currency="PKR")


@pytest.fixture
def usd_account(db):
    return AccountFactory(wallet_id="wallet-usd-1", currency="USD")


@pytest.fixture
def staff_user(db):
    return StaffUserFactory(username="officer")


@pytest.fixture
def api_client(staff_user):
    """API client authenticated as a staff reviewer."""
    client = APIClient()
    client.force_authenticate(user=staff_user)
    return client


@pytest.fixture
def anonymous_client():
    return APIClient()


# =============================================================================
# Collaborators
# =============================================================================


@pytest.fixture
def currency_service(mocker):
    """Currency service whose live rate source always answers 278.50."""
    service = CurrencyConversionService(
        api_url="https://rates.test/v1/latest",
        api_key="test-key",
        fallback_rate="280.00",
        timeout=1,
        cache_seconds=0,
        fail_open=True,
    )
    mocker.patch.object(service, "_fetch_live_rate", return_value=FIXED_RATE)
    return service


@pytest.fixture
def reversal_client():
    """Reversal client that succeeds with payment id rev-123."""
    client = MagicMock()
    client.reverse.return_value = ReversalResult(success=True, payment_id="rev-123")
    return client


@pytest.fixture
def engine(db, currency_service, reversal_client):
    return ScreeningEngine(
        block_list_matcher=BlockListMatcher(fail_open=True),
        currency_service=currency_service,
        reversal_client=reversal_client,
        auto_approval_limits={"PKR": Decimal("250000"), "default": Decimal("1000")},
    )


# =============================================================================
# Webhooks and Pending Payments
# =============================================================================


@pytest.fixture
def make_webhook(account):
    """
    Build a received webhook record for the default account.

    Usage:
        webhook = make_webhook(amount="5.00", metadata={"senderName": "Jane Doe"})
    """

    def _make(
        amount="5.00", currency="USD", metadata=None, client="https://wallet.example", **kwargs
    ):
        minor_units = str(int(Decimal(amount) * 100))
        payload = rail_payload(
            wallet_address_id=account.wallet_id,
            value=minor_units,
            asset_code=currency,
            metadata=metadata if metadata is not None else {"senderWalletAddress": SENDER_ADDRESS},
            client=client,
        )
        defaults = {
            "event_id": payload["id"],
            "payload": payload,
            "account": account,
            "wallet_address_id": account.wallet_id,
            "extracted_amount": Decimal(amount),
            "extracted_currency": currency,
        }
        defaults.update(kwargs)
        return WebhookRecordFactory(**defaults)

    return _make


@pytest.fixture
def pending_payment(engine, make_webhook):
    """1392.50 PKR pending payment (5.00 USD at 278.50) with a sender address."""
    outcome = engine.intake(make_webhook(amount="5.00"))
    return outcome.pending_payment
