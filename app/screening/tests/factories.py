"""
Factory Boy factories for screening test data.

Usage:
    from screening.tests.factories import (
        AccountFactory,
        BlockListEntryFactory,
        PendingPaymentFactory,
        WebhookRecordFactory,
        rail_payload,
    )

    account = AccountFactory(currency="PKR")
    webhook = WebhookRecordFactory(account=account, extracted_amount=Decimal("5.00"))
"""

import uuid
from decimal import Decimal

import factory
from django.contrib.auth import get_user_model

from screening.models import (
    Account,
    BlockedPayment,
    BlockListEntry,
    PendingPayment,
    WebhookRecord,
)
from screening.state_machines import BlockListEntryType, PendingPaymentStatus, WebhookRecordStatus


def rail_payload(
    event_id: str | None = None,
    event_type: str = "incoming_payment.completed",
    wallet_address_id: str = "wallet-pkr-1",
    value: str = "500",
    asset_code: str = "USD",
    asset_scale: int = 2,
    metadata: dict | None = None,
    client: str | None = "https://wallet.example",
    payment_id: str | None = None,
) -> dict:
    """
    Build a payment rail notification.

    Defaults describe a completed 5.00 USD payment into wallet-pkr-1.
    """
    data = {
        "id": payment_id or f"pay-{uuid.uuid4().hex[:12]}",
        "walletAddressId": wallet_address_id,
        "receivedAmount": {
            "value": value,
            "assetCode": asset_code,
            "assetScale": asset_scale,
        },
        "metadata": metadata if metadata is not None else {},
    }
    if client is not None:
        data["client"] = client
    return {
        "id": event_id or f"evt-{uuid.uuid4().hex}",
        "type": event_type,
        "data": data,
    }


class StaffUserFactory(factory.django.DjangoModelFactory):
    """Reviewer with access to the screening API."""

    class Meta:
        model = get_user_model()
        skip_postgeneration_save = True

    username = factory.Sequence(lambda n: f"officer{n}")
    email = factory.LazyAttribute(lambda o: f"{o.username}@bank.example")
    is_staff = True
    password = factory.PostGenerationMethodCall("set_password", "testpass123")


class AccountFactory(factory.django.DjangoModelFactory):
    """
    Factory for Account.

    Default is an empty PKR account reachable at wallet-pkr-{n}.
    """

    class Meta:
        model = Account

    name = factory.Sequence(lambda n: f"Account Holder {n}")
    email = factory.Sequence(lambda n: f"holder{n}@example.com")
    iban = factory.Sequence(lambda n: f"PK36SCBL{n:016d}")
    currency = "PKR"
    wallet_id = factory.Sequence(lambda n: f"wallet-pkr-{n}")
    wallet_address = factory.Sequence(lambda n: f"https://wallet.example/holder{n}")
    book_balance = Decimal("0.00")
    available_balance = Decimal("0.00")
    balance = Decimal("0.00")


class BlockListEntryFactory(factory.django.DjangoModelFactory):
    class Meta:
        model = BlockListEntry

    name = factory.Sequence(lambda n: f"Blocked Party {n}")
    type = BlockListEntryType.PERSON
    reason = "SANCTIONS"
    severity = 8
    is_active = True


class WebhookRecordFactory(factory.django.DjangoModelFactory):
    """
    Factory for WebhookRecord.

    Default is a received incoming_payment.completed record of 5.00 USD
    with no account attached.
    """

    class Meta:
        model = WebhookRecord

    event_id = factory.Sequence(lambda n: f"evt-test-{n}")
    event_type = "incoming_payment.completed"
    payload = factory.LazyAttribute(
        lambda o: rail_payload(event_id=o.event_id, event_type=o.event_type)
    )
    status = WebhookRecordStatus.RECEIVED
    account = None
    wallet_address_id = ""
    extracted_amount = Decimal("5.00")
    extracted_currency = "USD"


class PendingPaymentFactory(factory.django.DjangoModelFactory):
    """
    Factory for PendingPayment.

    Only creates the row; it does not touch balances. Use the engine's
    intake when the ledger must be consistent.
    """

    class Meta:
        model = PendingPayment

    account = factory.SubFactory(AccountFactory)
    webhook = factory.SubFactory(
        WebhookRecordFactory,
        account=factory.SelfAttribute("..account"),
        status=WebhookRecordStatus.PROCESSED,
    )
    amount = Decimal("1392.50")
    currency = "PKR"
    risk_score = 10
    auto_approval_eligible = True
    status = PendingPaymentStatus.PENDING
    payment_reference = factory.LazyAttribute(lambda o: f"RAIL-{o.webhook.event_id}")


class BlockedPaymentFactory(factory.django.DjangoModelFactory):
    class Meta:
        model = BlockedPayment

    webhook = factory.SubFactory(WebhookRecordFactory, status=WebhookRecordStatus.PROCESSED)
    account = None
    matched_entry = factory.SubFactory(BlockListEntryFactory)
    candidate_name = factory.LazyAttribute(lambda o: o.matched_entry.name)
    amount = Decimal("5.00")
    currency = "USD"
    blocked_reason = factory.LazyAttribute(
        lambda o: f"Exact match with blocked entity: {o.matched_entry.name} (SANCTIONS)"
    )
