"""
Tests for the screening review API.

Tests cover:
- Pending payment queue with filters, stats and pagination
- APPROVE / REJECT decisions and their error mapping
- Webhook history
- Block list administration and on-demand checks
- Blocked payments and stats
- Staff-only access
"""

from decimal import Decimal
from unittest.mock import patch
from uuid import uuid4

import pytest
from django.db import DatabaseError
from django.urls import reverse
from rest_framework import status

from screening.models import Account, BlockListEntry, PendingPayment
from screening.services import BlockListMatcher
from screening.state_machines import PendingPaymentStatus, ReversalStatus, WebhookRecordStatus
from screening.tests.conftest import SENDER_ADDRESS
from screening.tests.factories import (
    BlockedPaymentFactory,
    BlockListEntryFactory,
    PendingPaymentFactory,
    WebhookRecordFactory,
)


@pytest.fixture
def use_engine(engine):
    """Route the API through the test engine (fixed rate, fake reversal client)."""
    with patch("screening.views.get_screening_engine", return_value=engine):
        yield engine


# =============================================================================
# Access
# =============================================================================


class TestAccess:
    @pytest.mark.parametrize(
        "name",
        [
            "screening:pending-payment-list",
            "screening:webhook-list",
            "screening:block-list",
            "screening:blocked-payment-list",
            "screening:blocked-payment-stats",
        ],
    )
    def test_anonymous_is_refused(self, db, anonymous_client, name):
        response = anonymous_client.get(reverse(name))

        assert response.status_code in (status.HTTP_401_UNAUTHORIZED, status.HTTP_403_FORBIDDEN)

    def test_non_staff_is_refused(self, db, anonymous_client, django_user_model):
        user = django_user_model.objects.create_user(username="holder", password="x")
        anonymous_client.force_authenticate(user=user)

        response = anonymous_client.get(reverse("screening:pending-payment-list"))

        assert response.status_code == status.HTTP_403_FORBIDDEN


# =============================================================================
# Pending Payments
# =============================================================================


class TestPendingPaymentList:
    url_name = "screening:pending-payment-list"

    def test_lists_pending_with_account_and_webhook(self, api_client, pending_payment, account):
        response = api_client.get(reverse(self.url_name))

        assert response.status_code == status.HTTP_200_OK
        data = response.data["data"]
        assert len(data["pendingPayments"]) == 1

        row = data["pendingPayments"][0]
        assert row["id"] == str(pending_payment.pk)
        assert row["amount"] == "1392.50"
        assert row["currency"] == "PKR"
        assert row["originalAmount"] == "5.00"
        assert row["originalCurrency"] == "USD"
        assert row["riskScore"] == 10
        assert row["riskLevel"] == "LOW"
        assert row["accountName"] == account.name
        assert row["bookBalance"] == "1392.50"
        assert row["availableBalance"] == "0.00"
        assert row["webhookData"]["metadata"] == {"senderWalletAddress": SENDER_ADDRESS}

    def test_stats_describe_pending_queue(self, api_client, account):
        PendingPaymentFactory(account=account, risk_score=10, amount=Decimal("100.00"))
        PendingPaymentFactory(account=account, risk_score=50, amount=Decimal("200.00"))
        PendingPaymentFactory(
            account=account,
            risk_score=80,
            amount=Decimal("300000.00"),
            auto_approval_eligible=False,
        )
        PendingPaymentFactory(account=account, status=PendingPaymentStatus.APPROVED)

        stats = api_client.get(reverse(self.url_name)).data["data"]["stats"]

        assert Decimal(stats.pop("totalAmount")) == Decimal("300300.00")
        assert stats == {
            "totalPending": 3,
            "lowRisk": 1,
            "mediumRisk": 1,
            "highRisk": 1,
            "autoEligible": 2,
        }

    def test_filter_by_risk_level(self, api_client, account):
        PendingPaymentFactory(account=account, risk_score=10)
        high = PendingPaymentFactory(account=account, risk_score=75)

        response = api_client.get(reverse(self.url_name), {"riskLevel": "HIGH"})

        rows = response.data["data"]["pendingPayments"]
        assert [row["id"] for row in rows] == [str(high.pk)]
        assert response.data["data"]["pagination"]["total"] == 1

    def test_filter_by_status_and_reversal(self, api_client, account):
        PendingPaymentFactory(account=account)
        failed = PendingPaymentFactory(
            account=account,
            status=PendingPaymentStatus.REJECTED,
            reversal_status=ReversalStatus.FAILED,
        )
        PendingPaymentFactory(
            account=account,
            status=PendingPaymentStatus.REJECTED,
            reversal_status=ReversalStatus.COMPLETED,
        )

        response = api_client.get(
            reverse(self.url_name), {"status": "REJECTED", "reversalStatus": "FAILED"}
        )

        rows = response.data["data"]["pendingPayments"]
        assert [row["id"] for row in rows] == [str(failed.pk)]
        assert rows[0]["requiresManualIntervention"] is True

    def test_pagination(self, api_client, account):
        for _ in range(3):
            PendingPaymentFactory(account=account)

        response = api_client.get(reverse(self.url_name), {"limit": 2, "offset": 1})

        data = response.data["data"]
        assert len(data["pendingPayments"]) == 2
        assert data["pagination"] == {"limit": 2, "offset": 1, "total": 3}

    @pytest.mark.parametrize(
        "params",
        [{"riskLevel": "EXTREME"}, {"limit": 0}, {"limit": 500}, {"status": "DONE"}],
    )
    def test_invalid_query(self, api_client, params):
        response = api_client.get(reverse(self.url_name), params)

        assert response.status_code == status.HTTP_400_BAD_REQUEST
        assert response.data["error_code"] == "VALIDATION_ERROR"


class TestReviewDecision:
    url_name = "screening:pending-payment-decision"

    def test_approve(self, api_client, use_engine, pending_payment, account):
        response = api_client.post(
            reverse(self.url_name),
            {"paymentId": str(pending_payment.pk), "action": "APPROVE", "screeningNotes": "ok"},
            format="json",
        )

        assert response.status_code == status.HTTP_200_OK
        data = response.data["data"]
        assert data["status"] == "APPROVED"
        assert data["screenedBy"] == "officer"
        assert data["screeningNotes"] == "ok"

        account = Account.objects.get(pk=account.pk)
        assert account.available_balance == Decimal("1392.50")

    def test_reject_returns_reversal(self, api_client, use_engine, pending_payment, account):
        response = api_client.post(
            reverse(self.url_name),
            {
                "paymentId": str(pending_payment.pk),
                "action": "REJECT",
                "screeningNotes": "sanctions hit",
                "screenedBy": "compliance-2",
            },
            format="json",
        )

        assert response.status_code == status.HTTP_200_OK
        data = response.data["data"]
        assert data["status"] == "REJECTED"
        assert data["screenedBy"] == "compliance-2"
        assert data["reversal"]["status"] == "COMPLETED"
        assert data["reversal"]["amount"] == "1392.50"
        assert data["reversal"]["recipient"] == SENDER_ADDRESS

        account = Account.objects.get(pk=account.pk)
        assert account.book_balance == Decimal("1392.50")
        assert account.available_balance == Decimal("0.00")

    def test_reject_with_failed_reversal_is_still_200(
        self, api_client, use_engine, pending_payment, reversal_client
    ):
        reversal_client.reverse.side_effect = RuntimeError("boom")

        response = api_client.post(
            reverse(self.url_name),
            {"paymentId": str(pending_payment.pk), "action": "REJECT"},
            format="json",
        )

        assert response.status_code == status.HTTP_200_OK
        assert response.data["data"]["reversal"]["requiresManualIntervention"] is True
        payment = PendingPayment.objects.get(pk=pending_payment.pk)
        assert payment.status == PendingPaymentStatus.REJECTED

    def test_second_decision_conflicts(self, api_client, use_engine, pending_payment):
        body = {"paymentId": str(pending_payment.pk), "action": "APPROVE"}
        api_client.post(reverse(self.url_name), body, format="json")

        response = api_client.post(
            reverse(self.url_name), {**body, "action": "REJECT"}, format="json"
        )

        assert response.status_code == status.HTTP_409_CONFLICT
        assert response.data["error_code"] == "PAYMENT_ALREADY_PROCESSED"

    def test_unknown_payment(self, api_client, use_engine):
        response = api_client.post(
            reverse(self.url_name), {"paymentId": str(uuid4()), "action": "APPROVE"}, format="json"
        )

        assert response.status_code == status.HTTP_404_NOT_FOUND
        assert response.data["error_code"] == "PENDING_PAYMENT_NOT_FOUND"

    @pytest.mark.parametrize(
        "body",
        [
            {"action": "APPROVE"},
            {"paymentId": "not-a-uuid", "action": "APPROVE"},
            {"paymentId": "8a5f1c9e-2b0d-4c35-9f61-6f5b0d3c2a11", "action": "ESCALATE"},
        ],
    )
    def test_invalid_body(self, api_client, use_engine, body):
        response = api_client.post(reverse(self.url_name), body, format="json")

        assert response.status_code == status.HTTP_400_BAD_REQUEST
        assert "errors" in response.data


# =============================================================================
# Webhook History
# =============================================================================


class TestWebhookRecordList:
    url_name = "screening:webhook-list"

    def test_lists_with_stats(self, api_client):
        WebhookRecordFactory(status=WebhookRecordStatus.PROCESSED)
        WebhookRecordFactory(status=WebhookRecordStatus.ERROR, error_message="boom")
        WebhookRecordFactory(event_type="outgoing_payment.completed")

        response = api_client.get(reverse(self.url_name))

        data = response.data["data"]
        assert len(data["webhooks"]) == 3
        assert data["stats"]["total"] == 3
        assert data["stats"]["byStatus"] == {
            "received": 1,
            "processing": 0,
            "processed": 1,
            "error": 1,
        }
        assert data["stats"]["byType"] == {
            "incoming_payment.completed": 2,
            "outgoing_payment.completed": 1,
        }
        assert data["stats"]["lastWebhook"] is not None

    def test_filters(self, api_client):
        WebhookRecordFactory(status=WebhookRecordStatus.ERROR)
        WebhookRecordFactory(status=WebhookRecordStatus.PROCESSED)

        response = api_client.get(reverse(self.url_name), {"status": "error", "limit": 10})

        webhooks = response.data["data"]["webhooks"]
        assert len(webhooks) == 1
        assert webhooks[0]["status"] == "error"

    def test_empty(self, api_client):
        stats = api_client.get(reverse(self.url_name)).data["data"]["stats"]

        assert stats["total"] == 0
        assert stats["lastWebhook"] is None


# =============================================================================
# Block List
# =============================================================================


class TestBlockList:
    url_name = "screening:block-list"

    def test_add_entry(self, api_client):
        response = api_client.post(
            reverse(self.url_name),
            {"name": " Acme Trading ", "type": "organization", "reason": "SANCTIONS"},
            format="json",
        )

        assert response.status_code == status.HTTP_201_CREATED
        entry = BlockListEntry.objects.get(pk=response.data["data"]["id"])
        assert entry.name == "Acme Trading"
        assert entry.severity == 8
        assert entry.added_by == "ADMIN"

    @pytest.mark.parametrize(
        "body",
        [
            {"type": "person", "reason": "PEP"},
            {"name": "Jane", "reason": "PEP"},
            {"name": "Jane", "type": "person"},
            {"name": "   ", "type": "person", "reason": "PEP"},
            {"name": "Jane", "type": "alien", "reason": "PEP"},
            {"name": "Jane", "type": "person", "reason": "PEP", "severity": 11},
        ],
    )
    def test_add_entry_validation(self, api_client, body):
        response = api_client.post(reverse(self.url_name), body, format="json")

        assert response.status_code == status.HTTP_400_BAD_REQUEST
        assert not BlockListEntry.objects.exists()

    def test_list_active_only_by_default(self, api_client):
        active = BlockListEntryFactory()
        BlockListEntryFactory(is_active=False)

        response = api_client.get(reverse(self.url_name))

        assert [row["id"] for row in response.data["data"]] == [active.pk]

    def test_list_all(self, api_client):
        BlockListEntryFactory()
        BlockListEntryFactory(is_active=False)

        response = api_client.get(reverse(self.url_name), {"activeOnly": "false"})

        assert len(response.data["data"]) == 2

    def test_deactivate(self, api_client):
        entry = BlockListEntryFactory()

        response = api_client.post(reverse("screening:block-list-deactivate", args=[entry.pk]))

        assert response.status_code == status.HTTP_200_OK
        entry.refresh_from_db()
        assert entry.is_active is False

    def test_deactivate_missing(self, api_client):
        response = api_client.post(reverse("screening:block-list-deactivate", args=[424242]))

        assert response.status_code == status.HTTP_404_NOT_FOUND


class TestBlockListCheck:
    url_name = "screening:block-list-check"

    def test_match(self, api_client):
        entry = BlockListEntryFactory(name="Jane Doe", severity=9)

        response = api_client.post(reverse(self.url_name), {"name": "jane doe"}, format="json")

        data = response.data["data"]
        assert data["isBlocked"] is True
        assert data["matchType"] == "exact"
        assert data["matchedEntity"]["id"] == entry.pk

    def test_no_match(self, api_client):
        response = api_client.post(reverse(self.url_name), {"name": "Someone Else"}, format="json")

        assert response.data["data"]["isBlocked"] is False

    def test_fail_closed_returns_503(self, api_client, settings):
        settings.BLOCK_LIST_FAIL_OPEN = False

        with patch.object(BlockListMatcher, "active_entries", side_effect=DatabaseError("down")):
            response = api_client.post(reverse(self.url_name), {"name": "Jane Doe"}, format="json")

        assert response.status_code == status.HTTP_503_SERVICE_UNAVAILABLE
        assert response.data["error_code"] == "SCREENING_UNAVAILABLE"


# =============================================================================
# Blocked Payments
# =============================================================================


class TestBlockedPayments:
    def test_list(self, api_client):
        blocked = BlockedPaymentFactory()

        response = api_client.get(reverse("screening:blocked-payment-list"))

        data = response.data["data"]
        assert data["pagination"]["total"] == 1
        row = data["blockedPayments"][0]
        assert row["id"] == blocked.pk
        assert row["blockedEntityName"] == blocked.matched_entry.name
        assert row["amount"] == "5.00"

    def test_stats(self, api_client):
        BlockedPaymentFactory()

        response = api_client.get(reverse("screening:blocked-payment-stats"))

        assert response.status_code == status.HTTP_200_OK
        assert response.data["data"]["total"] == 1
        assert response.data["data"]["today"] == 1
