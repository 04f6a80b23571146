"""
Tests for LedgerService.

Tests cover:
- Account locking
- Book-only provisional credits
- Release to available balance
- Settled credit / reversal debit pairs
- The available <= book invariant
"""

from decimal import Decimal

import pytest
from django.db import IntegrityError, transaction

from screening.ledger import (
    Account,
    AccountNotFoundError,
    BalanceInvariantError,
    LedgerService,
    Transaction,
    TransactionStatus,
    TransactionType,
)
from screening.tests.factories import AccountFactory, PendingPaymentFactory


@pytest.fixture
def pending(db):
    return PendingPaymentFactory(amount=Decimal("1392.50"))


def _credit(account, pending, amount="1392.50"):
    return LedgerService.credit_book_balance(
        account,
        Decimal(amount),
        "PKR",
        pending_payment=pending,
        reference_number=f"CREDIT-PENDING-{pending.pk}",
        description="Incoming payment pending screening",
    )


class TestLockAccount:
    def test_returns_account(self, db):
        account = AccountFactory()

        with transaction.atomic():
            assert LedgerService.lock_account(account.pk) == account

    def test_missing_account(self, db):
        with transaction.atomic():
            with pytest.raises(AccountNotFoundError) as exc_info:
                LedgerService.lock_account(987654)

        assert exc_info.value.details == {"account_id": 987654}


class TestCreditBookBalance:
    def test_credits_book_only(self, pending):
        account = pending.account

        txn = _credit(account, pending)

        account = Account.objects.get(pk=account.pk)
        assert account.book_balance == Decimal("1392.50")
        assert account.available_balance == Decimal("0.00")
        assert account.balance == Decimal("0.00")

        assert txn.transaction_type == TransactionType.CREDIT_PENDING
        assert txn.status == TransactionStatus.PENDING
        assert txn.balance_after == Decimal("1392.50")

    def test_accumulates(self, pending):
        account = pending.account
        account.book_balance = Decimal("100.00")
        account.save()

        txn = _credit(account, pending, amount="50.25")

        assert txn.balance_after == Decimal("150.25")


class TestReleaseToAvailable:
    def test_release(self, pending):
        account = pending.account
        _credit(account, pending)

        completed = LedgerService.release_to_available(account, Decimal("1392.50"), pending)

        assert completed == 1
        account = Account.objects.get(pk=account.pk)
        assert account.available_balance == Decimal("1392.50")
        assert account.balance == Decimal("1392.50")
        txn = Transaction.objects.get(pending_payment=pending)
        assert txn.status == TransactionStatus.COMPLETED

    def test_release_without_book_credit_violates_invariant(self, pending):
        account = pending.account

        with pytest.raises(BalanceInvariantError) as exc_info:
            LedgerService.release_to_available(account, Decimal("10.00"), pending)

        error = exc_info.value
        assert error.error_code == "BALANCE_INVARIANT_VIOLATED"
        assert error.available_balance == Decimal("10.00")
        assert error.book_balance == Decimal("0.00")
        assert Account.objects.get(pk=account.pk).available_balance == Decimal("0.00")


class TestRejectionEntries:
    def test_settled_credit_and_reversal_debit_net_to_zero(self, pending):
        account = pending.account
        _credit(account, pending)

        credit = LedgerService.record_settled_credit(
            account, Decimal("1392.50"), "PKR", pending, reference_number="CREDIT-x"
        )
        debit = LedgerService.record_reversal_debit(
            account, Decimal("1392.50"), "PKR", pending, reference_number="DEBIT-REVERSAL-x"
        )
        rejected = LedgerService.reject_pending_credit(pending)

        assert rejected == 1
        assert credit.balance_after == Decimal("1392.50")
        assert debit.balance_after == Decimal("0.00")
        assert credit.status == debit.status == TransactionStatus.COMPLETED

        account = Account.objects.get(pk=account.pk)
        assert account.book_balance == Decimal("1392.50")
        assert account.available_balance == Decimal("0.00")

        pending_row = Transaction.objects.get(
            pending_payment=pending, transaction_type=TransactionType.CREDIT_PENDING
        )
        assert pending_row.status == TransactionStatus.REJECTED

    def test_reject_is_noop_without_pending_row(self, pending):
        assert LedgerService.reject_pending_credit(pending) == 0


class TestDatabaseConstraints:
    def test_check_constraint_backs_the_invariant(self, db):
        account = AccountFactory()

        with pytest.raises(IntegrityError):
            with transaction.atomic():
                Account.objects.filter(pk=account.pk).update(available_balance=Decimal("5.00"))

    def test_transaction_amount_positive(self, pending):
        with pytest.raises(IntegrityError):
            with transaction.atomic():
                Transaction.objects.create(
                    account=pending.account,
                    pending_payment=pending,
                    transaction_type=TransactionType.DEBIT,
                    amount=Decimal("0.00"),
                    currency="PKR",
                    balance_after=Decimal("0.00"),
                    reference_number="DEBIT-zero",
                    status=TransactionStatus.COMPLETED,
                )
