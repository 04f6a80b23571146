"""
Ledger service layer for screening balance mutations.

All balance writes made by the screening engine go through this service.
Every method expects to run inside the caller's atomic unit of work on an
account row that the caller has already locked with ``lock_account``.

Usage:
    from django.db import transaction
    from screening.ledger import LedgerService

    with transaction.atomic():
        account = LedgerService.lock_account(account_id)
        LedgerService.credit_book_balance(
            account, amount, "PKR",
            pending_payment=pending,
            reference_number=f"CREDIT-PENDING-{pending.id}",
        )
"""

from __future__ import annotations

from decimal import Decimal
from typing import TYPE_CHECKING

from .exceptions import AccountNotFoundError, BalanceInvariantError
from .models import Account, Transaction, TransactionStatus, TransactionType

if TYPE_CHECKING:
    from screening.models import PendingPayment


class LedgerService:
    """
    Service class for ledger operations.

    Key features:
    - Row-level account locking (select_for_update)
    - Balance invariant check after every mutation
    - One Transaction row per mutation for the audit trail

    All methods are static - no instance state is maintained.
    """

    @staticmethod
    def lock_account(account_id: int) -> Account:
        """
        Lock and return an account for the rest of the current transaction.

        Raises:
            AccountNotFoundError: If the account doesn't exist
        """
        try:
            return Account.objects.select_for_update().get(pk=account_id)
        except Account.DoesNotExist:
            raise AccountNotFoundError(
                f"Account {account_id} not found",
                details={"account_id": account_id},
            )

    @staticmethod
    def credit_book_balance(
        account: Account,
        amount: Decimal,
        currency: str,
        pending_payment: PendingPayment,
        reference_number: str,
        description: str = "",
    ) -> Transaction:
        """
        Provisionally credit the book balance for a payment under screening.

        available_balance is not touched. Writes a CREDIT_PENDING row in
        PENDING status that records the new book balance.
        """
        account.book_balance += amount
        LedgerService._save_balances(account)

        return Transaction.objects.create(
            account=account,
            pending_payment=pending_payment,
            transaction_type=TransactionType.CREDIT_PENDING,
            amount=amount,
            currency=currency,
            balance_after=account.book_balance,
            description=description,
            reference_number=reference_number,
            status=TransactionStatus.PENDING,
        )

    @staticmethod
    def release_to_available(
        account: Account,
        amount: Decimal,
        pending_payment: PendingPayment,
    ) -> int:
        """
        Make an approved provisional credit available to the account holder.

        Raises available_balance (and its mirror) and completes the
        matching CREDIT_PENDING row.

        Returns:
            Number of CREDIT_PENDING rows completed (1 in a consistent ledger)
        """
        account.available_balance += amount
        account.balance = account.available_balance
        LedgerService._save_balances(account)

        return LedgerService._close_pending_credit(
            pending_payment, TransactionStatus.COMPLETED
        )

    @staticmethod
    def record_settled_credit(
        account: Account,
        amount: Decimal,
        currency: str,
        pending_payment: PendingPayment,
        reference_number: str,
        description: str = "",
    ) -> Transaction:
        """Credit both balances and write a COMPLETED CREDIT row."""
        account.book_balance += amount
        account.available_balance += amount
        account.balance = account.available_balance
        LedgerService._save_balances(account)

        return Transaction.objects.create(
            account=account,
            pending_payment=pending_payment,
            transaction_type=TransactionType.CREDIT,
            amount=amount,
            currency=currency,
            balance_after=account.available_balance,
            description=description,
            reference_number=reference_number,
            status=TransactionStatus.COMPLETED,
        )

    @staticmethod
    def record_reversal_debit(
        account: Account,
        amount: Decimal,
        currency: str,
        pending_payment: PendingPayment,
        reference_number: str,
        description: str = "",
    ) -> Transaction:
        """Debit both balances and write a COMPLETED DEBIT row."""
        account.book_balance -= amount
        account.available_balance -= amount
        account.balance = account.available_balance
        LedgerService._save_balances(account)

        return Transaction.objects.create(
            account=account,
            pending_payment=pending_payment,
            transaction_type=TransactionType.DEBIT,
            amount=amount,
            currency=currency,
            balance_after=account.available_balance,
            description=description,
            reference_number=reference_number,
            status=TransactionStatus.COMPLETED,
        )

    @staticmethod
    def reject_pending_credit(pending_payment: PendingPayment) -> int:
        """Mark the CREDIT_PENDING row of a rejected payment as REJECTED."""
        return LedgerService._close_pending_credit(
            pending_payment, TransactionStatus.REJECTED
        )

    # -------------------------------------------------------------------------
    # Internals
    # -------------------------------------------------------------------------

    @staticmethod
    def _close_pending_credit(
        pending_payment: PendingPayment, status: TransactionStatus
    ) -> int:
        return Transaction.objects.filter(
            pending_payment=pending_payment,
            transaction_type=TransactionType.CREDIT_PENDING,
            status=TransactionStatus.PENDING,
        ).update(status=status)

    @staticmethod
    def _save_balances(account: Account) -> None:
        if account.available_balance > account.book_balance:
            raise BalanceInvariantError(
                account.pk,
                book_balance=account.book_balance,
                available_balance=account.available_balance,
            )
        account.save(
            update_fields=["book_balance", "available_balance", "balance", "updated_at"]
        )
