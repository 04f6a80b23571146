"""
Ledger models for the Account Store and its transaction trail.

This module defines:
- Account: Identity plus book/available balances. Owned by the external
  Account Store; the screening engine only mutates balances under its own
  atomic units of work.
- Transaction: Append-only audit trail of every balance mutation.

Balance semantics:
    book_balance: Includes provisional, unscreened credits
    available_balance: Usable funds, raised only after screening approval
    balance: Legacy mirror of available_balance kept for the Account Store

Usage:
    from screening.ledger.models import Account, Transaction, TransactionType

    account = Account.objects.get(wallet_id=wallet_address_id)
    account.transactions.filter(transaction_type=TransactionType.CREDIT_PENDING)
"""

from __future__ import annotations

from decimal import Decimal

from django.db import models
from django.db.models import F, Q

from core.model_mixins import UUIDPrimaryKeyMixin
from core.models import BaseModel


class TransactionType(models.TextChoices):
    """
    Types of ledger transactions.

    Values:
        CREDIT_PENDING: Provisional credit to book balance at intake
        CREDIT: Settled credit recorded during the rejection flow
        DEBIT: Reversal debit recorded during the rejection flow
    """

    CREDIT_PENDING = "CREDIT_PENDING", "Credit (Pending Screening)"
    CREDIT = "CREDIT", "Credit"
    DEBIT = "DEBIT", "Debit"


class TransactionStatus(models.TextChoices):
    """
    Status of a ledger transaction.

    Only CREDIT_PENDING rows ever change status, and only once:
    PENDING → COMPLETED (approved) or PENDING → REJECTED (rejected).
    """

    PENDING = "PENDING", "Pending"
    COMPLETED = "COMPLETED", "Completed"
    REJECTED = "REJECTED", "Rejected"


# =============================================================================
# Account
# =============================================================================


class Account(BaseModel):
    """
    A customer account that can receive payments from the payment rail.

    Fields:
        name: Account holder name
        email: Account holder email
        iban: Account IBAN (unique)
        currency: ISO 4217 currency the account is denominated in
        wallet_id: Rail wallet address identifier used to route webhooks
        wallet_address: Public rail wallet address URL of this account
        book_balance: Ledger balance including unscreened credits
        available_balance: Balance usable by the account holder
        balance: Mirror of available_balance

    Constraints:
        - available_balance <= book_balance
    """

    name = models.CharField(
        max_length=255,
        help_text="Account holder name",
    )
    email = models.EmailField(
        blank=True,
        help_text="Account holder email address",
    )
    iban = models.CharField(
        max_length=34,
        unique=True,
        null=True,
        blank=True,
        help_text="International Bank Account Number",
    )
    currency = models.CharField(
        max_length=3,
        default="PKR",
        help_text="ISO 4217 currency code of the account",
    )
    wallet_id = models.CharField(
        max_length=255,
        unique=True,
        null=True,
        blank=True,
        help_text="Payment rail wallet address identifier",
    )
    wallet_address = models.URLField(
        max_length=500,
        blank=True,
        help_text="Public payment rail wallet address URL",
    )
    book_balance = models.DecimalField(
        max_digits=18,
        decimal_places=2,
        default=Decimal("0.00"),
        help_text="Ledger balance including provisional credits",
    )
    available_balance = models.DecimalField(
        max_digits=18,
        decimal_places=2,
        default=Decimal("0.00"),
        help_text="Balance available to the account holder",
    )
    balance = models.DecimalField(
        max_digits=18,
        decimal_places=2,
        default=Decimal("0.00"),
        help_text="Mirror of available balance",
    )
    is_active = models.BooleanField(
        default=True,
        help_text="Whether this account can receive payments",
    )

    class Meta:
        ordering = ["name"]
        constraints = [
            models.CheckConstraint(
                condition=Q(available_balance__lte=F("book_balance")),
                name="account_available_lte_book",
            ),
        ]

    def __str__(self) -> str:
        return f"{self.name} ({self.currency})"


# =============================================================================
# Transaction
# =============================================================================


class Transaction(UUIDPrimaryKeyMixin, BaseModel):
    """
    Immutable audit entry for a balance mutation.

    Rows are append-only. The one exception is the status of a
    CREDIT_PENDING row, which moves from PENDING to COMPLETED or REJECTED
    when its pending payment is decided.

    Fields:
        account: Account whose balance changed
        pending_payment: Pending payment that caused this entry
        transaction_type: CREDIT_PENDING, CREDIT, or DEBIT
        amount: Amount moved (always positive)
        currency: ISO 4217 currency of the amount
        balance_after: Book balance after a CREDIT_PENDING; available
            balance after a CREDIT or DEBIT
        reference_number: Unique reference for reconciliation
        status: PENDING, COMPLETED, or REJECTED
    """

    account = models.ForeignKey(
        Account,
        on_delete=models.PROTECT,
        related_name="transactions",
        help_text="Account whose balance changed",
    )
    pending_payment = models.ForeignKey(
        "screening.PendingPayment",
        on_delete=models.PROTECT,
        null=True,
        blank=True,
        related_name="transactions",
        help_text="Pending payment that caused this entry",
    )
    transaction_type = models.CharField(
        max_length=20,
        choices=TransactionType.choices,
        db_index=True,
        help_text="Kind of balance mutation",
    )
    amount = models.DecimalField(
        max_digits=18,
        decimal_places=2,
        help_text="Amount moved",
    )
    currency = models.CharField(
        max_length=3,
        help_text="ISO 4217 currency code",
    )
    balance_after = models.DecimalField(
        max_digits=18,
        decimal_places=2,
        help_text="Relevant balance after this mutation",
    )
    description = models.CharField(
        max_length=500,
        blank=True,
        help_text="Human-readable description",
    )
    reference_number = models.CharField(
        max_length=100,
        unique=True,
        help_text="Unique reference for reconciliation",
    )
    status = models.CharField(
        max_length=20,
        choices=TransactionStatus.choices,
        default=TransactionStatus.PENDING,
        db_index=True,
        help_text="Transaction status",
    )

    class Meta:
        ordering = ["created_at"]
        constraints = [
            models.CheckConstraint(
                condition=Q(amount__gt=0),
                name="transaction_amount_positive",
            ),
        ]
        indexes = [
            models.Index(fields=["account", "created_at"], name="txn_account_created_idx"),
            models.Index(
                fields=["pending_payment", "transaction_type"],
                name="txn_pending_type_idx",
            ),
        ]

    def __str__(self) -> str:
        return (
            f"{self.transaction_type} {self.amount} {self.currency} "
            f"({self.status}) ref={self.reference_number}"
        )
