"""
Ledger - Account balances and the transaction audit trail.

Public API:
    Models:
        Account - Identity plus book/available balances
        Transaction - Append-only record of every balance mutation
        TransactionType - CREDIT_PENDING, CREDIT, DEBIT
        TransactionStatus - PENDING, COMPLETED, REJECTED

    Service:
        LedgerService - Locking and balance mutation operations

    Exceptions:
        LedgerError - Base exception for ledger operations
        AccountNotFoundError - Account lookup failures
        BalanceInvariantError - available_balance above book_balance
"""

from .exceptions import AccountNotFoundError, BalanceInvariantError, LedgerError
from .models import Account, Transaction, TransactionStatus, TransactionType
from .services import LedgerService

__all__ = [
    # Models
    "Account",
    "Transaction",
    "TransactionStatus",
    "TransactionType",
    # Service
    "LedgerService",
    # Exceptions
    "LedgerError",
    "AccountNotFoundError",
    "BalanceInvariantError",
]
