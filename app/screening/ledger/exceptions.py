"""
Ledger-specific exceptions for balance mutations.

Exception Hierarchy:
    LedgerError (base)
    ├── AccountNotFoundError - Destination account lookup failures
    └── BalanceInvariantError - available_balance would exceed book_balance

Usage:
    from screening.ledger.exceptions import AccountNotFoundError

    raise AccountNotFoundError(
        f"Account {account_id} not found",
        details={"account_id": account_id},
    )
"""

from __future__ import annotations

from decimal import Decimal
from typing import TYPE_CHECKING

from core.exceptions import BaseApplicationError

if TYPE_CHECKING:
    from typing import Any


class LedgerError(BaseApplicationError):
    """
    Base exception for all ledger operations.

    Any LedgerError raised inside an atomic unit of work aborts that
    unit entirely, so no partial balance mutation is ever committed.
    """

    default_error_code: str = "LEDGER_ERROR"


class AccountNotFoundError(LedgerError):
    """Raised when a ledger account cannot be found."""

    default_error_code: str = "ACCOUNT_NOT_FOUND"


class BalanceInvariantError(LedgerError):
    """
    Raised when a mutation would leave available_balance above book_balance.

    Attributes:
        account_id: The account whose balances are inconsistent
        book_balance: Book balance after the attempted mutation
        available_balance: Available balance after the attempted mutation
    """

    default_error_code: str = "BALANCE_INVARIANT_VIOLATED"

    def __init__(
        self,
        account_id: int,
        book_balance: Decimal,
        available_balance: Decimal,
        details: dict[str, Any] | None = None,
    ):
        self.account_id = account_id
        self.book_balance = book_balance
        self.available_balance = available_balance

        full_details = {
            "account_id": account_id,
            "book_balance": str(book_balance),
            "available_balance": str(available_balance),
        }
        if details:
            full_details.update(details)

        super().__init__(
            message=(
                f"Account {account_id} would have available balance "
                f"{available_balance} above book balance {book_balance}"
            ),
            details=full_details,
        )
