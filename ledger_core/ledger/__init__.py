"""Ledger operations package."""

from ledger_core.ledger.operations import (
    InsufficientFundsError,
    InvalidAmountError,
    InvalidTitleError,
    LedgerError,
    apply_transaction,
    can_redeem,
    deposit,
    reconcile_balance,
    redeem_goal,
    withdraw,
)

__all__ = [
    "InsufficientFundsError",
    "InvalidAmountError",
    "InvalidTitleError",
    "LedgerError",
    "apply_transaction",
    "can_redeem",
    "deposit",
    "reconcile_balance",
    "redeem_goal",
    "withdraw",
]
