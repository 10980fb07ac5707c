"""
Ledger Operations

The balance changes in exactly one way: by applying a transaction's
signed amount. Every user action (deposit, withdrawal, goal redemption)
goes through here and yields the new balance together with the
transaction that explains it.

These functions validate user input and raise on invalid requests.
They never touch storage; the caller persists the returned update.
"""

from datetime import date
from decimal import Decimal, InvalidOperation
from typing import Optional, Sequence, Union

from ledger_core.config import get_settings
from ledger_core.models.amount import ZERO, to_amount
from ledger_core.models.ledger import (
    TITLE_MAX_LENGTH,
    Goal,
    LedgerUpdate,
    ReconciliationResult,
    Transaction,
    TransactionType,
)


DEFAULT_DEPOSIT_TITLE = "Deposit"
DEFAULT_WITHDRAWAL_TITLE = "Withdrawal"
REDEMPTION_TITLE_PREFIX = "Goal redeemed: "


class LedgerError(Exception):
    """Base exception for rejected ledger operations."""
    pass


class InvalidAmountError(LedgerError):
    """Amount is not a positive, cent-precision number."""
    pass


class InvalidTitleError(LedgerError):
    """Title entered by the user is too long."""
    pass


class InsufficientFundsError(LedgerError):
    """The balance does not cover the requested amount."""

    def __init__(self, balance: Decimal, requested: Decimal):
        self.balance = balance
        self.requested = requested
        super().__init__(
            f"Balance {balance} does not cover {requested}"
        )


def _positive_amount(amount: Union[Decimal, int, float, str]) -> Decimal:
    try:
        value = to_amount(amount)
    except (InvalidOperation, TypeError, ValueError):
        raise InvalidAmountError(f"Not a valid amount: {amount!r}")
    if value <= 0:
        raise InvalidAmountError(f"Amount must be greater than zero: {amount!r}")
    return value


def _title(title: Optional[str], default: str) -> str:
    text = (title or "").strip()
    if len(text) > TITLE_MAX_LENGTH:
        raise InvalidTitleError(
            f"Title must be at most {TITLE_MAX_LENGTH} characters"
        )
    return text or default


def apply_transaction(balance: Decimal, transaction: Transaction) -> Decimal:
    """New balance after applying a transaction's signed amount."""
    return to_amount(balance + transaction.signed_amount)


def deposit(
    balance: Decimal,
    amount: Union[Decimal, int, float, str],
    title: Optional[str] = None,
    occurred_at: Optional[date] = None,
) -> LedgerUpdate:
    """
    Put money into the account.

    Raises:
        InvalidAmountError: If amount is not positive
        InvalidTitleError: If title is too long
    """
    value = _positive_amount(amount)
    transaction = Transaction(
        title=_title(title, DEFAULT_DEPOSIT_TITLE),
        signed_amount=value,
        type=TransactionType.DEPOSIT,
        occurred_at=occurred_at or date.today(),
    )
    return LedgerUpdate(
        previous_balance=balance,
        new_balance=apply_transaction(balance, transaction),
        transaction=transaction,
    )


def withdraw(
    balance: Decimal,
    amount: Union[Decimal, int, float, str],
    title: Optional[str] = None,
    occurred_at: Optional[date] = None,
) -> LedgerUpdate:
    """
    Take money out of the account.

    Raises:
        InvalidAmountError: If amount is not positive
        InsufficientFundsError: If amount exceeds the balance
        InvalidTitleError: If title is too long
    """
    value = _positive_amount(amount)
    return _spend(balance, value, _title(title, DEFAULT_WITHDRAWAL_TITLE), occurred_at)


def _spend(
    balance: Decimal,
    value: Decimal,
    title: str,
    occurred_at: Optional[date],
) -> LedgerUpdate:
    if value > balance:
        raise InsufficientFundsError(balance=balance, requested=value)

    transaction = Transaction(
        title=title,
        signed_amount=-value,
        type=TransactionType.WITHDRAWAL,
        occurred_at=occurred_at or date.today(),
    )
    return LedgerUpdate(
        previous_balance=balance,
        new_balance=apply_transaction(balance, transaction),
        transaction=transaction,
    )


def can_redeem(balance: Decimal, goal: Goal) -> bool:
    """A goal can be redeemed once the whole balance covers its target."""
    return balance >= goal.target_amount


def redeem_goal(
    balance: Decimal,
    goal: Goal,
    occurred_at: Optional[date] = None,
) -> LedgerUpdate:
    """
    Spend a goal's target amount.

    The caller is expected to delete the goal after persisting the update.

    Raises:
        InsufficientFundsError: If the balance doesn't cover the target
    """
    if not can_redeem(balance, goal):
        raise InsufficientFundsError(balance=balance, requested=goal.target_amount)

    # Generated from a stored title, so cut to length instead of rejecting
    title = f"{REDEMPTION_TITLE_PREFIX}{goal.title}"[:TITLE_MAX_LENGTH]
    return _spend(balance, to_amount(goal.target_amount), title, occurred_at)


def reconcile_balance(
    stored_balance: Decimal,
    transactions: Sequence[Transaction],
    tolerance: Optional[Decimal] = None,
) -> ReconciliationResult:
    """
    Check a stored balance against the sum of its transaction log.

    An account without transactions keeps its stored balance.
    Otherwise a drift larger than the tolerance is resolved in favour
    of the transaction log.
    """
    if tolerance is None:
        tolerance = Decimal(str(get_settings().app.reconcile_tolerance))

    transaction_sum = to_amount(
        sum((tx.signed_amount for tx in transactions), ZERO)
    )

    corrected = bool(transactions) and abs(transaction_sum - stored_balance) > tolerance
    return ReconciliationResult(
        stored_balance=stored_balance,
        transaction_sum=transaction_sum,
        balance=transaction_sum if corrected else stored_balance,
        corrected=corrected,
    )
