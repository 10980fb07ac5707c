"""
Balance History Reconstruction

Historical balances are never stored. They are rebuilt backwards from
the authoritative current balance by undoing transactions one by one,
newest first.

GUARANTEES:
- Pure: same inputs, same output; inputs are not modified
- Replaying the signed amounts forward from the first snapshot
  reproduces the current balance at the last snapshot
- No history is not an error: it yields an empty list
"""

from datetime import date, timedelta
from decimal import Decimal
from typing import Optional, Sequence

import structlog

from ledger_core.config import get_settings
from ledger_core.models.audit import LedgerEventType
from ledger_core.models.ledger import HistorySnapshot, Transaction, TransactionType


logger = structlog.get_logger(__name__)


def undo_transaction(balance: Decimal, transaction: Transaction) -> Decimal:
    """Balance just before the transaction was applied."""
    if transaction.type == TransactionType.DEPOSIT:
        return balance - transaction.signed_amount
    return balance + abs(transaction.signed_amount)


def reconstruct_history(
    current_balance: Decimal,
    transactions: Sequence[Transaction],
    label_format: Optional[str] = None,
) -> list[HistorySnapshot]:
    """
    Rebuild one balance snapshot per transaction, oldest first.

    Each snapshot holds the balance right after its transaction.
    Transactions on the same day stay separate snapshots; among them
    the one listed first is treated as the most recent.
    """
    if not transactions:
        logger.debug(LedgerEventType.HISTORY_EMPTY.value)
        return []

    label_format = label_format or get_settings().history.label_format

    # sorted() is stable, so reverse=True keeps insertion order for ties
    newest_first = sorted(transactions, key=lambda tx: tx.occurred_at, reverse=True)

    snapshots: list[HistorySnapshot] = []
    running = current_balance
    for tx in newest_first:
        snapshots.append(HistorySnapshot(
            label=tx.occurred_at.strftime(label_format),
            occurred_at=tx.occurred_at,
            amount=running,
        ))
        running = undo_transaction(running, tx)

    snapshots.reverse()
    return snapshots


def reconstruct_daily_history(
    current_balance: Decimal,
    transactions: Sequence[Transaction],
    days: Optional[int] = None,
    today: Optional[date] = None,
    label_format: Optional[str] = None,
    today_label: Optional[str] = None,
) -> list[HistorySnapshot]:
    """
    Rebuild an end-of-day balance for each of the last `days` days.

    Days without transactions repeat the previous balance, so the
    series is continuous and suitable for a fixed-width chart.
    Transactions dated after `today` are undone before the first day.
    Unlike reconstruct_history, points are clamped at 0.
    """
    history_settings = get_settings().history
    if days is None:
        days = history_settings.daily_window_days
    today = today or date.today()
    label_format = label_format or history_settings.label_format
    today_label = today_label or history_settings.today_label

    if days < 1:
        raise ValueError("days must be at least 1")

    by_day: dict[date, list[Transaction]] = {}
    for tx in transactions:
        by_day.setdefault(tx.occurred_at, []).append(tx)

    running = current_balance
    for day, day_transactions in by_day.items():
        if day > today:
            for tx in day_transactions:
                running = undo_transaction(running, tx)

    snapshots: list[HistorySnapshot] = []
    for offset in range(days):
        day = today - timedelta(days=offset)
        snapshots.append(HistorySnapshot(
            label=today_label if offset == 0 else day.strftime(label_format),
            occurred_at=day,
            # The chart never dips below zero
            amount=max(Decimal(0), running),
        ))
        for tx in by_day.get(day, []):
            running = undo_transaction(running, tx)

    snapshots.reverse()
    return snapshots
