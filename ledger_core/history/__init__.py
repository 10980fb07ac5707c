"""Balance history package."""

from ledger_core.history.reconstructor import (
    reconstruct_daily_history,
    reconstruct_history,
    undo_transaction,
)

__all__ = [
    "reconstruct_daily_history",
    "reconstruct_history",
    "undo_transaction",
]
