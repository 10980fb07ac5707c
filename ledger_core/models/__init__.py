"""
Data Models Package

This package contains all Pydantic models used in the Savings Ledger Core.
All data flowing through the system must conform to these schemas.
"""

from ledger_core.models.amount import (
    CENT,
    ZERO,
    AbsentValue,
    EnvelopeValue,
    LegacyPlainValue,
    NumericValue,
    StoredAmount,
    classify_stored_amount,
    format_amount,
    parse_legacy_amount,
    to_amount,
)
from ledger_core.models.ledger import (
    TITLE_MAX_LENGTH,
    AllocationResult,
    Goal,
    GoalAllocation,
    GoalDraft,
    HistorySnapshot,
    LedgerUpdate,
    ReconciliationResult,
    Transaction,
    TransactionType,
)
from ledger_core.models.account import (
    AccountRole,
    AccountView,
    StoredAccount,
    StoredGoal,
    StoredTransaction,
)
from ledger_core.models.audit import (
    AuditEvent,
    AuditEventBuilder,
    AuditSeverity,
    LedgerEventType,
)

__all__ = [
    # Amount models
    "CENT",
    "ZERO",
    "AbsentValue",
    "EnvelopeValue",
    "LegacyPlainValue",
    "NumericValue",
    "StoredAmount",
    "classify_stored_amount",
    "format_amount",
    "parse_legacy_amount",
    "to_amount",
    # Ledger models
    "TITLE_MAX_LENGTH",
    "AllocationResult",
    "Goal",
    "GoalAllocation",
    "GoalDraft",
    "HistorySnapshot",
    "LedgerUpdate",
    "ReconciliationResult",
    "Transaction",
    "TransactionType",
    # Account models
    "AccountRole",
    "AccountView",
    "StoredAccount",
    "StoredGoal",
    "StoredTransaction",
    # Audit models
    "AuditEvent",
    "AuditEventBuilder",
    "AuditSeverity",
    "LedgerEventType",
]
