"""
Core Ledger Models

These models describe the decoded, in-memory view of a savings account:
transactions, goals and the values derived from them.

DESIGN DECISION: Only the balance and the transaction log are facts.
Goal progress and balance history are derived on every read and are
never written back to storage.
"""

from datetime import date
from decimal import Decimal
from enum import Enum
from typing import Optional
from uuid import uuid4

from pydantic import BaseModel, ConfigDict, Field, computed_field


# Applies to titles entered by a user, not to titles already stored
TITLE_MAX_LENGTH = 200


# =============================================================================
# ENUMS
# =============================================================================

class TransactionType(str, Enum):
    """
    Kinds of balance movement.

    Deposits carry a positive signed amount, the other kinds a negative one.
    """
    DEPOSIT = "deposit"
    WITHDRAWAL = "withdrawal"
    TRANSFER = "transfer"


# =============================================================================
# TRANSACTIONS
# =============================================================================

class Transaction(BaseModel):
    """
    A single, immutable balance movement.

    Transactions are never edited. A correction is a new transaction.
    """
    model_config = ConfigDict(frozen=True, str_strip_whitespace=True)

    id: str = Field(
        default_factory=lambda: str(uuid4()),
        min_length=1,
        description="Opaque transaction identifier"
    )
    title: str = Field(
        default="",
        description="What the money was for"
    )
    signed_amount: Decimal = Field(
        ...,
        decimal_places=2,
        description="Positive for deposits, negative for withdrawals/transfers"
    )
    type: TransactionType
    occurred_at: date = Field(
        ...,
        description="Day of the transaction (no time of day)"
    )


# =============================================================================
# GOALS
# =============================================================================

class Goal(BaseModel):
    """
    A named savings target.

    The amount saved towards a goal is NOT stored here;
    it is computed by the goal allocator from the account balance.
    """
    model_config = ConfigDict(str_strip_whitespace=True)

    id: str = Field(
        default_factory=lambda: str(uuid4()),
        min_length=1,
    )
    title: str = ""
    target_amount: Decimal = Field(
        ...,
        gt=0,
        decimal_places=2,
        description="Amount needed to fulfil the goal"
    )
    allocation_percent: float = Field(
        default=0.0,
        description="Display-only weight, ignored by the allocator"
    )


class GoalDraft(BaseModel):
    """
    A goal as entered by the user, before it is saved.

    Stored goals are read back as Goal without these input limits,
    so rows written by older clients always load.
    """
    model_config = ConfigDict(str_strip_whitespace=True)

    title: str = Field(
        ...,
        min_length=1,
        max_length=TITLE_MAX_LENGTH,
    )
    target_amount: Decimal = Field(
        ...,
        gt=0,
        decimal_places=2,
    )
    allocation_percent: float = Field(
        default=0.0,
        ge=0.0,
        le=100.0,
    )


class GoalAllocation(BaseModel):
    """Derived progress of one goal."""

    goal_id: str
    target_amount: Decimal
    current_amount: Decimal
    is_full: bool

    @computed_field
    @property
    def progress_percent(self) -> float:
        """Progress towards the target, capped at 100."""
        ratio = self.current_amount / self.target_amount * 100
        return float(min(Decimal(100), max(Decimal(0), ratio)))

    @computed_field
    @property
    def is_completed(self) -> bool:
        """Display threshold for a fulfilled goal."""
        return self.progress_percent >= 99.9


class AllocationResult(BaseModel):
    """
    Outcome of one allocator run.

    converged is False when the pass cap was reached while goals were
    still changing. The allocations are then the last computed state.
    """

    allocations: list[GoalAllocation] = Field(default_factory=list)
    converged: bool = True
    passes: int = Field(default=0, ge=0)

    def for_goal(self, goal_id: str) -> Optional[GoalAllocation]:
        """Find the allocation of a goal by id."""
        for allocation in self.allocations:
            if allocation.goal_id == goal_id:
                return allocation
        return None

    @property
    def allocated_total(self) -> Decimal:
        return sum((a.current_amount for a in self.allocations), Decimal("0.00"))


# =============================================================================
# HISTORY
# =============================================================================

class HistorySnapshot(BaseModel):
    """One point of the balance-over-time chart."""
    model_config = ConfigDict(frozen=True)

    label: str
    occurred_at: date
    amount: Decimal


# =============================================================================
# LEDGER OPERATION RESULTS
# =============================================================================

class LedgerUpdate(BaseModel):
    """New balance plus the transaction that produced it."""

    previous_balance: Decimal
    new_balance: Decimal
    transaction: Transaction


class ReconciliationResult(BaseModel):
    """
    Result of checking a stored balance against its transaction log.

    When corrected is True, balance is the transaction sum and
    should replace the stored value.
    """

    stored_balance: Decimal
    transaction_sum: Decimal
    balance: Decimal
    corrected: bool
