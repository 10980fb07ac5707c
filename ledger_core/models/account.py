"""
Account Models

Stored* models mirror persisted rows exactly as the storage backend
hands them over: amounts are still encoded (envelope, legacy string or
raw number). AccountView is the decoded, fully derived read model.
"""

from datetime import datetime
from decimal import Decimal
from enum import Enum
from typing import Any, Optional
from uuid import uuid4

from pydantic import BaseModel, Field

from ledger_core.models.ledger import (
    AllocationResult,
    Goal,
    HistorySnapshot,
    Transaction,
    TransactionType,
)


class AccountRole(str, Enum):
    """Relationship of the current user to an account."""
    OWNER = "owner"
    GUEST = "guest"  # Read-only; never writes corrections back


# =============================================================================
# PERSISTED ROWS (amounts still encoded)
# =============================================================================

class StoredAccount(BaseModel):
    """A savings account row."""

    id: str = Field(default_factory=lambda: str(uuid4()))
    name: str = Field(default="Piggy bank", max_length=100)
    balance: Any = Field(
        default=None,
        description="Envelope, legacy plain value, number or None"
    )
    role: AccountRole = AccountRole.OWNER
    created_at: datetime = Field(default_factory=datetime.utcnow)


class StoredTransaction(BaseModel):
    """A transaction row."""

    id: str = Field(default_factory=lambda: str(uuid4()))
    account_id: str
    title: str = ""
    amount: Any = None
    type: TransactionType
    created_at: datetime = Field(default_factory=datetime.utcnow)


class StoredGoal(BaseModel):
    """A goal row."""

    id: str = Field(default_factory=lambda: str(uuid4()))
    account_id: str
    title: str
    target_amount: Any = None
    allocation_percent: float = 0.0


# =============================================================================
# READ MODEL
# =============================================================================

class AccountView(BaseModel):
    """
    Everything a screen needs to show one account.

    Built fresh on every load; nothing here is persisted.
    """

    account_id: str
    name: str
    role: AccountRole
    balance: Decimal
    balance_corrected: bool = Field(
        default=False,
        description="Stored balance disagreed with the transaction log"
    )
    transactions: list[Transaction] = Field(default_factory=list)
    history: list[HistorySnapshot] = Field(default_factory=list)
    goals: list[Goal] = Field(default_factory=list)
    allocation: AllocationResult = Field(default_factory=AllocationResult)

    def goal(self, goal_id: str) -> Optional[Goal]:
        """Find a goal by id."""
        for goal in self.goals:
            if goal.id == goal_id:
                return goal
        return None
