"""
In-Memory Storage Implementation

Keeps rows in plain dicts and lists. Used by the test suite and for
local experiments; it follows the abstract interface exactly, so the
service layer cannot tell it apart from a remote backend.

Rows are copied on the way in and on the way out so callers can't
mutate stored state by accident.
"""

from typing import Optional

from ledger_core.models.account import StoredAccount, StoredGoal, StoredTransaction
from ledger_core.models.audit import AuditEvent
from ledger_core.services.storage.interface import (
    AccountStorageInterface,
    AuditStorageInterface,
    NotFoundError,
)


class InMemoryAccountStorage(AccountStorageInterface):
    """Dictionary-backed account storage."""

    def __init__(
        self,
        accounts: Optional[list[StoredAccount]] = None,
        transactions: Optional[list[StoredTransaction]] = None,
        goals: Optional[list[StoredGoal]] = None,
    ):
        self._accounts: dict[str, StoredAccount] = {
            account.id: account.model_copy() for account in accounts or []
        }
        self._transactions: list[StoredTransaction] = [
            tx.model_copy() for tx in transactions or []
        ]
        self._goals: dict[str, StoredGoal] = {
            goal.id: goal.model_copy() for goal in goals or []
        }

    async def get_account(self, account_id: str) -> Optional[StoredAccount]:
        account = self._accounts.get(account_id)
        return account.model_copy() if account else None

    async def save_balance(self, account_id: str, encoded_balance: str) -> bool:
        account = self._accounts.get(account_id)
        if account is None:
            raise NotFoundError(f"Account not found: {account_id}")
        self._accounts[account_id] = account.model_copy(
            update={"balance": encoded_balance}
        )
        return True

    async def append_transactions(
        self,
        transactions: list[StoredTransaction],
    ) -> bool:
        for tx in transactions:
            if tx.account_id not in self._accounts:
                raise NotFoundError(f"Account not found: {tx.account_id}")
        self._transactions.extend(tx.model_copy() for tx in transactions)
        return True

    async def list_transactions(self, account_id: str) -> list[StoredTransaction]:
        return [
            tx.model_copy()
            for tx in self._transactions
            if tx.account_id == account_id
        ]

    async def list_goals(self, account_id: str) -> list[StoredGoal]:
        return [
            goal.model_copy()
            for goal in self._goals.values()
            if goal.account_id == account_id
        ]

    async def save_goal(self, goal: StoredGoal) -> bool:
        if goal.account_id not in self._accounts:
            raise NotFoundError(f"Account not found: {goal.account_id}")
        self._goals[goal.id] = goal.model_copy()
        return True

    async def delete_goal(self, account_id: str, goal_id: str) -> bool:
        goal = self._goals.get(goal_id)
        if goal is None or goal.account_id != account_id:
            return False
        del self._goals[goal_id]
        return True


class InMemoryAuditStorage(AuditStorageInterface):
    """Append-only list of audit events."""

    def __init__(self):
        self._events: list[AuditEvent] = []

    @property
    def events(self) -> list[AuditEvent]:
        return list(self._events)

    async def append_event(self, event: AuditEvent) -> bool:
        self._events.append(event)
        return True
