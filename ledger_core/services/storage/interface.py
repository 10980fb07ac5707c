"""
Abstract Storage Interface

DESIGN DECISION: Persistence is an external collaborator.
The core only ever sees rows whose amounts are still encoded, and only
ever hands back encoded amounts. This allows us to:
1. Swap the remote database for anything else
2. Use in-memory storage for testing
3. Keep the codec the single place that knows the envelope format

The interface is intentionally small: just the operations a savings
account screen needs.
"""

from abc import ABC, abstractmethod
from typing import Optional

from ledger_core.models.account import StoredAccount, StoredGoal, StoredTransaction
from ledger_core.models.audit import AuditEvent


class AccountStorageInterface(ABC):
    """
    Abstract interface for savings account storage.

    Amount fields of all rows are opaque to the storage backend.
    """

    @abstractmethod
    async def get_account(self, account_id: str) -> Optional[StoredAccount]:
        """
        Retrieve an account row.

        Returns:
            The account if found, None otherwise
        """
        pass

    @abstractmethod
    async def save_balance(self, account_id: str, encoded_balance: str) -> bool:
        """
        Overwrite the stored balance of an account.

        Raises:
            NotFoundError: If the account doesn't exist
            StorageError: If the write fails
        """
        pass

    @abstractmethod
    async def append_transactions(
        self,
        transactions: list[StoredTransaction],
    ) -> bool:
        """
        Append transaction rows. Existing rows are never modified.

        Raises:
            StorageError: If the write fails
        """
        pass

    @abstractmethod
    async def list_transactions(self, account_id: str) -> list[StoredTransaction]:
        """
        List all transaction rows of an account, in insertion order.
        """
        pass

    @abstractmethod
    async def list_goals(self, account_id: str) -> list[StoredGoal]:
        """
        List all goal rows of an account, in insertion order.
        """
        pass

    @abstractmethod
    async def save_goal(self, goal: StoredGoal) -> bool:
        """
        Insert a goal, or replace the row with the same id.

        Raises:
            StorageError: If the write fails
        """
        pass

    @abstractmethod
    async def delete_goal(self, account_id: str, goal_id: str) -> bool:
        """
        Delete a goal.

        Returns:
            True if a row was deleted
        """
        pass


class AuditStorageInterface(ABC):
    """
    Abstract interface for audit log storage.

    Audit logs are append-only - we never delete or modify them.
    """

    @abstractmethod
    async def append_event(self, event: AuditEvent) -> bool:
        """
        Append an audit event to the log.

        Returns:
            True if logged successfully
        """
        pass


class StorageError(Exception):
    """Base exception for storage operations."""
    pass


class NotFoundError(StorageError):
    """Entity not found in storage."""
    pass


class ConnectionError(StorageError):
    """Could not connect to storage backend."""
    pass
