"""
Main Orchestrator for the Savings Ledger Core

This module ties the components together for one savings account:

1. Load    (encoded rows -> decode -> reconcile -> history + goal progress)
2. Deposit / Withdraw (validate -> new balance + transaction -> encode -> save)
3. Redeem  (check balance covers target -> delete goal -> withdraw)
4. Goals   (encode target -> save / delete)

DESIGN DECISION: The orchestrator is the only place that talks to
storage. Codec, history and allocator stay pure and never see a row.
Derived values (history, goal progress) are rebuilt on every load.
"""

import asyncio
from datetime import date, datetime, time
from decimal import Decimal
from typing import Optional, Union
from uuid import UUID

import structlog
from tenacity import (
    retry,
    retry_if_exception_type,
    stop_after_attempt,
    wait_exponential,
)

from ledger_core.audit import AuditLogger, create_correlation_id
from ledger_core.codec import AmountCodec
from ledger_core.goals import allocate_goals
from ledger_core.history import reconstruct_history
from ledger_core import ledger
from ledger_core.models.account import (
    AccountRole,
    AccountView,
    StoredGoal,
    StoredTransaction,
)
from ledger_core.models.ledger import Goal, GoalDraft, LedgerUpdate, Transaction
from ledger_core.services.storage import (
    AccountStorageInterface,
    ConnectionError,
    NotFoundError,
    StorageError,
)


logger = structlog.get_logger(__name__)

Number = Union[Decimal, int, float, str]

_storage_retry = retry(
    stop=stop_after_attempt(3),
    wait=wait_exponential(multiplier=1, min=2, max=10),
    retry=retry_if_exception_type(ConnectionError),
    reraise=True,
)


class SavingsAccountService:
    """
    Orchestrates reads and writes of one savings account.

    GUARANTEES:
    - Amounts are encoded before they reach storage
    - The stored balance only ever changes together with a transaction,
      or by reconciliation against the transaction log
    - Every write is audited, including failed ones
    """

    def __init__(
        self,
        storage: AccountStorageInterface,
        codec: Optional[AmountCodec] = None,
        audit_logger: Optional[AuditLogger] = None,
    ):
        self._storage = storage
        self._codec = codec or AmountCodec()
        self._audit_logger = audit_logger or AuditLogger()

    # -------------------------------------------------------------------------
    # Reads
    # -------------------------------------------------------------------------

    async def load_account(
        self,
        account_id: str,
        correlation_id: Optional[UUID] = None,
    ) -> AccountView:
        """
        Decode an account and derive everything a screen shows.

        Raises:
            NotFoundError: If the account doesn't exist
        """
        correlation_id = correlation_id or create_correlation_id()

        account = await self._storage.get_account(account_id)
        if account is None:
            raise NotFoundError(f"Account not found: {account_id}")

        transaction_rows, goal_rows = await asyncio.gather(
            self._storage.list_transactions(account_id),
            self._storage.list_goals(account_id),
        )

        stored_balance, transactions, goals = await asyncio.gather(
            self._codec.decode(account.balance),
            asyncio.gather(*(self._decode_transaction(row) for row in transaction_rows)),
            asyncio.gather(*(self._decode_goal(row) for row in goal_rows)),
        )
        transactions = list(transactions)
        goals = [goal for goal in goals if goal is not None]

        balance = stored_balance
        corrected = False
        reconciliation = ledger.reconcile_balance(stored_balance, transactions)
        if reconciliation.corrected and account.role == AccountRole.OWNER:
            balance = reconciliation.balance
            corrected = True
            await self._audit_logger.log_balance_reconciled(
                account_id=account_id,
                stored_balance=reconciliation.stored_balance,
                transaction_sum=reconciliation.transaction_sum,
                correlation_id=correlation_id,
            )
            await self._write(
                account_id,
                "balance_reconciliation",
                self._save_balance(account_id, await self._codec.encode(balance)),
                correlation_id,
            )

        allocation = allocate_goals(balance, goals)

        await self._audit_logger.log_account_loaded(
            account_id=account_id,
            transaction_count=len(transactions),
            goal_count=len(goals),
            allocation_converged=allocation.converged,
            correlation_id=correlation_id,
        )

        return AccountView(
            account_id=account.id,
            name=account.name,
            role=account.role,
            balance=balance,
            balance_corrected=corrected,
            transactions=sorted(transactions, key=lambda tx: tx.occurred_at, reverse=True),
            history=reconstruct_history(balance, transactions),
            goals=goals,
            allocation=allocation,
        )

    async def _decode_transaction(self, row: StoredTransaction) -> Transaction:
        return Transaction(
            id=row.id,
            title=row.title,
            signed_amount=await self._codec.decode(row.amount),
            type=row.type,
            occurred_at=row.created_at.date(),
        )

    async def _decode_goal(self, row: StoredGoal) -> Optional[Goal]:
        target = await self._codec.decode(row.target_amount)
        if target <= 0:
            # A goal must have a positive target; a row that decodes to 0
            # is unreadable and is left out of the allocation.
            logger.warning("goal_target_unreadable", goal_id=row.id)
            return None
        return Goal(
            id=row.id,
            title=row.title,
            target_amount=target,
            allocation_percent=row.allocation_percent,
        )

    # -------------------------------------------------------------------------
    # Balance movements
    # -------------------------------------------------------------------------

    async def deposit(
        self,
        account_id: str,
        amount: Number,
        title: Optional[str] = None,
        occurred_at: Optional[date] = None,
    ) -> LedgerUpdate:
        """
        Deposit money into an account.

        Raises:
            InvalidAmountError: If amount is not positive
            InvalidTitleError: If title is too long
            NotFoundError: If the account doesn't exist
            StorageError: If persisting fails
        """
        correlation_id = create_correlation_id()
        view = await self.load_account(account_id, correlation_id)

        update = ledger.deposit(view.balance, amount, title=title, occurred_at=occurred_at)
        await self._persist_update(account_id, update, "deposit", correlation_id)

        await self._audit_logger.log_deposit(
            account_id=account_id,
            transaction_id=update.transaction.id,
            amount=update.transaction.signed_amount,
            correlation_id=correlation_id,
        )
        return update

    async def withdraw(
        self,
        account_id: str,
        amount: Number,
        title: Optional[str] = None,
        occurred_at: Optional[date] = None,
    ) -> LedgerUpdate:
        """
        Withdraw money from an account.

        Raises:
            InvalidAmountError: If amount is not positive
            InvalidTitleError: If title is too long
            InsufficientFundsError: If amount exceeds the balance
            NotFoundError: If the account doesn't exist
            StorageError: If persisting fails
        """
        correlation_id = create_correlation_id()
        view = await self.load_account(account_id, correlation_id)

        update = ledger.withdraw(view.balance, amount, title=title, occurred_at=occurred_at)
        await self._persist_update(account_id, update, "withdrawal", correlation_id)

        await self._audit_logger.log_withdrawal(
            account_id=account_id,
            transaction_id=update.transaction.id,
            amount=abs(update.transaction.signed_amount),
            correlation_id=correlation_id,
        )
        return update

    async def redeem_goal(
        self,
        account_id: str,
        goal_id: str,
        occurred_at: Optional[date] = None,
    ) -> LedgerUpdate:
        """
        Fulfil a goal: spend its target amount and remove it.

        Raises:
            NotFoundError: If the account or goal doesn't exist
            InsufficientFundsError: If the balance doesn't cover the target
            StorageError: If persisting fails
        """
        correlation_id = create_correlation_id()
        view = await self.load_account(account_id, correlation_id)

        goal = view.goal(goal_id)
        if goal is None:
            raise NotFoundError(f"Goal not found: {goal_id}")

        update = ledger.redeem_goal(view.balance, goal, occurred_at=occurred_at)

        await self._write(
            account_id,
            "goal_deletion",
            self._storage.delete_goal(account_id, goal_id),
            correlation_id,
        )
        await self._persist_update(account_id, update, "redemption", correlation_id)

        await self._audit_logger.log_goal_redeemed(
            account_id=account_id,
            goal_id=goal_id,
            title=goal.title,
            amount=goal.target_amount,
            correlation_id=correlation_id,
        )
        return update

    async def _persist_update(
        self,
        account_id: str,
        update: LedgerUpdate,
        operation: str,
        correlation_id: UUID,
    ) -> None:
        tx = update.transaction
        encoded_balance, encoded_amount = await asyncio.gather(
            self._codec.encode(update.new_balance),
            self._codec.encode(tx.signed_amount),
        )
        row = StoredTransaction(
            id=tx.id,
            account_id=account_id,
            title=tx.title,
            amount=encoded_amount,
            type=tx.type,
            created_at=datetime.combine(tx.occurred_at, time.min),
        )
        await self._write(
            account_id,
            operation,
            self._save_balance(account_id, encoded_balance),
            correlation_id,
        )
        await self._write(
            account_id,
            operation,
            self._append_transactions([row]),
            correlation_id,
        )

    # -------------------------------------------------------------------------
    # Goals
    # -------------------------------------------------------------------------

    async def save_goal(
        self,
        account_id: str,
        title: str,
        target_amount: Number,
        goal_id: Optional[str] = None,
        allocation_percent: float = 0.0,
    ) -> Goal:
        """
        Create a goal, or update title/target of an existing one.

        Raises:
            ValueError: If title or target are invalid
            StorageError: If persisting fails
        """
        correlation_id = create_correlation_id()

        draft = GoalDraft(
            title=title,
            target_amount=target_amount,
            allocation_percent=allocation_percent,
        )
        fields = draft.model_dump()
        if goal_id:
            fields["id"] = goal_id
        goal = Goal(**fields)

        row = StoredGoal(
            id=goal.id,
            account_id=account_id,
            title=goal.title,
            target_amount=await self._codec.encode(goal.target_amount),
            allocation_percent=goal.allocation_percent,
        )
        await self._write(account_id, "goal", self._save_goal(row), correlation_id)

        await self._audit_logger.log_goal_saved(
            account_id=account_id,
            goal_id=goal.id,
            title=goal.title,
            correlation_id=correlation_id,
        )
        return goal

    async def delete_goal(self, account_id: str, goal_id: str) -> bool:
        """Remove a goal without spending anything."""
        correlation_id = create_correlation_id()
        deleted = await self._write(
            account_id,
            "goal_deletion",
            self._storage.delete_goal(account_id, goal_id),
            correlation_id,
        )
        if deleted:
            await self._audit_logger.log_goal_deleted(
                account_id=account_id,
                goal_id=goal_id,
                correlation_id=correlation_id,
            )
        return deleted

    # -------------------------------------------------------------------------
    # Storage writes
    # -------------------------------------------------------------------------

    async def _write(self, account_id, operation, write, correlation_id):
        """Await a storage write, auditing failures before re-raising."""
        try:
            return await write
        except StorageError as e:
            await self._audit_logger.log_save_failed(
                account_id=account_id,
                operation=operation,
                error_message=str(e),
                correlation_id=correlation_id,
            )
            raise

    @_storage_retry
    async def _save_balance(self, account_id: str, encoded_balance: str) -> bool:
        return await self._storage.save_balance(account_id, encoded_balance)

    @_storage_retry
    async def _append_transactions(self, rows: list[StoredTransaction]) -> bool:
        return await self._storage.append_transactions(rows)

    @_storage_retry
    async def _save_goal(self, row: StoredGoal) -> bool:
        return await self._storage.save_goal(row)
