"""
Tests for the savings account service

Runs the whole read/write cycle against in-memory storage with the
real codec, so every amount crossing the storage boundary is encoded.
"""

from datetime import date, datetime
from decimal import Decimal

import pytest
from pydantic import ValidationError
from tenacity import wait_none

from ledger_core.audit import AuditLogger
from ledger_core.ledger import InsufficientFundsError, InvalidAmountError
from ledger_core.models import (
    AccountRole,
    AuditSeverity,
    LedgerEventType,
    StoredAccount,
    StoredGoal,
    StoredTransaction,
    TransactionType,
)
from ledger_core.orchestrator import SavingsAccountService
from ledger_core.services.storage import (
    ConnectionError,
    InMemoryAccountStorage,
    InMemoryAuditStorage,
    NotFoundError,
    StorageError,
)


ACCOUNT_ID = "acc-1"


class FailingBalanceStorage(InMemoryAccountStorage):
    """Storage whose balance writes always fail."""

    async def save_balance(self, account_id, encoded_balance):
        raise StorageError("disk full")


class FlakyBalanceStorage(InMemoryAccountStorage):
    """Storage whose first balance write drops the connection."""

    def __init__(self, *args, **kwargs):
        super().__init__(*args, **kwargs)
        self.attempts = 0

    async def save_balance(self, account_id, encoded_balance):
        self.attempts += 1
        if self.attempts == 1:
            raise ConnectionError("connection reset")
        return await super().save_balance(account_id, encoded_balance)


def tx_row(amount, type, day, title=""):
    return StoredTransaction(
        account_id=ACCOUNT_ID,
        title=title,
        amount=amount,
        type=type,
        created_at=datetime(2025, 1, day, 12, 0),
    )


@pytest.fixture
def audit_storage():
    return InMemoryAuditStorage()


@pytest.fixture
def make_service(codec, audit_storage):
    """Build a service over an account with balance 70 (+100, -30)."""

    def _make(storage_class=InMemoryAccountStorage, balance="70", role=AccountRole.OWNER, goals=()):
        storage = storage_class(
            accounts=[StoredAccount(
                id=ACCOUNT_ID,
                balance=codec.encode_sync(Decimal(balance)),
                role=role,
            )],
            transactions=[
                # Mixed encodings: a legacy row and an envelope row
                tx_row("100", TransactionType.DEPOSIT, 1, "Birthday"),
                tx_row(codec.encode_sync(Decimal("-30")), TransactionType.WITHDRAWAL, 5, "Toy"),
            ],
            goals=list(goals),
        )
        service = SavingsAccountService(
            storage,
            codec=codec,
            audit_logger=AuditLogger(audit_storage),
        )
        return service, storage

    return _make


def event_types(audit_storage):
    return [e.event_type for e in audit_storage.events]


class TestLoadAccount:
    """Tests for building the account view."""

    @pytest.mark.asyncio
    async def test_decodes_balance_and_transactions(self, make_service):
        service, _ = make_service()

        view = await service.load_account(ACCOUNT_ID)

        assert view.balance == Decimal("70.00")
        assert view.balance_corrected is False
        assert [t.signed_amount for t in view.transactions] == [Decimal("-30.00"), Decimal("100.00")]
        assert view.transactions[0].occurred_at == date(2025, 1, 5)

    @pytest.mark.asyncio
    async def test_history_ends_at_balance(self, make_service):
        service, _ = make_service()

        view = await service.load_account(ACCOUNT_ID)

        assert [(s.label, s.amount) for s in view.history] == [
            ("01.01", Decimal("100.00")),
            ("05.01", Decimal("70.00")),
        ]

    @pytest.mark.asyncio
    async def test_goal_progress(self, make_service, codec):
        goals = [
            StoredGoal(id="g-small", account_id=ACCOUNT_ID, title="Book", target_amount=codec.encode_sync(Decimal("10"))),
            StoredGoal(id="g-big", account_id=ACCOUNT_ID, title="Bike", target_amount="1000"),
        ]
        service, _ = make_service(goals=goals)

        view = await service.load_account(ACCOUNT_ID)

        assert view.allocation.for_goal("g-small").is_full is True
        assert view.allocation.for_goal("g-big").current_amount == Decimal("60.00")
        assert view.allocation.converged is True

    @pytest.mark.asyncio
    async def test_unreadable_goal_is_skipped(self, make_service):
        goals = [StoredGoal(id="g-bad", account_id=ACCOUNT_ID, title="Broken", target_amount="abc:def")]
        service, _ = make_service(goals=goals)

        view = await service.load_account(ACCOUNT_ID)

        assert view.goals == []
        assert view.allocation.allocations == []

    @pytest.mark.asyncio
    async def test_stored_titles_of_any_length_load(self, make_service, codec):
        """Test rows written without input limits still load."""
        goals = [StoredGoal(id="g-1", account_id=ACCOUNT_ID, title="", target_amount=codec.encode_sync(Decimal("10")))]
        service, storage = make_service(goals=goals)
        await storage.append_transactions([
            tx_row(codec.encode_sync(Decimal("0.01")), TransactionType.DEPOSIT, 6, "x" * 500),
        ])
        await storage.save_balance(ACCOUNT_ID, codec.encode_sync(Decimal("70.01")))

        view = await service.load_account(ACCOUNT_ID)

        assert len(view.transactions[0].title) == 500
        assert view.goal("g-1").title == ""

    @pytest.mark.asyncio
    async def test_missing_account(self, make_service):
        service, _ = make_service()
        with pytest.raises(NotFoundError):
            await service.load_account("nope")

    @pytest.mark.asyncio
    async def test_load_is_audited(self, make_service, audit_storage):
        service, _ = make_service()
        await service.load_account(ACCOUNT_ID)
        assert event_types(audit_storage) == [LedgerEventType.ACCOUNT_LOADED]


class TestReconciliation:
    """Tests for correcting a drifted stored balance."""

    @pytest.mark.asyncio
    async def test_owner_balance_is_corrected_and_saved(self, make_service, codec, audit_storage):
        service, storage = make_service(balance="80")

        view = await service.load_account(ACCOUNT_ID)

        assert view.balance == Decimal("70.00")
        assert view.balance_corrected is True

        stored = await storage.get_account(ACCOUNT_ID)
        assert ":" in stored.balance
        assert codec.decode_sync(stored.balance) == Decimal("70.00")
        assert LedgerEventType.BALANCE_RECONCILED in event_types(audit_storage)

    @pytest.mark.asyncio
    async def test_guest_balance_is_left_alone(self, make_service, codec, audit_storage):
        service, storage = make_service(balance="80", role=AccountRole.GUEST)

        view = await service.load_account(ACCOUNT_ID)

        assert view.balance == Decimal("80.00")
        assert view.balance_corrected is False
        stored = await storage.get_account(ACCOUNT_ID)
        assert codec.decode_sync(stored.balance) == Decimal("80.00")
        assert LedgerEventType.BALANCE_RECONCILED not in event_types(audit_storage)


class TestBalanceMovements:
    """Tests for deposits, withdrawals and redemptions."""

    @pytest.mark.asyncio
    async def test_deposit_persists_encoded_amounts(self, make_service, codec):
        service, storage = make_service()

        update = await service.deposit(ACCOUNT_ID, "25", title="Allowance", occurred_at=date(2025, 1, 9))

        assert update.new_balance == Decimal("95.00")

        stored = await storage.get_account(ACCOUNT_ID)
        assert codec.decode_sync(stored.balance) == Decimal("95.00")

        rows = await storage.list_transactions(ACCOUNT_ID)
        new_row = next(r for r in rows if r.id == update.transaction.id)
        assert ":" in new_row.amount
        assert codec.decode_sync(new_row.amount) == Decimal("25.00")
        assert new_row.created_at.date() == date(2025, 1, 9)

    @pytest.mark.asyncio
    async def test_reload_after_deposit_is_consistent(self, make_service):
        service, _ = make_service()
        await service.deposit(ACCOUNT_ID, "25", occurred_at=date(2025, 1, 9))

        view = await service.load_account(ACCOUNT_ID)

        assert view.balance == Decimal("95.00")
        assert view.balance_corrected is False
        assert view.history[-1].amount == Decimal("95.00")

    @pytest.mark.asyncio
    async def test_withdraw(self, make_service, codec, audit_storage):
        service, storage = make_service()

        update = await service.withdraw(ACCOUNT_ID, "20")

        assert update.new_balance == Decimal("50.00")
        assert update.transaction.signed_amount == Decimal("-20.00")
        stored = await storage.get_account(ACCOUNT_ID)
        assert codec.decode_sync(stored.balance) == Decimal("50.00")
        assert LedgerEventType.WITHDRAWAL_RECORDED in event_types(audit_storage)

    @pytest.mark.asyncio
    async def test_withdraw_more_than_balance(self, make_service, codec):
        service, storage = make_service()

        with pytest.raises(InsufficientFundsError):
            await service.withdraw(ACCOUNT_ID, "70.01")

        assert len(await storage.list_transactions(ACCOUNT_ID)) == 2
        stored = await storage.get_account(ACCOUNT_ID)
        assert codec.decode_sync(stored.balance) == Decimal("70.00")

    @pytest.mark.asyncio
    async def test_invalid_deposit(self, make_service):
        service, _ = make_service()
        with pytest.raises(InvalidAmountError):
            await service.deposit(ACCOUNT_ID, "0")

    @pytest.mark.asyncio
    async def test_redeem_goal(self, make_service, codec, audit_storage):
        goals = [StoredGoal(id="g-1", account_id=ACCOUNT_ID, title="Book", target_amount=codec.encode_sync(Decimal("15")))]
        service, storage = make_service(goals=goals)

        update = await service.redeem_goal(ACCOUNT_ID, "g-1")

        assert update.new_balance == Decimal("55.00")
        assert update.transaction.title == "Goal redeemed: Book"
        assert await storage.list_goals(ACCOUNT_ID) == []
        assert LedgerEventType.GOAL_REDEEMED in event_types(audit_storage)

    @pytest.mark.asyncio
    async def test_redeem_goal_not_covered(self, make_service, codec):
        goals = [StoredGoal(id="g-1", account_id=ACCOUNT_ID, title="Bike", target_amount=codec.encode_sync(Decimal("500")))]
        service, storage = make_service(goals=goals)

        with pytest.raises(InsufficientFundsError):
            await service.redeem_goal(ACCOUNT_ID, "g-1")

        assert len(await storage.list_goals(ACCOUNT_ID)) == 1

    @pytest.mark.asyncio
    async def test_redeem_unknown_goal(self, make_service):
        service, _ = make_service()
        with pytest.raises(NotFoundError):
            await service.redeem_goal(ACCOUNT_ID, "missing")


class TestGoals:
    """Tests for saving and deleting goals."""

    @pytest.mark.asyncio
    async def test_save_goal_encodes_target(self, make_service, codec, audit_storage):
        service, storage = make_service()

        goal = await service.save_goal(ACCOUNT_ID, "Bike", "150")

        rows = await storage.list_goals(ACCOUNT_ID)
        assert len(rows) == 1
        assert rows[0].id == goal.id
        assert codec.decode_sync(rows[0].target_amount) == Decimal("150.00")
        assert LedgerEventType.GOAL_SAVED in event_types(audit_storage)

    @pytest.mark.asyncio
    async def test_update_existing_goal(self, make_service, codec):
        service, storage = make_service()
        goal = await service.save_goal(ACCOUNT_ID, "Bike", "150")

        await service.save_goal(ACCOUNT_ID, "Racing bike", "300", goal_id=goal.id)

        rows = await storage.list_goals(ACCOUNT_ID)
        assert len(rows) == 1
        assert rows[0].title == "Racing bike"
        assert codec.decode_sync(rows[0].target_amount) == Decimal("300.00")

    @pytest.mark.asyncio
    async def test_invalid_target(self, make_service):
        service, _ = make_service()
        with pytest.raises(ValidationError):
            await service.save_goal(ACCOUNT_ID, "Bike", "0")

    @pytest.mark.asyncio
    async def test_new_goal_needs_title(self, make_service):
        service, storage = make_service()
        with pytest.raises(ValidationError):
            await service.save_goal(ACCOUNT_ID, "   ", "150")
        assert await storage.list_goals(ACCOUNT_ID) == []

    @pytest.mark.asyncio
    async def test_delete_goal(self, make_service, audit_storage):
        service, storage = make_service()
        goal = await service.save_goal(ACCOUNT_ID, "Bike", "150")

        assert await service.delete_goal(ACCOUNT_ID, goal.id) is True
        assert await service.delete_goal(ACCOUNT_ID, goal.id) is False
        assert await storage.list_goals(ACCOUNT_ID) == []
        assert event_types(audit_storage).count(LedgerEventType.GOAL_DELETED) == 1


class TestStorageFailures:
    """Tests for failed and retried writes."""

    @pytest.mark.asyncio
    async def test_failed_write_is_audited_and_raised(self, make_service, audit_storage):
        service, _ = make_service(storage_class=FailingBalanceStorage)

        with pytest.raises(StorageError):
            await service.deposit(ACCOUNT_ID, "10")

        failures = [e for e in audit_storage.events if e.event_type == LedgerEventType.SAVE_FAILED]
        assert len(failures) == 1
        assert failures[0].severity == AuditSeverity.ERROR
        assert failures[0].error_message == "disk full"
        assert failures[0].details == {"operation": "deposit"}

    @pytest.mark.asyncio
    async def test_goal_for_missing_account(self, make_service, audit_storage):
        service, _ = make_service()

        with pytest.raises(NotFoundError):
            await service.save_goal("nope", "Bike", "150")

        assert LedgerEventType.SAVE_FAILED in event_types(audit_storage)

    @pytest.mark.asyncio
    async def test_connection_errors_are_retried(self, make_service, codec, monkeypatch):
        monkeypatch.setattr(SavingsAccountService._save_balance.retry, "wait", wait_none())
        service, storage = make_service(storage_class=FlakyBalanceStorage)

        update = await service.deposit(ACCOUNT_ID, "5")

        assert storage.attempts == 2
        stored = await storage.get_account(ACCOUNT_ID)
        assert codec.decode_sync(stored.balance) == update.new_balance
