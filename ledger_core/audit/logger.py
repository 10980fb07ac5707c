"""
Audit Logger

DESIGN DECISION: Every balance movement is logged.
This provides:
1. Complete traceability of how a balance came to be
2. Debugging capability for degraded codec paths
3. Evidence for automatic balance corrections

The audit logger:
- Is async to not block main flow
- Gracefully handles failures (doesn't crash the app if logging fails)
- Supports correlation IDs to trace related events
"""

from decimal import Decimal
from typing import Optional
from uuid import UUID, uuid4

import structlog

from ledger_core.models.audit import AuditEvent, AuditEventBuilder, AuditSeverity
from ledger_core.services.storage import AuditStorageInterface


# Configure structlog for local logging
structlog.configure(
    processors=[
        structlog.stdlib.filter_by_level,
        structlog.stdlib.add_logger_name,
        structlog.stdlib.add_log_level,
        structlog.stdlib.PositionalArgumentsFormatter(),
        structlog.processors.TimeStamper(fmt="iso"),
        structlog.processors.StackInfoRenderer(),
        structlog.processors.format_exc_info,
        structlog.processors.UnicodeDecoder(),
        structlog.processors.JSONRenderer()
    ],
    wrapper_class=structlog.stdlib.BoundLogger,
    context_class=dict,
    logger_factory=structlog.stdlib.LoggerFactory(),
    cache_logger_on_first_use=True,
)


class AuditLogger:
    """
    Central audit logging service.

    Logs events both to:
    1. Structured local log (for debugging)
    2. Audit storage (for persistence), when one is configured
    """

    def __init__(
        self,
        storage: Optional[AuditStorageInterface] = None,
    ):
        self._storage = storage
        self._logger = structlog.get_logger("ledger_core.audit")

    async def log(self, event: AuditEvent) -> bool:
        """
        Log an audit event.

        Always logs locally. Persists to storage if available.

        Returns True if storage write succeeded (or no storage configured).
        """
        log_dict = event.to_log_dict()

        if event.severity in (AuditSeverity.ERROR, AuditSeverity.CRITICAL):
            self._logger.error("audit_event", **log_dict)
        elif event.severity == AuditSeverity.WARNING:
            self._logger.warning("audit_event", **log_dict)
        elif event.severity == AuditSeverity.DEBUG:
            self._logger.debug("audit_event", **log_dict)
        else:
            self._logger.info("audit_event", **log_dict)

        if self._storage:
            try:
                return await self._storage.append_event(event)
            except Exception as e:
                # Log failure but don't raise
                self._logger.error(
                    "audit_storage_failed",
                    error=str(e),
                    event_id=str(event.event_id),
                )
                return False

        return True

    async def log_account_loaded(
        self,
        account_id: str,
        transaction_count: int,
        goal_count: int,
        allocation_converged: bool,
        correlation_id: Optional[UUID] = None,
    ) -> None:
        event = AuditEventBuilder.account_loaded(
            account_id=account_id,
            transaction_count=transaction_count,
            goal_count=goal_count,
            allocation_converged=allocation_converged,
            correlation_id=correlation_id,
        )
        await self.log(event)

    async def log_balance_reconciled(
        self,
        account_id: str,
        stored_balance: Decimal,
        transaction_sum: Decimal,
        correlation_id: Optional[UUID] = None,
    ) -> None:
        """Log an automatic balance correction."""
        event = AuditEventBuilder.balance_reconciled(
            account_id=account_id,
            stored_balance=stored_balance,
            transaction_sum=transaction_sum,
            correlation_id=correlation_id,
        )
        await self.log(event)

    async def log_deposit(
        self,
        account_id: str,
        transaction_id: str,
        amount: Decimal,
        correlation_id: Optional[UUID] = None,
    ) -> None:
        event = AuditEventBuilder.deposit_recorded(
            account_id=account_id,
            transaction_id=transaction_id,
            amount=amount,
            correlation_id=correlation_id,
        )
        await self.log(event)

    async def log_withdrawal(
        self,
        account_id: str,
        transaction_id: str,
        amount: Decimal,
        correlation_id: Optional[UUID] = None,
    ) -> None:
        event = AuditEventBuilder.withdrawal_recorded(
            account_id=account_id,
            transaction_id=transaction_id,
            amount=amount,
            correlation_id=correlation_id,
        )
        await self.log(event)

    async def log_goal_redeemed(
        self,
        account_id: str,
        goal_id: str,
        title: str,
        amount: Decimal,
        correlation_id: Optional[UUID] = None,
    ) -> None:
        event = AuditEventBuilder.goal_redeemed(
            account_id=account_id,
            goal_id=goal_id,
            title=title,
            amount=amount,
            correlation_id=correlation_id,
        )
        await self.log(event)

    async def log_goal_saved(
        self,
        account_id: str,
        goal_id: str,
        title: str,
        correlation_id: Optional[UUID] = None,
    ) -> None:
        event = AuditEventBuilder.goal_saved(
            account_id=account_id,
            goal_id=goal_id,
            title=title,
            correlation_id=correlation_id,
        )
        await self.log(event)

    async def log_goal_deleted(
        self,
        account_id: str,
        goal_id: str,
        correlation_id: Optional[UUID] = None,
    ) -> None:
        event = AuditEventBuilder.goal_deleted(
            account_id=account_id,
            goal_id=goal_id,
            correlation_id=correlation_id,
        )
        await self.log(event)

    async def log_save_failed(
        self,
        account_id: str,
        operation: str,
        error_message: str,
        correlation_id: Optional[UUID] = None,
    ) -> None:
        """Log a failed storage write."""
        event = AuditEventBuilder.save_failed(
            account_id=account_id,
            operation=operation,
            error_message=error_message,
            correlation_id=correlation_id,
        )
        await self.log(event)


def create_correlation_id() -> UUID:
    """
    Create a new correlation ID for tracking related events.

    Use this at the start of a user action (e.g., a deposit).
    Pass it through all subsequent operations.
    """
    return uuid4()
