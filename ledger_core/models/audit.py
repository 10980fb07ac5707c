"""
Audit Models for the Savings Ledger Core

Every balance movement and every silent recovery is logged.
This provides:
1. Traceability of all balance changes
2. Visibility into degraded paths (plaintext fallback, decode fallback)
3. Ability to explain a corrected balance after the fact

DESIGN DECISION: Audit logs are append-only. We never delete or modify them.
"""

import json
from datetime import datetime
from decimal import Decimal
from enum import Enum
from typing import Any, Optional
from uuid import UUID, uuid4

from pydantic import BaseModel, Field


class LedgerEventType(str, Enum):
    """
    Types of events we audit.

    The recovery events double as the error taxonomy of the core:
    none of them is raised to a caller, all of them are logged.
    """
    # Codec recoveries
    AMOUNT_ENCODE_FAILED = "amount_encode_failed"
    AMOUNT_DECODE_FALLBACK = "amount_decode_fallback"
    ENVELOPE_MALFORMED = "envelope_malformed"

    # Derived views
    ALLOCATION_NOT_CONVERGED = "allocation_not_converged"
    HISTORY_EMPTY = "history_empty"

    # Account reads
    ACCOUNT_LOADED = "account_loaded"
    BALANCE_RECONCILED = "balance_reconciled"

    # Balance movements
    DEPOSIT_RECORDED = "deposit_recorded"
    WITHDRAWAL_RECORDED = "withdrawal_recorded"
    GOAL_REDEEMED = "goal_redeemed"

    # Goal management
    GOAL_SAVED = "goal_saved"
    GOAL_DELETED = "goal_deleted"

    # Storage events
    SAVE_FAILED = "save_failed"


class AuditSeverity(str, Enum):
    """Severity level for audit events."""
    DEBUG = "debug"
    INFO = "info"
    WARNING = "warning"
    ERROR = "error"
    CRITICAL = "critical"


class AuditEvent(BaseModel):
    """
    A single audit event.

    Amounts in details are always plain decimal strings. Audit storage
    is outside the codec, so callers decide what is safe to record.
    """

    # Identity
    event_id: UUID = Field(
        default_factory=uuid4,
        description="Unique event identifier"
    )
    timestamp: datetime = Field(
        default_factory=datetime.utcnow,
        description="When the event occurred (UTC)"
    )

    # Event classification
    event_type: LedgerEventType
    severity: AuditSeverity = AuditSeverity.INFO

    # Context - what entity is this about?
    entity_type: Optional[str] = Field(
        default=None,
        description="Type of entity (e.g., 'account', 'goal', 'transaction')"
    )
    entity_id: Optional[str] = None

    # Correlation - for tracking related events
    correlation_id: Optional[UUID] = None

    description: str = Field(
        ...,
        max_length=500,
    )
    details: dict[str, Any] = Field(default_factory=dict)

    error_message: Optional[str] = None

    is_user_action: bool = False

    def to_log_dict(self) -> dict:
        """
        Convert to a dictionary suitable for structured logging.
        """
        return {
            "event_id": str(self.event_id),
            "timestamp": self.timestamp.isoformat(),
            "event_type": self.event_type.value,
            "severity": self.severity.value,
            "entity_type": self.entity_type,
            "entity_id": self.entity_id,
            "correlation_id": str(self.correlation_id) if self.correlation_id else None,
            "description": self.description,
            "details": self.details,
            "error_message": self.error_message,
            "is_user_action": self.is_user_action,
        }

    def to_row(self) -> list:
        """
        Convert to a flat row for tabular audit storage.

        Returns columns in order:
        [event_id, timestamp, event_type, severity, entity_type, entity_id,
         correlation_id, description, details_json, error_message, is_user_action]
        """
        return [
            str(self.event_id),
            self.timestamp.isoformat(),
            self.event_type.value,
            self.severity.value,
            self.entity_type or "",
            self.entity_id or "",
            str(self.correlation_id) if self.correlation_id else "",
            self.description,
            json.dumps(self.details) if self.details else "",
            self.error_message or "",
            str(self.is_user_action),
        ]


class AuditEventBuilder:
    """
    Helper class to build audit events with common patterns.

    Usage:
        event = AuditEventBuilder.deposit_recorded(account_id, tx_id, amount)
        event = AuditEventBuilder.goal_redeemed(account_id, goal_id, title, amount)
    """

    @staticmethod
    def account_loaded(
        account_id: str,
        transaction_count: int,
        goal_count: int,
        allocation_converged: bool,
        correlation_id: Optional[UUID] = None,
    ) -> AuditEvent:
        return AuditEvent(
            event_type=LedgerEventType.ACCOUNT_LOADED,
            severity=AuditSeverity.DEBUG,
            entity_type="account",
            entity_id=account_id,
            correlation_id=correlation_id,
            description="Account view rebuilt",
            details={
                "transaction_count": transaction_count,
                "goal_count": goal_count,
                "allocation_converged": allocation_converged,
            },
        )

    @staticmethod
    def balance_reconciled(
        account_id: str,
        stored_balance: Decimal,
        transaction_sum: Decimal,
        correlation_id: Optional[UUID] = None,
    ) -> AuditEvent:
        return AuditEvent(
            event_type=LedgerEventType.BALANCE_RECONCILED,
            severity=AuditSeverity.WARNING,
            entity_type="account",
            entity_id=account_id,
            correlation_id=correlation_id,
            description="Stored balance replaced by transaction sum",
            details={
                "stored_balance": str(stored_balance),
                "transaction_sum": str(transaction_sum),
            },
        )

    @staticmethod
    def deposit_recorded(
        account_id: str,
        transaction_id: str,
        amount: Decimal,
        correlation_id: Optional[UUID] = None,
    ) -> AuditEvent:
        return AuditEvent(
            event_type=LedgerEventType.DEPOSIT_RECORDED,
            entity_type="account",
            entity_id=account_id,
            correlation_id=correlation_id,
            description=f"Deposit of {amount} recorded",
            details={
                "transaction_id": transaction_id,
                "amount": str(amount),
            },
            is_user_action=True,
        )

    @staticmethod
    def withdrawal_recorded(
        account_id: str,
        transaction_id: str,
        amount: Decimal,
        correlation_id: Optional[UUID] = None,
    ) -> AuditEvent:
        return AuditEvent(
            event_type=LedgerEventType.WITHDRAWAL_RECORDED,
            entity_type="account",
            entity_id=account_id,
            correlation_id=correlation_id,
            description=f"Withdrawal of {amount} recorded",
            details={
                "transaction_id": transaction_id,
                "amount": str(amount),
            },
            is_user_action=True,
        )

    @staticmethod
    def goal_redeemed(
        account_id: str,
        goal_id: str,
        title: str,
        amount: Decimal,
        correlation_id: Optional[UUID] = None,
    ) -> AuditEvent:
        return AuditEvent(
            event_type=LedgerEventType.GOAL_REDEEMED,
            entity_type="goal",
            entity_id=goal_id,
            correlation_id=correlation_id,
            description=f"Goal redeemed: {title}",
            details={
                "account_id": account_id,
                "amount": str(amount),
            },
            is_user_action=True,
        )

    @staticmethod
    def goal_saved(
        account_id: str,
        goal_id: str,
        title: str,
        correlation_id: Optional[UUID] = None,
    ) -> AuditEvent:
        return AuditEvent(
            event_type=LedgerEventType.GOAL_SAVED,
            entity_type="goal",
            entity_id=goal_id,
            correlation_id=correlation_id,
            description=f"Goal saved: {title}",
            details={"account_id": account_id},
            is_user_action=True,
        )

    @staticmethod
    def goal_deleted(
        account_id: str,
        goal_id: str,
        correlation_id: Optional[UUID] = None,
    ) -> AuditEvent:
        return AuditEvent(
            event_type=LedgerEventType.GOAL_DELETED,
            entity_type="goal",
            entity_id=goal_id,
            correlation_id=correlation_id,
            description="Goal deleted",
            details={"account_id": account_id},
            is_user_action=True,
        )

    @staticmethod
    def save_failed(
        account_id: str,
        operation: str,
        error_message: str,
        correlation_id: Optional[UUID] = None,
    ) -> AuditEvent:
        return AuditEvent(
            event_type=LedgerEventType.SAVE_FAILED,
            severity=AuditSeverity.ERROR,
            entity_type="account",
            entity_id=account_id,
            correlation_id=correlation_id,
            description=f"Failed to persist {operation}",
            details={"operation": operation},
            error_message=error_message,
        )
