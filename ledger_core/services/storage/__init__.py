"""
Storage Services Package

Provides abstract interfaces and an in-memory implementation for
account and audit storage. Real backends live outside the core and
implement the same interfaces.
"""

from ledger_core.services.storage.interface import (
    AccountStorageInterface,
    AuditStorageInterface,
    ConnectionError,
    NotFoundError,
    StorageError,
)
from ledger_core.services.storage.memory import (
    InMemoryAccountStorage,
    InMemoryAuditStorage,
)

__all__ = [
    # Interfaces
    "AccountStorageInterface",
    "AuditStorageInterface",
    # Exceptions
    "ConnectionError",
    "NotFoundError",
    "StorageError",
    # In-memory implementation
    "InMemoryAccountStorage",
    "InMemoryAuditStorage",
]
