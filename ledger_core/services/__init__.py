"""Services package."""

from ledger_core.services.storage import (
    AccountStorageInterface,
    AuditStorageInterface,
    ConnectionError,
    InMemoryAccountStorage,
    InMemoryAuditStorage,
    NotFoundError,
    StorageError,
)

__all__ = [
    # Storage services
    "AccountStorageInterface",
    "AuditStorageInterface",
    "ConnectionError",
    "InMemoryAccountStorage",
    "InMemoryAuditStorage",
    "NotFoundError",
    "StorageError",
]
