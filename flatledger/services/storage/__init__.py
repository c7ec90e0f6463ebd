"""
Storage Services Package

Provides abstract interfaces and concrete implementations for data storage.
Ships an in-memory backend; persistent backends implement the same interfaces.
"""

from flatledger.services.storage.interface import (
    AuditStorageInterface,
    DuplicateError,
    ExpenseStorageInterface,
    FlatmateStorageInterface,
    LedgerStorageInterface,
    ManualMatchConflictError,
    NotFoundError,
    StorageError,
    TransactionStorageInterface,
)
from flatledger.services.storage.memory import (
    InMemoryAuditStorage,
    InMemoryExpenseStorage,
    InMemoryLedgerStorage,
)

__all__ = [
    # Interfaces
    "AuditStorageInterface",
    "ExpenseStorageInterface",
    "FlatmateStorageInterface",
    "LedgerStorageInterface",
    "TransactionStorageInterface",
    # Exceptions
    "DuplicateError",
    "ManualMatchConflictError",
    "NotFoundError",
    "StorageError",
    # In-memory implementation
    "InMemoryAuditStorage",
    "InMemoryExpenseStorage",
    "InMemoryLedgerStorage",
]
