"""Services package."""

from flatledger.services.bank import (
    StaticTransactionSource,
    TransactionSourceError,
    TransactionSourceInterface,
)
from flatledger.services.storage import (
    AuditStorageInterface,
    DuplicateError,
    ExpenseStorageInterface,
    FlatmateStorageInterface,
    InMemoryAuditStorage,
    InMemoryExpenseStorage,
    InMemoryLedgerStorage,
    LedgerStorageInterface,
    ManualMatchConflictError,
    NotFoundError,
    StorageError,
    TransactionStorageInterface,
)

__all__ = [
    # Bank source
    "StaticTransactionSource",
    "TransactionSourceError",
    "TransactionSourceInterface",
    # Storage services
    "AuditStorageInterface",
    "ExpenseStorageInterface",
    "DuplicateError",
    "FlatmateStorageInterface",
    "InMemoryAuditStorage",
    "InMemoryExpenseStorage",
    "InMemoryLedgerStorage",
    "LedgerStorageInterface",
    "ManualMatchConflictError",
    "NotFoundError",
    "StorageError",
    "TransactionStorageInterface",
]
