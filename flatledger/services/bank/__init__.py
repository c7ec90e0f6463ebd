"""Bank transaction source package."""

from flatledger.services.bank.interface import (
    StaticTransactionSource,
    TransactionSourceError,
    TransactionSourceInterface,
)

__all__ = [
    "StaticTransactionSource",
    "TransactionSourceError",
    "TransactionSourceInterface",
]
