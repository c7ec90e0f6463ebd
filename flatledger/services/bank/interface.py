"""
Bank Transaction Source Interface

The bank aggregator client is an external collaborator. The sync flow
only needs one operation from it: "give me the account's transactions,
optionally since a date", already mapped onto our Transaction model.
"""

from abc import ABC, abstractmethod
from datetime import date
from typing import Optional

from flatledger.models.ledger import Transaction


class TransactionSourceError(Exception):
    """The aggregator could not be reached or returned garbage."""

    def __init__(self, message: str, source: str = "bank"):
        self.source = source
        super().__init__(message)


class TransactionSourceInterface(ABC):
    """
    Abstract source of bank transactions.
    """

    name: str = "bank"

    @abstractmethod
    async def fetch_transactions(
        self,
        since: Optional[date] = None,
    ) -> list[Transaction]:
        """
        Fetch every transaction of the shared account.

        Args:
            since: Only fetch transactions on or after this date.
                None means a full history fetch.

        Raises:
            TransactionSourceError: If the fetch fails
        """
        pass


class StaticTransactionSource(TransactionSourceInterface):
    """Serves a fixed list of transactions, e.g. from an exported statement."""

    name = "static"

    def __init__(self, transactions: list[Transaction]):
        self._transactions = list(transactions)

    async def fetch_transactions(
        self,
        since: Optional[date] = None,
    ) -> list[Transaction]:
        if since is None:
            return list(self._transactions)
        return [t for t in self._transactions if t.date >= since]
