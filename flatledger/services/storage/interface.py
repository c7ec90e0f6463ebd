"""
Abstract Storage Interface

DESIGN DECISION: We define an abstract interface for storage operations.
This allows us to:
1. Plug in SQLite/PostgreSQL without touching the engine
2. Use in-memory storage for testing
3. Keep matching and reconciliation decoupled from persistence

The interface is intentionally simple - we're not building a full ORM.
Just the operations the sync, matching and balance flows need.

CONCURRENCY: Implementations must serialise writes to the same
transaction. Concurrent syncs may race to match one transaction;
the engine itself holds no locks.
"""

from abc import ABC, abstractmethod
from datetime import date
from typing import Optional

from flatledger.models.audit import AuditEvent
from flatledger.models.expense import ExpenseCategory, ExpenseMatch, ExpenseRule
from flatledger.models.ledger import Flatmate, ScheduleSegment, Transaction


class TransactionStorageInterface(ABC):
    """
    Abstract interface for transaction storage operations.
    """

    @abstractmethod
    async def get_transaction(self, transaction_id: str) -> Optional[Transaction]:
        """
        Retrieve a transaction by its internal ID.

        Returns:
            The transaction if found, None otherwise
        """
        pass

    @abstractmethod
    async def get_by_external_id(self, external_id: str) -> Optional[Transaction]:
        """
        Retrieve a transaction by its aggregator ID (idempotency key).

        Returns:
            The transaction if found, None otherwise
        """
        pass

    @abstractmethod
    async def insert_transaction(self, transaction: Transaction) -> Transaction:
        """
        Insert a new transaction.

        Raises:
            DuplicateError: If the ID or external ID already exists
        """
        pass

    @abstractmethod
    async def update_bank_fields(self, transaction: Transaction) -> Transaction:
        """
        Refresh the bank-owned fields of an existing transaction.

        Match fields already stored are preserved.

        Raises:
            NotFoundError: If no transaction has this external ID
        """
        pass

    @abstractmethod
    async def save_match(
        self,
        transaction: Transaction,
        allow_manual_override: bool = False,
    ) -> Transaction:
        """
        Store the match fields of a transaction.

        Args:
            transaction: Transaction carrying the new match fields
            allow_manual_override: Must be True to change a transaction
                whose stored copy is manually matched

        Returns:
            The stored transaction after the write

        Raises:
            NotFoundError: If the transaction doesn't exist
            ManualMatchConflictError: If a manual match would be replaced
                without allow_manual_override
        """
        pass

    @abstractmethod
    async def list_transactions(
        self,
        matched_user_id: Optional[str] = None,
        date_from: Optional[date] = None,
        date_to: Optional[date] = None,
        unmatched_only: bool = False,
    ) -> list[Transaction]:
        """
        List transactions with optional filters, oldest first.

        Args:
            matched_user_id: Only transactions matched to this flatmate
            date_from: Only transactions on or after this date
            date_to: Only transactions on or before this date
            unmatched_only: Only transactions without a flatmate
        """
        pass


class FlatmateStorageInterface(ABC):
    """
    Abstract interface for flatmates and their payment schedules.
    """

    @abstractmethod
    async def get_flatmate(self, flatmate_id: str) -> Optional[Flatmate]:
        pass

    @abstractmethod
    async def list_flatmates(self, active_only: bool = True) -> list[Flatmate]:
        """
        List flatmates ordered by ID.

        Flatmates are never deleted, only deactivated.
        """
        pass

    @abstractmethod
    async def save_flatmate(self, flatmate: Flatmate) -> Flatmate:
        """Insert or replace a flatmate."""
        pass

    @abstractmethod
    async def list_segments(self, flatmate_id: str) -> list[ScheduleSegment]:
        """Schedule segments of one flatmate ordered by start date."""
        pass

    @abstractmethod
    async def save_segment(self, segment: ScheduleSegment) -> ScheduleSegment:
        """Insert or replace a schedule segment."""
        pass

    @abstractmethod
    async def get_analysis_start_date(self) -> Optional[date]:
        """Household-wide analysis start date, if one was set."""
        pass

    @abstractmethod
    async def set_analysis_start_date(self, value: Optional[date]) -> None:
        """Set or clear (None) the analysis start date."""
        pass


class LedgerStorageInterface(TransactionStorageInterface, FlatmateStorageInterface):
    """
    Everything the sync, matching and balance flows read and write.

    Backends usually keep transactions and flatmates in one database,
    so they implement both halves in one class.
    """
    pass


class ExpenseStorageInterface(ABC):
    """
    Abstract interface for expense categories, their rules and the
    category each outgoing transaction is filed under.
    """

    @abstractmethod
    async def get_category(self, category_id: str) -> Optional[ExpenseCategory]:
        pass

    @abstractmethod
    async def list_categories(self, active_only: bool = False) -> list[ExpenseCategory]:
        """Categories in display order (sort order, then name)."""
        pass

    @abstractmethod
    async def save_category(self, category: ExpenseCategory) -> ExpenseCategory:
        """
        Insert or replace a category.

        Raises:
            DuplicateError: If another category already uses the slug
        """
        pass

    @abstractmethod
    async def delete_category(self, category_id: str) -> None:
        """
        Delete a category together with its rules and expense matches.

        Raises:
            NotFoundError: If the category doesn't exist
        """
        pass

    @abstractmethod
    async def list_rules(
        self,
        category_id: Optional[str] = None,
        active_only: bool = False,
    ) -> list[ExpenseRule]:
        """Rules ordered by priority, highest first."""
        pass

    @abstractmethod
    async def save_rule(self, rule: ExpenseRule) -> ExpenseRule:
        """
        Insert or replace a rule.

        Raises:
            NotFoundError: If the rule's category doesn't exist
        """
        pass

    @abstractmethod
    async def delete_rule(self, rule_id: str) -> None:
        """
        Raises:
            NotFoundError: If the rule doesn't exist
        """
        pass

    @abstractmethod
    async def get_expense_match(self, transaction_id: str) -> Optional[ExpenseMatch]:
        pass

    @abstractmethod
    async def list_expense_matches(
        self,
        category_id: Optional[str] = None,
    ) -> list[ExpenseMatch]:
        pass

    @abstractmethod
    async def save_expense_match(
        self,
        match: ExpenseMatch,
        allow_manual_override: bool = False,
    ) -> ExpenseMatch:
        """
        Store the category of a transaction.

        Raises:
            NotFoundError: If the category doesn't exist
            ManualMatchConflictError: If a manual assignment would be
                replaced without allow_manual_override
        """
        pass

    @abstractmethod
    async def delete_expense_match(
        self,
        transaction_id: str,
        allow_manual_override: bool = False,
    ) -> bool:
        """
        Remove the category of a transaction.

        Returns:
            True if there was one to remove

        Raises:
            ManualMatchConflictError: If the stored assignment is manual
                and allow_manual_override is False
        """
        pass


class AuditStorageInterface(ABC):
    """
    Abstract interface for audit log storage.

    Audit logs are append-only - we never delete or modify them.
    """

    @abstractmethod
    async def append_event(self, event: AuditEvent) -> bool:
        """
        Append an audit event to the log.

        Returns:
            True if logged successfully
        """
        pass

    @abstractmethod
    async def get_events_by_entity(
        self,
        entity_type: str,
        entity_id: str,
    ) -> list[AuditEvent]:
        """All events for a specific entity, in chronological order."""
        pass

    @abstractmethod
    async def get_recent_events(
        self,
        limit: int = 100,
    ) -> list[AuditEvent]:
        """The most recent audit events (newest first)."""
        pass


class StorageError(Exception):
    """Base exception for storage operations."""
    pass


class NotFoundError(StorageError):
    """Entity not found in storage."""
    pass


class DuplicateError(StorageError):
    """Attempted to insert a duplicate entity."""
    pass


class ManualMatchConflictError(StorageError):
    """An automatic write tried to replace a manual match."""
    pass
