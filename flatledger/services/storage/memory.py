"""
In-Memory Storage Implementation

Backs the storage interfaces with plain dictionaries. Used by the test
suite and for single-process deployments that rebuild state from a
full bank sync on startup.

TRADEOFFS:
- Nothing survives a restart
- One asyncio.Lock serialises every write, which is plenty for a
  household and gives the per-transaction write ordering the
  interface requires
"""

import asyncio
from datetime import date
from typing import Optional

from flatledger.models.audit import AuditEvent
from flatledger.models.expense import ExpenseCategory, ExpenseMatch, ExpenseRule
from flatledger.models.ledger import Flatmate, ScheduleSegment, Transaction
from flatledger.schedule import PaymentSchedule
from flatledger.services.storage.interface import (
    AuditStorageInterface,
    DuplicateError,
    ExpenseStorageInterface,
    LedgerStorageInterface,
    ManualMatchConflictError,
    NotFoundError,
)


MATCH_FIELDS = ("matched_user_id", "match_type", "match_confidence", "manual_match")


class InMemoryLedgerStorage(LedgerStorageInterface):
    """
    Transactions, flatmates and schedules held in memory.
    """

    def __init__(self):
        self._transactions: dict[str, Transaction] = {}
        self._by_external_id: dict[str, str] = {}
        self._flatmates: dict[str, Flatmate] = {}
        self._segments: dict[str, list[ScheduleSegment]] = {}
        self._analysis_start_date: Optional[date] = None
        self._lock = asyncio.Lock()

    # -------------------------------------------------------------------------
    # Transactions
    # -------------------------------------------------------------------------

    async def get_transaction(self, transaction_id: str) -> Optional[Transaction]:
        return self._transactions.get(transaction_id)

    async def get_by_external_id(self, external_id: str) -> Optional[Transaction]:
        transaction_id = self._by_external_id.get(external_id)
        if transaction_id is None:
            return None
        return self._transactions[transaction_id]

    async def insert_transaction(self, transaction: Transaction) -> Transaction:
        async with self._lock:
            if transaction.id in self._transactions:
                raise DuplicateError(f"Transaction {transaction.id} already exists")
            if transaction.external_id in self._by_external_id:
                raise DuplicateError(
                    f"Transaction with external ID {transaction.external_id} already exists"
                )
            self._transactions[transaction.id] = transaction
            self._by_external_id[transaction.external_id] = transaction.id
            return transaction

    async def update_bank_fields(self, transaction: Transaction) -> Transaction:
        async with self._lock:
            transaction_id = self._by_external_id.get(transaction.external_id)
            if transaction_id is None:
                raise NotFoundError(
                    f"No transaction with external ID {transaction.external_id}"
                )
            stored = self._transactions[transaction_id]
            updated = transaction.model_copy(update={
                "id": stored.id,
                **{field: getattr(stored, field) for field in MATCH_FIELDS},
            })
            self._transactions[transaction_id] = updated
            return updated

    async def save_match(
        self,
        transaction: Transaction,
        allow_manual_override: bool = False,
    ) -> Transaction:
        async with self._lock:
            stored = self._transactions.get(transaction.id)
            if stored is None:
                raise NotFoundError(f"Transaction {transaction.id} not found")
            if stored.manual_match and not allow_manual_override:
                raise ManualMatchConflictError(
                    f"Transaction {transaction.id} is manually matched"
                )
            updated = stored.model_copy(update={
                field: getattr(transaction, field) for field in MATCH_FIELDS
            })
            self._transactions[transaction.id] = updated
            return updated

    async def list_transactions(
        self,
        matched_user_id: Optional[str] = None,
        date_from: Optional[date] = None,
        date_to: Optional[date] = None,
        unmatched_only: bool = False,
    ) -> list[Transaction]:
        results = []
        for transaction in self._transactions.values():
            if matched_user_id is not None and transaction.matched_user_id != matched_user_id:
                continue
            if unmatched_only and transaction.is_matched:
                continue
            if date_from is not None and transaction.date < date_from:
                continue
            if date_to is not None and transaction.date > date_to:
                continue
            results.append(transaction)
        return sorted(results, key=lambda t: (t.date, t.id))

    # -------------------------------------------------------------------------
    # Flatmates and schedules
    # -------------------------------------------------------------------------

    async def get_flatmate(self, flatmate_id: str) -> Optional[Flatmate]:
        return self._flatmates.get(flatmate_id)

    async def list_flatmates(self, active_only: bool = True) -> list[Flatmate]:
        flatmates = sorted(self._flatmates.values(), key=lambda f: f.id)
        if active_only:
            return [f for f in flatmates if f.is_active]
        return flatmates

    async def save_flatmate(self, flatmate: Flatmate) -> Flatmate:
        async with self._lock:
            self._flatmates[flatmate.id] = flatmate
            return flatmate

    async def list_segments(self, flatmate_id: str) -> list[ScheduleSegment]:
        return sorted(self._segments.get(flatmate_id, []), key=lambda s: s.start_date)

    async def save_segment(self, segment: ScheduleSegment) -> ScheduleSegment:
        """
        Insert or replace a segment.

        Raises:
            NotFoundError: If the flatmate doesn't exist
            ScheduleOverlapError: If the segment overlaps another one
        """
        async with self._lock:
            if segment.flatmate_id not in self._flatmates:
                raise NotFoundError(f"Flatmate {segment.flatmate_id} not found")
            others = [
                s for s in self._segments.get(segment.flatmate_id, [])
                if not (segment.id and s.id == segment.id)
            ]
            # Validates the combined schedule before anything is stored
            PaymentSchedule([*others, segment])
            self._segments[segment.flatmate_id] = [*others, segment]
            return segment

    async def get_analysis_start_date(self) -> Optional[date]:
        return self._analysis_start_date

    async def set_analysis_start_date(self, value: Optional[date]) -> None:
        self._analysis_start_date = value


class InMemoryExpenseStorage(ExpenseStorageInterface):
    """Expense categories, rules and transaction categories held in memory."""

    def __init__(self):
        self._categories: dict[str, ExpenseCategory] = {}
        self._rules: dict[str, ExpenseRule] = {}
        self._matches: dict[str, ExpenseMatch] = {}
        self._lock = asyncio.Lock()

    # -------------------------------------------------------------------------
    # Categories
    # -------------------------------------------------------------------------

    async def get_category(self, category_id: str) -> Optional[ExpenseCategory]:
        return self._categories.get(category_id)

    async def list_categories(self, active_only: bool = False) -> list[ExpenseCategory]:
        categories = sorted(self._categories.values(), key=lambda c: (c.sort_order, c.name))
        if active_only:
            return [c for c in categories if c.is_active]
        return categories

    async def save_category(self, category: ExpenseCategory) -> ExpenseCategory:
        async with self._lock:
            for other in self._categories.values():
                if other.id != category.id and other.slug == category.slug:
                    raise DuplicateError(
                        f"A category with slug {category.slug!r} already exists"
                    )
            self._categories[category.id] = category
            return category

    async def delete_category(self, category_id: str) -> None:
        async with self._lock:
            if category_id not in self._categories:
                raise NotFoundError(f"Expense category {category_id} not found")
            del self._categories[category_id]
            self._rules = {
                k: r for k, r in self._rules.items() if r.category_id != category_id
            }
            self._matches = {
                k: m for k, m in self._matches.items() if m.category_id != category_id
            }

    # -------------------------------------------------------------------------
    # Rules
    # -------------------------------------------------------------------------

    async def list_rules(
        self,
        category_id: Optional[str] = None,
        active_only: bool = False,
    ) -> list[ExpenseRule]:
        rules = [
            r for r in self._rules.values()
            if (category_id is None or r.category_id == category_id)
            and (r.is_active or not active_only)
        ]
        return sorted(rules, key=lambda r: (-r.priority, r.id))

    async def save_rule(self, rule: ExpenseRule) -> ExpenseRule:
        async with self._lock:
            if rule.category_id not in self._categories:
                raise NotFoundError(f"Expense category {rule.category_id} not found")
            self._rules[rule.id] = rule
            return rule

    async def delete_rule(self, rule_id: str) -> None:
        async with self._lock:
            if self._rules.pop(rule_id, None) is None:
                raise NotFoundError(f"Expense rule {rule_id} not found")

    # -------------------------------------------------------------------------
    # Transaction categories
    # -------------------------------------------------------------------------

    async def get_expense_match(self, transaction_id: str) -> Optional[ExpenseMatch]:
        return self._matches.get(transaction_id)

    async def list_expense_matches(
        self,
        category_id: Optional[str] = None,
    ) -> list[ExpenseMatch]:
        return [
            m for m in self._matches.values()
            if category_id is None or m.category_id == category_id
        ]

    async def save_expense_match(
        self,
        match: ExpenseMatch,
        allow_manual_override: bool = False,
    ) -> ExpenseMatch:
        async with self._lock:
            if match.category_id not in self._categories:
                raise NotFoundError(f"Expense category {match.category_id} not found")
            self._check_manual(match.transaction_id, allow_manual_override)
            self._matches[match.transaction_id] = match
            return match

    async def delete_expense_match(
        self,
        transaction_id: str,
        allow_manual_override: bool = False,
    ) -> bool:
        async with self._lock:
            self._check_manual(transaction_id, allow_manual_override)
            return self._matches.pop(transaction_id, None) is not None

    def _check_manual(self, transaction_id: str, allow_manual_override: bool) -> None:
        stored = self._matches.get(transaction_id)
        if stored is not None and stored.manual_match and not allow_manual_override:
            raise ManualMatchConflictError(
                f"Transaction {transaction_id} has a manual expense category"
            )


class InMemoryAuditStorage(AuditStorageInterface):
    """Append-only audit log held in memory."""

    def __init__(self):
        self._events: list[AuditEvent] = []

    async def append_event(self, event: AuditEvent) -> bool:
        self._events.append(event)
        return True

    async def get_events_by_entity(
        self,
        entity_type: str,
        entity_id: str,
    ) -> list[AuditEvent]:
        return [
            e for e in self._events
            if e.entity_type == entity_type and e.entity_id == entity_id
        ]

    async def get_recent_events(
        self,
        limit: int = 100,
    ) -> list[AuditEvent]:
        return list(reversed(self._events))[:limit]
