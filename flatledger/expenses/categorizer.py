"""
Expense Categorizer

Files outgoing transactions under an expense category.

RULES:
1. Only money going out is categorised
2. Active rules are tried by priority, highest first; ties go to the
   lowest rule id. The first rule that matches wins
3. Manual category assignments are authoritative and are kept as-is

Like the transaction matcher, the categorizer is pure and holds no
mutable state.
"""

from typing import Iterable, Optional

from flatledger.expenses.criteria import combine, confidence_for, evaluate
from flatledger.models.expense import ExpenseMatch, ExpenseRule
from flatledger.models.ledger import Transaction


class ExpenseCategorizer:
    """Evaluates expense rules in priority order."""

    def __init__(self, rules: Iterable[ExpenseRule]):
        self._rules = tuple(sorted(
            (r for r in rules if r.is_active),
            key=lambda r: (-r.priority, r.id),
        ))

    @property
    def rules(self) -> tuple[ExpenseRule, ...]:
        return self._rules

    def match(self, transaction: Transaction) -> Optional[ExpenseMatch]:
        """First matching rule's category, or None."""
        if transaction.amount >= 0:
            return None

        for rule in self._rules:
            outcomes = evaluate(rule, transaction)
            if combine(rule.match_mode, outcomes):
                return ExpenseMatch(
                    transaction_id=transaction.id,
                    category_id=rule.category_id,
                    rule_id=rule.id,
                    confidence=confidence_for(outcomes),
                )

        return None

    def apply(
        self,
        transaction: Transaction,
        existing: Optional[ExpenseMatch] = None,
    ) -> Optional[ExpenseMatch]:
        """
        The category the transaction should carry now.

        A manual assignment comes back unchanged.
        """
        if existing is not None and existing.manual_match:
            return existing
        return self.match(transaction)


def manual_expense_match(transaction_id: str, category_id: str) -> ExpenseMatch:
    """Pin a transaction to a category; automatic passes leave it alone."""
    return ExpenseMatch(
        transaction_id=transaction_id,
        category_id=category_id,
        confidence=1.0,
        manual_match=True,
    )
