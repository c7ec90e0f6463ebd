"""
Transaction Matcher

Attributes a bank transaction to at most one flatmate.

RULES:
1. Rules are evaluated tier by tier (account > card > name); the first
   tier with any hit wins
2. Within a tier, ties go to the lowest flatmate id
3. Inactive flatmates and flatmates with no rules are never matched
4. Manual matches are authoritative and are skipped entirely

The matcher holds no mutable state, so one instance can be shared
across concurrent syncs. Serialising writes to the same transaction
is the storage layer's job.
"""

from typing import Iterable, Optional, Sequence

from flatledger.matching.rules import MatchingRule, default_rules
from flatledger.models.ledger import Flatmate, MatchResult, MatchType, Transaction


class TransactionMatcher:
    """Evaluates the matching rule chain for transactions."""

    def __init__(self, rules: Optional[Sequence[MatchingRule]] = None):
        self._rules = tuple(rules) if rules is not None else tuple(default_rules())

    @property
    def rules(self) -> tuple[MatchingRule, ...]:
        return self._rules

    @staticmethod
    def eligible(flatmates: Iterable[Flatmate]) -> list[Flatmate]:
        """Active flatmates with at least one rule, lowest id first."""
        return sorted(
            (f for f in flatmates if f.is_active and f.has_matching_rules),
            key=lambda f: f.id,
        )

    def match(
        self,
        transaction: Transaction,
        flatmates: Iterable[Flatmate],
    ) -> MatchResult:
        """
        Decide which flatmate a transaction belongs to.

        A manually matched transaction keeps its stored assignment.
        """
        if transaction.manual_match:
            return transaction.current_match()

        candidates = self.eligible(flatmates)

        for rule in self._rules:
            for flatmate in candidates:
                if rule.is_configured(flatmate) and rule.matches(transaction, flatmate):
                    return MatchResult(
                        flatmate_id=flatmate.id,
                        match_type=rule.match_type,
                        confidence=rule.confidence,
                    )

        return MatchResult.unmatched()

    def apply(
        self,
        transaction: Transaction,
        flatmates: Iterable[Flatmate],
    ) -> Transaction:
        """
        Write the match result onto a copy of the transaction.

        Manual matches come back as the very same object.
        """
        if transaction.manual_match:
            return transaction
        return transaction.with_match(self.match(transaction, flatmates))


def set_manual_match(transaction: Transaction, flatmate_id: str) -> Transaction:
    """Pin a transaction to a flatmate; automatic matching will leave it alone."""
    return transaction.with_match(
        MatchResult(
            flatmate_id=flatmate_id,
            match_type=MatchType.MANUAL,
            confidence=1.0,
        ),
        manual=True,
    )


def clear_manual_match(transaction: Transaction) -> Transaction:
    """Drop a manual pin and its assignment so the next pass can rematch it."""
    return transaction.with_match(MatchResult.unmatched())
