"""
Expense Rule Criteria

A rule can look at four fields of a transaction: merchant, description,
counterparty account and the aggregator's own category. Each field is
one criterion; a rule only uses the criteria it has a pattern for.
The criteria are evaluated as an ordered chain, the same way matching
rules are, and the rule's match mode decides how the outcomes combine.
"""

import re
from abc import ABC, abstractmethod
from typing import Optional

from flatledger.models.expense import ExpenseRule, RuleMatchMode
from flatledger.models.ledger import Transaction


# Confidence of an automatic category: share of criteria hit plus a
# fixed boost, capped below the 1.0 reserved for manual matches
CONFIDENCE_BOOST = 0.3
MAX_RULE_CONFIDENCE = 0.95


def matches_pattern(pattern: Optional[str], value: Optional[str], is_regex: bool) -> bool:
    """
    Case-insensitive substring or regex search.

    An invalid regular expression falls back to a substring search.
    """
    if not pattern or not value:
        return False
    if is_regex:
        try:
            return re.search(pattern, value, re.IGNORECASE) is not None
        except re.error:
            pass
    return pattern.casefold() in value.casefold()


class Criterion(ABC):
    """One field a rule can look at."""

    field: str

    @abstractmethod
    def pattern(self, rule: ExpenseRule) -> Optional[str]:
        """The rule's pattern for this field, if any."""

    @abstractmethod
    def value(self, transaction: Transaction) -> Optional[str]:
        """The transaction's value for this field."""

    def is_configured(self, rule: ExpenseRule) -> bool:
        return bool(self.pattern(rule))

    def matches(self, rule: ExpenseRule, transaction: Transaction) -> bool:
        return matches_pattern(self.pattern(rule), self.value(transaction), rule.is_regex)

    def __repr__(self) -> str:
        return f"{type(self).__name__}()"


class MerchantCriterion(Criterion):
    field = "merchant"

    def pattern(self, rule: ExpenseRule) -> Optional[str]:
        return rule.merchant_pattern

    def value(self, transaction: Transaction) -> Optional[str]:
        return transaction.merchant


class DescriptionCriterion(Criterion):
    field = "description"

    def pattern(self, rule: ExpenseRule) -> Optional[str]:
        return rule.description_pattern

    def value(self, transaction: Transaction) -> Optional[str]:
        return transaction.description


class AccountCriterion(Criterion):
    field = "account"

    def pattern(self, rule: ExpenseRule) -> Optional[str]:
        return rule.account_pattern

    def value(self, transaction: Transaction) -> Optional[str]:
        return transaction.counterparty_account


class AggregatorCategoryCriterion(Criterion):
    """Exact, case-insensitive; never a regex."""

    field = "aggregator_category"

    def pattern(self, rule: ExpenseRule) -> Optional[str]:
        return rule.aggregator_category

    def value(self, transaction: Transaction) -> Optional[str]:
        return transaction.category

    def matches(self, rule: ExpenseRule, transaction: Transaction) -> bool:
        value = self.value(transaction)
        return value is not None and value.casefold() == self.pattern(rule).casefold()


DEFAULT_CRITERIA: tuple[Criterion, ...] = (
    MerchantCriterion(),
    DescriptionCriterion(),
    AccountCriterion(),
    AggregatorCategoryCriterion(),
)


def evaluate(
    rule: ExpenseRule,
    transaction: Transaction,
    criteria: tuple[Criterion, ...] = DEFAULT_CRITERIA,
) -> list[bool]:
    """Outcome of every criterion the rule configures, in chain order."""
    return [c.matches(rule, transaction) for c in criteria if c.is_configured(rule)]


def combine(mode: RuleMatchMode, outcomes: list[bool]) -> bool:
    """A rule with no criteria never matches."""
    if not outcomes:
        return False
    if mode == RuleMatchMode.ALL:
        return all(outcomes)
    return any(outcomes)


def confidence_for(outcomes: list[bool]) -> float:
    if not outcomes:
        return 0.0
    share = sum(outcomes) / len(outcomes)
    return min(MAX_RULE_CONFIDENCE, share + CONFIDENCE_BOOST)
