"""
Matching Rules

Each rule is an independent predicate over (transaction, flatmate)
carrying its own match type and confidence. The matcher evaluates
them as an ordered chain, so precedence lives in one list instead of
being spread through nested branches.
"""

from abc import ABC, abstractmethod
from typing import Optional

from flatledger.config import MatchingSettings, get_settings
from flatledger.models.ledger import Flatmate, MatchType, Transaction


def normalize_account(value: Optional[str]) -> str:
    """Strip separators so '12-3456-7890123-00' matches '12 3456 7890123 00'."""
    if not value:
        return ""
    return value.replace("-", "").replace(" ", "").lower()


class MatchingRule(ABC):
    """A single tier in the matching precedence chain."""

    match_type: MatchType

    def __init__(self, confidence: float):
        if not 0.0 <= confidence <= 1.0:
            raise ValueError(f"Confidence must be between 0 and 1, got {confidence}")
        self.confidence = confidence

    @abstractmethod
    def is_configured(self, flatmate: Flatmate) -> bool:
        """Does the flatmate have this rule set up at all?"""

    @abstractmethod
    def matches(self, transaction: Transaction, flatmate: Flatmate) -> bool:
        """Does the transaction satisfy the flatmate's rule?"""

    def __repr__(self) -> str:
        return f"{type(self).__name__}(confidence={self.confidence})"


class AccountRule(MatchingRule):
    """Counterparty account contains the flatmate's bank account pattern."""

    match_type = MatchType.ACCOUNT

    def is_configured(self, flatmate: Flatmate) -> bool:
        return bool(normalize_account(flatmate.bank_account_pattern))

    def matches(self, transaction: Transaction, flatmate: Flatmate) -> bool:
        account = normalize_account(transaction.counterparty_account)
        pattern = normalize_account(flatmate.bank_account_pattern)
        return bool(account) and pattern in account


class CardRule(MatchingRule):
    """Transaction card suffix equals the flatmate's card suffix."""

    match_type = MatchType.CARD

    def is_configured(self, flatmate: Flatmate) -> bool:
        return flatmate.card_suffix is not None

    def matches(self, transaction: Transaction, flatmate: Flatmate) -> bool:
        suffix = (transaction.card_suffix or "").strip()
        return suffix == flatmate.card_suffix


class NameRule(MatchingRule):
    """Description contains the flatmate's matching name, ignoring case."""

    match_type = MatchType.NAME

    def is_configured(self, flatmate: Flatmate) -> bool:
        return bool(flatmate.matching_name)

    def matches(self, transaction: Transaction, flatmate: Flatmate) -> bool:
        return flatmate.matching_name.casefold() in transaction.description.casefold()


def default_rules(settings: Optional[MatchingSettings] = None) -> list[MatchingRule]:
    """The standard chain: account, then card, then name."""
    settings = settings or get_settings().matching
    return [
        AccountRule(settings.account_confidence),
        CardRule(settings.card_confidence),
        NameRule(settings.name_confidence),
    ]
