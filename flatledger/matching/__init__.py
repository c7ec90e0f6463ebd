"""Transaction matching package."""

from flatledger.matching.matcher import (
    TransactionMatcher,
    clear_manual_match,
    set_manual_match,
)
from flatledger.matching.rules import (
    AccountRule,
    CardRule,
    MatchingRule,
    NameRule,
    default_rules,
    normalize_account,
)

__all__ = [
    "AccountRule",
    "CardRule",
    "MatchingRule",
    "NameRule",
    "TransactionMatcher",
    "clear_manual_match",
    "default_rules",
    "normalize_account",
    "set_manual_match",
]
