"""Balance reconciliation package."""

from flatledger.balances.calculator import (
    BalanceCalculator,
    classify_week,
    summarize_household,
)

__all__ = ["BalanceCalculator", "classify_week", "summarize_household"]
