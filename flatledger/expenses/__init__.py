"""Expense categorisation package."""

from flatledger.expenses.calculations import (
    burn_rate,
    category_burn_rates,
    group_by_category,
    period_bounds,
    spent,
    summarize_categories,
    summarize_category,
    weekly_spending,
)
from flatledger.expenses.categorizer import ExpenseCategorizer, manual_expense_match
from flatledger.expenses.criteria import (
    AccountCriterion,
    AggregatorCategoryCriterion,
    Criterion,
    DescriptionCriterion,
    MerchantCriterion,
    matches_pattern,
)
from flatledger.expenses.defaults import default_categories, default_rules

__all__ = [
    "AccountCriterion",
    "AggregatorCategoryCriterion",
    "Criterion",
    "DescriptionCriterion",
    "ExpenseCategorizer",
    "MerchantCriterion",
    "burn_rate",
    "category_burn_rates",
    "default_categories",
    "default_rules",
    "group_by_category",
    "manual_expense_match",
    "matches_pattern",
    "period_bounds",
    "spent",
    "summarize_categories",
    "summarize_category",
    "weekly_spending",
]
