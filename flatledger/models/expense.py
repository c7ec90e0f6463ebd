"""
Expense Models

Categories of household spending, the rules that sort outgoing
transactions into them, and the derived spending summaries.

An ExpenseMatch links one transaction to one category. Like rent
matches, a manual ExpenseMatch is authoritative and automatic
categorisation never replaces it.
"""

import re
from datetime import date
from decimal import Decimal
from enum import Enum
from typing import Optional

from pydantic import BaseModel, ConfigDict, Field, model_validator

from flatledger.models.ledger import ZERO


def slugify(name: str) -> str:
    """'Power & Gas' -> 'power-gas'."""
    return re.sub(r"[^a-z0-9]+", "-", name.lower()).strip("-")


class RuleMatchMode(str, Enum):
    """How the configured criteria of a rule combine."""
    ANY = "any"
    ALL = "all"


class SummaryPeriod(str, Enum):
    """Reporting period for spending summaries."""
    WEEK = "week"
    MONTH = "month"
    YEAR = "year"
    ALL = "all"


class ExpenseCategory(BaseModel):
    """A bucket of household spending, e.g. Power or Groceries."""
    model_config = ConfigDict(str_strip_whitespace=True)

    id: str = Field(..., min_length=1)
    name: str = Field(..., min_length=1, max_length=100)
    slug: str = Field(
        default="",
        description="URL-safe name, derived from the name when blank"
    )
    icon: str = Field(default="Tag")
    color: str = Field(default="slate")
    track_allotments: bool = Field(
        default=False,
        description="Spending is tracked against a per-week allotment"
    )
    sort_order: int = 100
    is_active: bool = True

    @model_validator(mode='after')
    def fill_slug(self) -> 'ExpenseCategory':
        if not self.slug:
            self.slug = slugify(self.name)
        return self


class ExpenseRule(BaseModel):
    """
    Sorts outgoing transactions into a category.

    Every configured pattern is one criterion. Merchant, description
    and account patterns are case-insensitive substrings, or regular
    expressions when is_regex is set. The aggregator category must
    match exactly, ignoring case. A rule with no criteria never matches.
    """
    model_config = ConfigDict(str_strip_whitespace=True)

    id: str = Field(..., min_length=1)
    category_id: str = Field(..., min_length=1)
    name: str = Field(..., min_length=1, max_length=200)
    priority: int = Field(
        default=0,
        description="Higher priorities are tried first"
    )
    merchant_pattern: Optional[str] = None
    description_pattern: Optional[str] = None
    account_pattern: Optional[str] = None
    aggregator_category: Optional[str] = Field(
        default=None,
        description="Category assigned by the bank aggregator"
    )
    match_mode: RuleMatchMode = RuleMatchMode.ANY
    is_regex: bool = False
    is_active: bool = True


class ExpenseMatch(BaseModel):
    """The category a transaction was sorted into."""
    model_config = ConfigDict(frozen=True)

    transaction_id: str
    category_id: str
    rule_id: Optional[str] = None
    confidence: float = Field(default=1.0, ge=0.0, le=1.0)
    manual_match: bool = False

    @model_validator(mode='after')
    def validate_source(self) -> 'ExpenseMatch':
        if self.manual_match and self.rule_id is not None:
            raise ValueError("A manual expense match has no rule")
        return self


class CategorySummary(BaseModel):
    """Spending in one category over a period."""
    model_config = ConfigDict(frozen=True)

    category: ExpenseCategory
    total_amount: Decimal = ZERO
    transaction_count: int = 0
    average_amount: Decimal = ZERO
    trend: Optional[Decimal] = Field(
        default=None,
        description="Percent change against the previous period of equal length"
    )


class BurnRate(BaseModel):
    """How fast money goes out in one category."""
    model_config = ConfigDict(frozen=True)

    category: ExpenseCategory
    daily_rate: Decimal = ZERO
    weekly_rate: Decimal = ZERO
    monthly_rate: Decimal = ZERO
    total_spent: Decimal = ZERO
    days_covered: int = 0
    last_payment_date: Optional[date] = None
    last_payment_amount: Optional[Decimal] = None


class ExpenseRematchResult(BaseModel):
    """Outcome of re-running categorisation over stored transactions."""

    matched: int = Field(default=0, ge=0)
    total: int = Field(default=0, ge=0)
    skipped_manual: int = Field(default=0, ge=0)
