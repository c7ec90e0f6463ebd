"""
Expense Calculations

Spending summaries and burn rates per category, computed from the
transactions filed under each category. Amounts are reported as
positive spend regardless of the transaction's sign.

Spending weeks start on Saturday, so a week's groceries and the
weekend that follows land in the same bucket. Months are 30 days for
burn-rate purposes.
"""

import calendar
from datetime import date, timedelta
from decimal import Decimal
from typing import Iterable, Optional

from flatledger.models.expense import (
    BurnRate,
    CategorySummary,
    ExpenseCategory,
    ExpenseMatch,
    SummaryPeriod,
)
from flatledger.models.ledger import CENT, ZERO, Transaction


SPENDING_WEEK_START = 5  # Saturday
DAYS_PER_MONTH = 30


def spent(transactions: Iterable[Transaction]) -> Decimal:
    return sum((abs(t.amount) for t in transactions), ZERO)


def in_period(
    transactions: Iterable[Transaction],
    start: Optional[date] = None,
    end: Optional[date] = None,
) -> list[Transaction]:
    """Transactions dated within [start, end]; open bounds are unlimited."""
    return [
        t for t in transactions
        if (start is None or t.date >= start) and (end is None or t.date <= end)
    ]


def group_by_category(
    matches: Iterable[ExpenseMatch],
    transactions: Iterable[Transaction],
) -> dict[str, list[Transaction]]:
    """Transactions filed under each category id, oldest first."""
    by_id = {t.id: t for t in transactions}
    grouped: dict[str, list[Transaction]] = {}
    for match in matches:
        transaction = by_id.get(match.transaction_id)
        if transaction is not None:
            grouped.setdefault(match.category_id, []).append(transaction)
    for filed in grouped.values():
        filed.sort(key=lambda t: (t.date, t.id))
    return grouped


def _active(categories: Iterable[ExpenseCategory]) -> list[ExpenseCategory]:
    return sorted(
        (c for c in categories if c.is_active),
        key=lambda c: (c.sort_order, c.name),
    )


def summarize_category(
    category: ExpenseCategory,
    transactions: Iterable[Transaction],
    start: Optional[date] = None,
    end: Optional[date] = None,
) -> CategorySummary:
    """
    Spending in one category between start and end.

    With both bounds set, the trend compares against the period of the
    same length that ends the day before start.
    """
    transactions = list(transactions)
    current = in_period(transactions, start, end)
    total = spent(current)
    count = len(current)

    trend = None
    if start is not None and end is not None:
        length = (end - start).days + 1
        previous_end = start - timedelta(days=1)
        previous_start = previous_end - timedelta(days=length - 1)
        previous_total = spent(in_period(transactions, previous_start, previous_end))
        if previous_total > 0:
            trend = ((total - previous_total) / previous_total * 100).quantize(CENT)

    return CategorySummary(
        category=category,
        total_amount=total,
        transaction_count=count,
        average_amount=(total / count).quantize(CENT) if count else ZERO,
        trend=trend,
    )


def summarize_categories(
    categories: Iterable[ExpenseCategory],
    matches: Iterable[ExpenseMatch],
    transactions: Iterable[Transaction],
    start: Optional[date] = None,
    end: Optional[date] = None,
) -> list[CategorySummary]:
    """One summary per active category, in display order."""
    grouped = group_by_category(matches, transactions)
    return [
        summarize_category(c, grouped.get(c.id, []), start, end)
        for c in _active(categories)
    ]


def burn_rate(category: ExpenseCategory, transactions: Iterable[Transaction]) -> BurnRate:
    """
    Average spend per day, week and month over the span of the category's
    transactions. The span is at least one day.
    """
    ordered = sorted(transactions, key=lambda t: (t.date, t.id))
    if not ordered:
        return BurnRate(category=category)

    oldest, newest = ordered[0], ordered[-1]
    total = spent(ordered)
    days = max(1, (newest.date - oldest.date).days)

    return BurnRate(
        category=category,
        daily_rate=(total / days).quantize(CENT),
        weekly_rate=(total * 7 / days).quantize(CENT),
        monthly_rate=(total * DAYS_PER_MONTH / days).quantize(CENT),
        total_spent=total,
        days_covered=days,
        last_payment_date=newest.date,
        last_payment_amount=abs(newest.amount),
    )


def category_burn_rates(
    categories: Iterable[ExpenseCategory],
    matches: Iterable[ExpenseMatch],
    transactions: Iterable[Transaction],
) -> list[BurnRate]:
    grouped = group_by_category(matches, transactions)
    return [burn_rate(c, grouped.get(c.id, [])) for c in _active(categories)]


def start_of_spending_week(day: date) -> date:
    return day - timedelta(days=(day.weekday() - SPENDING_WEEK_START) % 7)


def weekly_spending(
    transactions: Iterable[Transaction],
    start: date,
    end: date,
) -> list[tuple[date, Decimal]]:
    """
    Spend per Saturday-started week from start to end.

    Every week in the range is listed, including weeks with no spend.
    """
    totals: dict[date, Decimal] = {}
    for t in in_period(transactions, start, end):
        week = start_of_spending_week(t.date)
        totals[week] = totals.get(week, ZERO) + abs(t.amount)

    weeks = []
    week = start_of_spending_week(start)
    while week <= end:
        weeks.append((week, totals.get(week, ZERO)))
        week += timedelta(weeks=1)
    return weeks


def period_bounds(period: SummaryPeriod, today: date) -> tuple[Optional[date], Optional[date]]:
    """
    Date range of a reporting period containing today.

    WEEK is the Saturday-started week, MONTH the calendar month, YEAR the
    last twelve calendar months including this one, ALL is unbounded.
    """
    month_end = today.replace(day=calendar.monthrange(today.year, today.month)[1])

    if period == SummaryPeriod.WEEK:
        start = start_of_spending_week(today)
        return start, start + timedelta(days=6)
    if period == SummaryPeriod.MONTH:
        return today.replace(day=1), month_end
    if period == SummaryPeriod.YEAR:
        year, month = divmod(today.year * 12 + today.month - 1 - 11, 12)
        return date(year, month + 1, 1), month_end
    return None, None
