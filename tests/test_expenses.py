"""Tests for expense categorisation and spending calculations."""

import asyncio
from datetime import date
from decimal import Decimal

import pytest

from flatledger.expenses import (
    ExpenseCategorizer,
    burn_rate,
    default_categories,
    default_rules,
    manual_expense_match,
    matches_pattern,
    period_bounds,
    summarize_categories,
    summarize_category,
    weekly_spending,
)
from flatledger.models.expense import (
    ExpenseCategory,
    ExpenseMatch,
    ExpenseRule,
    RuleMatchMode,
    SummaryPeriod,
)
from flatledger.services.storage import (
    DuplicateError,
    InMemoryExpenseStorage,
    ManualMatchConflictError,
    NotFoundError,
)


@pytest.fixture
def make_rule():
    """Factory for expense rules filed under 'power' by default."""
    def _make(rule_id: str, priority: int = 0, category_id: str = "power", **kwargs) -> ExpenseRule:
        return ExpenseRule(
            id=rule_id,
            category_id=category_id,
            name=rule_id,
            priority=priority,
            **kwargs,
        )
    return _make


@pytest.fixture
def power() -> ExpenseCategory:
    return ExpenseCategory(id="power", name="Power", sort_order=1)


@pytest.fixture
def groceries() -> ExpenseCategory:
    return ExpenseCategory(id="groceries", name="Groceries", sort_order=2)


class TestMatchesPattern:
    """Tests for the pattern primitive."""

    def test_substring_ignores_case(self):
        assert matches_pattern("mercury", "MERCURY ENERGY", False)

    def test_regex(self):
        assert matches_pattern(r"^count(down)?\b", "Countdown Ponsonby", True)
        assert not matches_pattern(r"^countdown$", "Countdown Ponsonby", True)

    def test_invalid_regex_falls_back_to_substring(self):
        assert matches_pattern("pak(n", "PAK(N SAVE", True)

    @pytest.mark.parametrize("pattern, value", [
        ("mercury", None),
        ("mercury", ""),
        ("", "Mercury"),
        (None, "Mercury"),
    ])
    def test_missing_side_never_matches(self, pattern, value):
        assert not matches_pattern(pattern, value, False)


class TestExpenseCategorizer:
    """Tests for rule evaluation."""

    def test_incoming_money_is_never_an_expense(self, make_rule, make_transaction):
        categorizer = ExpenseCategorizer([make_rule("r1", merchant_pattern="Mercury")])
        refund = make_transaction("e1", "40", merchant="Mercury")
        assert categorizer.match(refund) is None

    def test_highest_priority_wins(self, make_rule, make_transaction):
        categorizer = ExpenseCategorizer([
            make_rule("low", priority=10, category_id="groceries", description_pattern="auto"),
            make_rule("high", priority=90, merchant_pattern="Mercury"),
        ])

        match = categorizer.match(
            make_transaction("e1", "-120", description="Auto payment", merchant="Mercury")
        )

        assert match.category_id == "power"
        assert match.rule_id == "high"
        assert not match.manual_match

    def test_priority_tie_goes_to_lowest_id(self, make_rule):
        categorizer = ExpenseCategorizer([
            make_rule("b", priority=5),
            make_rule("a", priority=5),
        ])
        assert [r.id for r in categorizer.rules] == ["a", "b"]

    def test_inactive_rules_are_ignored(self, make_rule, make_transaction):
        categorizer = ExpenseCategorizer([
            make_rule("r1", merchant_pattern="Mercury", is_active=False),
        ])
        assert categorizer.rules == ()
        assert categorizer.match(make_transaction("e1", "-10", merchant="Mercury")) is None

    def test_any_mode_needs_one_criterion(self, make_rule, make_transaction):
        categorizer = ExpenseCategorizer([
            make_rule("r1", merchant_pattern="Mercury", description_pattern="power"),
        ])

        match = categorizer.match(
            make_transaction("e1", "-10", description="Groceries", merchant="Mercury")
        )

        assert match is not None
        assert match.confidence == pytest.approx(0.8)

    def test_all_mode_needs_every_criterion(self, make_rule, make_transaction):
        categorizer = ExpenseCategorizer([
            make_rule(
                "r1",
                merchant_pattern="Mercury",
                description_pattern="power",
                match_mode=RuleMatchMode.ALL,
            ),
        ])

        assert categorizer.match(
            make_transaction("e1", "-10", description="Groceries", merchant="Mercury")
        ) is None
        match = categorizer.match(
            make_transaction("e2", "-10", description="Power bill", merchant="Mercury")
        )
        assert match.confidence == pytest.approx(0.95)

    def test_aggregator_category_is_exact(self, make_rule, make_transaction):
        categorizer = ExpenseCategorizer([
            make_rule("r1", category_id="groceries", aggregator_category="groceries"),
        ])

        assert categorizer.match(make_transaction("e1", "-10", category="Groceries"))
        assert categorizer.match(make_transaction("e2", "-10", category="groceries & more")) is None

    def test_account_pattern(self, make_rule, make_transaction):
        categorizer = ExpenseCategorizer([make_rule("r1", account_pattern="12-3456")])
        match = categorizer.match(
            make_transaction("e1", "-10", counterparty_account="12-3456-0001-00")
        )
        assert match.category_id == "power"

    def test_rule_without_criteria_never_matches(self, make_rule, make_transaction):
        categorizer = ExpenseCategorizer([make_rule("empty")])
        assert categorizer.match(make_transaction("e1", "-10", merchant="Anything")) is None

    def test_apply_keeps_manual_category(self, make_rule, make_transaction):
        categorizer = ExpenseCategorizer([make_rule("r1", merchant_pattern="Mercury")])
        pinned = manual_expense_match("e1", "groceries")

        result = categorizer.apply(make_transaction("e1", "-10", merchant="Mercury"), pinned)

        assert result is pinned

    def test_default_rules_cover_supermarkets(self, make_transaction):
        categorizer = ExpenseCategorizer(default_rules())

        match = categorizer.match(make_transaction("e1", "-80", merchant="PAK'N SAVE ALBANY"))

        assert match.category_id == "groceries"


class TestExpenseCalculations:
    """Tests for summaries, burn rates and periods."""

    def test_summary_with_trend(self, power, make_transaction):
        transactions = [
            make_transaction("old", "-100", date(2023, 12, 28)),
            make_transaction("e1", "-50", date(2024, 1, 2)),
            make_transaction("e2", "-100", date(2024, 1, 5)),
        ]

        summary = summarize_category(power, transactions, date(2024, 1, 1), date(2024, 1, 7))

        assert summary.total_amount == Decimal("150")
        assert summary.transaction_count == 2
        assert summary.average_amount == Decimal("75.00")
        assert summary.trend == Decimal("50.00")

    def test_summary_without_bounds_has_no_trend(self, power, make_transaction):
        summary = summarize_category(power, [make_transaction("e1", "-30")])
        assert summary.total_amount == Decimal("30")
        assert summary.trend is None

    def test_summaries_skip_inactive_categories(self, power, groceries, make_transaction):
        retired = ExpenseCategory(id="rates", name="Rates", is_active=False, sort_order=0)
        matches = [
            ExpenseMatch(transaction_id="e1", category_id="groceries", rule_id="r1"),
            ExpenseMatch(transaction_id="e2", category_id="rates", rule_id="r2"),
        ]

        summaries = summarize_categories(
            [groceries, retired, power],
            matches,
            [make_transaction("e1", "-80"), make_transaction("e2", "-500")],
        )

        assert [s.category.id for s in summaries] == ["power", "groceries"]
        assert summaries[1].total_amount == Decimal("80")
        assert summaries[0].transaction_count == 0

    def test_burn_rate(self, power, make_transaction):
        rate = burn_rate(power, [
            make_transaction("e2", "-200", date(2024, 1, 31)),
            make_transaction("e1", "-100", date(2024, 1, 1)),
        ])

        assert rate.total_spent == Decimal("300")
        assert rate.days_covered == 30
        assert rate.daily_rate == Decimal("10.00")
        assert rate.weekly_rate == Decimal("70.00")
        assert rate.monthly_rate == Decimal("300.00")
        assert rate.last_payment_date == date(2024, 1, 31)
        assert rate.last_payment_amount == Decimal("200")

    def test_burn_rate_single_day(self, power, make_transaction):
        rate = burn_rate(power, [make_transaction("e1", "-42")])
        assert rate.days_covered == 1
        assert rate.daily_rate == Decimal("42.00")

    def test_burn_rate_without_spend(self, power):
        rate = burn_rate(power, [])
        assert rate.total_spent == Decimal("0")
        assert rate.days_covered == 0
        assert rate.last_payment_date is None

    def test_weekly_spending_fills_empty_weeks(self, make_transaction):
        weeks = weekly_spending(
            [
                make_transaction("e1", "-80.50", date(2024, 1, 6)),
                make_transaction("e2", "-30", date(2024, 1, 9)),
                make_transaction("e3", "-10", date(2024, 1, 27)),
            ],
            date(2024, 1, 6),
            date(2024, 1, 19),
        )

        assert weeks == [
            (date(2024, 1, 6), Decimal("110.50")),
            (date(2024, 1, 13), Decimal("0")),
        ]

    @pytest.mark.parametrize("period, today, bounds", [
        (SummaryPeriod.WEEK, date(2024, 1, 10), (date(2024, 1, 6), date(2024, 1, 12))),
        (SummaryPeriod.MONTH, date(2024, 2, 10), (date(2024, 2, 1), date(2024, 2, 29))),
        (SummaryPeriod.YEAR, date(2024, 3, 15), (date(2023, 4, 1), date(2024, 3, 31))),
        (SummaryPeriod.ALL, date(2024, 3, 15), (None, None)),
    ])
    def test_period_bounds(self, period, today, bounds):
        assert period_bounds(period, today) == bounds


class TestExpenseModels:
    """Tests for expense model validation."""

    def test_slug_is_derived_from_name(self):
        assert ExpenseCategory(id="c1", name="Power & Gas").slug == "power-gas"

    def test_manual_match_has_no_rule(self):
        with pytest.raises(ValueError):
            ExpenseMatch(transaction_id="e1", category_id="power", rule_id="r1", manual_match=True)

    def test_default_categories(self):
        assert [c.slug for c in default_categories()] == ["power", "groceries"]


class TestInMemoryExpenseStorage:
    """Tests for the in-memory expense backend."""

    @pytest.fixture
    def store(self, power, groceries) -> InMemoryExpenseStorage:
        store = InMemoryExpenseStorage()

        async def seed():
            await store.save_category(power)
            await store.save_category(groceries)

        asyncio.run(seed())
        return store

    def test_duplicate_slug(self, store):
        with pytest.raises(DuplicateError):
            asyncio.run(store.save_category(ExpenseCategory(id="power-2", name="Power")))

    def test_rule_needs_category(self, store, make_rule):
        with pytest.raises(NotFoundError):
            asyncio.run(store.save_rule(make_rule("r1", category_id="rates")))

    def test_rules_by_priority(self, store, make_rule):
        async def run():
            await store.save_rule(make_rule("r1", priority=1))
            await store.save_rule(make_rule("r2", priority=9))
            await store.save_rule(make_rule("r3", priority=5, is_active=False))
            return await store.list_rules(active_only=True)

        assert [r.id for r in asyncio.run(run())] == ["r2", "r1"]

    def test_delete_category_cascades(self, store, make_rule):
        async def run():
            await store.save_rule(make_rule("r1"))
            await store.save_expense_match(ExpenseMatch(transaction_id="e1", category_id="power"))
            await store.delete_category("power")
            return await store.list_rules(), await store.get_expense_match("e1")

        rules, match = asyncio.run(run())
        assert rules == []
        assert match is None

    def test_automatic_write_cannot_replace_manual(self, store):
        asyncio.run(store.save_expense_match(manual_expense_match("e1", "power")))

        with pytest.raises(ManualMatchConflictError):
            asyncio.run(store.save_expense_match(
                ExpenseMatch(transaction_id="e1", category_id="groceries", rule_id="r1")
            ))
        with pytest.raises(ManualMatchConflictError):
            asyncio.run(store.delete_expense_match("e1"))
