"""
Tests for balance reconciliation.

Scenario used throughout: Alice owes $200/week from Thursday 4 Jan
2024. Week windows run Monday..Sunday around each Thursday.
"""

from datetime import date
from decimal import Decimal

import pytest

from flatledger.balances import BalanceCalculator, classify_week, summarize_household
from flatledger.matching import set_manual_match
from flatledger.models.ledger import FlatmateBalance, WeekStatus


T0 = date(2024, 1, 4)


@pytest.fixture
def calculator(ledger_settings) -> BalanceCalculator:
    return BalanceCalculator(ledger_settings)


@pytest.fixture
def pay(make_transaction):
    """Incoming payment already matched to a flatmate."""
    def _pay(txn_id: str, amount: str, day: date, flatmate_id: str = "alice"):
        return set_manual_match(make_transaction(txn_id, amount, day), flatmate_id)
    return _pay


class TestWeekWindows:
    """Tests for mapping days onto billing weeks."""

    def test_window_for_thursday(self, calculator):
        assert calculator.window_for(date(2024, 1, 11)) == (date(2024, 1, 8), date(2024, 1, 14))

    @pytest.mark.parametrize("day, due", [
        (date(2024, 1, 8), date(2024, 1, 11)),   # Monday
        (date(2024, 1, 11), date(2024, 1, 11)),  # Thursday
        (date(2024, 1, 14), date(2024, 1, 11)),  # Sunday
        (date(2024, 1, 15), date(2024, 1, 18)),  # next Monday
    ])
    def test_due_date_for(self, calculator, day, due):
        assert calculator.due_date_for(day) == due


class TestBalanceCalculator:
    """Tests for the week-by-week breakdown."""

    def test_three_week_scenario(self, calculator, alice, pay, make_segment):
        balance = calculator.calculate(
            alice,
            [pay("p1", "200", T0), pay("p2", "200", date(2024, 1, 12))],
            [make_segment("alice", "200", T0)],
            analysis_start_date=T0,
            as_of=date(2024, 1, 18),
        )

        assert [w.due_date for w in balance.weeks] == [
            date(2024, 1, 4),
            date(2024, 1, 11),
            date(2024, 1, 18),
        ]
        assert balance.total_due == Decimal("600")
        assert balance.total_paid == Decimal("400")
        assert balance.total_balance == Decimal("-200")
        assert [w.amount_paid for w in balance.weeks] == [
            Decimal("200"),
            Decimal("200"),
            Decimal("0"),
        ]
        assert balance.weeks[-1].running_balance == Decimal("-200")
        assert balance.current_weekly_rate == Decimal("200")
        assert balance.is_behind

    def test_totals_are_conserved(self, calculator, alice, pay, make_segment):
        balance = calculator.calculate(
            alice,
            [pay("p1", "150.50", date(2024, 1, 9)), pay("p2", "300", date(2024, 1, 20))],
            [
                make_segment("alice", "200", T0, date(2024, 1, 18)),
                make_segment("alice", "250", date(2024, 1, 18)),
            ],
            as_of=date(2024, 2, 1),
        )

        assert balance.total_due == sum(w.amount_due for w in balance.weeks)
        assert balance.total_paid == sum(w.amount_paid for w in balance.weeks)
        assert balance.total_balance == balance.total_paid - balance.total_due
        assert balance.total_due == Decimal("200") * 2 + Decimal("250") * 3

    def test_first_window_starts_at_analysis_start(self, calculator, alice, pay, make_segment):
        """A payment before the analysis start is not counted."""
        balance = calculator.calculate(
            alice,
            [pay("early", "200", date(2024, 1, 3)), pay("p1", "200", date(2024, 1, 7))],
            [make_segment("alice", "200", T0)],
            analysis_start_date=T0,
            as_of=date(2024, 1, 7),
        )

        assert balance.weeks[0].window_start == T0
        assert balance.weeks[0].window_end == date(2024, 1, 7)
        assert balance.total_paid == Decimal("200")

    def test_payment_ahead_of_due_week_counts(self, calculator, alice, pay, make_segment):
        """Rent paid before its week falls due still counts as paid."""
        balance = calculator.calculate(
            alice,
            [
                pay("p1", "200", T0),
                pay("p2", "200", date(2024, 1, 11)),
                pay("p3", "200", date(2024, 1, 15)),
            ],
            [make_segment("alice", "200", T0)],
            analysis_start_date=T0,
            as_of=date(2024, 1, 15),
        )

        assert len(balance.weeks) == 2
        assert balance.total_due == Decimal("400")
        assert balance.total_paid == Decimal("600")
        assert balance.total_balance == Decimal("200")
        assert balance.pending_paid == Decimal("200")
        assert [t.id for t in balance.pending_transactions] == ["p3"]
        assert balance.is_ahead

    def test_payments_after_as_of_are_ignored(self, calculator, alice, pay, make_segment):
        balance = calculator.calculate(
            alice,
            [pay("p1", "200", T0), pay("later", "200", date(2024, 1, 6))],
            [make_segment("alice", "200", T0)],
            analysis_start_date=T0,
            as_of=date(2024, 1, 5),
        )

        assert balance.total_paid == Decimal("200")
        assert balance.pending_paid == Decimal("0")
        assert [t.id for t in balance.weeks[0].transactions] == ["p1"]

    def test_no_due_week_yet(self, calculator, alice, pay, make_segment):
        """Before the first due date every payment is pending."""
        balance = calculator.calculate(
            alice,
            [pay("p1", "200", date(2024, 1, 2))],
            [make_segment("alice", "200", T0)],
            analysis_start_date=date(2024, 1, 1),
            as_of=date(2024, 1, 3),
        )

        assert balance.weeks == []
        assert balance.total_due == Decimal("0")
        assert balance.total_paid == Decimal("200")
        assert balance.pending_paid == Decimal("200")

    def test_only_incoming_payments_count(self, calculator, alice, pay, make_segment):
        balance = calculator.calculate(
            alice,
            [
                pay("spend", "-45", T0),
                pay("other", "200", T0, flatmate_id="bob"),
                pay("rent", "200", T0),
            ],
            [make_segment("alice", "200", T0)],
            as_of=T0,
        )
        assert balance.total_paid == Decimal("200")
        assert [t.id for t in balance.weeks[0].transactions] == ["rent"]

    def test_defaults_to_earliest_segment(self, calculator, alice, make_segment):
        balance = calculator.calculate(
            alice,
            [],
            [make_segment("alice", "200", date(2024, 1, 11))],
            as_of=date(2024, 1, 18),
        )
        assert balance.analysis_start_date == date(2024, 1, 11)
        assert len(balance.weeks) == 2

    def test_no_schedule_and_no_start(self, calculator, alice, pay):
        balance = calculator.calculate(alice, [pay("p1", "200", T0)], [], as_of=T0)
        assert balance.weeks == []
        assert balance.total_balance == Decimal("0")

    def test_no_schedule_with_start(self, calculator, alice, pay):
        """Payments still count when nothing is due."""
        balance = calculator.calculate(
            alice,
            [pay("p1", "200", T0)],
            [],
            analysis_start_date=T0,
            as_of=date(2024, 1, 11),
        )
        assert balance.total_due == Decimal("0")
        assert balance.total_balance == Decimal("200")
        assert balance.is_ahead

    def test_balance_rejects_inconsistent_totals(self):
        with pytest.raises(ValueError):
            FlatmateBalance(
                flatmate_id="alice",
                as_of=T0,
                total_due=Decimal("100"),
                total_paid=Decimal("50"),
                total_balance=Decimal("0"),
            )


class TestCurrentWeekStatus:
    """Tests for the current-week classification."""

    @pytest.mark.parametrize("paid, status", [
        ("0", WeekStatus.UNPAID),
        ("170", WeekStatus.PARTIAL),
        ("190", WeekStatus.PAID),
        ("200", WeekStatus.PAID),
        ("220", WeekStatus.OVERPAID),
    ])
    def test_status(self, calculator, alice, pay, make_segment, paid, status):
        payments = [pay("p1", paid, date(2024, 1, 10))] if paid != "0" else []

        result = calculator.current_week_status(
            alice,
            payments,
            [make_segment("alice", "200", T0)],
            today=date(2024, 1, 9),
        )

        assert result.due_date == date(2024, 1, 11)
        assert result.amount_due == Decimal("200")
        assert result.status == status

    def test_nothing_due_is_paid(self):
        assert classify_week(Decimal("0"), Decimal("0")) == WeekStatus.PAID


class TestHouseholdSummary:
    """Tests for rolling balances up."""

    def test_totals(self, calculator, alice, bob, pay, make_segment):
        alice_balance = calculator.calculate(
            alice,
            [pay("p1", "200", T0)],
            [make_segment("alice", "200", T0)],
            as_of=date(2024, 1, 11),
        )
        bob_balance = calculator.calculate(
            bob,
            [pay("p2", "500", T0, flatmate_id="bob")],
            [make_segment("bob", "150", T0)],
            as_of=date(2024, 1, 11),
        )

        summary = summarize_household([alice_balance, bob_balance])

        assert summary.total_due == Decimal("700")
        assert summary.total_paid == Decimal("700")
        assert summary.total_balance == Decimal("0")
        assert len(summary.flatmates) == 2
