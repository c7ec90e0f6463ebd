"""
Balance Calculator

Reconciles each flatmate's rent payments against their schedule,
week by week, from the analysis start date up to "as of".

WEEK WINDOWS:
Every week is anchored to its due date D. A payment counts for the
week if it lands in [D - (6 - grace), D + grace], so with the default
grace of 3 days and a Thursday due day the window runs Monday..Sunday.
Windows are contiguous and never overlap, so each payment is counted
exactly once. The first window starts at the analysis start date.

Payments made on or before "as of" but after the last due week's
window are pending: they count towards total_paid straight away but
belong to no week until that week falls due.

DEGRADED RESULTS (not errors):
- No analysis start date: fall back to the earliest schedule segment
- No schedule either: empty breakdown, zero balance
- No schedule but payments: every week is due 0, payments still count
"""

from datetime import date, timedelta
from decimal import Decimal
from typing import Iterable, Optional, Union

from flatledger.config import LedgerSettings, get_settings
from flatledger.dates import align_to_due_weekday, iter_due_dates, today_in
from flatledger.models.ledger import (
    ZERO,
    CurrentWeekStatus,
    Flatmate,
    FlatmateBalance,
    HouseholdSummary,
    ScheduleSegment,
    Transaction,
    WeekBreakdown,
    WeekStatus,
)
from flatledger.schedule import PaymentSchedule


ScheduleLike = Union[PaymentSchedule, Iterable[ScheduleSegment]]

# Thresholds for classifying the current week, relative to the amount due
OVERPAID_RATIO = Decimal("1.1")
PAID_RATIO = Decimal("0.95")


def _as_schedule(schedule: ScheduleLike) -> PaymentSchedule:
    if isinstance(schedule, PaymentSchedule):
        return schedule
    return PaymentSchedule(schedule)


class BalanceCalculator:
    """
    Computes FlatmateBalance values.

    Pure: takes everything it needs as arguments and never touches storage.
    """

    def __init__(self, settings: Optional[LedgerSettings] = None):
        self._settings = settings or get_settings().ledger

    @property
    def due_weekday(self) -> int:
        return self._settings.due_weekday

    def window_for(self, due_date: date) -> tuple[date, date]:
        """Inclusive payment window of the week due on `due_date`."""
        grace = self._settings.payment_grace_days
        return (
            due_date - timedelta(days=6 - grace),
            due_date + timedelta(days=grace),
        )

    def due_date_for(self, day: date) -> date:
        """Due date of the week whose payment window contains `day`."""
        grace = self._settings.payment_grace_days
        return align_to_due_weekday(day - timedelta(days=grace), self.due_weekday)

    def today(self) -> date:
        return today_in(self._settings.timezone)

    def resolve_start(
        self,
        schedule: PaymentSchedule,
        analysis_start_date: Optional[date],
    ) -> Optional[date]:
        """Configured start date, else the earliest segment start."""
        if analysis_start_date is not None:
            return analysis_start_date
        return schedule.earliest_start

    def calculate(
        self,
        flatmate: Flatmate,
        transactions: Iterable[Transaction],
        schedule: ScheduleLike,
        analysis_start_date: Optional[date] = None,
        as_of: Optional[date] = None,
    ) -> FlatmateBalance:
        """
        Build the week-by-week breakdown and totals for one flatmate.

        Args:
            flatmate: The flatmate being reconciled
            transactions: Candidate transactions; only this flatmate's
                incoming payments are counted
            schedule: The flatmate's schedule segments
            analysis_start_date: First day to reconcile from
            as_of: Last day considered (defaults to today)
        """
        schedule = _as_schedule(schedule)
        as_of = as_of or self.today()

        start = self.resolve_start(schedule, analysis_start_date)
        current_rate = schedule.current_rate(as_of)
        upcoming = schedule.upcoming_segments(as_of)

        if start is None:
            return FlatmateBalance(
                flatmate_id=flatmate.id,
                flatmate_name=flatmate.name,
                flatmate_email=flatmate.email,
                as_of=as_of,
                current_weekly_rate=current_rate,
                upcoming_segments=upcoming,
            )

        payments = sorted(
            (
                t for t in transactions
                if t.is_rent_payment_for(flatmate.id) and start <= t.date <= as_of
            ),
            key=lambda t: (t.date, t.id),
        )

        weeks: list[WeekBreakdown] = []
        total_due = ZERO
        total_paid = ZERO
        counted: set[str] = set()

        for index, due_date in enumerate(iter_due_dates(start, as_of, self.due_weekday)):
            window_start, window_end = self.window_for(due_date)
            if index == 0:
                window_start = start

            week_payments = [
                t for t in payments
                if window_start <= t.date <= window_end
            ]
            counted.update(t.id for t in week_payments)
            amount_due = schedule.amount_due_for_week(due_date)
            amount_paid = sum((t.amount for t in week_payments), ZERO)

            total_due += amount_due
            total_paid += amount_paid

            weeks.append(WeekBreakdown(
                due_date=due_date,
                window_start=window_start,
                window_end=window_end,
                amount_due=amount_due,
                amount_paid=amount_paid,
                running_balance=total_paid - total_due,
                transactions=week_payments,
            ))

        # Paid ahead of a week that is not due yet
        pending = [t for t in payments if t.id not in counted]
        pending_paid = sum((t.amount for t in pending), ZERO)
        total_paid += pending_paid

        return FlatmateBalance(
            flatmate_id=flatmate.id,
            flatmate_name=flatmate.name,
            flatmate_email=flatmate.email,
            analysis_start_date=start,
            as_of=as_of,
            weeks=weeks,
            total_due=total_due,
            total_paid=total_paid,
            total_balance=total_paid - total_due,
            pending_paid=pending_paid,
            pending_transactions=pending,
            current_weekly_rate=current_rate,
            upcoming_segments=upcoming,
        )

    def current_week_status(
        self,
        flatmate: Flatmate,
        transactions: Iterable[Transaction],
        schedule: ScheduleLike,
        today: Optional[date] = None,
    ) -> CurrentWeekStatus:
        """Classify the payment of the week whose window contains today."""
        schedule = _as_schedule(schedule)
        today = today or self.today()

        due_date = self.due_date_for(today)
        window_start, window_end = self.window_for(due_date)

        amount_due = schedule.amount_due_for_week(due_date)
        amount_paid = sum(
            (
                t.amount for t in transactions
                if t.is_rent_payment_for(flatmate.id)
                and window_start <= t.date <= window_end
            ),
            ZERO,
        )

        return CurrentWeekStatus(
            flatmate_id=flatmate.id,
            flatmate_name=flatmate.name,
            due_date=due_date,
            amount_due=amount_due,
            amount_paid=amount_paid,
            status=classify_week(amount_due, amount_paid),
        )


def classify_week(amount_due: Decimal, amount_paid: Decimal) -> WeekStatus:
    """Paid / partial / unpaid / overpaid for a single week."""
    if amount_paid == 0 and amount_due > 0:
        return WeekStatus.UNPAID
    if amount_due == 0:
        return WeekStatus.PAID
    if amount_paid >= amount_due * OVERPAID_RATIO:
        return WeekStatus.OVERPAID
    if amount_paid >= amount_due * PAID_RATIO:
        return WeekStatus.PAID
    return WeekStatus.PARTIAL


def summarize_household(balances: Iterable[FlatmateBalance]) -> HouseholdSummary:
    """Roll individual balances up into household totals."""
    balances = list(balances)
    total_due = sum((b.total_due for b in balances), ZERO)
    total_paid = sum((b.total_paid for b in balances), ZERO)
    return HouseholdSummary(
        flatmates=balances,
        total_due=total_due,
        total_paid=total_paid,
        total_balance=total_paid - total_due,
    )
