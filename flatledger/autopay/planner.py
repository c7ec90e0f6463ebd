"""
Autopayment Planner

Turns a balance and a schedule into standing-order instructions a
flatmate can type into their banking app.

PLAN SHAPE (linear, no backtracking):
1. Zero or one correction step
   - behind, spread:     rate - balance/N for N weeks (more than the rate)
   - behind, immediate:  one payment of the arrears on the first due date
   - ahead, spread:      rate - balance/N for N weeks (less than the rate)
   - ahead, immediate:   nothing, the credit is absorbed by normal billing
2. One step per schedule segment after the correction window, with
   equal-amount neighbours at most a week apart merged together

All dates are due dates, aligned through flatledger.dates.
"""

from dataclasses import dataclass
from datetime import date
from decimal import ROUND_HALF_UP, Decimal
from typing import Iterable, Optional

from flatledger.config import AutopaySettings, LedgerSettings, get_settings
from flatledger.dates import (
    ONE_WEEK,
    align_to_due_weekday,
    last_due_date_before,
    today_in,
    weeks_between,
)
from flatledger.models.ledger import (
    CENT,
    ZERO,
    AutopaymentStep,
    PlanMode,
    ScheduleSegment,
    StepKind,
)


@dataclass
class _Draft:
    """Mutable step under construction; frozen into AutopaymentStep at the end."""

    amount: Decimal
    start: date
    end: date
    kind: StepKind
    description: str

    @property
    def weeks(self) -> int:
        return weeks_between(self.start, self.end) + 1


def _money(value: Decimal) -> Decimal:
    return value.quantize(CENT, rounding=ROUND_HALF_UP)


def _short_date(day: date) -> str:
    return f"{day.day} {day.strftime('%b')}"


class AutopaymentPlanner:
    """
    Plans standing-order steps for one flatmate.
    """

    def __init__(
        self,
        settings: Optional[AutopaySettings] = None,
        ledger_settings: Optional[LedgerSettings] = None,
    ):
        self._settings = settings or get_settings().autopay
        self._ledger = ledger_settings or get_settings().ledger

    def plan(
        self,
        current_weekly_rate: Decimal,
        total_balance: Decimal,
        future_schedules: Iterable[ScheduleSegment] = (),
        mode: PlanMode = PlanMode.SPREAD_CATCHUP,
        today: Optional[date] = None,
    ) -> list[AutopaymentStep]:
        """
        Build the ordered list of autopayment steps.

        Args:
            current_weekly_rate: Rate in force today
            total_balance: Paid minus due; negative means arrears
            future_schedules: Segments to continue with after the
                correction; segments already in force are clipped
            mode: How arrears or credit are corrected
            today: Planning date (defaults to today in the ledger timezone)
        """
        today = today or today_in(self._ledger.timezone)
        rate = Decimal(current_weekly_rate)
        balance = Decimal(total_balance)
        due_weekday = self._ledger.due_weekday

        first_payment = align_to_due_weekday(today, due_weekday)
        drafts: list[_Draft] = []

        correction = self._correction(rate, balance, mode, first_payment)
        cursor = first_payment
        if correction is not None:
            drafts.append(correction)
            cursor = correction.end + ONE_WEEK

        segments = sorted(future_schedules, key=lambda s: s.start_date)
        for draft in self._scheduled(rate, segments, cursor, due_weekday):
            previous = drafts[-1] if drafts else None
            if previous is not None and self._can_merge(previous, draft):
                previous.end = draft.end
                if previous.kind == StepKind.STANDARD:
                    previous.description = draft.description
            else:
                drafts.append(draft)

        return [
            AutopaymentStep(
                step_number=number,
                amount=_money(draft.amount),
                start_date=draft.start,
                end_date=draft.end,
                weeks_count=draft.weeks,
                kind=draft.kind,
                description=draft.description,
            )
            for number, draft in enumerate(drafts, start=1)
        ]

    def _correction(
        self,
        rate: Decimal,
        balance: Decimal,
        mode: PlanMode,
        start: date,
    ) -> Optional[_Draft]:
        if balance == 0:
            return None

        if mode == PlanMode.SPREAD_CATCHUP:
            weeks = self._settings.correction_weeks
            adjustment = balance / weeks
            amount = max(ZERO, rate - adjustment)
            if balance < 0:
                kind = StepKind.CATCH_UP
                description = f"Catch-up payment (+${abs(adjustment):.2f}/week extra)"
            else:
                kind = StepKind.CREDIT
                description = f"Reduced payment (using ${abs(adjustment):.2f}/week credit)"
            return _Draft(
                amount=amount,
                start=start,
                end=start + ONE_WEEK * (weeks - 1),
                kind=kind,
                description=description,
            )

        if balance < 0:
            return _Draft(
                amount=abs(balance),
                start=start,
                end=start,
                kind=StepKind.ONE_TIME,
                description="One-time payment to clear balance",
            )

        # Ahead in immediate mode: credit is used up by ordinary billing
        return None

    def _scheduled(
        self,
        rate: Decimal,
        segments: list[ScheduleSegment],
        cursor: date,
        due_weekday: int,
    ) -> list[_Draft]:
        """Clip, align and describe the schedule segments from `cursor` on."""
        horizon = ONE_WEEK * (self._settings.horizon_weeks - 1)

        if not segments:
            if rate <= 0:
                return []
            return [_Draft(
                amount=rate,
                start=cursor,
                end=cursor + horizon,
                kind=StepKind.STANDARD,
                description="Standard weekly payment (ongoing)",
            )]

        drafts = []
        for index, segment in enumerate(segments):
            start = max(align_to_due_weekday(segment.start_date, due_weekday), cursor)
            if segment.end_date is None:
                end = start + horizon
            else:
                end = last_due_date_before(segment.end_date, due_weekday)
            if start > end:
                continue

            is_last = index == len(segments) - 1
            if segment.weekly_amount != rate:
                description = f"Weekly payment at ${segment.weekly_amount:.2f}/week"
            elif segment.end_date is None and is_last:
                description = "Standard weekly payment (ongoing)"
            else:
                description = f"Standard weekly payment until {_short_date(end)}"

            drafts.append(_Draft(
                amount=segment.weekly_amount,
                start=start,
                end=end,
                kind=StepKind.STANDARD,
                description=description,
            ))
            cursor = end + ONE_WEEK

        return drafts

    @staticmethod
    def _can_merge(previous: _Draft, draft: _Draft) -> bool:
        return (
            previous.kind != StepKind.ONE_TIME
            and abs(previous.amount - draft.amount) < CENT
            and weeks_between(previous.end, draft.start) <= 1
        )


def plan_autopayment(
    current_weekly_rate: Decimal,
    total_balance: Decimal,
    future_schedules: Iterable[ScheduleSegment] = (),
    mode: PlanMode = PlanMode.SPREAD_CATCHUP,
    today: Optional[date] = None,
) -> list[AutopaymentStep]:
    """Plan with the configured settings."""
    return AutopaymentPlanner().plan(
        current_weekly_rate,
        total_balance,
        future_schedules,
        mode=mode,
        today=today,
    )
