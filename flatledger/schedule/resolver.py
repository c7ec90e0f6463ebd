"""
Schedule Resolver

Answers "how much does this flatmate owe for the week due on D?"

A flatmate's schedule is an ordered list of non-overlapping segments,
each half-open [start_date, end_date). Two segments where one ends on
the day the next starts are adjacent, not overlapping, so every due
date resolves to exactly one segment or to nothing.

IMPORTANT: Malformed schedules are rejected when the PaymentSchedule
is built, never silently resolved.
"""

from datetime import date
from decimal import Decimal
from typing import Iterable, Optional

from flatledger.models.ledger import ZERO, ScheduleSegment


class ScheduleOverlapError(ValueError):
    """Two segments of the same flatmate cover the same day."""

    def __init__(self, first: ScheduleSegment, second: ScheduleSegment):
        self.first = first
        self.second = second
        super().__init__(
            f"Schedule segments overlap: {_describe(first)} and {_describe(second)}"
        )


def _describe(segment: ScheduleSegment) -> str:
    end = segment.end_date.isoformat() if segment.end_date else "ongoing"
    return f"[{segment.start_date.isoformat()}, {end}) at {segment.weekly_amount}/week"


class PaymentSchedule:
    """
    A validated, ordered payment schedule for one flatmate.
    """

    def __init__(self, segments: Iterable[ScheduleSegment] = ()):
        ordered = sorted(segments, key=lambda s: s.start_date)

        for previous, current in zip(ordered, ordered[1:]):
            if previous.overlaps(current):
                raise ScheduleOverlapError(previous, current)

        owners = {s.flatmate_id for s in ordered}
        if len(owners) > 1:
            raise ValueError(
                f"A schedule belongs to one flatmate, got {sorted(owners)}"
            )

        self._segments = tuple(ordered)

    @property
    def segments(self) -> tuple[ScheduleSegment, ...]:
        return self._segments

    @property
    def is_empty(self) -> bool:
        return not self._segments

    @property
    def earliest_start(self) -> Optional[date]:
        return self._segments[0].start_date if self._segments else None

    def segment_for(self, day: date) -> Optional[ScheduleSegment]:
        """The single segment in force on `day`, if any."""
        for segment in self._segments:
            if segment.contains(day):
                return segment
            if segment.start_date > day:
                break
        return None

    def amount_due_for_week(self, due_date: date) -> Decimal:
        segment = self.segment_for(due_date)
        return segment.weekly_amount if segment else ZERO

    def current_segment(self, today: date) -> Optional[ScheduleSegment]:
        return self.segment_for(today)

    def current_rate(self, today: date) -> Decimal:
        return self.amount_due_for_week(today)

    def future_segments(self, today: date) -> list[ScheduleSegment]:
        """Segments that start after today."""
        return [s for s in self._segments if s.start_date > today]

    def upcoming_segments(self, today: date) -> list[ScheduleSegment]:
        """The segment in force today (if any) followed by the future ones."""
        return [
            s for s in self._segments
            if s.end_date is None or s.end_date > today
        ]

    def __len__(self) -> int:
        return len(self._segments)

    def __iter__(self):
        return iter(self._segments)


def amount_due_for_week(
    segments: Iterable[ScheduleSegment],
    due_date: date,
) -> Decimal:
    """Resolve the amount due on `due_date` from a raw list of segments."""
    return PaymentSchedule(segments).amount_due_for_week(due_date)
