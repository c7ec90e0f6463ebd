"""Payment schedule package."""

from flatledger.schedule.resolver import (
    PaymentSchedule,
    ScheduleOverlapError,
    amount_due_for_week,
)

__all__ = ["PaymentSchedule", "ScheduleOverlapError", "amount_due_for_week"]
