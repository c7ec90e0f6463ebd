"""
Data Models Package

This package contains all Pydantic models used in Flatledger.
All data flowing through the engine must conform to these schemas.
"""

from flatledger.models.ledger import (
    AutopaymentStep,
    CurrentWeekStatus,
    Flatmate,
    FlatmateBalance,
    FlatmateRole,
    HouseholdSummary,
    MatchResult,
    MatchType,
    PlanMode,
    RematchResult,
    ScheduleSegment,
    StepKind,
    SyncResult,
    Transaction,
    WeekBreakdown,
    WeekStatus,
)
from flatledger.models.expense import (
    BurnRate,
    CategorySummary,
    ExpenseCategory,
    ExpenseMatch,
    ExpenseRematchResult,
    ExpenseRule,
    RuleMatchMode,
    SummaryPeriod,
)
from flatledger.models.audit import (
    AuditEvent,
    AuditEventBuilder,
    AuditEventType,
    AuditSeverity,
)

__all__ = [
    # Ledger models
    "AutopaymentStep",
    "CurrentWeekStatus",
    "Flatmate",
    "FlatmateBalance",
    "FlatmateRole",
    "HouseholdSummary",
    "MatchResult",
    "MatchType",
    "PlanMode",
    "RematchResult",
    "ScheduleSegment",
    "StepKind",
    "SyncResult",
    "Transaction",
    "WeekBreakdown",
    "WeekStatus",
    # Expense models
    "BurnRate",
    "CategorySummary",
    "ExpenseCategory",
    "ExpenseMatch",
    "ExpenseRematchResult",
    "ExpenseRule",
    "RuleMatchMode",
    "SummaryPeriod",
    # Audit models
    "AuditEvent",
    "AuditEventBuilder",
    "AuditEventType",
    "AuditSeverity",
]
