"""
Core Data Models for Flatledger

These models define the schemas for everything flowing through the
matching and reconciliation engine:
1. Persisted facts (flatmates, bank transactions, schedule segments)
2. Derived values (week breakdowns, balances, autopayment steps)

DESIGN DECISION: Derived values are frozen Pydantic models.
They are recomputed on every request and never stored, so nothing
downstream can mutate them and drift out of sync with the inputs.
"""

from datetime import date
from decimal import Decimal
from enum import Enum
from typing import Any, Optional

from pydantic import (
    BaseModel,
    ConfigDict,
    Field,
    computed_field,
    field_validator,
    model_validator,
)


ZERO = Decimal("0")
CENT = Decimal("0.01")


# =============================================================================
# ENUMS - Finite set of valid values
# =============================================================================

class FlatmateRole(str, Enum):
    """Access role of a flatmate."""
    ADMIN = "admin"
    MEMBER = "member"


class MatchType(str, Enum):
    """
    Rule category that attributed a transaction to a flatmate.

    Ordered by precedence for automatic matching:
    account beats card, card beats name.
    """
    ACCOUNT = "account"
    CARD = "card"
    NAME = "name"
    MANUAL = "manual"
    NONE = "none"


class WeekStatus(str, Enum):
    """Payment status of the current week."""
    PAID = "paid"
    PARTIAL = "partial"
    UNPAID = "unpaid"
    OVERPAID = "overpaid"


class PlanMode(str, Enum):
    """How the autopayment planner corrects a balance."""
    SPREAD_CATCHUP = "spread_catchup"  # spread over the correction window
    IMMEDIATE = "immediate"            # clear arrears in one payment


class StepKind(str, Enum):
    """Kind of recommended standing-order step."""
    ONE_TIME = "one_time"
    CATCH_UP = "catch_up"
    CREDIT = "credit"
    STANDARD = "standard"


# =============================================================================
# PERSISTED ENTITIES
# =============================================================================

class Flatmate(BaseModel):
    """
    A household member tracked for shared-finance billing.

    Matching rules are all optional. A flatmate with no rules is
    never matched automatically.
    """
    model_config = ConfigDict(str_strip_whitespace=True)

    id: str = Field(
        ...,
        min_length=1,
        description="Unique flatmate ID"
    )
    name: Optional[str] = Field(
        default=None,
        max_length=200,
        description="Display name"
    )
    email: str = Field(
        ...,
        min_length=3,
        max_length=320,
        description="Login email"
    )
    role: FlatmateRole = Field(
        default=FlatmateRole.MEMBER,
        description="Access role"
    )
    is_active: bool = Field(
        default=True,
        description="Deactivated flatmates are kept but never matched"
    )

    # Matching rules
    bank_account_pattern: Optional[str] = Field(
        default=None,
        max_length=64,
        description="Substring of the counterparty account number"
    )
    card_suffix: Optional[str] = Field(
        default=None,
        description="Last 4 digits of the flatmate's card"
    )
    matching_name: Optional[str] = Field(
        default=None,
        max_length=200,
        description="Name pattern looked for in transaction descriptions"
    )

    @field_validator('bank_account_pattern', 'matching_name', mode='before')
    @classmethod
    def blank_to_none(cls, v: Optional[str]) -> Optional[str]:
        """Empty form fields mean 'no rule'."""
        if isinstance(v, str) and not v.strip():
            return None
        return v

    @field_validator('card_suffix', mode='before')
    @classmethod
    def validate_card_suffix(cls, v: Optional[str]) -> Optional[str]:
        """Card suffix must be exactly 4 digits."""
        if v is None:
            return None
        v = str(v).strip()
        if not v:
            return None
        if len(v) != 4 or not v.isdigit():
            raise ValueError(f"Card suffix must be exactly 4 digits, got {v!r}")
        return v

    @property
    def has_matching_rules(self) -> bool:
        return bool(
            self.bank_account_pattern or self.card_suffix or self.matching_name
        )

    @property
    def display_name(self) -> str:
        return self.name or self.email


class Transaction(BaseModel):
    """
    A bank transaction synced from the aggregator.

    The bank fields are an immutable external fact. The match fields
    are written by the engine, always on a copy (see `with_match`).

    CRITICAL: A transaction with manual_match=True is authoritative.
    Automatic matching must never overwrite it.
    """
    model_config = ConfigDict(frozen=True, str_strip_whitespace=True)

    id: str = Field(
        ...,
        min_length=1,
        description="Internal transaction ID"
    )
    external_id: str = Field(
        ...,
        min_length=1,
        description="Aggregator ID, used as the idempotency key"
    )
    date: date
    amount: Decimal = Field(
        ...,
        description="Signed amount: positive = money in, negative = money out"
    )
    description: str = Field(default="")
    merchant: Optional[str] = None
    category: Optional[str] = None
    card_suffix: Optional[str] = None
    counterparty_account: Optional[str] = None
    raw_data: dict[str, Any] = Field(
        default_factory=dict,
        description="Opaque aggregator payload, passed through untouched"
    )

    # Engine-owned fields
    matched_user_id: Optional[str] = None
    match_type: MatchType = MatchType.NONE
    match_confidence: Optional[float] = Field(
        default=None,
        ge=0.0,
        le=1.0,
    )
    manual_match: bool = False

    @model_validator(mode='after')
    def validate_match_fields(self) -> 'Transaction':
        """A transaction has a flatmate exactly when it has a match type."""
        if (self.matched_user_id is None) != (self.match_type == MatchType.NONE):
            raise ValueError("matched_user_id and match_type must agree")
        if self.manual_match and self.matched_user_id is None:
            raise ValueError("A manual match needs a flatmate")
        return self

    @property
    def is_incoming(self) -> bool:
        """Return True if money came into the shared account."""
        return self.amount > 0

    @property
    def is_matched(self) -> bool:
        return self.matched_user_id is not None

    def is_rent_payment_for(self, flatmate_id: str) -> bool:
        """
        A rent payment is money paid in by the flatmate.

        Card spend matched to the same flatmate is an expense and
        does not count towards their contributions.
        """
        return self.matched_user_id == flatmate_id and self.is_incoming

    def with_match(self, result: "MatchResult", manual: bool = False) -> "Transaction":
        """Return a copy carrying the given match result."""
        return self.model_copy(update={
            "matched_user_id": result.flatmate_id,
            "match_type": result.match_type,
            "match_confidence": result.confidence if result.flatmate_id else None,
            "manual_match": manual,
        })

    def current_match(self) -> "MatchResult":
        """The assignment currently stored on this transaction."""
        if self.matched_user_id is None:
            return MatchResult.unmatched()
        return MatchResult(
            flatmate_id=self.matched_user_id,
            match_type=self.match_type,
            confidence=self.match_confidence or 0.0,
        )


class ScheduleSegment(BaseModel):
    """
    A date range over which a flatmate owes a fixed weekly amount.

    The range is half-open: [start_date, end_date). A missing end date
    means the segment is ongoing.
    """
    model_config = ConfigDict(frozen=True)

    id: str = Field(
        default="",
        description="Segment ID (empty for ad-hoc segments)"
    )
    flatmate_id: str = Field(..., min_length=1)
    weekly_amount: Decimal = Field(
        ...,
        ge=0,
        description="Amount due each week"
    )
    start_date: date
    end_date: Optional[date] = None
    notes: Optional[str] = Field(
        default=None,
        max_length=200,
        description="e.g. 'Summer rate'"
    )

    @model_validator(mode='after')
    def validate_range(self) -> 'ScheduleSegment':
        """Reject ranges that end on or before they start."""
        if self.end_date is not None and self.end_date <= self.start_date:
            raise ValueError(
                f"Schedule end date ({self.end_date}) must be after "
                f"start date ({self.start_date})"
            )
        return self

    def contains(self, day: date) -> bool:
        if day < self.start_date:
            return False
        return self.end_date is None or day < self.end_date

    def overlaps(self, other: "ScheduleSegment") -> bool:
        self_before_other = self.end_date is not None and self.end_date <= other.start_date
        other_before_self = other.end_date is not None and other.end_date <= self.start_date
        return not (self_before_other or other_before_self)


# =============================================================================
# MATCHING RESULT
# =============================================================================

class MatchResult(BaseModel):
    """
    Outcome of matching one transaction.

    Tagged by match_type; flatmate_id is None only for MatchType.NONE.
    """
    model_config = ConfigDict(frozen=True)

    flatmate_id: Optional[str] = None
    match_type: MatchType = MatchType.NONE
    confidence: float = Field(default=0.0, ge=0.0, le=1.0)

    @model_validator(mode='after')
    def validate_tag(self) -> 'MatchResult':
        if (self.flatmate_id is None) != (self.match_type == MatchType.NONE):
            raise ValueError("Only an unmatched result may omit the flatmate")
        return self

    @classmethod
    def unmatched(cls) -> "MatchResult":
        return cls()

    @property
    def is_match(self) -> bool:
        return self.flatmate_id is not None


# =============================================================================
# DERIVED BALANCE MODELS
# =============================================================================

class WeekBreakdown(BaseModel):
    """One billing week, anchored to its due date."""
    model_config = ConfigDict(frozen=True)

    due_date: date
    window_start: date = Field(
        ...,
        description="First day a payment counts for this week"
    )
    window_end: date = Field(
        ...,
        description="Last day a payment counts for this week"
    )
    amount_due: Decimal = ZERO
    amount_paid: Decimal = ZERO
    running_balance: Decimal = Field(
        default=ZERO,
        description="Cumulative paid minus due up to and including this week"
    )
    transactions: list[Transaction] = Field(default_factory=list)

    @computed_field
    @property
    def balance(self) -> Decimal:
        """Positive = overpaid this week, negative = underpaid."""
        return self.amount_paid - self.amount_due


class FlatmateBalance(BaseModel):
    """
    A flatmate's reconciled position from the analysis start to now.

    INVARIANT: total_balance == total_paid - total_due, total_due is
    exactly the sum of the weekly amounts due, and total_paid is the
    sum of the weekly amounts paid plus pending_paid.
    """
    model_config = ConfigDict(frozen=True)

    flatmate_id: str
    flatmate_name: Optional[str] = None
    flatmate_email: Optional[str] = None
    analysis_start_date: Optional[date] = None
    as_of: date
    weeks: list[WeekBreakdown] = Field(default_factory=list)
    total_due: Decimal = ZERO
    total_paid: Decimal = ZERO
    total_balance: Decimal = ZERO
    pending_paid: Decimal = Field(
        default=ZERO,
        description="Paid up to as_of for weeks not yet due"
    )
    pending_transactions: list[Transaction] = Field(default_factory=list)
    current_weekly_rate: Decimal = ZERO
    upcoming_segments: list[ScheduleSegment] = Field(
        default_factory=list,
        description="Segments in force on as_of or starting later"
    )

    @model_validator(mode='after')
    def validate_totals(self) -> 'FlatmateBalance':
        if self.total_balance != self.total_paid - self.total_due:
            raise ValueError("Total balance must equal total paid minus total due")
        if self.total_due != sum((w.amount_due for w in self.weeks), ZERO):
            raise ValueError("Total due must equal the sum of weekly amounts due")
        weekly_paid = sum((w.amount_paid for w in self.weeks), ZERO)
        if self.total_paid != weekly_paid + self.pending_paid:
            raise ValueError("Total paid must equal weekly payments plus pending payments")
        return self

    @property
    def is_behind(self) -> bool:
        return self.total_balance < 0

    @property
    def is_ahead(self) -> bool:
        return self.total_balance > 0


class HouseholdSummary(BaseModel):
    """Balances of every flatmate plus household totals."""
    model_config = ConfigDict(frozen=True)

    flatmates: list[FlatmateBalance] = Field(default_factory=list)
    total_due: Decimal = ZERO
    total_paid: Decimal = ZERO
    total_balance: Decimal = ZERO


class CurrentWeekStatus(BaseModel):
    """Who owes what for the week containing today."""
    model_config = ConfigDict(frozen=True)

    flatmate_id: str
    flatmate_name: Optional[str] = None
    due_date: date
    amount_due: Decimal = ZERO
    amount_paid: Decimal = ZERO
    status: WeekStatus


# =============================================================================
# AUTOPAYMENT MODELS
# =============================================================================

class AutopaymentStep(BaseModel):
    """
    One recommended standing-order step.

    start_date and end_date are inclusive due dates.
    """
    model_config = ConfigDict(frozen=True)

    step_number: int = Field(..., ge=1)
    amount: Decimal = Field(..., ge=0)
    start_date: date
    end_date: date
    weeks_count: int = Field(..., ge=1)
    kind: StepKind
    description: str

    @model_validator(mode='after')
    def validate_dates(self) -> 'AutopaymentStep':
        if self.end_date < self.start_date:
            raise ValueError("Step end date cannot be before start date")
        return self

    @property
    def is_one_time(self) -> bool:
        return self.kind == StepKind.ONE_TIME

    @property
    def copy_amount(self) -> str:
        """Amount as typed into a banking app."""
        return f"{self.amount.quantize(CENT)}"

    @property
    def copy_date(self) -> str:
        return self.start_date.isoformat()


# =============================================================================
# FLOW RESULTS
# =============================================================================

class SyncResult(BaseModel):
    """Outcome of one bank sync."""

    fetched: int = Field(default=0, ge=0)
    inserted: int = Field(default=0, ge=0)
    updated: int = Field(default=0, ge=0)
    matched: int = Field(default=0, ge=0)
    skipped_manual: int = Field(default=0, ge=0)
    errors: list[str] = Field(default_factory=list)

    @property
    def ok(self) -> bool:
        return not self.errors


class RematchResult(BaseModel):
    """Outcome of re-running the matcher over stored transactions."""

    matched: int = Field(default=0, ge=0)
    total: int = Field(default=0, ge=0)
    skipped_manual: int = Field(default=0, ge=0)
