"""
Audit Models for Flatledger

Every significant action in the system is logged for audit purposes.
Flatmates argue about money; the audit trail answers "why was this
payment counted against me?" after the fact.

DESIGN DECISION: Audit logs are append-only. We never delete or modify them.
"""

from datetime import datetime, timezone
from enum import Enum
from typing import Any, Optional
from uuid import UUID, uuid4

from pydantic import BaseModel, Field


class AuditEventType(str, Enum):
    """
    Types of events we audit.
    """
    # Matching
    TRANSACTION_MATCHED = "transaction_matched"
    TRANSACTION_UNMATCHED = "transaction_unmatched"
    MANUAL_MATCH_SET = "manual_match_set"
    MANUAL_MATCH_RELEASED = "manual_match_released"
    REMATCH_COMPLETED = "rematch_completed"
    MATCHES_CLEARED = "matches_cleared"

    # Expenses
    EXPENSE_CATEGORY_SET = "expense_category_set"
    EXPENSES_REMATCHED = "expenses_rematched"

    # Sync
    SYNC_STARTED = "sync_started"
    SYNC_COMPLETED = "sync_completed"
    SYNC_FAILED = "sync_failed"

    # Reconciliation
    BALANCE_CALCULATED = "balance_calculated"
    AUTOPAYMENT_PLANNED = "autopayment_planned"
    SCHEDULE_REJECTED = "schedule_rejected"

    # System events
    SYSTEM_ERROR = "system_error"
    EXTERNAL_SERVICE_ERROR = "external_service_error"


class AuditSeverity(str, Enum):
    """Severity level for audit events."""
    DEBUG = "debug"
    INFO = "info"
    WARNING = "warning"
    ERROR = "error"
    CRITICAL = "critical"


class AuditEvent(BaseModel):
    """
    A single audit event.

    This is the core unit of our audit trail.
    """

    # Identity
    event_id: UUID = Field(
        default_factory=uuid4,
        description="Unique event identifier"
    )
    timestamp: datetime = Field(
        default_factory=lambda: datetime.now(timezone.utc),
        description="When the event occurred (UTC)"
    )

    # Event classification
    event_type: AuditEventType = Field(
        ...,
        description="Type of event"
    )
    severity: AuditSeverity = Field(
        default=AuditSeverity.INFO,
        description="Event severity"
    )

    # Context - what entity is this about?
    entity_type: Optional[str] = Field(
        default=None,
        description="Type of entity (e.g., 'transaction', 'flatmate')"
    )
    entity_id: Optional[str] = Field(
        default=None,
        description="ID of the entity this event relates to"
    )

    # Correlation - for tracking related events
    correlation_id: Optional[UUID] = Field(
        default=None,
        description="ID to correlate related events (e.g., all events in one sync)"
    )

    description: str = Field(
        ...,
        max_length=500,
        description="Human-readable description of what happened"
    )
    details: dict[str, Any] = Field(
        default_factory=dict,
        description="Additional event-specific data"
    )

    # Error information (if applicable)
    error_message: Optional[str] = None

    is_user_action: bool = Field(
        default=False,
        description="Was this triggered by a user action?"
    )

    def to_log_dict(self) -> dict:
        """
        Convert to a dictionary suitable for structured logging.
        """
        return {
            "event_id": str(self.event_id),
            "timestamp": self.timestamp.isoformat(),
            "event_type": self.event_type.value,
            "severity": self.severity.value,
            "entity_type": self.entity_type,
            "entity_id": self.entity_id,
            "correlation_id": str(self.correlation_id) if self.correlation_id else None,
            "description": self.description,
            "details": self.details,
            "error_message": self.error_message,
            "is_user_action": self.is_user_action,
        }


class AuditEventBuilder:
    """
    Helper class to build audit events with common patterns.

    Usage:
        event = AuditEventBuilder.transaction_matched(txn_id, flatmate_id, ...)
        event = AuditEventBuilder.sync_completed(inserted, updated, ...)
    """

    @staticmethod
    def transaction_matched(
        transaction_id: str,
        flatmate_id: str,
        match_type: str,
        confidence: float,
        correlation_id: Optional[UUID] = None,
    ) -> AuditEvent:
        return AuditEvent(
            event_type=AuditEventType.TRANSACTION_MATCHED,
            entity_type="transaction",
            entity_id=transaction_id,
            correlation_id=correlation_id,
            description=f"Transaction matched to {flatmate_id} by {match_type} rule",
            details={
                "flatmate_id": flatmate_id,
                "match_type": match_type,
                "confidence": confidence,
            },
        )

    @staticmethod
    def transaction_unmatched(
        transaction_id: str,
        correlation_id: Optional[UUID] = None,
    ) -> AuditEvent:
        return AuditEvent(
            event_type=AuditEventType.TRANSACTION_UNMATCHED,
            severity=AuditSeverity.DEBUG,
            entity_type="transaction",
            entity_id=transaction_id,
            correlation_id=correlation_id,
            description="No matching rule applied to transaction",
        )

    @staticmethod
    def manual_match_set(
        transaction_id: str,
        flatmate_id: str,
        previous_flatmate_id: Optional[str],
        correlation_id: Optional[UUID] = None,
    ) -> AuditEvent:
        return AuditEvent(
            event_type=AuditEventType.MANUAL_MATCH_SET,
            entity_type="transaction",
            entity_id=transaction_id,
            correlation_id=correlation_id,
            description=f"Transaction manually assigned to {flatmate_id}",
            details={
                "flatmate_id": flatmate_id,
                "previous_flatmate_id": previous_flatmate_id,
            },
            is_user_action=True,
        )

    @staticmethod
    def manual_match_released(
        transaction_id: str,
        previous_flatmate_id: Optional[str],
        correlation_id: Optional[UUID] = None,
    ) -> AuditEvent:
        return AuditEvent(
            event_type=AuditEventType.MANUAL_MATCH_RELEASED,
            entity_type="transaction",
            entity_id=transaction_id,
            correlation_id=correlation_id,
            description="Manual assignment released back to automatic matching",
            details={
                "previous_flatmate_id": previous_flatmate_id,
            },
            is_user_action=True,
        )

    @staticmethod
    def rematch_completed(
        matched: int,
        total: int,
        skipped_manual: int,
        correlation_id: Optional[UUID] = None,
    ) -> AuditEvent:
        return AuditEvent(
            event_type=AuditEventType.REMATCH_COMPLETED,
            correlation_id=correlation_id,
            description=f"Rematch assigned {matched} of {total} transactions",
            details={
                "matched": matched,
                "total": total,
                "skipped_manual": skipped_manual,
            },
            is_user_action=True,
        )

    @staticmethod
    def matches_cleared(
        cleared: int,
        correlation_id: Optional[UUID] = None,
    ) -> AuditEvent:
        return AuditEvent(
            event_type=AuditEventType.MATCHES_CLEARED,
            severity=AuditSeverity.WARNING,
            correlation_id=correlation_id,
            description=f"Cleared {cleared} automatic matches",
            details={"cleared": cleared},
            is_user_action=True,
        )

    @staticmethod
    def expense_category_set(
        transaction_id: str,
        category_id: Optional[str],
        previous_category_id: Optional[str],
        correlation_id: Optional[UUID] = None,
    ) -> AuditEvent:
        if category_id is None:
            description = "Expense category removed"
        else:
            description = f"Transaction manually filed under {category_id}"
        return AuditEvent(
            event_type=AuditEventType.EXPENSE_CATEGORY_SET,
            entity_type="transaction",
            entity_id=transaction_id,
            correlation_id=correlation_id,
            description=description,
            details={
                "category_id": category_id,
                "previous_category_id": previous_category_id,
            },
            is_user_action=True,
        )

    @staticmethod
    def expenses_rematched(
        matched: int,
        total: int,
        skipped_manual: int,
        correlation_id: Optional[UUID] = None,
    ) -> AuditEvent:
        return AuditEvent(
            event_type=AuditEventType.EXPENSES_REMATCHED,
            correlation_id=correlation_id,
            description=f"Expense rematch categorised {matched} of {total} transactions",
            details={
                "matched": matched,
                "total": total,
                "skipped_manual": skipped_manual,
            },
            is_user_action=True,
        )

    @staticmethod
    def sync_started(
        since: Optional[str],
        correlation_id: Optional[UUID] = None,
    ) -> AuditEvent:
        return AuditEvent(
            event_type=AuditEventType.SYNC_STARTED,
            entity_type="sync",
            correlation_id=correlation_id,
            description="Bank sync started" + (f" from {since}" if since else " (full)"),
            details={"since": since},
        )

    @staticmethod
    def sync_completed(
        fetched: int,
        inserted: int,
        updated: int,
        matched: int,
        errors: list[str],
        correlation_id: Optional[UUID] = None,
    ) -> AuditEvent:
        return AuditEvent(
            event_type=AuditEventType.SYNC_COMPLETED,
            severity=AuditSeverity.WARNING if errors else AuditSeverity.INFO,
            entity_type="sync",
            correlation_id=correlation_id,
            description=(
                f"Bank sync completed: {inserted} new, {updated} updated, "
                f"{matched} matched"
            ),
            details={
                "fetched": fetched,
                "inserted": inserted,
                "updated": updated,
                "matched": matched,
                "errors": errors,
            },
        )

    @staticmethod
    def sync_failed(
        error_message: str,
        correlation_id: Optional[UUID] = None,
    ) -> AuditEvent:
        return AuditEvent(
            event_type=AuditEventType.SYNC_FAILED,
            severity=AuditSeverity.ERROR,
            entity_type="sync",
            correlation_id=correlation_id,
            description="Bank sync failed",
            error_message=error_message,
        )

    @staticmethod
    def balance_calculated(
        flatmate_id: str,
        weeks: int,
        total_balance: str,
        correlation_id: Optional[UUID] = None,
    ) -> AuditEvent:
        return AuditEvent(
            event_type=AuditEventType.BALANCE_CALCULATED,
            severity=AuditSeverity.DEBUG,
            entity_type="flatmate",
            entity_id=flatmate_id,
            correlation_id=correlation_id,
            description=f"Balance over {weeks} weeks: {total_balance}",
            details={
                "weeks": weeks,
                "total_balance": total_balance,
            },
        )

    @staticmethod
    def autopayment_planned(
        flatmate_id: str,
        mode: str,
        steps: int,
        correlation_id: Optional[UUID] = None,
    ) -> AuditEvent:
        return AuditEvent(
            event_type=AuditEventType.AUTOPAYMENT_PLANNED,
            severity=AuditSeverity.DEBUG,
            entity_type="flatmate",
            entity_id=flatmate_id,
            correlation_id=correlation_id,
            description=f"Autopayment plan ({mode}) with {steps} steps",
            details={
                "mode": mode,
                "steps": steps,
            },
        )

    @staticmethod
    def schedule_rejected(
        flatmate_id: str,
        error_message: str,
        correlation_id: Optional[UUID] = None,
    ) -> AuditEvent:
        return AuditEvent(
            event_type=AuditEventType.SCHEDULE_REJECTED,
            severity=AuditSeverity.ERROR,
            entity_type="flatmate",
            entity_id=flatmate_id,
            correlation_id=correlation_id,
            description="Payment schedule rejected",
            error_message=error_message,
        )

    @staticmethod
    def system_error(
        error_type: str,
        error_message: str,
        details: Optional[dict] = None,
        correlation_id: Optional[UUID] = None
    ) -> AuditEvent:
        return AuditEvent(
            event_type=AuditEventType.SYSTEM_ERROR,
            severity=AuditSeverity.ERROR,
            description=f"System error: {error_type}",
            error_message=error_message,
            details=details or {},
            correlation_id=correlation_id,
        )

    @staticmethod
    def external_service_error(
        service: str,
        error_message: str,
        correlation_id: Optional[UUID] = None
    ) -> AuditEvent:
        return AuditEvent(
            event_type=AuditEventType.EXTERNAL_SERVICE_ERROR,
            severity=AuditSeverity.ERROR,
            description=f"External service error: {service}",
            error_message=error_message,
            details={
                "service": service,
            },
            correlation_id=correlation_id,
        )
