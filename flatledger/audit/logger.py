"""
Audit Logger

DESIGN DECISION: Every significant action in the system is logged.
This provides:
1. Traceability of every automatic and manual match
2. Debugging capability when a balance looks wrong
3. A history flatmates can be shown when they dispute a week

The audit logger:
- Is async so it can sit on the same path as async storage
- Gracefully handles failures (a broken audit store never breaks a sync)
- Supports correlation IDs to trace related events
"""

from typing import Optional
from uuid import UUID, uuid4

import structlog

from flatledger.models.audit import AuditEvent, AuditEventBuilder, AuditSeverity
from flatledger.services.storage import AuditStorageInterface, StorageError


# Configure structlog for local logging
structlog.configure(
    processors=[
        structlog.stdlib.filter_by_level,
        structlog.stdlib.add_logger_name,
        structlog.stdlib.add_log_level,
        structlog.stdlib.PositionalArgumentsFormatter(),
        structlog.processors.TimeStamper(fmt="iso"),
        structlog.processors.StackInfoRenderer(),
        structlog.processors.format_exc_info,
        structlog.processors.UnicodeDecoder(),
        structlog.processors.JSONRenderer()
    ],
    wrapper_class=structlog.stdlib.BoundLogger,
    context_class=dict,
    logger_factory=structlog.stdlib.LoggerFactory(),
    cache_logger_on_first_use=True,
)


class AuditLogger:
    """
    Central audit logging service.

    Logs events both to:
    1. Structured local log (for debugging)
    2. Audit storage (for persistence and user visibility)
    """

    def __init__(
        self,
        storage: Optional[AuditStorageInterface] = None,
    ):
        """
        Initialize audit logger.

        Args:
            storage: Storage backend for persistence.
                    If None, only logs locally.
        """
        self._storage = storage
        self._logger = structlog.get_logger("flatledger.audit")

    async def log(self, event: AuditEvent) -> bool:
        """
        Log an audit event.

        Always logs locally. Persists to storage if available.

        Returns True if storage write succeeded (or no storage configured).
        """
        log_dict = event.to_log_dict()

        if event.severity in (AuditSeverity.ERROR, AuditSeverity.CRITICAL):
            self._logger.error("audit_event", **log_dict)
        elif event.severity == AuditSeverity.WARNING:
            self._logger.warning("audit_event", **log_dict)
        elif event.severity == AuditSeverity.DEBUG:
            self._logger.debug("audit_event", **log_dict)
        else:
            self._logger.info("audit_event", **log_dict)

        if self._storage:
            try:
                return await self._storage.append_event(event)
            except StorageError as e:
                # Log failure but don't raise
                self._logger.error(
                    "audit_storage_failed",
                    error=str(e),
                    event_id=str(event.event_id),
                )
                return False

        return True

    async def log_match(
        self,
        transaction_id: str,
        flatmate_id: Optional[str],
        match_type: str,
        confidence: float,
        correlation_id: Optional[UUID] = None,
    ) -> None:
        """Log the outcome of automatic matching for one transaction."""
        if flatmate_id is None:
            event = AuditEventBuilder.transaction_unmatched(
                transaction_id=transaction_id,
                correlation_id=correlation_id,
            )
        else:
            event = AuditEventBuilder.transaction_matched(
                transaction_id=transaction_id,
                flatmate_id=flatmate_id,
                match_type=match_type,
                confidence=confidence,
                correlation_id=correlation_id,
            )
        await self.log(event)

    async def log_manual_match(
        self,
        transaction_id: str,
        flatmate_id: str,
        previous_flatmate_id: Optional[str],
        correlation_id: Optional[UUID] = None,
    ) -> None:
        event = AuditEventBuilder.manual_match_set(
            transaction_id=transaction_id,
            flatmate_id=flatmate_id,
            previous_flatmate_id=previous_flatmate_id,
            correlation_id=correlation_id,
        )
        await self.log(event)

    async def log_manual_released(
        self,
        transaction_id: str,
        previous_flatmate_id: Optional[str],
        correlation_id: Optional[UUID] = None,
    ) -> None:
        event = AuditEventBuilder.manual_match_released(
            transaction_id=transaction_id,
            previous_flatmate_id=previous_flatmate_id,
            correlation_id=correlation_id,
        )
        await self.log(event)

    async def log_rematch(
        self,
        matched: int,
        total: int,
        skipped_manual: int,
        correlation_id: Optional[UUID] = None,
    ) -> None:
        event = AuditEventBuilder.rematch_completed(
            matched=matched,
            total=total,
            skipped_manual=skipped_manual,
            correlation_id=correlation_id,
        )
        await self.log(event)

    async def log_matches_cleared(
        self,
        cleared: int,
        correlation_id: Optional[UUID] = None,
    ) -> None:
        event = AuditEventBuilder.matches_cleared(
            cleared=cleared,
            correlation_id=correlation_id,
        )
        await self.log(event)

    async def log_expense_category_set(
        self,
        transaction_id: str,
        category_id: Optional[str],
        previous_category_id: Optional[str],
        correlation_id: Optional[UUID] = None,
    ) -> None:
        event = AuditEventBuilder.expense_category_set(
            transaction_id=transaction_id,
            category_id=category_id,
            previous_category_id=previous_category_id,
            correlation_id=correlation_id,
        )
        await self.log(event)

    async def log_expense_rematch(
        self,
        matched: int,
        total: int,
        skipped_manual: int,
        correlation_id: Optional[UUID] = None,
    ) -> None:
        event = AuditEventBuilder.expenses_rematched(
            matched=matched,
            total=total,
            skipped_manual=skipped_manual,
            correlation_id=correlation_id,
        )
        await self.log(event)

    async def log_sync_started(
        self,
        since: Optional[str],
        correlation_id: UUID,
    ) -> None:
        event = AuditEventBuilder.sync_started(
            since=since,
            correlation_id=correlation_id,
        )
        await self.log(event)

    async def log_sync_completed(
        self,
        fetched: int,
        inserted: int,
        updated: int,
        matched: int,
        errors: list[str],
        correlation_id: UUID,
    ) -> None:
        event = AuditEventBuilder.sync_completed(
            fetched=fetched,
            inserted=inserted,
            updated=updated,
            matched=matched,
            errors=errors,
            correlation_id=correlation_id,
        )
        await self.log(event)

    async def log_sync_failed(
        self,
        error_message: str,
        correlation_id: UUID,
    ) -> None:
        event = AuditEventBuilder.sync_failed(
            error_message=error_message,
            correlation_id=correlation_id,
        )
        await self.log(event)

    async def log_balance_calculated(
        self,
        flatmate_id: str,
        weeks: int,
        total_balance: str,
        correlation_id: Optional[UUID] = None,
    ) -> None:
        event = AuditEventBuilder.balance_calculated(
            flatmate_id=flatmate_id,
            weeks=weeks,
            total_balance=total_balance,
            correlation_id=correlation_id,
        )
        await self.log(event)

    async def log_autopayment_planned(
        self,
        flatmate_id: str,
        mode: str,
        steps: int,
        correlation_id: Optional[UUID] = None,
    ) -> None:
        event = AuditEventBuilder.autopayment_planned(
            flatmate_id=flatmate_id,
            mode=mode,
            steps=steps,
            correlation_id=correlation_id,
        )
        await self.log(event)

    async def log_schedule_rejected(
        self,
        flatmate_id: str,
        error_message: str,
        correlation_id: Optional[UUID] = None,
    ) -> None:
        event = AuditEventBuilder.schedule_rejected(
            flatmate_id=flatmate_id,
            error_message=error_message,
            correlation_id=correlation_id,
        )
        await self.log(event)

    async def log_error(
        self,
        error_type: str,
        error_message: str,
        details: Optional[dict] = None,
        correlation_id: Optional[UUID] = None,
    ) -> None:
        """Log an error."""
        event = AuditEventBuilder.system_error(
            error_type=error_type,
            error_message=error_message,
            details=details,
            correlation_id=correlation_id,
        )
        await self.log(event)

    async def log_external_service_error(
        self,
        service: str,
        error_message: str,
        correlation_id: Optional[UUID] = None,
    ) -> None:
        """Log external service error."""
        event = AuditEventBuilder.external_service_error(
            service=service,
            error_message=error_message,
            correlation_id=correlation_id,
        )
        await self.log(event)


def create_correlation_id() -> UUID:
    """
    Create a new correlation ID for tracking related events.

    Use this at the start of a new flow (e.g., a bank sync).
    Pass it through all subsequent operations.
    """
    return uuid4()
