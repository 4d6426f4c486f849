"""
Audit Logger

DESIGN DECISION: Every significant action in the system is logged.
This provides:
1. Complete traceability of what was declared and overwritten
2. Debugging capability
3. Compliance readiness

The audit logger:
- Is async to not block main flow
- Gracefully handles failures (doesn't crash the bot if logging fails)
- Supports correlation IDs to trace the events of one entry
"""

from datetime import date
from typing import Any, Optional
from uuid import UUID, uuid4

import structlog

from till_ledger.models.audit import AuditEvent, AuditEventBuilder, AuditSeverity
from till_ledger.services.storage import AuditStorageInterface


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
    2. Google Sheets (for persistence), when configured
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
        self._logger = structlog.get_logger("till_ledger.audit")

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
        else:
            self._logger.info("audit_event", **log_dict)

        if self._storage:
            try:
                return await self._storage.append_event(event)
            except Exception as e:
                # Log failure but don't raise
                self._logger.error(
                    "audit_storage_failed",
                    error=str(e),
                    event_id=str(event.event_id),
                )
                return False

        return True

    async def log_entry_started(
        self,
        chat_id: int,
        entry_date: date,
        origin: str,
        correlation_id: UUID,
    ) -> None:
        """Log the start of an entry (new or past day)."""
        await self.log(AuditEventBuilder.entry_started(
            chat_id=chat_id,
            entry_date=entry_date,
            origin=origin,
            correlation_id=correlation_id,
        ))

    async def log_extraction_completed(
        self,
        chat_id: int,
        source: str,
        fields: list[str],
        correlation_id: Optional[UUID],
    ) -> None:
        """Log a successful extraction."""
        await self.log(AuditEventBuilder.extraction_completed(
            chat_id=chat_id,
            source=source,
            fields=fields,
            correlation_id=correlation_id,
        ))

    async def log_extraction_failed(
        self,
        chat_id: int,
        source: str,
        error_message: str,
        correlation_id: Optional[UUID],
    ) -> None:
        """Log an extraction failure."""
        await self.log(AuditEventBuilder.extraction_failed(
            chat_id=chat_id,
            source=source,
            error_message=error_message,
            correlation_id=correlation_id,
        ))

    async def log_validation_failed(
        self,
        chat_id: int,
        issues: list[dict],
        correlation_id: Optional[UUID],
    ) -> None:
        """Log validation failure."""
        await self.log(AuditEventBuilder.validation_failed(
            chat_id=chat_id,
            issues=issues,
            correlation_id=correlation_id,
        ))

    async def log_warnings_acknowledged(
        self,
        chat_id: int,
        warnings: list[str],
        correlation_id: Optional[UUID],
    ) -> None:
        await self.log(AuditEventBuilder.warnings_acknowledged(
            chat_id=chat_id,
            warnings=warnings,
            correlation_id=correlation_id,
        ))

    async def log_date_confirmed(
        self,
        chat_id: int,
        entry_date: date,
        correlation_id: Optional[UUID],
    ) -> None:
        await self.log(AuditEventBuilder.date_confirmed(
            chat_id=chat_id,
            entry_date=entry_date,
            correlation_id=correlation_id,
        ))

    async def log_conflict_detected(
        self,
        chat_id: int,
        entry_date: date,
        existing_total: str,
        new_total: str,
        correlation_id: Optional[UUID],
    ) -> None:
        """Log that a send would overwrite stored figures."""
        await self.log(AuditEventBuilder.conflict_detected(
            chat_id=chat_id,
            entry_date=entry_date,
            existing_total=existing_total,
            new_total=new_total,
            correlation_id=correlation_id,
        ))

    async def log_overwrite_decided(
        self,
        chat_id: int,
        entry_date: date,
        confirmed: bool,
        correlation_id: Optional[UUID],
    ) -> None:
        await self.log(AuditEventBuilder.overwrite_decided(
            chat_id=chat_id,
            entry_date=entry_date,
            confirmed=confirmed,
            correlation_id=correlation_id,
        ))

    async def log_record_saved(
        self,
        chat_id: int,
        entry_date: date,
        figures: dict[str, Any],
        correlation_id: Optional[UUID],
    ) -> None:
        """Log a committed ledger day."""
        await self.log(AuditEventBuilder.record_saved(
            chat_id=chat_id,
            entry_date=entry_date,
            figures=figures,
            correlation_id=correlation_id,
        ))

    async def log_save_failed(
        self,
        chat_id: int,
        entry_date: date,
        error_message: str,
        correlation_id: Optional[UUID],
    ) -> None:
        await self.log(AuditEventBuilder.save_failed(
            chat_id=chat_id,
            entry_date=entry_date,
            error_message=error_message,
            correlation_id=correlation_id,
        ))

    async def log_record_deleted(self, chat_id: int, entry_date: date) -> None:
        await self.log(AuditEventBuilder.record_deleted(chat_id=chat_id, entry_date=entry_date))

    async def log_report_generated(
        self,
        chat_id: int,
        year: int,
        month: int,
        days_filled: int,
    ) -> None:
        await self.log(AuditEventBuilder.report_generated(
            chat_id=chat_id,
            year=year,
            month=month,
            days_filled=days_filled,
        ))

    async def log_session_reset(
        self,
        chat_id: int,
        previous_state: str,
        correlation_id: Optional[UUID],
    ) -> None:
        await self.log(AuditEventBuilder.session_reset(
            chat_id=chat_id,
            previous_state=previous_state,
            correlation_id=correlation_id,
        ))

    async def log_error(
        self,
        error_type: str,
        error_message: str,
        details: Optional[dict] = None,
        correlation_id: Optional[UUID] = None,
    ) -> None:
        """Log an error."""
        await self.log(AuditEventBuilder.system_error(
            error_type=error_type,
            error_message=error_message,
            details=details,
            correlation_id=correlation_id,
        ))

    async def log_external_service_error(
        self,
        service: str,
        error_message: str,
        correlation_id: Optional[UUID] = None,
    ) -> None:
        """Log external service error."""
        await self.log(AuditEventBuilder.external_service_error(
            service=service,
            error_message=error_message,
            correlation_id=correlation_id,
        ))


def create_correlation_id() -> UUID:
    """
    Create a new correlation ID for tracking related events.

    Use this at the start of a new entry.
    Pass it through all subsequent operations.
    """
    return uuid4()
