"""
Audit Models for Till Ledger

Every significant action in the system is logged for audit purposes.
This provides:
1. Complete traceability of what was declared, when and by which chat
2. Debugging information when things go wrong
3. A record of every overwrite and deletion of a ledger day

DESIGN DECISION: Audit logs are append-only. We never delete or modify them.
"""

import json
from datetime import date, datetime
from enum import Enum
from typing import Any, Optional
from uuid import UUID, uuid4

from pydantic import BaseModel, Field


class AuditEventType(str, Enum):
    """
    Types of events we audit.

    Every step of the entry flow has its own event type.
    """
    # Entry flow
    ENTRY_STARTED = "entry_started"
    EXTRACTION_COMPLETED = "extraction_completed"
    EXTRACTION_FAILED = "extraction_failed"
    VALIDATION_FAILED = "validation_failed"
    WARNINGS_ACKNOWLEDGED = "warnings_acknowledged"
    DATE_CONFIRMED = "date_confirmed"

    # Conflicts
    CONFLICT_DETECTED = "conflict_detected"
    OVERWRITE_CONFIRMED = "overwrite_confirmed"
    OVERWRITE_CANCELLED = "overwrite_cancelled"

    # Persistence
    RECORD_SAVED = "record_saved"
    RECORD_DELETED = "record_deleted"
    SAVE_FAILED = "save_failed"

    # Reporting
    REPORT_GENERATED = "report_generated"

    # Session
    SESSION_RESET = "session_reset"

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
    Every significant action creates one of these.
    """

    # Identity
    event_id: UUID = Field(
        default_factory=uuid4,
        description="Unique event identifier"
    )
    timestamp: datetime = Field(
        default_factory=datetime.utcnow,
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

    # Context - which chat and which ledger day
    chat_id: Optional[int] = Field(
        default=None,
        description="Chat the event happened in"
    )
    entry_date: Optional[date] = Field(
        default=None,
        description="Ledger day the event relates to"
    )

    # Correlation - for tracking related events
    correlation_id: Optional[UUID] = Field(
        default=None,
        description="ID to correlate related events (e.g., all events of one entry)"
    )

    # Event details
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

    # User action tracking
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
            "chat_id": self.chat_id,
            "entry_date": self.entry_date.isoformat() if self.entry_date else None,
            "correlation_id": str(self.correlation_id) if self.correlation_id else None,
            "description": self.description,
            "details": self.details,
            "error_message": self.error_message,
            "is_user_action": self.is_user_action,
        }

    def to_sheets_row(self) -> list:
        """
        Convert to a row suitable for Google Sheets storage.

        Returns columns in order:
        [event_id, timestamp, event_type, severity, chat_id, entry_date,
         correlation_id, description, details_json, error_message, is_user_action]
        """
        return [
            str(self.event_id),
            self.timestamp.isoformat(),
            self.event_type.value,
            self.severity.value,
            str(self.chat_id) if self.chat_id is not None else "",
            self.entry_date.isoformat() if self.entry_date else "",
            str(self.correlation_id) if self.correlation_id else "",
            self.description,
            json.dumps(self.details, default=str) if self.details else "",
            self.error_message or "",
            str(self.is_user_action),
        ]


def _figures(amounts: dict[str, Any]) -> dict[str, str]:
    return {name: str(value) for name, value in amounts.items()}


class AuditEventBuilder:
    """
    Helper class to build audit events with common patterns.

    Usage:
        event = AuditEventBuilder.entry_started(chat_id, day, correlation_id)
        event = AuditEventBuilder.record_saved(chat_id, day, figures, correlation_id)
    """

    @staticmethod
    def entry_started(
        chat_id: int,
        entry_date: date,
        origin: str,
        correlation_id: UUID,
    ) -> AuditEvent:
        return AuditEvent(
            event_type=AuditEventType.ENTRY_STARTED,
            chat_id=chat_id,
            entry_date=entry_date,
            correlation_id=correlation_id,
            description=f"Entry started ({origin}) for {entry_date.isoformat()}",
            details={"origin": origin},
            is_user_action=True,
        )

    @staticmethod
    def extraction_completed(
        chat_id: int,
        source: str,
        fields: list[str],
        correlation_id: Optional[UUID],
    ) -> AuditEvent:
        return AuditEvent(
            event_type=AuditEventType.EXTRACTION_COMPLETED,
            chat_id=chat_id,
            correlation_id=correlation_id,
            description=f"Figures extracted from {source}: {len(fields)} field(s)",
            details={"source": source, "fields": sorted(fields)},
        )

    @staticmethod
    def extraction_failed(
        chat_id: int,
        source: str,
        error_message: str,
        correlation_id: Optional[UUID],
    ) -> AuditEvent:
        return AuditEvent(
            event_type=AuditEventType.EXTRACTION_FAILED,
            severity=AuditSeverity.WARNING,
            chat_id=chat_id,
            correlation_id=correlation_id,
            description=f"Could not extract figures from {source}",
            error_message=error_message,
            details={"source": source},
        )

    @staticmethod
    def validation_failed(
        chat_id: int,
        issues: list[dict],
        correlation_id: Optional[UUID],
    ) -> AuditEvent:
        return AuditEvent(
            event_type=AuditEventType.VALIDATION_FAILED,
            severity=AuditSeverity.WARNING,
            chat_id=chat_id,
            correlation_id=correlation_id,
            description=f"Validation failed with {len(issues)} issues",
            details={"issues": issues},
        )

    @staticmethod
    def warnings_acknowledged(
        chat_id: int,
        warnings: list[str],
        correlation_id: Optional[UUID],
    ) -> AuditEvent:
        return AuditEvent(
            event_type=AuditEventType.WARNINGS_ACKNOWLEDGED,
            chat_id=chat_id,
            correlation_id=correlation_id,
            description=f"Operator continued despite {len(warnings)} warning(s)",
            details={"warnings": warnings},
            is_user_action=True,
        )

    @staticmethod
    def date_confirmed(
        chat_id: int,
        entry_date: date,
        correlation_id: Optional[UUID],
    ) -> AuditEvent:
        return AuditEvent(
            event_type=AuditEventType.DATE_CONFIRMED,
            chat_id=chat_id,
            entry_date=entry_date,
            correlation_id=correlation_id,
            description=f"Operator confirmed date {entry_date.isoformat()}",
            is_user_action=True,
        )

    @staticmethod
    def conflict_detected(
        chat_id: int,
        entry_date: date,
        existing_total: str,
        new_total: str,
        correlation_id: Optional[UUID],
    ) -> AuditEvent:
        return AuditEvent(
            event_type=AuditEventType.CONFLICT_DETECTED,
            severity=AuditSeverity.WARNING,
            chat_id=chat_id,
            entry_date=entry_date,
            correlation_id=correlation_id,
            description=f"Day {entry_date.isoformat()} already has figures",
            details={"existing_total_declared": existing_total, "new_total_declared": new_total},
        )

    @staticmethod
    def overwrite_decided(
        chat_id: int,
        entry_date: date,
        confirmed: bool,
        correlation_id: Optional[UUID],
    ) -> AuditEvent:
        event_type = (
            AuditEventType.OVERWRITE_CONFIRMED
            if confirmed
            else AuditEventType.OVERWRITE_CANCELLED
        )
        verb = "replaced" if confirmed else "kept"
        return AuditEvent(
            event_type=event_type,
            chat_id=chat_id,
            entry_date=entry_date,
            correlation_id=correlation_id,
            description=f"Operator {verb} the stored figures for {entry_date.isoformat()}",
            is_user_action=True,
        )

    @staticmethod
    def record_saved(
        chat_id: int,
        entry_date: date,
        figures: dict[str, Any],
        correlation_id: Optional[UUID],
    ) -> AuditEvent:
        return AuditEvent(
            event_type=AuditEventType.RECORD_SAVED,
            chat_id=chat_id,
            entry_date=entry_date,
            correlation_id=correlation_id,
            description=f"Ledger day saved: {entry_date.isoformat()}",
            details=_figures(figures),
        )

    @staticmethod
    def save_failed(
        chat_id: int,
        entry_date: date,
        error_message: str,
        correlation_id: Optional[UUID],
    ) -> AuditEvent:
        return AuditEvent(
            event_type=AuditEventType.SAVE_FAILED,
            severity=AuditSeverity.ERROR,
            chat_id=chat_id,
            entry_date=entry_date,
            correlation_id=correlation_id,
            description=f"Could not save ledger day {entry_date.isoformat()}",
            error_message=error_message,
        )

    @staticmethod
    def record_deleted(
        chat_id: int,
        entry_date: date,
    ) -> AuditEvent:
        return AuditEvent(
            event_type=AuditEventType.RECORD_DELETED,
            chat_id=chat_id,
            entry_date=entry_date,
            description=f"Ledger day deleted: {entry_date.isoformat()}",
            is_user_action=True,
        )

    @staticmethod
    def report_generated(
        chat_id: int,
        year: int,
        month: int,
        days_filled: int,
    ) -> AuditEvent:
        return AuditEvent(
            event_type=AuditEventType.REPORT_GENERATED,
            chat_id=chat_id,
            description=f"Monthly report generated for {year}-{month:02d}",
            details={"year": year, "month": month, "days_filled": days_filled},
        )

    @staticmethod
    def session_reset(
        chat_id: int,
        previous_state: str,
        correlation_id: Optional[UUID],
    ) -> AuditEvent:
        return AuditEvent(
            event_type=AuditEventType.SESSION_RESET,
            chat_id=chat_id,
            correlation_id=correlation_id,
            description=f"Session reset from state {previous_state}",
            details={"previous_state": previous_state},
            is_user_action=True,
        )

    @staticmethod
    def system_error(
        error_type: str,
        error_message: str,
        details: Optional[dict] = None,
        correlation_id: Optional[UUID] = None,
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
        correlation_id: Optional[UUID] = None,
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
