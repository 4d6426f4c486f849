"""
Data Models Package

This package contains all Pydantic models used in Till Ledger.
All data flowing through the system must conform to these schemas.
"""

from till_ledger.models.ledger import (
    ACTUAL_FIELDS,
    DECLARED_FIELDS,
    INPUT_FIELDS,
    LedgerRecord,
    MonthlyRecap,
    PartialRecord,
    ValidationIssue,
    ValidationResult,
    to_money,
)
from till_ledger.models.conversation import (
    Action,
    AfterWarnings,
    Button,
    ButtonPress,
    ConversationState,
    EntryOrigin,
    InboundEvent,
    MediaKind,
    MediaMessage,
    Reply,
    ReplyDocument,
    Session,
    TextMessage,
    encode_callback,
)
from till_ledger.models.audit import (
    AuditEvent,
    AuditEventBuilder,
    AuditEventType,
    AuditSeverity,
)

__all__ = [
    # Ledger models
    "ACTUAL_FIELDS",
    "DECLARED_FIELDS",
    "INPUT_FIELDS",
    "LedgerRecord",
    "MonthlyRecap",
    "PartialRecord",
    "ValidationIssue",
    "ValidationResult",
    "to_money",
    # Conversation models
    "Action",
    "AfterWarnings",
    "Button",
    "ButtonPress",
    "ConversationState",
    "EntryOrigin",
    "InboundEvent",
    "MediaKind",
    "MediaMessage",
    "Reply",
    "ReplyDocument",
    "Session",
    "TextMessage",
    "encode_callback",
    # Audit models
    "AuditEvent",
    "AuditEventBuilder",
    "AuditEventType",
    "AuditSeverity",
]
