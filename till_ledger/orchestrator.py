"""
Main Orchestrator for Till Ledger

Wires the storage, extraction, recap and audit services into a
ConversationEngine.

DESIGN DECISION: The bot still starts when an external service is not
configured. Without Google Sheets the ledger lives in memory (and is lost
on restart); without Gemini only the typed keyword grammar is understood.
Both situations are logged loudly at startup.
"""

from typing import Optional

import structlog

from till_ledger.audit import AuditLogger
from till_ledger.clock import SystemClock
from till_ledger.config import get_settings
from till_ledger.conversation import ChatActionGuard, ConversationEngine
from till_ledger.queries import RecapService
from till_ledger.services.extraction import ExtractionService, GeminiExtractionService
from till_ledger.services.report import ReportGenerator
from till_ledger.services.storage import (
    GoogleSheetsAuditStorage,
    GoogleSheetsClient,
    GoogleSheetsLedgerStore,
    InMemoryLedgerStore,
    LedgerStoreInterface,
)
from till_ledger.session import InMemorySessionStore
from till_ledger.validation import RecordValidator


logger = structlog.get_logger(__name__)


def _create_extractor(clock: SystemClock) -> Optional[ExtractionService]:
    try:
        return GeminiExtractionService(today_provider=clock.today)
    except Exception as e:
        logger.warning("extraction_not_configured", error=str(e))
        return None


def create_app_components(
    use_storage: bool = True,
) -> tuple[ConversationEngine, Optional[GoogleSheetsClient]]:
    """
    Factory function to create all application components.

    Args:
        use_storage: Whether to initialize Google Sheets storage.
                    Set to False to run with an in-memory ledger.

    Returns:
        (conversation_engine, sheets_client)
    """
    settings = get_settings()
    ledger_settings = settings.ledger

    sheets_client = None
    ledger_store: LedgerStoreInterface
    audit_logger = None

    if use_storage:
        try:
            sheets_client = GoogleSheetsClient()
            sheets_client.connect()
            ledger_store = GoogleSheetsLedgerStore(sheets_client)
            audit_logger = AuditLogger(GoogleSheetsAuditStorage(sheets_client))
        except Exception as e:
            # Storage not configured - continue in memory
            logger.warning("storage_not_configured", error=str(e))
            sheets_client = None
            ledger_store = InMemoryLedgerStore()
            audit_logger = AuditLogger()  # Local-only logging
    else:
        ledger_store = InMemoryLedgerStore()
        audit_logger = AuditLogger()  # Local-only logging

    clock = SystemClock(ledger_settings.timezone)
    recap_service = RecapService(
        ledger_store,
        ReportGenerator(clock_now=clock.now),
    )

    engine = ConversationEngine(
        session_store=InMemorySessionStore(),
        ledger_store=ledger_store,
        extractor=_create_extractor(clock),
        recap_service=recap_service,
        clock=clock,
        validator=RecordValidator(ledger_settings),
        guard=ChatActionGuard(),
        audit_logger=audit_logger,
        settings=ledger_settings,
    )

    return engine, sheets_client
