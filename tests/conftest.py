"""
Shared test fixtures.

No real API calls: the ledger lives in memory, the clock is fixed on
Tuesday 10 June 2025 at noon and the extractor replays scripted answers.
"""

from datetime import datetime
from typing import Optional
from uuid import UUID

import pytest

from till_ledger.audit import AuditLogger
from till_ledger.clock import FixedClock
from till_ledger.config import LedgerSettings
from till_ledger.conversation import ChatActionGuard, ConversationEngine
from till_ledger.models.audit import AuditEvent
from till_ledger.models.ledger import LedgerRecord, PartialRecord
from till_ledger.queries import RecapService
from till_ledger.services.extraction import ExtractionError, ExtractionService
from till_ledger.services.storage import (
    AuditStorageInterface,
    InMemoryLedgerStore,
    StorageError,
)
from till_ledger.session import InMemorySessionStore


class RecordingAuditStorage(AuditStorageInterface):
    """Keeps audit events in a list."""

    def __init__(self):
        self.events: list[AuditEvent] = []

    async def append_event(self, event: AuditEvent) -> bool:
        self.events.append(event)
        return True

    async def get_events_by_correlation_id(self, correlation_id: UUID) -> list[AuditEvent]:
        return [e for e in self.events if e.correlation_id == correlation_id]

    def types(self) -> list[str]:
        return [e.event_type.value for e in self.events]


class ScriptedExtractor(ExtractionService):
    """Returns queued answers in order; an exception in the queue is raised."""

    def __init__(self, *answers):
        self.answers = list(answers)
        self.calls = []

    async def extract(self, source, existing: Optional[LedgerRecord] = None) -> PartialRecord:
        self.calls.append((source, existing))
        if not self.answers:
            raise ExtractionError("No scripted answer left")
        answer = self.answers.pop(0)
        if isinstance(answer, Exception):
            raise answer
        return answer


class FlakyLedgerStore(InMemoryLedgerStore):
    """In-memory store whose reads or writes can be switched off."""

    def __init__(self, records=None):
        super().__init__(records)
        self.fail_reads = False
        self.fail_writes = False
        self.writes = 0

    async def read_day(self, entry_date):
        if self.fail_reads:
            raise StorageError("Sheets unreachable")
        return await super().read_day(entry_date)

    async def write_day(self, entry_date, record):
        if self.fail_writes:
            raise StorageError("Sheets unreachable")
        self.writes += 1
        await super().write_day(entry_date, record)


@pytest.fixture
def ledger_settings():
    return LedgerSettings()


@pytest.fixture
def clock():
    return FixedClock(datetime(2025, 6, 10, 12, 0))


@pytest.fixture
def ledger_store():
    return FlakyLedgerStore()


@pytest.fixture
def audit_storage():
    return RecordingAuditStorage()


@pytest.fixture
def extractor():
    return ScriptedExtractor()


@pytest.fixture
def session_store():
    return InMemorySessionStore()


@pytest.fixture
def guard():
    return ChatActionGuard()


@pytest.fixture
def engine(session_store, ledger_store, extractor, clock, guard, audit_storage, ledger_settings):
    return ConversationEngine(
        session_store=session_store,
        ledger_store=ledger_store,
        extractor=extractor,
        recap_service=RecapService(ledger_store),
        clock=clock,
        guard=guard,
        audit_logger=AuditLogger(audit_storage),
        settings=ledger_settings,
    )
