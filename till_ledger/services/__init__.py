"""Services package."""

from till_ledger.services.extraction import (
    AudioInput,
    ExtractionError,
    ExtractionService,
    GeminiExtractionService,
    ImageInput,
    TextInput,
)
from till_ledger.services.report import ReportGenerator
from till_ledger.services.storage import (
    AuditStorageInterface,
    ConflictDetected,
    ConnectionError,
    GoogleSheetsAuditStorage,
    GoogleSheetsClient,
    GoogleSheetsLedgerStore,
    InMemoryLedgerStore,
    LedgerStoreInterface,
    NotFoundError,
    StorageError,
)

__all__ = [
    # Extraction services
    "AudioInput",
    "ExtractionError",
    "ExtractionService",
    "GeminiExtractionService",
    "ImageInput",
    "TextInput",
    # Report
    "ReportGenerator",
    # Storage services
    "AuditStorageInterface",
    "ConflictDetected",
    "ConnectionError",
    "GoogleSheetsAuditStorage",
    "GoogleSheetsClient",
    "GoogleSheetsLedgerStore",
    "InMemoryLedgerStore",
    "LedgerStoreInterface",
    "NotFoundError",
    "StorageError",
]
