"""
Storage Services Package

Provides abstract interfaces and concrete implementations for data storage.
Google Sheets is the production backend; the in-memory store backs tests
and runs without credentials.
"""

from till_ledger.services.storage.interface import (
    AuditStorageInterface,
    ConflictDetected,
    ConnectionError,
    LedgerStoreInterface,
    NotFoundError,
    StorageError,
)
from till_ledger.services.storage.google_sheets import (
    GoogleSheetsAuditStorage,
    GoogleSheetsClient,
    GoogleSheetsLedgerStore,
)
from till_ledger.services.storage.memory import InMemoryLedgerStore

__all__ = [
    # Interfaces
    "AuditStorageInterface",
    "LedgerStoreInterface",
    # Exceptions
    "ConflictDetected",
    "ConnectionError",
    "NotFoundError",
    "StorageError",
    # Google Sheets implementation
    "GoogleSheetsAuditStorage",
    "GoogleSheetsClient",
    "GoogleSheetsLedgerStore",
    # In-memory implementation
    "InMemoryLedgerStore",
]
