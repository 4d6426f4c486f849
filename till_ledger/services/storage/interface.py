"""
Abstract Storage Interface

DESIGN DECISION: We define an abstract interface for storage operations.
This allows us to:
1. Swap Google Sheets for a real database later
2. Use in-memory storage for testing
3. Keep the conversation engine decoupled from the spreadsheet layout

The interface is intentionally small: a ledger is a set of days,
and a day is read, written whole, or deleted.
"""

from abc import ABC, abstractmethod
from datetime import date
from typing import Optional
from uuid import UUID

from till_ledger.models.audit import AuditEvent
from till_ledger.models.ledger import LedgerRecord


class LedgerStoreInterface(ABC):
    """
    Abstract interface for the monthly ledger.

    Any storage implementation (Google Sheets, PostgreSQL, etc.)
    must implement these methods.
    """

    @abstractmethod
    async def read_day(self, entry_date: date) -> Optional[LedgerRecord]:
        """
        Read the record stored for a day.

        Returns:
            The record if the day has a row, None otherwise

        Raises:
            StorageError: If the backend cannot be read
        """
        pass

    @abstractmethod
    async def write_day(self, entry_date: date, record: LedgerRecord) -> None:
        """
        Write a day, replacing every field of any existing row.

        Raises:
            StorageError: If the write fails
        """
        pass

    @abstractmethod
    async def read_month(self, year: int, month: int) -> list[LedgerRecord]:
        """
        Read every stored day of a month.

        Returns:
            Records sorted by date (empty if the month has no data)

        Raises:
            StorageError: If the backend cannot be read
        """
        pass

    @abstractmethod
    async def delete_day(self, entry_date: date) -> bool:
        """
        Delete a day.

        Returns:
            True if a row existed and was removed

        Raises:
            StorageError: If the delete fails
        """
        pass


class AuditStorageInterface(ABC):
    """
    Abstract interface for audit log storage.

    Audit logs are append-only - we never delete or modify them.
    """

    @abstractmethod
    async def append_event(self, event: AuditEvent) -> bool:
        """
        Append an audit event to the log.

        Returns:
            True if logged successfully
        """
        pass

    @abstractmethod
    async def get_events_by_correlation_id(
        self,
        correlation_id: UUID,
    ) -> list[AuditEvent]:
        """
        Get all events for a correlation ID (e.g., one entry flow).

        Returns:
            List of related events in chronological order
        """
        pass


class StorageError(Exception):
    """Base exception for storage operations."""
    pass


class NotFoundError(StorageError):
    """Entity not found in storage."""
    pass


class ConnectionError(StorageError):
    """Could not connect to storage backend."""
    pass


class ConflictDetected(Exception):
    """
    The target day already holds figures.

    Raised before a commit that would overwrite stored data;
    carries the stored record so it can be shown next to the new one.
    """

    def __init__(self, existing: LedgerRecord):
        self.existing = existing
        super().__init__(f"Day {existing.entry_date.isoformat()} already has figures")
