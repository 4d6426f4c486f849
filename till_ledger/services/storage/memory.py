"""
In-memory ledger storage.

Used by the tests and as the fallback when Google Sheets is not configured.
Data is lost when the process stops.
"""

from datetime import date
from typing import Optional

from till_ledger.models.ledger import LedgerRecord
from till_ledger.services.storage.interface import LedgerStoreInterface


class InMemoryLedgerStore(LedgerStoreInterface):
    """Dict-backed ledger keyed by day."""

    def __init__(self, records: Optional[list[LedgerRecord]] = None):
        self._days: dict[date, LedgerRecord] = {}
        for record in records or []:
            self._days[record.entry_date] = record

    async def read_day(self, entry_date: date) -> Optional[LedgerRecord]:
        return self._days.get(entry_date)

    async def write_day(self, entry_date: date, record: LedgerRecord) -> None:
        if record.entry_date != entry_date:
            record = record.with_date(entry_date)
        self._days[entry_date] = record

    async def read_month(self, year: int, month: int) -> list[LedgerRecord]:
        return sorted(
            (
                record for day, record in self._days.items()
                if day.year == year and day.month == month
            ),
            key=lambda r: r.entry_date,
        )

    async def delete_day(self, entry_date: date) -> bool:
        return self._days.pop(entry_date, None) is not None
