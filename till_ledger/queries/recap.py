"""
Monthly Recap Service

DESIGN DECISION: Recaps are never stored. They are recomputed from the
ledger every time they are asked for, so they always reflect the latest
overwrite or deletion.
"""

from decimal import Decimal
from typing import Optional

from till_ledger.models.conversation import ReplyDocument
from till_ledger.models.ledger import MonthlyRecap
from till_ledger.services.report import ReportGenerator
from till_ledger.services.storage import LedgerStoreInterface


class RecapService:
    """Reads a month from the ledger and aggregates it."""

    def __init__(
        self,
        ledger_store: LedgerStoreInterface,
        report_generator: Optional[ReportGenerator] = None,
    ):
        self._store = ledger_store
        self._reports = report_generator or ReportGenerator()

    async def month_recap(self, year: int, month: int) -> MonthlyRecap:
        """
        Aggregate one month.

        Raises:
            StorageError: If the month cannot be read
        """
        records = await self._store.read_month(year, month)
        return MonthlyRecap.from_records(year, month, records)

    async def undeclared_total(self, year: int, month: int) -> Decimal:
        """Running undeclared amount for a month ("cumul")."""
        recap = await self.month_recap(year, month)
        return recap.total_undeclared

    async def build_report(
        self,
        year: int,
        month: int,
    ) -> tuple[MonthlyRecap, Optional[ReplyDocument]]:
        """
        Render the month's PDF.

        Returns the recap and the document, or (recap, None) when
        the month has no activity.
        """
        records = await self._store.read_month(year, month)
        recap = MonthlyRecap.from_records(year, month, records)
        if recap.is_empty:
            return recap, None

        content = self._reports.render(year, month, records, recap)
        return recap, ReplyDocument(
            filename=ReportGenerator.filename(year, month),
            content=content,
        )
