"""
Google Sheets Storage Implementation

DESIGN DECISION: Google Sheets is used as the storage backend because:
1. The accountant and the owner can open the ledger directly
2. No database setup required
3. Built-in backup (Google's infrastructure)

LAYOUT:
- One worksheet per month, titled YYYY-MM, created with a header row
  on the first write of that month
- One row per day; writing a day replaces the whole row
- An AuditLog worksheet for audit events

TRADEOFFS:
- No transactions (a write is a single row update or append)
- Lookups scan the month's rows (at most 31)
"""

import asyncio
import json
from datetime import date, datetime
from decimal import Decimal
from typing import Optional
from uuid import UUID

import gspread
from google.oauth2.service_account import Credentials
from tenacity import retry, stop_after_attempt, wait_exponential

from till_ledger.config import GoogleSheetsSettings, get_settings
from till_ledger.models.audit import AuditEvent, AuditEventType, AuditSeverity
from till_ledger.models.ledger import DECLARED_FIELDS, LedgerRecord
from till_ledger.services.storage.interface import (
    AuditStorageInterface,
    ConnectionError,
    LedgerStoreInterface,
    StorageError,
)


# Column layout of a monthly ledger worksheet
LEDGER_COLUMNS = [
    "Date",
    "CB",
    "Espèces",
    "TR",
    "Dépenses",
    "Total réel",
    "Total déclaré",
    "TR déclaré",
    "Dépenses déclarées",
    "Non déclaré",
    "Champs saisis",
    "Mis à jour",
]

# Column mappings for Audit sheet
AUDIT_COLUMNS = [
    "event_id",
    "timestamp",
    "event_type",
    "severity",
    "chat_id",
    "entry_date",
    "correlation_id",
    "description",
    "details_json",
    "error_message",
    "is_user_action",
]

# Header width letter for full-row updates
_LAST_LEDGER_COLUMN = chr(ord("A") + len(LEDGER_COLUMNS) - 1)


def month_sheet_title(year: int, month: int) -> str:
    return f"{year:04d}-{month:02d}"


def record_to_row(record: LedgerRecord, updated_at: Optional[datetime] = None) -> list:
    """Convert a LedgerRecord to a spreadsheet row."""
    return [
        record.entry_date.isoformat(),
        str(record.card_actual),
        str(record.cash_actual),
        str(record.meal_voucher_actual),
        str(record.expense_actual),
        str(record.total_actual),
        str(record.total_declared),
        str(record.meal_voucher_declared),
        str(record.expense_declared),
        str(record.undeclared_amount),
        ",".join(name for name in DECLARED_FIELDS if name in record.supplied_fields),
        (updated_at or datetime.utcnow()).isoformat(timespec="seconds"),
    ]


def row_to_record(row: list) -> LedgerRecord:
    """
    Convert a spreadsheet row to a LedgerRecord.

    Derived columns (total réel, non déclaré) are ignored and recomputed.
    Rows written before the "Champs saisis" column existed are treated
    as fully declared.
    """
    def safe_get(index: int, default: str = "") -> str:
        try:
            return row[index] if row[index] else default
        except IndexError:
            return default

    def amount(index: int) -> Decimal:
        return Decimal(safe_get(index, "0").replace(",", "."))

    if len(row) > 10:
        supplied = [name for name in safe_get(10).split(",") if name]
    else:
        supplied = list(DECLARED_FIELDS)

    values = {
        "entry_date": date.fromisoformat(safe_get(0)),
        "card_actual": amount(1),
        "cash_actual": amount(2),
        "meal_voucher_actual": amount(3),
        "expense_actual": amount(4),
        "supplied_fields": supplied,
    }
    declared_columns = {
        "total_declared": 6,
        "meal_voucher_declared": 7,
        "expense_declared": 8,
    }
    for name in supplied:
        values[name] = amount(declared_columns[name])

    return LedgerRecord(**values)


class GoogleSheetsClient:
    """
    Low-level Google Sheets client wrapper.

    Handles authentication and provides retry logic for API calls.
    """

    def __init__(self, settings: Optional[GoogleSheetsSettings] = None):
        self._client: Optional[gspread.Client] = None
        self._spreadsheet: Optional[gspread.Spreadsheet] = None
        self._settings = settings or get_settings().google_sheets

    @retry(
        stop=stop_after_attempt(3),
        wait=wait_exponential(multiplier=1, min=2, max=10),
        reraise=True,
    )
    def connect(self) -> gspread.Client:
        """
        Establish connection to Google Sheets.

        Uses service account credentials for authentication.
        """
        if self._client is None:
            try:
                scopes = [
                    "https://www.googleapis.com/auth/spreadsheets",
                    "https://www.googleapis.com/auth/drive",
                ]
                credentials = Credentials.from_service_account_file(
                    self._settings.credentials_path,
                    scopes=scopes,
                )
                self._client = gspread.authorize(credentials)
            except FileNotFoundError:
                raise ConnectionError(
                    f"Google credentials file not found: {self._settings.credentials_path}"
                )
            except Exception as e:
                raise ConnectionError(f"Failed to connect to Google Sheets: {e}")

        return self._client

    def get_spreadsheet(self) -> gspread.Spreadsheet:
        """Get the configured spreadsheet."""
        if self._spreadsheet is None:
            client = self.connect()
            try:
                self._spreadsheet = client.open_by_key(
                    self._settings.spreadsheet_id
                )
            except gspread.SpreadsheetNotFound:
                raise ConnectionError(
                    f"Spreadsheet not found: {self._settings.spreadsheet_id}"
                )
        return self._spreadsheet

    def get_month_sheet(
        self,
        year: int,
        month: int,
        create: bool = False,
    ) -> Optional[gspread.Worksheet]:
        """
        Get a month's worksheet.

        Returns None when it doesn't exist and create is False.
        """
        spreadsheet = self.get_spreadsheet()
        title = month_sheet_title(year, month)
        try:
            return spreadsheet.worksheet(title)
        except gspread.WorksheetNotFound:
            if not create:
                return None
            sheet = spreadsheet.add_worksheet(
                title=title,
                rows=40,
                cols=len(LEDGER_COLUMNS),
            )
            sheet.append_row(LEDGER_COLUMNS)
            return sheet

    def get_audit_sheet(self) -> gspread.Worksheet:
        """Get or create the Audit worksheet."""
        spreadsheet = self.get_spreadsheet()
        try:
            sheet = spreadsheet.worksheet(self._settings.audit_sheet_name)
        except gspread.WorksheetNotFound:
            sheet = spreadsheet.add_worksheet(
                title=self._settings.audit_sheet_name,
                rows=5000,
                cols=len(AUDIT_COLUMNS),
            )
            sheet.append_row(AUDIT_COLUMNS)
        return sheet


def _find_day_row(rows: list[list], entry_date: date) -> Optional[int]:
    """1-based sheet row index of a day, skipping the header."""
    key = entry_date.isoformat()
    for idx, row in enumerate(rows[1:], start=2):
        if row and row[0] == key:
            return idx
    return None


class GoogleSheetsLedgerStore(LedgerStoreInterface):
    """
    Google Sheets implementation of the monthly ledger.

    Each day is one row of its month's worksheet. gspread is blocking,
    so every sheet round trip runs in a worker thread.
    """

    def __init__(self, client: Optional[GoogleSheetsClient] = None):
        self._client = client or GoogleSheetsClient()

    def _read_day_sync(self, entry_date: date) -> Optional[LedgerRecord]:
        sheet = self._client.get_month_sheet(entry_date.year, entry_date.month)
        if sheet is None:
            return None
        rows = sheet.get_all_values()
        idx = _find_day_row(rows, entry_date)
        if idx is None:
            return None
        return row_to_record(rows[idx - 1])

    def _write_day_sync(self, entry_date: date, record: LedgerRecord) -> None:
        sheet = self._client.get_month_sheet(
            entry_date.year, entry_date.month, create=True
        )
        row = record_to_row(record)
        idx = _find_day_row(sheet.get_all_values(), entry_date)
        if idx is None:
            sheet.append_row(row, value_input_option="RAW")
        else:
            sheet.update(
                range_name=f"A{idx}:{_LAST_LEDGER_COLUMN}{idx}",
                values=[row],
                value_input_option="RAW",
            )

    def _read_month_sync(self, year: int, month: int) -> list[LedgerRecord]:
        sheet = self._client.get_month_sheet(year, month)
        if sheet is None:
            return []
        records = []
        for row in sheet.get_all_values()[1:]:
            if not row or not row[0]:
                continue
            try:
                records.append(row_to_record(row))
            except Exception:
                continue  # Skip malformed rows
        records.sort(key=lambda r: r.entry_date)
        return records

    def _delete_day_sync(self, entry_date: date) -> bool:
        sheet = self._client.get_month_sheet(entry_date.year, entry_date.month)
        if sheet is None:
            return False
        idx = _find_day_row(sheet.get_all_values(), entry_date)
        if idx is None:
            return False
        sheet.delete_rows(idx)
        return True

    async def read_day(self, entry_date: date) -> Optional[LedgerRecord]:
        """Read one day."""
        try:
            return await asyncio.to_thread(self._read_day_sync, entry_date)
        except StorageError:
            raise
        except Exception as e:
            raise StorageError(f"Failed to read day {entry_date}: {e}")

    @retry(
        stop=stop_after_attempt(3),
        wait=wait_exponential(multiplier=1, min=2, max=10),
        reraise=True,
    )
    async def write_day(self, entry_date: date, record: LedgerRecord) -> None:
        """Write one day, replacing the existing row if there is one."""
        if record.entry_date != entry_date:
            record = record.with_date(entry_date)
        try:
            await asyncio.to_thread(self._write_day_sync, entry_date, record)
        except StorageError:
            raise
        except Exception as e:
            raise StorageError(f"Failed to write day {entry_date}: {e}")

    async def read_month(self, year: int, month: int) -> list[LedgerRecord]:
        """Read every day of a month, sorted by date."""
        try:
            return await asyncio.to_thread(self._read_month_sync, year, month)
        except StorageError:
            raise
        except Exception as e:
            raise StorageError(f"Failed to read month {year}-{month:02d}: {e}")

    async def delete_day(self, entry_date: date) -> bool:
        """Delete one day."""
        try:
            return await asyncio.to_thread(self._delete_day_sync, entry_date)
        except StorageError:
            raise
        except Exception as e:
            raise StorageError(f"Failed to delete day {entry_date}: {e}")


class GoogleSheetsAuditStorage(AuditStorageInterface):
    """
    Google Sheets implementation of audit log storage.

    Audit events are append-only.
    """

    def __init__(self, client: Optional[GoogleSheetsClient] = None):
        self._client = client or GoogleSheetsClient()

    def _row_to_event(self, row: list) -> AuditEvent:
        """Convert a spreadsheet row to an AuditEvent."""
        def safe_get(index: int, default: str = "") -> str:
            try:
                return row[index] if row[index] else default
            except IndexError:
                return default

        return AuditEvent(
            event_id=UUID(safe_get(0)),
            timestamp=datetime.fromisoformat(safe_get(1)),
            event_type=AuditEventType(safe_get(2)),
            severity=AuditSeverity(safe_get(3)),
            chat_id=int(safe_get(4)) if safe_get(4) else None,
            entry_date=date.fromisoformat(safe_get(5)) if safe_get(5) else None,
            correlation_id=UUID(safe_get(6)) if safe_get(6) else None,
            description=safe_get(7),
            details=json.loads(safe_get(8)) if safe_get(8) else {},
            error_message=safe_get(9) or None,
            is_user_action=safe_get(10).lower() == "true",
        )

    def _append_row_sync(self, row: list) -> None:
        sheet = self._client.get_audit_sheet()
        sheet.append_row(row, value_input_option="RAW")

    def _read_rows_sync(self) -> list[list]:
        return self._client.get_audit_sheet().get_all_values()[1:]

    @retry(
        stop=stop_after_attempt(3),
        wait=wait_exponential(multiplier=1, min=2, max=10),
        reraise=True,
    )
    async def append_event(self, event: AuditEvent) -> bool:
        """Append an audit event."""
        try:
            await asyncio.to_thread(self._append_row_sync, event.to_sheets_row())
            return True
        except Exception as e:
            raise StorageError(f"Failed to write audit event: {e}")

    async def get_events_by_correlation_id(
        self,
        correlation_id: UUID,
    ) -> list[AuditEvent]:
        """Get events by correlation ID."""
        try:
            all_rows = await asyncio.to_thread(self._read_rows_sync)
        except Exception as e:
            raise StorageError(f"Failed to get audit events: {e}")

        events = []
        for row in all_rows:
            if row and len(row) > 6 and row[6] == str(correlation_id):
                try:
                    events.append(self._row_to_event(row))
                except Exception:
                    continue

        events.sort(key=lambda e: e.timestamp)
        return events
