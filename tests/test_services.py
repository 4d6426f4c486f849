"""Tests for storage, extraction parsing, reports, audit logging and the guard."""

import asyncio
import threading
import pytest
from datetime import date, datetime
from decimal import Decimal

from till_ledger.audit import AuditLogger
from till_ledger.conversation import ChatActionGuard
from till_ledger.models.audit import AuditEventBuilder
from till_ledger.models.ledger import LedgerRecord, MonthlyRecap
from till_ledger.queries import RecapService
from till_ledger.services.extraction import ExtractionError, parse_response
from till_ledger.services.report import ReportGenerator
from till_ledger.services.storage import (
    AuditStorageInterface,
    GoogleSheetsLedgerStore,
    InMemoryLedgerStore,
)
from till_ledger.services.storage.google_sheets import (
    LEDGER_COLUMNS,
    month_sheet_title,
    record_to_row,
    row_to_record,
)


DAY = date(2025, 6, 10)


def run_async(coro):
    return asyncio.run(coro)


class FakeWorksheet:
    """The subset of gspread.Worksheet the ledger store uses."""

    def __init__(self):
        self.rows = [list(LEDGER_COLUMNS)]

    def get_all_values(self):
        return [list(row) for row in self.rows]

    def append_row(self, row, value_input_option=None):
        self.rows.append(list(row))

    def update(self, range_name, values, value_input_option=None):
        index = int(range_name.split(":")[0][1:])
        self.rows[index - 1] = list(values[0])

    def delete_rows(self, index):
        del self.rows[index - 1]


class GatedWorksheet(FakeWorksheet):
    """Blocks its reader thread until the gate opens."""

    def __init__(self):
        super().__init__()
        self.gate = threading.Event()

    def get_all_values(self):
        if not self.gate.wait(timeout=5):
            raise RuntimeError("gate never opened")
        return super().get_all_values()


class FakeSheetsClient:
    """Hands out one FakeWorksheet per month title."""

    def __init__(self):
        self.sheets = {}

    def get_month_sheet(self, year, month, create=False):
        title = month_sheet_title(year, month)
        if title not in self.sheets and create:
            self.sheets[title] = FakeWorksheet()
        return self.sheets.get(title)


class TestSheetRows:
    """Tests for the ledger row layout."""

    def test_row_layout(self):
        record = LedgerRecord(entry_date=DAY, card_actual=1000, cash_actual=500, total_declared=1200)
        row = record_to_row(record, updated_at=datetime(2025, 6, 10, 21, 30))
        assert len(row) == len(LEDGER_COLUMNS)
        assert row[0] == "2025-06-10"
        assert row[5] == "1500.00"  # Total réel
        assert row[9] == "300.00"  # Non déclaré
        assert row[10] == "total_declared"  # Champs saisis
        assert row[11] == "2025-06-10T21:30:00"

    def test_row_round_trip_keeps_defaults_live(self):
        """Test unsupplied declared fields stay defaults after a reload."""
        record = LedgerRecord(entry_date=DAY, card_actual=1000, meal_voucher_actual=50)
        loaded = row_to_record(record_to_row(record))
        assert loaded == record
        assert loaded.supplied_fields == frozenset()

    def test_derived_columns_are_recomputed(self):
        row = record_to_row(LedgerRecord(entry_date=DAY, card_actual=100))
        row[5] = "999"
        row[9] = "999"
        loaded = row_to_record(row)
        assert loaded.total_actual == Decimal("100.00")
        assert loaded.undeclared_amount == Decimal("0.00")

    def test_legacy_row_is_fully_declared(self):
        """Test rows without the supplied-fields column keep their declared values."""
        row = ["2025-06-10", "1000", "500", "0", "0", "1500", "1200", "0", "0", "300"]
        loaded = row_to_record(row)
        assert loaded.total_declared == Decimal("1200.00")
        assert loaded.supplied_fields == frozenset(
            {"total_declared", "meal_voucher_declared", "expense_declared"}
        )

    def test_comma_decimals(self):
        row = ["2025-06-10", "12,50", "", "", "", "", "", "", "", "", "", ""]
        assert row_to_record(row).card_actual == Decimal("12.50")

    def test_month_sheet_title(self):
        assert month_sheet_title(2025, 6) == "2025-06"


class TestGoogleSheetsLedgerStore:
    """Tests for the Sheets store against a fake worksheet."""

    @pytest.fixture
    def store(self):
        return GoogleSheetsLedgerStore(FakeSheetsClient())

    def test_missing_month_reads_empty(self, store):
        assert run_async(store.read_month(2025, 6)) == []
        assert run_async(store.read_day(DAY)) is None

    def test_write_creates_then_replaces_the_row(self, store):
        run_async(store.write_day(DAY, LedgerRecord(entry_date=DAY, card_actual=500, cash_actual=200)))
        run_async(store.write_day(DAY, LedgerRecord(entry_date=DAY, card_actual=700)))

        sheet = store._client.sheets["2025-06"]
        assert len(sheet.rows) == 2  # header + one day
        loaded = run_async(store.read_day(DAY))
        assert loaded.card_actual == Decimal("700.00")
        assert loaded.cash_actual == Decimal("0.00")

    def test_read_month_is_sorted(self, store):
        for day in (20, 5, 12):
            entry = date(2025, 6, day)
            run_async(store.write_day(entry, LedgerRecord(entry_date=entry, card_actual=day)))
        days = [r.entry_date.day for r in run_async(store.read_month(2025, 6))]
        assert days == [5, 12, 20]

    def test_delete_day(self, store):
        run_async(store.write_day(DAY, LedgerRecord(entry_date=DAY, card_actual=1)))
        assert run_async(store.delete_day(DAY)) is True
        assert run_async(store.delete_day(DAY)) is False
        assert run_async(store.read_day(DAY)) is None

    def test_sheet_calls_leave_the_event_loop_free(self):
        """Test a slow sheet read does not stop other coroutines from running."""
        client = FakeSheetsClient()
        sheet = GatedWorksheet()
        client.sheets["2025-06"] = sheet
        store = GoogleSheetsLedgerStore(client)

        async def scenario():
            reading = asyncio.create_task(store.read_day(DAY))
            await asyncio.sleep(0.01)
            sheet.gate.set()  # only reachable while the read waits off the loop
            return await reading

        assert run_async(scenario()) is None


class TestInMemoryLedgerStore:
    """Tests for the dict-backed store."""

    def test_write_under_another_date_moves_the_record(self):
        store = InMemoryLedgerStore()
        run_async(store.write_day(date(2025, 6, 9), LedgerRecord(entry_date=DAY, card_actual=1)))
        assert run_async(store.read_day(date(2025, 6, 9))).entry_date == date(2025, 6, 9)
        assert run_async(store.read_day(DAY)) is None


class TestGeminiResponseParsing:
    """Tests for turning the model's JSON into candidate figures."""

    def test_fenced_json(self):
        text = '```json\n{"cb": 1000, "espece": "500", "ticket_restaurant": null, "date": null}\n```'
        partial = parse_response(text)
        assert partial.card_actual == Decimal("1000")
        assert partial.cash_actual == Decimal("500")
        assert partial.meal_voucher_actual is None
        assert partial.date_text is None

    def test_zero_is_not_null(self):
        partial = parse_response('{"espece": 0}')
        assert partial.provided_fields() == {"cash_actual"}

    def test_declared_fields_and_date(self):
        partial = parse_response(
            '{"cb": 800, "total_declare": 700, "tr_declare": "40", "date": "2025-06-09"}'
        )
        assert partial.total_declared == Decimal("700")
        assert partial.meal_voucher_declared == Decimal("40")
        assert partial.date_text == "2025-06-09"

    def test_french_amount_strings(self):
        partial = parse_response('{"cb": "1 250,50 €"}')
        assert partial.card_actual == Decimal("1250.50")

    def test_prose_around_the_object(self):
        partial = parse_response('Voici le résultat : {"depense": 12} Bonne soirée')
        assert partial.expense_actual == Decimal("12")

    @pytest.mark.parametrize("text", [
        "Je ne sais pas",
        '{"cb": 100',
        '{"cb": "beaucoup"}',
        '{"cb": true}',
        '{"cb": NaN}',
        '{"espece": Infinity}',
        '{"depense": "-Infinity"}',
    ])
    def test_malformed_answers(self, text):
        with pytest.raises(ExtractionError):
            parse_response(text)


class TestReportGenerator:
    """Tests for the monthly PDF."""

    def test_filename(self):
        assert ReportGenerator.filename(2025, 8) == "Compta_Août_2025.pdf"

    def test_render_produces_a_pdf(self):
        records = [
            LedgerRecord(entry_date=date(2025, 6, 5), card_actual=1000, total_declared=900),
            LedgerRecord(entry_date=date(2025, 6, 12), cash_actual=300),
        ]
        recap = MonthlyRecap.from_records(2025, 6, records)
        generator = ReportGenerator(clock_now=lambda: datetime(2025, 7, 1, 9, 0))
        content = generator.render(2025, 6, records, recap)
        assert content.startswith(b"%PDF")
        assert len(content) > 1000


class TestRecapService:
    """Tests for recap queries."""

    def test_recap_and_cumulative(self):
        store = InMemoryLedgerStore([
            LedgerRecord(entry_date=date(2025, 6, 5), card_actual=100, total_declared=60),
            LedgerRecord(entry_date=date(2025, 6, 12), cash_actual=200, total_declared=150),
            LedgerRecord(entry_date=date(2025, 6, 20), meal_voucher_actual=50),
        ])
        service = RecapService(store)
        recap = run_async(service.month_recap(2025, 6))
        assert recap.days_filled == 3
        assert run_async(service.undeclared_total(2025, 6)) == Decimal("90.00")

    def test_empty_month_has_no_report(self):
        recap, document = run_async(RecapService(InMemoryLedgerStore()).build_report(2025, 6))
        assert recap.is_empty
        assert document is None


class FailingAuditStorage(AuditStorageInterface):
    async def append_event(self, event):
        raise RuntimeError("sheet locked")

    async def get_events_by_correlation_id(self, correlation_id):
        return []


class TestAuditLogger:
    """Tests for audit logging."""

    def test_storage_failure_does_not_raise(self):
        """Test a broken audit sheet never breaks the flow."""
        logger = AuditLogger(FailingAuditStorage())
        event = AuditEventBuilder.record_deleted(chat_id=1, entry_date=DAY)
        assert run_async(logger.log(event)) is False

    def test_local_only_logging(self):
        logger = AuditLogger()
        event = AuditEventBuilder.record_deleted(chat_id=1, entry_date=DAY)
        assert run_async(logger.log(event)) is True


class TestChatActionGuard:
    """Tests for the per-chat lock."""

    def test_drop_if_busy(self):
        async def scenario():
            guard = ChatActionGuard()
            release = asyncio.Event()

            async def slow():
                await release.wait()
                return "slow"

            async def fast():
                return "fast"

            holder = asyncio.create_task(guard.run(1, slow))
            await asyncio.sleep(0)
            assert guard.is_busy(1)
            dropped = await guard.run(1, fast, drop_if_busy=True)
            other_chat = await guard.run(2, fast, drop_if_busy=True)
            release.set()
            return dropped, other_chat, await holder, guard.is_busy(1), guard.active_chats

        dropped, other_chat, slow_result, still_busy, active = run_async(scenario())
        assert dropped is None
        assert other_chat == "fast"
        assert slow_result == "slow"
        assert still_busy is False
        assert active == 0

    def test_waiting_handlers_run_in_order(self):
        async def scenario():
            guard = ChatActionGuard()
            order = []

            async def step(name):
                order.append(f"{name}-start")
                await asyncio.sleep(0)
                order.append(f"{name}-end")

            await asyncio.gather(
                guard.run(1, lambda: step("a")),
                guard.run(1, lambda: step("b")),
            )
            return order

        assert run_async(scenario()) == ["a-start", "a-end", "b-start", "b-end"]

    def test_lock_released_after_error(self):
        async def scenario():
            guard = ChatActionGuard()

            async def broken():
                raise ValueError("boom")

            with pytest.raises(ValueError):
                await guard.run(1, broken)
            return guard.is_busy(1), guard.active_chats

        assert run_async(scenario()) == (False, 0)

    def test_idle_chats_are_forgotten(self):
        """Test locks do not pile up for every chat ever seen."""
        async def scenario():
            guard = ChatActionGuard()

            async def noop():
                return None

            for chat_id in range(50):
                await guard.run(chat_id, noop)
            return guard.active_chats

        assert run_async(scenario()) == 0

    def test_waiting_handler_keeps_the_lock(self):
        """Test a queued handler still waits on the same lock after the first one leaves."""
        async def scenario():
            guard = ChatActionGuard()
            release = asyncio.Event()
            order = []

            async def first():
                await release.wait()
                order.append("first")

            async def second():
                order.append("second")

            holder = asyncio.create_task(guard.run(1, first))
            await asyncio.sleep(0)
            waiter = asyncio.create_task(guard.run(1, second))
            await asyncio.sleep(0)
            assert guard.active_chats == 1
            release.set()
            await asyncio.gather(holder, waiter)
            return order, guard.active_chats

        assert run_async(scenario()) == (["first", "second"], 0)
