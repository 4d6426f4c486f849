"""
Tests for Till Ledger

Test strategy:
1. Unit tests for individual components (models, validators, grammar)
2. Flow tests for the conversation engine (with fake collaborators)
3. No real API calls in tests (in-memory store, scripted extractor)
"""

import pytest
from datetime import date
from decimal import Decimal
from uuid import uuid4

from till_ledger.models.ledger import (
    LedgerRecord,
    MonthlyRecap,
    PartialRecord,
    ValidationIssue,
    ValidationResult,
    to_money,
)
from till_ledger.models.audit import (
    AuditEvent,
    AuditEventBuilder,
    AuditEventType,
    AuditSeverity,
)
from till_ledger.models.conversation import (
    Action,
    Button,
    ButtonPress,
    ConversationState,
    Session,
    encode_callback,
)


DAY = date(2025, 6, 10)


class TestLedgerRecord:
    """Tests for the derived fields of LedgerRecord."""

    def test_totals_are_derived(self):
        """Test total_actual and undeclared_amount are computed."""
        record = LedgerRecord(
            entry_date=DAY,
            card_actual=Decimal("1000"),
            cash_actual=Decimal("500"),
            meal_voucher_actual=Decimal("100"),
            expense_actual=Decimal("50"),
            total_declared=Decimal("1200"),
        )
        assert record.total_actual == Decimal("1650.00")
        assert record.undeclared_amount == Decimal("450.00")

    def test_declared_defaults(self):
        """Test declared fields not supplied follow the actual figures."""
        record = LedgerRecord(
            entry_date=DAY,
            card_actual=Decimal("800"),
            meal_voucher_actual=Decimal("120"),
        )
        assert record.total_declared == Decimal("920.00")
        assert record.meal_voucher_declared == Decimal("120.00")
        assert record.expense_declared == Decimal("0.00")
        assert record.undeclared_amount == Decimal("0.00")
        assert record.supplied_fields == frozenset()

    def test_supplied_fields_are_remembered(self):
        """Test explicitly passed declared fields are tracked."""
        record = LedgerRecord(entry_date=DAY, card_actual=100, total_declared=80)
        assert record.supplied_fields == frozenset({"total_declared"})

    def test_derived_fields_cannot_be_forced(self):
        """Test passed totals are ignored in favour of the computed ones."""
        record = LedgerRecord(
            entry_date=DAY,
            card_actual=100,
            total_actual=999,
            undeclared_amount=999,
        )
        assert record.total_actual == Decimal("100.00")
        assert record.undeclared_amount == Decimal("0.00")

    def test_cash_declared_is_the_remainder(self):
        """Test declared cash is what remains of the declared total."""
        record = LedgerRecord(
            entry_date=DAY,
            card_actual=1000,
            cash_actual=500,
            meal_voucher_actual=100,
            expense_actual=50,
            total_declared=1200,
        )
        assert record.card_declared == Decimal("1000.00")
        assert record.cash_declared == Decimal("100.00")

    def test_record_is_frozen(self):
        """Test records cannot be mutated in place."""
        record = LedgerRecord.empty(DAY)
        with pytest.raises(ValueError):
            record.card_actual = Decimal("1")

    def test_has_activity(self):
        """Test only actual figures count as activity."""
        assert not LedgerRecord.empty(DAY).has_activity
        assert LedgerRecord(entry_date=DAY, expense_actual=5).has_activity

    def test_with_date_keeps_declared_history(self):
        """Test moving a record keeps figures and supplied fields."""
        record = LedgerRecord(entry_date=DAY, card_actual=300, total_declared=250)
        moved = record.with_date(date(2025, 6, 9))
        assert moved.entry_date == date(2025, 6, 9)
        assert moved.total_declared == Decimal("250.00")
        assert moved.supplied_fields == record.supplied_fields

    def test_to_money_rejects_garbage(self):
        """Test to_money raises on text that is not an amount."""
        with pytest.raises(ValueError):
            to_money("douze")
        assert to_money(" 12,5 ") == Decimal("12.50")


class TestPartialRecord:
    """Tests for candidate edits."""

    def test_provided_fields_distinguish_zero_from_absent(self):
        """Test an explicit zero is provided, None is not."""
        partial = PartialRecord(cash_actual=Decimal("0"))
        assert partial.provided_fields() == {"cash_actual"}
        assert not partial.is_empty

    def test_informational_fields_are_not_provided(self):
        """Test total_actual alone counts as nothing usable."""
        partial = PartialRecord(total_actual=Decimal("500"))
        assert partial.is_empty

    def test_date_text_alone_is_not_empty(self):
        partial = PartialRecord(date_text="hier")
        assert not partial.is_empty

    def test_from_record_only_includes_supplied_declared_fields(self):
        """Test defaults are not turned into supplied values."""
        record = LedgerRecord(entry_date=DAY, card_actual=100, expense_declared=10)
        partial = PartialRecord.from_record(record)
        assert partial.expense_declared == Decimal("10.00")
        assert partial.total_declared is None
        assert partial.meal_voucher_declared is None


class TestMonthlyRecap:
    """Tests for month aggregation."""

    def test_sums_and_days_filled(self):
        """Test three active days, one empty day and one foreign day."""
        records = [
            LedgerRecord(entry_date=date(2025, 6, 5), card_actual=100, total_declared=80),
            LedgerRecord(entry_date=date(2025, 6, 12), cash_actual=200),
            LedgerRecord(entry_date=date(2025, 6, 20), meal_voucher_actual=50),
            LedgerRecord.empty(date(2025, 6, 21)),
            LedgerRecord(entry_date=date(2025, 5, 31), card_actual=999),
        ]
        recap = MonthlyRecap.from_records(2025, 6, records)

        assert recap.days_filled == 3
        assert recap.total_actual == Decimal("350.00")
        assert recap.total_declared == Decimal("330.00")
        assert recap.total_undeclared == Decimal("20.00")
        assert recap.card_actual == Decimal("100.00")
        assert not recap.is_empty

    def test_empty_month(self):
        recap = MonthlyRecap.from_records(2025, 7, [])
        assert recap.is_empty
        assert recap.total_actual == Decimal("0")


class TestAuditModels:
    """Tests for audit-related models."""

    def test_audit_event_creation(self):
        """Test AuditEvent model creation."""
        event = AuditEvent(
            event_type=AuditEventType.ENTRY_STARTED,
            description="Entry started",
        )
        assert event.event_type == AuditEventType.ENTRY_STARTED
        assert event.severity == AuditSeverity.INFO

    def test_audit_event_to_log_dict(self):
        """Test conversion to log dictionary."""
        event = AuditEvent(
            event_type=AuditEventType.RECORD_SAVED,
            description="Day saved",
            entry_date=DAY,
            details={"total_declared": "1200"},
        )
        log_dict = event.to_log_dict()
        assert "event_id" in log_dict
        assert log_dict["event_type"] == "record_saved"
        assert log_dict["entry_date"] == "2025-06-10"
        assert log_dict["details"]["total_declared"] == "1200"

    def test_audit_event_to_sheets_row(self):
        """Test conversion to sheets row."""
        event = AuditEvent(
            event_type=AuditEventType.DATE_CONFIRMED,
            description="Date confirmed",
            chat_id=42,
            is_user_action=True,
        )
        row = event.to_sheets_row()
        assert len(row) == 11  # Expected number of columns
        assert row[2] == "date_confirmed"  # event_type
        assert row[4] == "42"  # chat_id
        assert row[10] == "True"  # is_user_action

    def test_audit_event_builder_entry_started(self):
        """Test AuditEventBuilder.entry_started."""
        correlation_id = uuid4()
        event = AuditEventBuilder.entry_started(
            chat_id=42,
            entry_date=DAY,
            origin="new",
            correlation_id=correlation_id,
        )
        assert event.event_type == AuditEventType.ENTRY_STARTED
        assert event.correlation_id == correlation_id
        assert event.details["origin"] == "new"
        assert event.is_user_action is True

    def test_audit_event_builder_overwrite_decided(self):
        """Test confirmed and cancelled overwrites get distinct types."""
        confirmed = AuditEventBuilder.overwrite_decided(
            chat_id=1, entry_date=DAY, confirmed=True, correlation_id=None,
        )
        cancelled = AuditEventBuilder.overwrite_decided(
            chat_id=1, entry_date=DAY, confirmed=False, correlation_id=None,
        )
        assert confirmed.event_type == AuditEventType.OVERWRITE_CONFIRMED
        assert cancelled.event_type == AuditEventType.OVERWRITE_CANCELLED


class TestValidationResult:
    """Tests for ValidationResult model."""

    def test_validation_result_has_errors(self):
        """Test ValidationResult with errors."""
        result = ValidationResult(issues=[
            ValidationIssue(
                field="cash_actual",
                issue_type="negative_amount",
                message="Espèces négatif",
                severity="error",
            ),
            ValidationIssue(
                field="total_actual",
                issue_type="all_zero",
                message="Tous les montants sont à zéro",
                severity="warning",
            ),
        ])
        assert result.has_errors
        assert result.has_warnings
        assert result.error_count == 1
        assert not result.is_clean

    def test_validation_result_warnings_only(self):
        """Test ValidationResult with only warnings."""
        result = ValidationResult(issues=[
            ValidationIssue(
                field="card_actual",
                issue_type="amount_too_high",
                message="CB très élevé",
                severity="warning",
            ),
        ])
        assert not result.has_errors
        assert result.has_warnings
        assert len(result.warnings) == 1

    def test_issue_severity_is_constrained(self):
        with pytest.raises(ValueError):
            ValidationIssue(field="x", issue_type="y", message="z", severity="fatal")


class TestConversationModels:
    """Tests for callback encoding and sessions."""

    def test_callback_round_trip(self):
        """Test a button's callback data decodes to the same action."""
        button = Button(label="Modifier", action=Action.MODIFY_DAY, argument="2025-06-09")
        press = ButtonPress.from_callback_data(7, button.callback_data)
        assert press.action == Action.MODIFY_DAY
        assert press.argument == "2025-06-09"

    def test_callback_without_argument(self):
        assert encode_callback(Action.SEND) == "send"
        assert ButtonPress.from_callback_data(7, "send").argument is None

    def test_unknown_callback(self):
        """Test callback data from an old keyboard maps to UNKNOWN."""
        press = ButtonPress.from_callback_data(7, "archive:2023")
        assert press.action == Action.UNKNOWN

    def test_session_reset(self):
        """Test reset discards the in-progress record."""
        session = Session(
            chat_id=7,
            state=ConversationState.REVIEWING,
            record=LedgerRecord(entry_date=DAY, card_actual=10),
            correlation_id=uuid4(),
        )
        session.reset()
        assert session.state == ConversationState.IDLE
        assert session.record is None
        assert session.correlation_id is None


if __name__ == "__main__":
    pytest.main([__file__, "-v"])
