"""Tests for the keyword grammar and the reconciler."""

import pytest
from datetime import date
from decimal import Decimal

from till_ledger.models.ledger import LedgerRecord, PartialRecord
from till_ledger.parsing import KeywordModificationParser, parse_modification
from till_ledger.reconcile import reconcile


TODAY = date(2025, 6, 10)


@pytest.fixture
def parser():
    return KeywordModificationParser()


class TestKeywordGrammar:
    """Tests for operator text parsing."""

    def test_full_day_sentence(self, parser):
        """Test the everyday message gives every field."""
        partial = parser.parse("CB 1000 ESP 500 TR 100 dépense 50 total déclaré 1200")
        assert partial.card_actual == Decimal("1000.00")
        assert partial.cash_actual == Decimal("500.00")
        assert partial.meal_voucher_actual == Decimal("100.00")
        assert partial.expense_actual == Decimal("50.00")
        assert partial.total_declared == Decimal("1200.00")
        assert partial.meal_voucher_declared is None

    def test_full_day_sentence_reconciled(self, parser):
        """Test the sentence leads to 1650 actual, 1200 declared, 450 undeclared."""
        record = reconcile(
            parser.parse("CB 1000 ESP 500 TR 100 dépense 50 total déclaré 1200"),
            today=TODAY,
        )
        assert record.total_actual == Decimal("1650.00")
        assert record.total_declared == Decimal("1200.00")
        assert record.undeclared_amount == Decimal("450.00")

    def test_explicit_zero(self, parser):
        partial = parser.parse("esp 0")
        assert partial.provided_fields() == {"cash_actual"}
        assert partial.cash_actual == Decimal("0.00")

    def test_single_field_edit(self, parser):
        partial = parser.parse("espèces 450")
        assert partial.provided_fields() == {"cash_actual"}
        assert partial.cash_actual == Decimal("450.00")

    @pytest.mark.parametrize("text,field", [
        ("tr déclaré 80", "meal_voucher_declared"),
        ("TR declare 80", "meal_voucher_declared"),
        ("dépense déclarée 80", "expense_declared"),
        ("total déclaré 80", "total_declared"),
        ("carte bleue 80", "card_actual"),
        ("tickets resto 80", "meal_voucher_actual"),
        ("frais 80", "expense_actual"),
    ])
    def test_labels(self, parser, text, field):
        partial = parser.parse(text)
        assert partial.provided_fields() == {field}
        assert getattr(partial, field) == Decimal("80.00")

    def test_declared_card_is_ignored(self, parser):
        """Test card and cash have no declared field of their own."""
        assert parser.parse("cb déclaré 500").is_empty

    def test_bare_total_is_ignored(self, parser):
        assert parser.parse("total 1650").is_empty

    def test_cents_and_thousands(self, parser):
        partial = parser.parse("cb 1 250,50 esp 12.5")
        assert partial.card_actual == Decimal("1250.50")
        assert partial.cash_actual == Decimal("12.50")

    def test_negative_amount_is_kept(self, parser):
        """Test the sign reaches the validator instead of being dropped."""
        assert parser.parse("esp -10").cash_actual == Decimal("-10.00")

    def test_dates_are_not_amounts(self, parser):
        partial = parser.parse("CB 300 le 12/06/2025")
        assert partial.provided_fields() == {"card_actual"}
        assert partial.card_actual == Decimal("300.00")
        assert partial.date_text == "12/06/2025"

    def test_relative_phrase_becomes_date_text(self, parser):
        partial, unused = parser.scan("Hier CB 800 ESP 0")
        assert partial.date_text == "hier"
        assert partial.card_actual == Decimal("800.00")
        assert partial.cash_actual == Decimal("0.00")
        assert unused == []

    def test_two_word_phrase(self, parser):
        partial, unused = parser.scan("avant hier esp 20")
        assert partial.date_text == "avant hier"
        assert unused == []

    def test_every_word_used(self, parser):
        _, unused = parser.scan("CB 1000 ESP 500 TR 100 dépense 50 total déclaré 1200")
        assert unused == []

    def test_amounts_are_not_dates(self, parser):
        partial, unused = parser.scan("cb 1 250,50 esp 12.5")
        assert partial.date_text is None
        assert unused == []

    def test_unplaced_words_are_reported(self, parser):
        """Test a number without a label is left for the extraction service."""
        partial, unused = parser.scan("carte le 30 février")
        assert partial.is_empty
        assert "carte" in unused
        assert "30" in unused

    def test_label_without_amount_is_reported(self, parser):
        partial, unused = parser.scan("cb 100 et aussi des tickets")
        assert partial.card_actual == Decimal("100.00")
        assert "tickets" in unused

    def test_unknown_text(self):
        assert parse_modification("bonjour, grosse journée").is_empty


class TestReconciler:
    """Tests for merging candidates into the in-progress record."""

    def test_omission_keeps_value(self):
        existing = LedgerRecord(entry_date=TODAY, card_actual=1000, cash_actual=500)
        merged = reconcile(PartialRecord(cash_actual=Decimal("450")), existing)
        assert merged.card_actual == Decimal("1000.00")
        assert merged.cash_actual == Decimal("450.00")

    def test_explicit_zero_overrides(self):
        existing = LedgerRecord(entry_date=TODAY, card_actual=1000, cash_actual=500)
        merged = reconcile(PartialRecord(cash_actual=Decimal("0")), existing)
        assert merged.cash_actual == Decimal("0.00")
        assert merged.total_actual == Decimal("1000.00")

    def test_defaults_follow_actual_figures(self):
        """Test an unsupplied declared total keeps tracking the actual total."""
        existing = LedgerRecord(entry_date=TODAY, card_actual=1000)
        merged = reconcile(PartialRecord(cash_actual=Decimal("200")), existing)
        assert merged.total_declared == Decimal("1200.00")
        assert merged.undeclared_amount == Decimal("0.00")

    def test_supplied_declared_total_is_kept(self):
        """Test a supplied declared total does not move with later edits."""
        existing = reconcile(
            PartialRecord(card_actual=Decimal("1000"), total_declared=Decimal("900")),
            today=TODAY,
        )
        merged = reconcile(PartialRecord(cash_actual=Decimal("300")), existing)
        assert merged.total_declared == Decimal("900.00")
        assert merged.undeclared_amount == Decimal("400.00")
        assert "total_declared" in merged.supplied_fields

    def test_meal_voucher_default_follows_actual(self):
        existing = LedgerRecord(entry_date=TODAY, meal_voucher_actual=100)
        merged = reconcile(PartialRecord(meal_voucher_actual=Decimal("150")), existing)
        assert merged.meal_voucher_declared == Decimal("150.00")

    def test_candidate_date_moves_the_record(self):
        existing = LedgerRecord(entry_date=TODAY, card_actual=10)
        merged = reconcile(PartialRecord(entry_date=date(2025, 6, 9)), existing)
        assert merged.entry_date == date(2025, 6, 9)
        assert merged.card_actual == Decimal("10.00")

    def test_new_record_needs_a_date(self):
        with pytest.raises(ValueError):
            reconcile(PartialRecord(card_actual=Decimal("1")))

    def test_reconciling_a_record_with_itself_is_idempotent(self):
        record = LedgerRecord(
            entry_date=TODAY,
            card_actual=1000,
            cash_actual=500,
            expense_actual=20,
            total_declared=1300,
        )
        assert reconcile(PartialRecord.from_record(record), record) == record

    def test_empty_candidate_changes_nothing(self):
        record = LedgerRecord(entry_date=TODAY, card_actual=1000)
        assert reconcile(PartialRecord(), record) == record
