"""
Amount & Date Validation

DESIGN DECISION: Issues come in two severities:

ERRORS (block progression):
- Negative amounts
- Dates outside the accepted year range
- Dates that do not exist (30/02)
- Text that is not a date at all

WARNINGS (need explicit acknowledgment):
- A single figure above the per-field threshold
- A daily total above the daily threshold
- Declared total above the actual total (over-declaration)
- Every actual figure at zero

Warnings are only computed when there are no errors, so the operator
fixes structural problems first.

IMPORTANT: Validation NEVER silently fixes issues.
It reports them for the operator to decide.
"""

from datetime import date
from decimal import Decimal
from typing import Optional

from till_ledger.config import LedgerSettings, get_settings
from till_ledger.dates import DateParseError, split_date_input
from till_ledger.formatting import format_amount
from till_ledger.models.ledger import (
    ACTUAL_FIELDS,
    LedgerRecord,
    ValidationIssue,
    ValidationResult,
)


FIELD_LABELS = {
    "card_actual": "CB",
    "cash_actual": "Espèces",
    "meal_voucher_actual": "TR",
    "expense_actual": "Dépenses",
    "total_actual": "Total réel",
    "total_declared": "Total déclaré",
    "meal_voucher_declared": "TR déclaré",
    "expense_declared": "Dépenses déclarées",
    "entry_date": "Date",
}


class ValidationError(Exception):
    """Structural problem with a record (bad date, negative amount)."""

    def __init__(self, issues: list[ValidationIssue]):
        self.issues = issues
        super().__init__("; ".join(issue.message for issue in issues))


class ValidationWarning(Exception):
    """Soft issue that needs the operator's acknowledgment."""

    def __init__(self, issues: list[ValidationIssue]):
        self.issues = issues
        super().__init__("; ".join(issue.message for issue in issues))


def raise_for_errors(result: ValidationResult) -> None:
    """Raise ValidationError if the result holds any error."""
    if result.has_errors:
        raise ValidationError(result.errors)


class RecordValidator:
    """
    Checks dates and amounts of a ledger record.

    Pure: the record is never modified and no storage is touched.
    """

    def __init__(self, settings: Optional[LedgerSettings] = None):
        self._settings = settings or get_settings().ledger

    # -------------------------------------------------------------------------
    # Dates
    # -------------------------------------------------------------------------

    def _year_issue(self, year: int) -> Optional[ValidationIssue]:
        if year < self._settings.min_year:
            return ValidationIssue(
                field="entry_date",
                issue_type="year_too_old",
                message=f"Année trop ancienne ({year}), minimum {self._settings.min_year}",
                severity="error",
                suggested_fix="Vérifie l'année",
            )
        if year > self._settings.max_year:
            return ValidationIssue(
                field="entry_date",
                issue_type="year_too_far",
                message=f"Année trop lointaine ({year}), maximum {self._settings.max_year}",
                severity="error",
                suggested_fix="Vérifie l'année",
            )
        return None

    def check_date(self, value: date) -> list[ValidationIssue]:
        """Range check for an already-built date."""
        issue = self._year_issue(value.year)
        return [issue] if issue else []

    def check_date_text(
        self,
        text: str,
        today: date,
    ) -> tuple[Optional[date], list[ValidationIssue]]:
        """
        Validate a typed date.

        Order of checks: format, year range, then calendar existence.
        Returns (date, []) when valid, (None, issues) otherwise.
        """
        try:
            year, month, day = split_date_input(text, today)
        except DateParseError:
            return None, [ValidationIssue(
                field="entry_date",
                issue_type="invalid_format",
                message=f"Date invalide : « {text.strip()} »",
                severity="error",
                suggested_fix="Écris la date au format JJ/MM ou JJ/MM/AAAA",
            )]

        year_issue = self._year_issue(year)
        if year_issue:
            return None, [year_issue]

        try:
            value = date(year, month, day)
        except ValueError:
            return None, [ValidationIssue(
                field="entry_date",
                issue_type="nonexistent_date",
                message=f"Cette date n'existe pas : {day:02d}/{month:02d}/{year}",
                severity="error",
                suggested_fix="Vérifie le jour et le mois",
            )]

        return value, []

    # -------------------------------------------------------------------------
    # Amounts
    # -------------------------------------------------------------------------

    def _check_errors(self, record: LedgerRecord) -> list[ValidationIssue]:
        issues = list(self.check_date(record.entry_date))

        for name in ACTUAL_FIELDS + ("total_declared", "meal_voucher_declared", "expense_declared"):
            value = getattr(record, name)
            if value < 0:
                issues.append(ValidationIssue(
                    field=name,
                    issue_type="negative_amount",
                    message=f"{FIELD_LABELS[name]} négatif : {format_amount(value)}",
                    severity="error",
                    suggested_fix="Les montants doivent être positifs ou nuls",
                ))

        return issues

    def _check_warnings(self, record: LedgerRecord) -> list[ValidationIssue]:
        issues = []
        max_amount = Decimal(str(self._settings.max_amount))
        max_total = Decimal(str(self._settings.max_total_amount))

        for name in ACTUAL_FIELDS:
            value = getattr(record, name)
            if value > max_amount:
                issues.append(ValidationIssue(
                    field=name,
                    issue_type="amount_too_high",
                    message=f"{FIELD_LABELS[name]} très élevé : {format_amount(value)}",
                    severity="warning",
                    suggested_fix="Vérifie ce montant",
                ))

        if record.total_actual > max_total:
            issues.append(ValidationIssue(
                field="total_actual",
                issue_type="total_too_high",
                message=f"Total réel très élevé : {format_amount(record.total_actual)}",
                severity="warning",
                suggested_fix="Vérifie les montants",
            ))

        if record.total_declared > record.total_actual:
            issues.append(ValidationIssue(
                field="total_declared",
                issue_type="over_declared",
                message=(
                    f"Total déclaré ({format_amount(record.total_declared)}) "
                    f"supérieur au total réel ({format_amount(record.total_actual)})"
                ),
                severity="warning",
                suggested_fix="Vérifie le total déclaré",
            ))

        if not record.has_activity:
            issues.append(ValidationIssue(
                field="total_actual",
                issue_type="all_zero",
                message="Tous les montants sont à zéro",
                severity="warning",
                suggested_fix="Jour de fermeture ? Sinon ajoute les montants",
            ))

        return issues

    def validate(self, record: LedgerRecord) -> ValidationResult:
        """
        Run every check on a record.

        Returns:
            ValidationResult with errors, or warnings when there are no errors
        """
        issues = self._check_errors(record)
        if not issues:
            issues = self._check_warnings(record)
        return ValidationResult(issues=issues)

    def get_user_friendly_summary(
        self,
        result: ValidationResult,
    ) -> str:
        """
        Plain-language summary of the issues, as shown in the chat.
        """
        if result.is_clean:
            return "✅ Tout est en ordre."

        lines = []

        if result.has_errors:
            lines.append("❌ *Impossible de continuer :*")
            for issue in result.errors:
                lines.append(f"• {issue.message}")
                if issue.suggested_fix:
                    lines.append(f"  💡 {issue.suggested_fix}")

        if result.has_warnings:
            if lines:
                lines.append("")
            lines.append("⚠️ *À vérifier :*")
            for issue in result.warnings:
                lines.append(f"• {issue.message}")

        return "\n".join(lines)
