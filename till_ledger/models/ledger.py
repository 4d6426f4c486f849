"""
Core Data Models for Till Ledger

These models define the strict schemas for all data flowing through the system.
They are designed to:
1. Enforce the arithmetic invariants of a day's takings at construction time
2. Keep field presence explicit (an omitted value is not a zero)
3. Be serializable for storage and logging

DESIGN DECISION: total_actual and undeclared_amount are derived fields.
Whatever a caller passes for them is discarded and recomputed, so a record
can never carry inconsistent totals.
"""

from datetime import date, datetime
from decimal import Decimal, InvalidOperation
from typing import Any, Optional, Union

from pydantic import (
    BaseModel,
    ConfigDict,
    Field,
    model_validator,
)


CENT = Decimal("0.01")
ZERO = Decimal("0.00")

# Till figures as counted in the register
ACTUAL_FIELDS = (
    "card_actual",
    "cash_actual",
    "meal_voucher_actual",
    "expense_actual",
)

# Figures the operator chooses to declare
DECLARED_FIELDS = (
    "total_declared",
    "meal_voucher_declared",
    "expense_declared",
)

INPUT_FIELDS = ACTUAL_FIELDS + DECLARED_FIELDS


def to_money(value: Union[Decimal, int, float, str]) -> Decimal:
    """Convert a raw amount to a Decimal rounded to the cent."""
    if isinstance(value, str):
        value = value.strip().replace(" ", "").replace(",", ".")
    try:
        return Decimal(str(value)).quantize(CENT)
    except (InvalidOperation, ValueError):
        raise ValueError(f"Not a valid amount: {value!r}")


# =============================================================================
# LEDGER RECORD - one day of takings
# =============================================================================

class LedgerRecord(BaseModel):
    """
    The normalized figures for a single calendar day.

    Declared fields that were never supplied take their defaults:
    meal_voucher_declared follows meal_voucher_actual, expense_declared is 0
    and total_declared follows total_actual. Declared fields passed explicitly
    are remembered in supplied_fields and never re-derived afterwards.
    """
    model_config = ConfigDict(frozen=True)

    entry_date: date = Field(
        ...,
        description="Calendar day the figures belong to"
    )

    card_actual: Decimal = Field(default=ZERO, description="CB (card) takings")
    cash_actual: Decimal = Field(default=ZERO, description="ESP (cash) takings")
    meal_voucher_actual: Decimal = Field(default=ZERO, description="TR (meal vouchers)")
    expense_actual: Decimal = Field(default=ZERO, description="Expenses paid from the till")

    total_actual: Decimal = Field(
        default=ZERO,
        description="Sum of the four actual fields (always recomputed)"
    )

    total_declared: Decimal = Field(default=ZERO, description="Total declared to the accountant")
    meal_voucher_declared: Decimal = Field(default=ZERO)
    expense_declared: Decimal = Field(default=ZERO)

    undeclared_amount: Decimal = Field(
        default=ZERO,
        description="total_actual - total_declared (always recomputed)"
    )

    supplied_fields: frozenset[str] = Field(
        default_factory=frozenset,
        description="Declared fields explicitly supplied by the operator"
    )

    @model_validator(mode="before")
    @classmethod
    def derive_totals(cls, data: Any) -> Any:
        if not isinstance(data, dict):
            return data

        values = dict(data)
        for name in ACTUAL_FIELDS:
            raw = values.get(name)
            values[name] = ZERO if raw is None else to_money(raw)

        total_actual = sum((values[name] for name in ACTUAL_FIELDS), ZERO)

        supplied = set(values.get("supplied_fields") or ())
        unknown = supplied - set(DECLARED_FIELDS)
        if unknown:
            raise ValueError(f"Unknown declared fields: {sorted(unknown)}")

        for name in DECLARED_FIELDS:
            if values.get(name) is not None:
                supplied.add(name)
                values[name] = to_money(values[name])

        if values.get("meal_voucher_declared") is None:
            values["meal_voucher_declared"] = values["meal_voucher_actual"]
        if values.get("expense_declared") is None:
            values["expense_declared"] = ZERO
        if values.get("total_declared") is None:
            values["total_declared"] = total_actual

        values["total_actual"] = total_actual
        values["undeclared_amount"] = total_actual - values["total_declared"]
        values["supplied_fields"] = frozenset(supplied)
        return values

    @classmethod
    def empty(cls, entry_date: date) -> "LedgerRecord":
        """A record with every figure at zero."""
        return cls(entry_date=entry_date)

    @property
    def card_declared(self) -> Decimal:
        """Card takings are always declared in full."""
        return self.card_actual

    @property
    def cash_declared(self) -> Decimal:
        """Cash is whatever remains of the declared total."""
        return (
            self.total_declared
            - self.card_actual
            - self.meal_voucher_declared
            - self.expense_declared
        )

    @property
    def has_activity(self) -> bool:
        """True when at least one actual figure is non-zero."""
        return any(getattr(self, name) != ZERO for name in ACTUAL_FIELDS)

    def with_date(self, entry_date: date) -> "LedgerRecord":
        """Same figures and declared history, moved to another day."""
        return reconcile_copy(self, entry_date=entry_date)


def reconcile_copy(record: LedgerRecord, **changes: Any) -> LedgerRecord:
    """
    Rebuild a record from its inputs with some of them replaced.

    Only supplied declared fields are carried over, so defaults keep
    following the actual figures.
    """
    values: dict[str, Any] = {"entry_date": record.entry_date}
    for name in ACTUAL_FIELDS:
        values[name] = getattr(record, name)
    for name in record.supplied_fields:
        values[name] = getattr(record, name)
    values.update(changes)
    values["supplied_fields"] = record.supplied_fields
    return LedgerRecord(**values)


# =============================================================================
# PARTIAL RECORD - a candidate edit
# =============================================================================

class PartialRecord(BaseModel):
    """
    Candidate figures produced by extraction or by the modification grammar.

    None means "not mentioned". Decimal("0") means "explicitly zero".
    date_text carries an unvalidated date string; it only becomes
    entry_date once the conversation engine has checked it.
    total_actual and undeclared_amount are informational and never trusted.
    """

    entry_date: Optional[date] = None
    date_text: Optional[str] = None

    card_actual: Optional[Decimal] = None
    cash_actual: Optional[Decimal] = None
    meal_voucher_actual: Optional[Decimal] = None
    expense_actual: Optional[Decimal] = None

    total_declared: Optional[Decimal] = None
    meal_voucher_declared: Optional[Decimal] = None
    expense_declared: Optional[Decimal] = None

    total_actual: Optional[Decimal] = None
    undeclared_amount: Optional[Decimal] = None

    def provided_fields(self) -> set[str]:
        """Names of the record fields this candidate explicitly sets."""
        provided = {name for name in INPUT_FIELDS if getattr(self, name) is not None}
        if self.entry_date is not None:
            provided.add("entry_date")
        return provided

    @property
    def is_empty(self) -> bool:
        """Nothing usable was found."""
        return not self.provided_fields() and not self.date_text

    @classmethod
    def from_record(cls, record: LedgerRecord) -> "PartialRecord":
        """
        The candidate equivalent of a stored record.

        Declared fields are included only when they were supplied, so
        reconciling the result against the same record changes nothing.
        """
        values: dict[str, Any] = {"entry_date": record.entry_date}
        for name in ACTUAL_FIELDS:
            values[name] = getattr(record, name)
        for name in record.supplied_fields:
            values[name] = getattr(record, name)
        return cls(**values)


# =============================================================================
# MONTHLY RECAP - derived, read-only
# =============================================================================

class MonthlyRecap(BaseModel):
    """
    Aggregate of a month's ledger records.

    Only days with at least one non-zero actual figure count,
    both in days_filled and in the sums.
    """

    year: int
    month: int = Field(ge=1, le=12)
    computed_at: datetime = Field(default_factory=datetime.utcnow)

    card_actual: Decimal = ZERO
    cash_actual: Decimal = ZERO
    meal_voucher_actual: Decimal = ZERO
    expense_actual: Decimal = ZERO
    total_actual: Decimal = ZERO

    card_declared: Decimal = ZERO
    cash_declared: Decimal = ZERO
    meal_voucher_declared: Decimal = ZERO
    expense_declared: Decimal = ZERO
    total_declared: Decimal = ZERO

    total_undeclared: Decimal = ZERO
    days_filled: int = Field(default=0, ge=0)

    @classmethod
    def from_records(
        cls,
        year: int,
        month: int,
        records: list[LedgerRecord],
    ) -> "MonthlyRecap":
        totals = {
            "card_actual": ZERO,
            "cash_actual": ZERO,
            "meal_voucher_actual": ZERO,
            "expense_actual": ZERO,
            "total_actual": ZERO,
            "card_declared": ZERO,
            "cash_declared": ZERO,
            "meal_voucher_declared": ZERO,
            "expense_declared": ZERO,
            "total_declared": ZERO,
            "total_undeclared": ZERO,
        }
        days_filled = 0

        for record in records:
            if record.entry_date.year != year or record.entry_date.month != month:
                continue
            if not record.has_activity:
                continue
            days_filled += 1
            for name in totals:
                source = "undeclared_amount" if name == "total_undeclared" else name
                totals[name] += getattr(record, source)

        return cls(year=year, month=month, days_filled=days_filled, **totals)

    @property
    def is_empty(self) -> bool:
        return self.days_filled == 0


# =============================================================================
# VALIDATION MODELS
# =============================================================================

class ValidationIssue(BaseModel):
    """A single validation issue found."""

    field: str = Field(
        ...,
        description="Field with the issue"
    )
    issue_type: str = Field(
        ...,
        description="Type of issue (e.g., 'negative_amount', 'year_too_old', 'all_zero')"
    )
    message: str = Field(
        ...,
        description="Human-readable description of the issue (French)"
    )
    severity: str = Field(
        ...,
        pattern="^(error|warning)$",
        description="Errors block progression, warnings need acknowledgment"
    )
    suggested_fix: Optional[str] = Field(
        default=None,
        description="Suggested fix if available"
    )


class ValidationResult(BaseModel):
    """
    Outcome of checking a record.

    The validator never edits the record; it only reports.
    """

    validated_at: datetime = Field(
        default_factory=datetime.utcnow
    )
    issues: list[ValidationIssue] = Field(
        default_factory=list,
        description="All validation issues found"
    )

    @property
    def errors(self) -> list[ValidationIssue]:
        return [issue for issue in self.issues if issue.severity == "error"]

    @property
    def warnings(self) -> list[ValidationIssue]:
        return [issue for issue in self.issues if issue.severity == "warning"]

    @property
    def has_errors(self) -> bool:
        """Check if there are any error-level issues."""
        return any(issue.severity == "error" for issue in self.issues)

    @property
    def has_warnings(self) -> bool:
        return any(issue.severity == "warning" for issue in self.issues)

    @property
    def is_clean(self) -> bool:
        return not self.issues

    @property
    def error_count(self) -> int:
        """Count error-level issues."""
        return sum(1 for issue in self.issues if issue.severity == "error")
