"""
Record Reconciliation

Merges a candidate edit into the in-progress record.

RULES:
1. A field present in the candidate wins, including an explicit zero.
   An absent field keeps the existing value.
2. Declared fields the operator supplies are remembered; they are never
   re-derived afterwards.
3. Declared fields never supplied follow their defaults
   (meal vouchers declared = actual, expenses declared = 0,
   total declared = total actual).
4. total_actual and undeclared_amount are always recomputed.

Reconciling a record against itself returns the same record.
"""

from datetime import date
from typing import Any, Optional

from till_ledger.models.ledger import (
    ACTUAL_FIELDS,
    DECLARED_FIELDS,
    LedgerRecord,
    PartialRecord,
)


def reconcile(
    candidate: PartialRecord,
    existing: Optional[LedgerRecord] = None,
    *,
    today: Optional[date] = None,
) -> LedgerRecord:
    """
    Merge candidate into existing and return a new normalized record.

    Args:
        candidate: Fields to apply (None means "not mentioned")
        existing: Current in-progress record, if any
        today: Date of the empty base record when there is no existing one

    Raises:
        ValueError: If there is no existing record and no date to start from
    """
    if existing is None:
        start = candidate.entry_date or today
        if start is None:
            raise ValueError("A date is required to start a new record")
        existing = LedgerRecord.empty(start)

    values: dict[str, Any] = {"entry_date": existing.entry_date}
    for name in ACTUAL_FIELDS:
        values[name] = getattr(existing, name)
    for name in existing.supplied_fields:
        values[name] = getattr(existing, name)

    provided = candidate.provided_fields()
    for name in provided:
        values[name] = getattr(candidate, name)

    values["supplied_fields"] = existing.supplied_fields | (provided & set(DECLARED_FIELDS))
    return LedgerRecord(**values)
