"""Validation package."""

from till_ledger.validation.validator import (
    FIELD_LABELS,
    RecordValidator,
    ValidationError,
    ValidationWarning,
    raise_for_errors,
)

__all__ = [
    "FIELD_LABELS",
    "RecordValidator",
    "ValidationError",
    "ValidationWarning",
    "raise_for_errors",
]
