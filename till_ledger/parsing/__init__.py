"""Operator text grammar package."""

from till_ledger.parsing.modification import (
    KeywordModificationParser,
    ModificationParser,
    parse_modification,
)

__all__ = [
    "KeywordModificationParser",
    "ModificationParser",
    "parse_modification",
]
