"""
Till Ledger - Source Package

A conversational bookkeeping assistant for restaurant owners.
Daily till reports (text, photo or voice) become one ledger record
per day, stored in a monthly spreadsheet and exported for the accountant.

DESIGN PRINCIPLES:
1. The operator's declared figures are authoritative
2. Derived totals are always recomputed, never trusted from input
3. Nothing is written without an explicit "send"
4. Existing days are never overwritten silently
5. Every step must be auditable
6. Storage, extraction and session backends are swappable
"""

__version__ = "1.0.0"
__author__ = "Till Ledger Team"
