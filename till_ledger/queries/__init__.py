"""Recap and report queries package."""

from till_ledger.queries.recap import RecapService

__all__ = ["RecapService"]
