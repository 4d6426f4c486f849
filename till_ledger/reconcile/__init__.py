"""Record reconciliation package."""

from till_ledger.reconcile.reconciler import reconcile

__all__ = ["reconcile"]
