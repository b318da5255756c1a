"""Balance reconciliation package."""

from finance_aggregator.reconcile.reconciler import BalanceReconciler, provenance_note

__all__ = ["BalanceReconciler", "provenance_note"]
