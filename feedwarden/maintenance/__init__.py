"""
FeedWarden Maintenance
======================

Operator-triggered cleanup of stored data.
"""

from .orphan_reconciler import OrphanReconciler, ReconcileResult

__all__ = ["OrphanReconciler", "ReconcileResult"]
