"""Label taxonomy reconciliation."""

from .reconciler import LabelReconciler, find_local_match

__all__ = ["LabelReconciler", "find_local_match"]
