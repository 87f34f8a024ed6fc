"""Reconcile engine: work queue, applier and worker pool."""
from .applier import Applier, ApplyReport
from .controller import Controller, ReconcileResult, ReconcileState
from .workqueue import ExponentialBackoff, WorkQueue

__all__ = [
    "Applier",
    "ApplyReport",
    "Controller",
    "ReconcileResult",
    "ReconcileState",
    "ExponentialBackoff",
    "WorkQueue",
]
