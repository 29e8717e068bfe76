"""
Reconcile: ejecución de ChangeSets contra el provider.
"""

from orbita.core.reconcile.retry import RetryPolicy
from orbita.core.reconcile.reconciler import Reconciler, RunEvent, RunResult, RunStatus

__all__ = ["RetryPolicy", "Reconciler", "RunEvent", "RunResult", "RunStatus"]
