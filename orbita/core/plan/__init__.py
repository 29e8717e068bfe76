"""
Plan: grafo de dependencias, diff, planificación y detección de drift.

Lógica pura; sin I/O ni dependencias de CLI o providers concretos.
"""

from orbita.core.plan.models import (
    ChangeSet,
    Operation,
    OperationAction,
    OperationStatus,
)
from orbita.core.plan.graph import DependencyGraph
from orbita.core.plan.diff import diff, destroy
from orbita.core.plan.planner import build_plan, build_destroy_plan, describe_plan
from orbita.core.plan.drift import StateDiff, detect_drift

__all__ = [
    "ChangeSet",
    "Operation",
    "OperationAction",
    "OperationStatus",
    "DependencyGraph",
    "diff",
    "destroy",
    "build_plan",
    "build_destroy_plan",
    "describe_plan",
    "StateDiff",
    "detect_drift",
]
