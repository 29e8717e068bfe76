"""
ChangeSet: secuencia ordenada de operaciones (Create, Update, Delete, NoOp).
"""

from dataclasses import dataclass, field
from enum import Enum
from typing import Any, Dict, List, Optional, Set, Tuple

from orbita.core.resources.models import AppliedState, ResourceKind, ResourceSpec


class OperationAction(str, Enum):
    CREATE = "create"
    UPDATE = "update"
    DELETE = "delete"
    NOOP = "noop"


class OperationStatus(str, Enum):
    PENDING = "pending"
    IN_PROGRESS = "in_progress"
    SUCCEEDED = "succeeded"
    FAILED = "failed"
    SKIPPED = "skipped"
    NOOP = "noop"


# Estados que liberan a los dependientes
COMPLETED_OK = frozenset({OperationStatus.SUCCEEDED, OperationStatus.NOOP})
# Estados que bloquean a los dependientes (pasan a Skipped)
COMPLETED_BAD = frozenset({OperationStatus.FAILED, OperationStatus.SKIPPED})


@dataclass
class Operation:
    """Una operación sobre un recurso; la muta solo el Reconciler."""
    action: OperationAction
    name: str
    kind: ResourceKind
    desired: Optional[ResourceSpec] = None
    current: Optional[AppliedState] = None
    changes: Dict[str, Tuple[Any, Any]] = field(default_factory=dict)
    requires: Set[str] = field(default_factory=set)
    status: OperationStatus = OperationStatus.PENDING
    attempts: int = 0
    backoff_total: float = 0.0
    error: Optional[str] = None
    started_at: Optional[float] = None
    finished_at: Optional[float] = None

    def __post_init__(self):
        if self.action == OperationAction.NOOP:
            self.status = OperationStatus.NOOP

    @property
    def is_change(self) -> bool:
        return self.action != OperationAction.NOOP


@dataclass
class ChangeSet:
    """Operaciones en orden de dependencias: Create/Update hacia adelante, Delete en reversa."""
    operations: List[Operation] = field(default_factory=list)

    def __iter__(self):
        return iter(self.operations)

    def __len__(self) -> int:
        return len(self.operations)

    def get(self, name: str) -> Optional[Operation]:
        for op in self.operations:
            if op.name == name:
                return op
        return None

    def names(self) -> List[str]:
        return [op.name for op in self.operations]

    def by_action(self, action: OperationAction) -> List[Operation]:
        return [op for op in self.operations if op.action == action]

    def counts(self) -> Dict[str, int]:
        out = {a.value: 0 for a in OperationAction}
        for op in self.operations:
            out[op.action.value] += 1
        return out

    @property
    def has_changes(self) -> bool:
        return any(op.is_change for op in self.operations)

    def waves(self) -> List[List[Operation]]:
        """Oleadas ejecutables en paralelo (las operaciones ya vienen ordenadas)."""
        depth: Dict[str, int] = {}
        waves: List[List[Operation]] = []
        for op in self.operations:
            level = 1 + max((depth[r] for r in op.requires if r in depth), default=-1)
            depth[op.name] = level
            while len(waves) <= level:
                waves.append([])
            waves[level].append(op)
        return waves
