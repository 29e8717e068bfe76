"""
Planificación: genera el ChangeSet (qué aplicar) sin ejecutar.

Todos los errores de esta fase (validación, ciclos) abortan la ejecución
antes de cualquier mutación.
"""

import logging
from typing import Dict, Iterable, List

from orbita.core.plan.diff import destroy, diff
from orbita.core.plan.graph import DependencyGraph
from orbita.core.plan.models import ChangeSet, OperationAction
from orbita.core.resources.models import ResourceSpec
from orbita.core.resources.validator import validate_specs
from orbita.core.state.store import StateStore

logger = logging.getLogger(__name__)


def build_plan(specs: Iterable[ResourceSpec], store: StateStore) -> ChangeSet:
    """Valida el estado deseado, comprueba ciclos y calcula el diff contra el State Store."""
    specs = list(specs)
    validate_specs(specs)
    desired = {s.name: s for s in specs}
    DependencyGraph.from_specs(specs).check()
    applied = {s.name: s for s in store.list()}
    changeset = diff(desired, applied)
    logger.info("Plan: %s", changeset.counts())
    return changeset


def build_destroy_plan(store: StateStore) -> ChangeSet:
    """Delete para todo el estado aplicado, dependientes primero."""
    applied = {s.name: s for s in store.list()}
    return destroy(applied)


def describe_plan(changeset: ChangeSet) -> List[str]:
    """
    Convierte el ChangeSet en acciones legibles (para mostrar en CLI).
    No ejecuta nada.
    """
    actions: List[str] = []
    for op in changeset:
        if op.action == OperationAction.CREATE:
            actions.append(f"Crear {op.kind.value} {op.name}")
        elif op.action == OperationAction.DELETE:
            actions.append(f"Eliminar {op.kind.value} {op.name}")
        elif op.action == OperationAction.UPDATE:
            fields: Dict[str, str] = {k: f"{old} → {new}" for k, (old, new) in op.changes.items()}
            detail = ", ".join(f"{k}: {v}" for k, v in fields.items())
            actions.append(f"Actualizar {op.kind.value} {op.name} ({detail})")
    return actions
