"""
Detección de drift: diferencias entre el último estado aplicado y el estado
real del provider causadas por cambios fuera de banda.

El core solo define la noción de "diff"; la lectura del estado real la hace
el provider mediante describe().
"""

import logging
from typing import Any, List, Optional

from orbita.core.infra.contracts import Provider
from orbita.core.plan.diff import attribute_changes
from orbita.core.resources.schema import normalize_attributes
from orbita.core.state.store import StateStore

logger = logging.getLogger(__name__)


class StateDiff:
    """Diferencia entre estado aplicado y real (agnóstico de provider)."""
    def __init__(
        self,
        resource_id: str,
        field: str,
        desired: Any,
        actual: Any,
        severity: str = "warning"
    ):
        self.resource_id = resource_id
        self.field = field
        self.desired = desired
        self.actual = actual
        self.severity = severity  # "error", "warning", "info"

    def __repr__(self) -> str:
        return f"StateDiff({self.resource_id}.{self.field}: {self.desired!r} != {self.actual!r})"


def detect_drift(store: StateStore, provider: Provider, name: Optional[str] = None) -> List[StateDiff]:
    """
    Compara cada AppliedState con lo que describe el provider.

    Args:
        name: si se especifica, solo ese recurso.

    Returns:
        Lista de StateDiff (vacía si no hay drift).
    """
    diffs: List[StateDiff] = []
    states = store.list()
    if name is not None:
        states = [s for s in states if s.name == name]

    for state in states:
        actual = provider.describe(state.kind, state.name)
        if actual is None:
            diffs.append(StateDiff(state.name, "resource", "exists", "missing", "error"))
            continue
        if actual.provider_id != state.provider_id:
            diffs.append(StateDiff(state.name, "provider_id", state.provider_id, actual.provider_id, "error"))
        changes = attribute_changes(
            normalize_attributes(state.kind, actual.attributes),
            normalize_attributes(state.kind, state.attributes),
        )
        for field, (real, recorded) in changes.items():
            diffs.append(StateDiff(state.name, field, recorded, real, "warning"))

    logger.info("Drift: %d diferencias", len(diffs))
    return diffs
