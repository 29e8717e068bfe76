"""
Diff Engine: delta entre estado deseado y último estado aplicado.

Lógica pura: entrada = ResourceSpecs deseados + AppliedStates;
salida = ChangeSet ordenado. No toca el provider ni el State Store.
"""

from typing import Any, Dict, Mapping, Tuple

from orbita.core.errors import ValidationError
from orbita.core.plan.graph import DependencyGraph
from orbita.core.plan.models import ChangeSet, Operation, OperationAction
from orbita.core.resources.models import AppliedState, ResourceSpec
from orbita.core.resources.schema import normalize_attributes


def attribute_changes(old: Dict[str, Any], new: Dict[str, Any]) -> Dict[str, Tuple[Any, Any]]:
    """Atributos que difieren como (actual, deseado); ambos ya normalizados."""
    changes = {}
    for key in sorted(set(old) | set(new)):
        if old.get(key) != new.get(key):
            changes[key] = (old.get(key), new.get(key))
    return changes


def compare(spec: ResourceSpec, state: AppliedState) -> Dict[str, Tuple[Any, Any]]:
    """
    Compara igualdad estructural tras normalizar defaults.
    Los conjuntos se comparan sin orden y las listas con orden.
    """
    if spec.kind != state.kind:
        raise ValidationError(
            f"el tipo no puede cambiar ({state.kind.value} -> {spec.kind.value}); usa otro nombre lógico",
            resource=spec.name,
            attribute="kind",
        )
    changes = attribute_changes(
        normalize_attributes(state.kind, state.attributes),
        normalize_attributes(spec.kind, spec.attributes),
    )
    desired_deps = sorted(spec.dependency_names())
    if desired_deps != sorted(state.dependencies):
        changes["depends_on"] = (sorted(state.dependencies), desired_deps)
    return changes


def diff(desired: Mapping[str, ResourceSpec], applied: Mapping[str, AppliedState]) -> ChangeSet:
    """
    Construye el ChangeSet.

    - deseado sin estado aplicado → Create
    - deseado con estado distinto → Update
    - idéntico → NoOp
    - estado aplicado sin deseado → Delete (huérfano)
    """
    forward = DependencyGraph.from_specs(desired.values()).topological_order()
    operations = []
    for name in forward:
        if name not in desired:
            continue
        spec = desired[name]
        state = applied.get(name)
        requires = spec.dependency_names()
        if state is None:
            operations.append(Operation(OperationAction.CREATE, name, spec.kind, desired=spec, requires=requires))
            continue
        changes = compare(spec, state)
        action = OperationAction.UPDATE if changes else OperationAction.NOOP
        operations.append(
            Operation(action, name, spec.kind, desired=spec, current=state, changes=changes, requires=requires)
        )

    # Huérfanos: borrar dependientes antes que sus dependencias
    applied_graph = DependencyGraph.from_states(applied.values())
    for name in applied_graph.reverse_order():
        if name in desired:
            continue
        state = applied[name]
        # Espera a todo recurso cuyo estado aplicado dependa de éste
        requires = applied_graph.dependents(name)
        operations.append(Operation(OperationAction.DELETE, name, state.kind, current=state, requires=requires))

    return ChangeSet(operations)


def destroy(applied: Mapping[str, AppliedState]) -> ChangeSet:
    """ChangeSet que elimina todo el estado aplicado en orden inverso de dependencias."""
    return diff({}, applied)
