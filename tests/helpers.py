"""Constructores de specs y estados para los tests."""

from orbita.core.resources.models import AppliedState, ResourceKind, ResourceSpec
from orbita.core.resources.schema import normalize_attributes


def no_sleep(seconds: float) -> None:
    pass


def make_spec(name: str, kind: str, depends_on=(), **attributes) -> ResourceSpec:
    return ResourceSpec(name=name, kind=ResourceKind(kind), attributes=attributes, depends_on=depends_on)


def applied_from(spec: ResourceSpec, provider_id: str = None, revision: int = 1) -> AppliedState:
    """AppliedState equivalente a una spec ya aplicada."""
    return AppliedState(
        name=spec.name,
        kind=spec.kind,
        attributes=normalize_attributes(spec.kind, spec.attributes),
        provider_id=provider_id or f"id-{spec.name}",
        revision=revision,
        dependencies=sorted(spec.dependency_names()),
    )
