"""
Contratos que deben implementar los providers de infraestructura.

El core solo define interfaces; la implementación vive en orbita/providers/*.
El Provider es el único componente que toca la red.
"""

from typing import Dict, Iterable, List, Mapping, Optional, Protocol

from orbita.core.errors import ConfigError
from orbita.core.resources.models import AppliedState, ResourceKind, ResourceSpec


class ResourceAdapter(Protocol):
    """
    Contrato de un adapter por tipo de recurso (vpc, subnet, load_balancer, ...).

    refs: nombre lógico -> provider_id de cada recurso referenciado por la spec.
    create/update deben ser idempotentes (entrega al-menos-una-vez).
    """

    @property
    def kind(self) -> ResourceKind:
        ...

    def create(self, spec: ResourceSpec, refs: Mapping[str, str]) -> AppliedState:
        ...

    def update(self, spec: ResourceSpec, current: AppliedState, refs: Mapping[str, str]) -> AppliedState:
        ...

    def delete(self, current: AppliedState) -> None:
        ...

    def describe(self, name: str) -> Optional[AppliedState]:
        ...


class Provider:
    """Conjunto de adapters, uno por tipo de recurso."""

    def __init__(self, name: str, adapters: Iterable[ResourceAdapter]):
        self.name = name
        self._adapters: Dict[ResourceKind, ResourceAdapter] = {}
        for adapter in adapters:
            self._adapters[ResourceKind(adapter.kind)] = adapter

    def kinds(self) -> List[ResourceKind]:
        return sorted(self._adapters, key=lambda k: k.value)

    def adapter_for(self, kind: ResourceKind) -> ResourceAdapter:
        try:
            return self._adapters[ResourceKind(kind)]
        except KeyError:
            raise ConfigError(f"El provider '{self.name}' no soporta recursos de tipo '{kind}'") from None

    def create(self, spec: ResourceSpec, refs: Mapping[str, str]) -> AppliedState:
        return self.adapter_for(spec.kind).create(spec, refs)

    def update(self, spec: ResourceSpec, current: AppliedState, refs: Mapping[str, str]) -> AppliedState:
        return self.adapter_for(spec.kind).update(spec, current, refs)

    def delete(self, current: AppliedState) -> None:
        self.adapter_for(current.kind).delete(current)

    def describe(self, kind: ResourceKind, name: str) -> Optional[AppliedState]:
        return self.adapter_for(kind).describe(name)
