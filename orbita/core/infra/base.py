"""
Base para adapters: flujo común de create/update/delete/describe.

Los adapters concretos implementan solo los hooks (_find, _provision, _modify,
_remove, _read, _is_ready). La base se encarga de:
- adoptar un recurso ya existente con el mismo nombre (create idempotente),
- resolver referencias a provider_id,
- esperar a que el recurso esté listo (poll acotado → ProvisioningTimeout).
"""

import logging
import time
from typing import Any, Callable, Dict, Mapping, Optional

from orbita.core.errors import NotFoundError, ProvisioningTimeout
from orbita.core.resources.models import AppliedState, Ref, ResourceKind, ResourceSpec
from orbita.core.resources.schema import normalize_attributes

logger = logging.getLogger(__name__)


def resolve_refs(value: Any, refs: Mapping[str, str]) -> Any:
    """Sustituye cada Ref por el provider_id de su recurso."""
    if isinstance(value, Ref):
        try:
            return refs[value.name]
        except KeyError:
            raise NotFoundError(f"Referencia sin estado aplicado: '{value.name}'") from None
    if isinstance(value, dict):
        return {k: resolve_refs(v, refs) for k, v in value.items()}
    if isinstance(value, (set, frozenset)):
        return frozenset(resolve_refs(v, refs) for v in value)
    if isinstance(value, (list, tuple)):
        return [resolve_refs(v, refs) for v in value]
    return value


def poll_until_ready(
    check: Callable[[], bool],
    what: str,
    timeout: float,
    interval: float,
    sleep: Callable[[float], None] = time.sleep,
    clock: Callable[[], float] = time.monotonic,
) -> None:
    """
    Consulta check() hasta que devuelva True o se agote el tiempo.

    Raises:
        ProvisioningTimeout: si el recurso no está listo dentro de `timeout`.
    """
    deadline = clock() + timeout
    while True:
        if check():
            return
        if clock() >= deadline:
            raise ProvisioningTimeout(f"{what} no estuvo listo en {timeout:.0f}s")
        sleep(interval)


class BaseAdapter:
    """Base opcional para adapters; implementa el contrato ResourceAdapter."""

    kind: ResourceKind
    waits_for_ready: bool = False

    def __init__(
        self,
        poll_timeout: float = 300.0,
        poll_interval: float = 5.0,
        sleep: Callable[[float], None] = time.sleep,
        clock: Callable[[], float] = time.monotonic,
    ):
        self.poll_timeout = poll_timeout
        self.poll_interval = poll_interval
        self._sleep = sleep
        self._clock = clock

    # Hooks ---------------------------------------------------------------

    def _find(self, name: str) -> Optional[str]:
        """provider_id del recurso con ese nombre lógico, si existe."""
        raise NotImplementedError

    def _provision(self, name: str, attributes: Dict[str, Any], resolved: Dict[str, Any]) -> str:
        raise NotImplementedError

    def _modify(self, provider_id: str, attributes: Dict[str, Any], resolved: Dict[str, Any]) -> str:
        """Aplica los atributos y devuelve el provider_id resultante (cambia si hubo reemplazo)."""
        raise NotImplementedError

    def _remove(self, provider_id: str) -> None:
        raise NotImplementedError

    def _read(self, provider_id: str) -> Optional[Dict[str, Any]]:
        """{'attributes': ..., 'outputs': ...} o None si no existe."""
        raise NotImplementedError

    def _is_ready(self, provider_id: str) -> bool:
        return True

    # Contrato --------------------------------------------------------------

    def _wait_ready(self, name: str, provider_id: str) -> None:
        if not self.waits_for_ready:
            return
        poll_until_ready(
            lambda: self._is_ready(provider_id),
            f"{self.kind.value} '{name}' ({provider_id})",
            timeout=self.poll_timeout,
            interval=self.poll_interval,
            sleep=self._sleep,
            clock=self._clock,
        )

    def _applied(self, spec: ResourceSpec, provider_id: str, attributes: Dict[str, Any]) -> AppliedState:
        data = self._read(provider_id) or {}
        return AppliedState(
            name=spec.name,
            kind=spec.kind,
            attributes=attributes,
            provider_id=provider_id,
            outputs=data.get("outputs", {}),
        )

    def create(self, spec: ResourceSpec, refs: Mapping[str, str]) -> AppliedState:
        attributes = normalize_attributes(spec.kind, spec.attributes)
        resolved = resolve_refs(attributes, refs)
        provider_id = self._find(spec.name)
        if provider_id is not None:
            logger.info("%s '%s' ya existe (%s): se adopta", self.kind.value, spec.name, provider_id)
            provider_id = self._modify(provider_id, attributes, resolved)
        else:
            provider_id = self._provision(spec.name, attributes, resolved)
        self._wait_ready(spec.name, provider_id)
        return self._applied(spec, provider_id, attributes)

    def update(self, spec: ResourceSpec, current: AppliedState, refs: Mapping[str, str]) -> AppliedState:
        attributes = normalize_attributes(spec.kind, spec.attributes)
        resolved = resolve_refs(attributes, refs)
        provider_id = self._modify(current.provider_id, attributes, resolved)
        self._wait_ready(spec.name, provider_id)
        return self._applied(spec, provider_id, attributes)

    def delete(self, current: AppliedState) -> None:
        try:
            self._remove(current.provider_id)
        except NotFoundError:
            logger.info("%s '%s' ya no existe en el provider", self.kind.value, current.name)

    def describe(self, name: str) -> Optional[AppliedState]:
        provider_id = self._find(name)
        if provider_id is None:
            return None
        data = self._read(provider_id)
        if data is None:
            return None
        return AppliedState(
            name=name,
            kind=self.kind,
            attributes=data.get("attributes", {}),
            provider_id=provider_id,
            outputs=data.get("outputs", {}),
        )
