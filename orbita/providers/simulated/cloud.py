"""
Nube simulada: backend en memoria (opcionalmente persistido en JSON).

Sirve para ensayar planes sin cuenta real y para los tests:
- identificadores estilo provider (vpc-…, subnet-…, ARNs),
- recursos que tardan N consultas en estar listos (ALB, RDS, servicios ECS),
- inyección de fallos por nombre lógico y operación.
"""

import json
import logging
import os
import secrets
import tempfile
import threading
from collections import defaultdict, deque
from pathlib import Path
from typing import Any, Deque, Dict, List, Optional, Tuple

from orbita.core.errors import ConfigError, NotFoundError
from orbita.core.resources.models import decode_value, encode_value

logger = logging.getLogger(__name__)

ACCOUNT_ID = "000000000000"


class SimulatedCloud:
    """Estado 'real' de la cuenta simulada. Thread-safe."""

    def __init__(self, path: Optional[Path] = None, ready_after: int = 0):
        """
        Args:
            path: archivo JSON donde persistir la nube entre ejecuciones (None = solo memoria)
            ready_after: consultas de readiness necesarias para recursos asíncronos
        """
        self.path = Path(path) if path else None
        self.ready_after = ready_after
        self._lock = threading.RLock()
        self._resources: Dict[str, Dict[str, Any]] = {}
        self._faults: Dict[Tuple[str, Optional[str]], Deque[Exception]] = defaultdict(deque)
        self.calls: List[Tuple[str, str]] = []
        if self.path and self.path.exists():
            self._load()

    # Persistencia ------------------------------------------------------------

    def _load(self) -> None:
        try:
            with open(self.path, "r") as f:
                data = json.load(f)
        except (OSError, json.JSONDecodeError) as e:
            raise ConfigError(f"No se pudo leer la nube simulada {self.path}: {e}") from e
        for pid, record in data.get("resources", {}).items():
            record["attributes"] = decode_value(record.get("attributes", {}))
            self._resources[pid] = record

    def _save(self) -> None:
        if not self.path:
            return
        self.path.parent.mkdir(parents=True, exist_ok=True)
        payload = {
            "resources": {
                pid: {**rec, "attributes": encode_value(rec["attributes"])}
                for pid, rec in self._resources.items()
            }
        }
        fd, tmp = tempfile.mkstemp(dir=str(self.path.parent), suffix=".tmp")
        with os.fdopen(fd, "w") as f:
            json.dump(payload, f, indent=2, sort_keys=True)
        os.replace(tmp, self.path)

    # Fallos ------------------------------------------------------------------

    def inject(self, name: str, error: Exception, times: int = 1, operation: Optional[str] = None) -> None:
        """
        Programa `times` fallos para el recurso `name`.
        operation: create | update | delete | read | None (cualquiera).
        """
        with self._lock:
            for _ in range(times):
                self._faults[(name, operation)].append(error)

    def _maybe_fail(self, name: str, operation: str) -> None:
        with self._lock:
            self.calls.append((operation, name))
            for key in ((name, operation), (name, None)):
                queue = self._faults.get(key)
                if queue:
                    error = queue.popleft()
                    logger.debug("Fallo inyectado en %s %s: %r", operation, name, error)
                    raise error

    # API ---------------------------------------------------------------------

    def new_id(self, prefix: str) -> str:
        return f"{prefix}-{secrets.token_hex(8)}"

    def find(self, kind: str, name: str) -> Optional[str]:
        with self._lock:
            for pid, rec in self._resources.items():
                if rec["kind"] == kind and rec["name"] == name:
                    return pid
            return None

    def create(
        self,
        kind: str,
        name: str,
        provider_id: str,
        attributes: Dict[str, Any],
        outputs: Dict[str, Any],
        asynchronous: bool = False,
    ) -> str:
        self._maybe_fail(name, "create")
        with self._lock:
            self._resources[provider_id] = {
                "kind": kind,
                "name": name,
                "attributes": dict(attributes),
                "outputs": dict(outputs),
                "pending_polls": self.ready_after if asynchronous else 0,
            }
            self._save()
        return provider_id

    def update(self, provider_id: str, attributes: Dict[str, Any], outputs: Optional[Dict[str, Any]] = None) -> None:
        with self._lock:
            rec = self._resources.get(provider_id)
        if rec is None:
            raise NotFoundError(f"Recurso inexistente: {provider_id}")
        self._maybe_fail(rec["name"], "update")
        with self._lock:
            rec["attributes"] = dict(attributes)
            rec["outputs"] = dict(outputs or {})
            self._save()

    def delete(self, provider_id: str) -> None:
        with self._lock:
            rec = self._resources.get(provider_id)
        if rec is None:
            raise NotFoundError(f"Recurso inexistente: {provider_id}")
        self._maybe_fail(rec["name"], "delete")
        with self._lock:
            self._resources.pop(provider_id, None)
            self._save()

    def get(self, provider_id: str) -> Optional[Dict[str, Any]]:
        with self._lock:
            rec = self._resources.get(provider_id)
        if rec is None:
            return None
        self._maybe_fail(rec["name"], "read")
        with self._lock:
            return {"attributes": dict(rec["attributes"]), "outputs": dict(rec["outputs"])}

    def peek(self, provider_id: str) -> Optional[Dict[str, Any]]:
        """Lectura interna, sin fallos inyectados ni registro de llamadas."""
        with self._lock:
            rec = self._resources.get(provider_id)
            return dict(rec) if rec is not None else None

    def poll(self, provider_id: str) -> bool:
        """Una consulta de readiness; True cuando el recurso está disponible."""
        with self._lock:
            rec = self._resources.get(provider_id)
            if rec is None:
                raise NotFoundError(f"Recurso inexistente: {provider_id}")
            if rec["pending_polls"] > 0:
                rec["pending_polls"] -= 1
                return False
            return True

    def tamper(self, kind: str, name: str, **attributes: Any) -> None:
        """Cambio fuera de banda (simula drift)."""
        pid = self.find(kind, name)
        if pid is None:
            raise NotFoundError(f"Recurso inexistente: {kind} {name}")
        with self._lock:
            self._resources[pid]["attributes"].update(attributes)
            self._save()

    def remove_out_of_band(self, kind: str, name: str) -> None:
        """Borrado fuera de banda (simula drift)."""
        pid = self.find(kind, name)
        if pid is not None:
            with self._lock:
                self._resources.pop(pid, None)
                self._save()

    def count(self, kind: Optional[str] = None) -> int:
        with self._lock:
            return sum(1 for rec in self._resources.values() if kind is None or rec["kind"] == kind)
