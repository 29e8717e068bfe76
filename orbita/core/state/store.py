"""
State Store: registro durable del último AppliedState por nombre lógico.

- Un registro JSON por nombre (<root>/resources/<nombre>.json).
- Escritura atómica (archivo temporal + fsync + os.replace): una lectura
  posterior a una escritura confirmada la observa, y sobrevive reinicios.
- Un escritor por nombre: cada nombre tiene su propio lock; nombres
  distintos no comparten lock.
- La revisión almacenada permite detectar escritores concurrentes entre
  ejecuciones (expected_revision).
"""

import json
import logging
import os
import tempfile
import threading
from pathlib import Path
from typing import Dict, List, Optional, Protocol

from orbita.core.errors import ConfigError, StateConflictError
from orbita.core.resources.models import AppliedState
from orbita.core.resources.validator import validate_name

logger = logging.getLogger(__name__)


class StateStore(Protocol):
    """Contrato del almacén de estado. El Reconciler es el único escritor."""

    def get(self, name: str) -> Optional[AppliedState]:
        ...

    def put(self, name: str, state: AppliedState, expected_revision: Optional[int] = None) -> None:
        ...

    def delete(self, name: str, expected_revision: Optional[int] = None) -> None:
        ...

    def list(self) -> List[AppliedState]:
        ...


class _NameLocks:
    """Locks por nombre lógico, creados bajo demanda."""

    def __init__(self):
        self._guard = threading.Lock()
        self._locks: Dict[str, threading.Lock] = {}

    def for_name(self, name: str) -> threading.Lock:
        with self._guard:
            lock = self._locks.get(name)
            if lock is None:
                lock = self._locks[name] = threading.Lock()
            return lock


def _check_revision(name: str, current: Optional[AppliedState], expected: Optional[int]) -> None:
    if expected is None:
        return
    actual = current.revision if current is not None else 0
    if actual != expected:
        raise StateConflictError(name, expected, actual)


class MemoryStateStore:
    """Implementación en memoria (tests, previsualizaciones)."""

    def __init__(self, states: Optional[List[AppliedState]] = None):
        self._locks = _NameLocks()
        # protege el dict; el lock por nombre serializa check-and-write
        self._guard = threading.Lock()
        self._records: Dict[str, AppliedState] = {}
        for state in states or []:
            self._records[state.name] = state

    def _current(self, name: str) -> Optional[AppliedState]:
        with self._guard:
            return self._records.get(name)

    def get(self, name: str) -> Optional[AppliedState]:
        state = self._current(name)
        return state.model_copy(deep=True) if state is not None else None

    def put(self, name: str, state: AppliedState, expected_revision: Optional[int] = None) -> None:
        record = state.model_copy(deep=True)
        with self._locks.for_name(name):
            _check_revision(name, self._current(name), expected_revision)
            with self._guard:
                self._records[name] = record

    def delete(self, name: str, expected_revision: Optional[int] = None) -> None:
        with self._locks.for_name(name):
            _check_revision(name, self._current(name), expected_revision)
            with self._guard:
                self._records.pop(name, None)

    def list(self) -> List[AppliedState]:
        with self._guard:
            snapshot = dict(self._records)
        return [snapshot[n].model_copy(deep=True) for n in sorted(snapshot)]


class FileStateStore:
    """Implementación durable en disco: un archivo JSON por recurso."""

    def __init__(self, root: Path):
        self.root = Path(root)
        self.resources_dir = self.root / "resources"
        try:
            self.resources_dir.mkdir(parents=True, exist_ok=True)
        except OSError as e:
            raise ConfigError(f"No se pudo crear el directorio de estado {self.resources_dir}: {e}") from e
        self._locks = _NameLocks()

    def _path(self, name: str) -> Path:
        validate_name(name)
        return self.resources_dir / f"{name}.json"

    def _read(self, path: Path) -> Optional[AppliedState]:
        try:
            with open(path, "r") as f:
                data = json.load(f)
        except FileNotFoundError:
            return None
        except json.JSONDecodeError as e:
            raise ConfigError(f"Registro de estado corrupto: {path}: {e}") from e
        return AppliedState.from_record(data)

    def _write(self, path: Path, state: AppliedState) -> None:
        fd, tmp = tempfile.mkstemp(prefix=f".{path.stem}.", suffix=".tmp", dir=str(self.resources_dir))
        try:
            with os.fdopen(fd, "w") as f:
                json.dump(state.to_record(), f, indent=2, sort_keys=True)
                f.flush()
                os.fsync(f.fileno())
            os.replace(tmp, path)
        except BaseException:
            if os.path.exists(tmp):
                os.unlink(tmp)
            raise

    def get(self, name: str) -> Optional[AppliedState]:
        path = self._path(name)
        with self._locks.for_name(name):
            return self._read(path)

    def put(self, name: str, state: AppliedState, expected_revision: Optional[int] = None) -> None:
        path = self._path(name)
        with self._locks.for_name(name):
            _check_revision(name, self._read(path), expected_revision)
            self._write(path, state)
        logger.debug("Estado guardado: %s (revisión %s)", name, state.revision)

    def delete(self, name: str, expected_revision: Optional[int] = None) -> None:
        path = self._path(name)
        with self._locks.for_name(name):
            _check_revision(name, self._read(path), expected_revision)
            try:
                path.unlink()
            except FileNotFoundError:
                pass
        logger.debug("Estado eliminado: %s", name)

    def list(self) -> List[AppliedState]:
        states = []
        for path in sorted(self.resources_dir.glob("*.json")):
            with self._locks.for_name(path.stem):
                state = self._read(path)
            if state is not None:
                states.append(state)
        return states
