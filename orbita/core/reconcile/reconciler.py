"""
Reconciler: ejecuta un ChangeSet contra el provider.

Máquina de estados por operación: Pending -> InProgress -> {Succeeded, Failed};
Skipped si una dependencia falló/se omitió o si la ejecución se canceló.

Garantía central: tras cada operación exitosa el State Store se actualiza
ANTES de marcarla Succeeded, y un dependiente solo se lanza cuando todas sus
dependencias están Succeeded o NoOp. Ramas independientes corren en paralelo
en un pool acotado; una cadena de dependencias se serializa.
"""

import itertools
import logging
import random
import threading
import time
from concurrent.futures import FIRST_COMPLETED, Future, ThreadPoolExecutor, wait
from dataclasses import dataclass, field
from datetime import datetime, timezone
from enum import Enum
from typing import Callable, Dict, List, Optional

from orbita.core.errors import NotFoundError, OperationCancelled, OrbitaError, ProviderError
from orbita.core.infra.contracts import Provider
from orbita.core.plan.models import (
    COMPLETED_BAD,
    COMPLETED_OK,
    ChangeSet,
    Operation,
    OperationAction,
    OperationStatus,
)
from orbita.core.reconcile.retry import RetryPolicy
from orbita.core.resources.models import AppliedState, ResourceSpec
from orbita.core.state.store import StateStore

logger = logging.getLogger(__name__)


class RunStatus(str, Enum):
    SUCCEEDED = "succeeded"
    PARTIAL_FAILURE = "partial_failure"
    CANCELLED = "cancelled"


@dataclass
class RunEvent:
    """Transición de una operación; `seq` es un orden total dentro de la ejecución."""
    seq: int
    name: str
    status: OperationStatus
    at: float


@dataclass
class RunResult:
    status: RunStatus
    operations: List[Operation] = field(default_factory=list)
    events: List[RunEvent] = field(default_factory=list)

    @property
    def exit_code(self) -> int:
        return 0 if self.status == RunStatus.SUCCEEDED else 1

    def by_status(self, status: OperationStatus) -> List[Operation]:
        return [op for op in self.operations if op.status == status]

    def counts(self) -> Dict[str, int]:
        out = {s.value: 0 for s in OperationStatus}
        for op in self.operations:
            out[op.status.value] += 1
        return out

    def event(self, name: str, status: OperationStatus) -> Optional[RunEvent]:
        for ev in self.events:
            if ev.name == name and ev.status == status:
                return ev
        return None


class Reconciler:
    """Ejecuta ChangeSets respetando dependencias, reintentos y cancelación."""

    def __init__(
        self,
        provider: Provider,
        store: StateStore,
        retry: Optional[RetryPolicy] = None,
        max_workers: int = 4,
        cancel_event: Optional[threading.Event] = None,
        sleep: Optional[Callable[[float], None]] = None,
        clock: Callable[[], float] = time.monotonic,
        rng: Callable[[], float] = random.random,
    ):
        self.provider = provider
        self.store = store
        self.retry = retry or RetryPolicy()
        self.max_workers = max_workers
        self.cancel_event = cancel_event or threading.Event()
        self._sleep = sleep
        self._clock = clock
        self._rng = rng
        self._lock = threading.Lock()
        self._seq = itertools.count()
        self._events: List[RunEvent] = []

    def cancel(self) -> None:
        """Señal de cancelación: no arranca nada nuevo; lo pendiente pasa a Skipped."""
        self.cancel_event.set()

    # Transiciones ------------------------------------------------------------

    def _transition(self, op: Operation, status: OperationStatus) -> None:
        with self._lock:
            now = self._clock()
            op.status = status
            if status == OperationStatus.IN_PROGRESS:
                op.started_at = now
            else:
                op.finished_at = now
            self._events.append(RunEvent(next(self._seq), op.name, status, now))

    def _skip(self, op: Operation, reason: str) -> None:
        op.error = reason
        self._transition(op, OperationStatus.SKIPPED)
        logger.info("Omitido %s: %s", op.name, reason)

    # Ejecución ---------------------------------------------------------------

    def run(self, changeset: ChangeSet) -> RunResult:
        self._events = []
        self._seq = itertools.count()
        ops = {op.name: op for op in changeset}
        pending = [op for op in changeset if op.status == OperationStatus.PENDING]
        running: Dict[Future, Operation] = {}

        with ThreadPoolExecutor(max_workers=self.max_workers, thread_name_prefix="orbita") as pool:
            while pending or running:
                self._schedule(pending, ops, running, pool)
                if not running:
                    # Nada en vuelo y nada lanzable: dependencias que nunca se cumplirán
                    for op in pending:
                        self._skip(op, "dependencias no satisfechas")
                    pending.clear()
                    break
                done, _ = wait(list(running), return_when=FIRST_COMPLETED)
                for future in done:
                    running.pop(future)
                    future.result()

        return RunResult(self._run_status(changeset), list(changeset), list(self._events))

    def _schedule(
        self,
        pending: List[Operation],
        ops: Dict[str, Operation],
        running: Dict[Future, Operation],
        pool: ThreadPoolExecutor,
    ) -> None:
        changed = True
        while changed:
            changed = False
            for op in list(pending):
                if self.cancel_event.is_set():
                    pending.remove(op)
                    self._skip(op, "ejecución cancelada")
                    continue
                deps = [ops[name] for name in sorted(op.requires) if name in ops]
                blocked = [d for d in deps if d.status in COMPLETED_BAD]
                if blocked:
                    pending.remove(op)
                    self._skip(op, f"dependencia '{blocked[0].name}' en estado {blocked[0].status.value}")
                    changed = True
                    continue
                if all(d.status in COMPLETED_OK for d in deps):
                    pending.remove(op)
                    self._transition(op, OperationStatus.IN_PROGRESS)
                    running[pool.submit(self._execute, op)] = op

    def _execute(self, op: Operation) -> None:
        logger.info("%s %s %s", op.action.value, op.kind.value, op.name)
        try:
            self._perform(op)
        except OperationCancelled as exc:
            self._skip(op, str(exc))
        except Exception as exc:
            op.error = f"{type(exc).__name__}: {exc}"
            if isinstance(exc, OrbitaError):
                logger.warning("Falló %s: %s", op.name, op.error)
            else:
                logger.exception("Error inesperado en %s", op.name)
            self._transition(op, OperationStatus.FAILED)
        else:
            self._transition(op, OperationStatus.SUCCEEDED)

    def _perform(self, op: Operation) -> None:
        while True:
            op.attempts += 1
            try:
                result = self._call_provider(op)
                break
            except ProviderError as exc:
                if not self.retry.should_retry(exc, op.attempts):
                    raise
                delay = self.retry.delay(op.attempts, self._rng)
                op.backoff_total += delay
                logger.info(
                    "Error transitorio en %s (intento %d/%d): %s; reintento en %.2fs",
                    op.name, op.attempts, self.retry.max_attempts, exc, delay,
                )
                if self._wait(delay):
                    raise OperationCancelled(f"cancelado durante el backoff de '{op.name}'") from exc
        self._commit(op, result)

    def _wait(self, delay: float) -> bool:
        """Espera el backoff; True si la ejecución se canceló."""
        if self._sleep is not None:
            self._sleep(delay)
            return self.cancel_event.is_set()
        return self.cancel_event.wait(delay)

    def _refs(self, spec: ResourceSpec) -> Dict[str, str]:
        refs = {}
        for name in sorted(spec.references()):
            state = self.store.get(name)
            if state is None:
                raise NotFoundError(f"'{spec.name}' referencia a '{name}', que no tiene estado aplicado")
            refs[name] = state.provider_id
        return refs

    def _call_provider(self, op: Operation) -> Optional[AppliedState]:
        if op.action == OperationAction.DELETE:
            self.provider.delete(op.current)
            return None
        refs = self._refs(op.desired)
        if op.action == OperationAction.CREATE:
            return self.provider.create(op.desired, refs)
        return self.provider.update(op.desired, op.current, refs)

    def _commit(self, op: Operation, result: Optional[AppliedState]) -> None:
        """Registra el resultado en el State Store (único escritor)."""
        previous = op.current.revision if op.current is not None else 0
        if op.action == OperationAction.DELETE:
            self.store.delete(op.name, expected_revision=previous)
            return
        state = result.model_copy(update={
            "revision": previous + 1,
            "dependencies": sorted(op.desired.dependency_names()),
            "updated_at": datetime.now(timezone.utc),
        })
        self.store.put(op.name, state, expected_revision=previous)

    def _run_status(self, changeset: ChangeSet) -> RunStatus:
        statuses = [op.status for op in changeset]
        if OperationStatus.FAILED in statuses:
            return RunStatus.PARTIAL_FAILURE
        if OperationStatus.SKIPPED in statuses:
            return RunStatus.CANCELLED if self.cancel_event.is_set() else RunStatus.PARTIAL_FAILURE
        return RunStatus.SUCCEEDED
