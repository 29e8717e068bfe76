"""
Tests del Reconciler contra la nube simulada.

Cubren convergencia, idempotencia, orden entre dependencias, reintentos,
fallos no transitorios, cancelación y esperas de readiness.
"""

import threading

import pytest

from orbita.core.errors import ProviderPermissionError, TransientProviderError
from orbita.core.plan import OperationAction, OperationStatus, build_destroy_plan, build_plan
from orbita.core.reconcile import Reconciler, RetryPolicy, RunStatus
from orbita.core.resources.models import Ref
from orbita.core.resources.schema import normalize_attributes
from orbita.providers.simulated import SimulatedCloud, build_simulated_provider
from tests.helpers import make_spec, no_sleep


def apply(reconciler, specs, store):
    return reconciler.run(build_plan(specs, store))


class TestConvergence:
    """Aplicar el plan deja el State Store igual al estado deseado."""

    def test_applied_state_matches_desired(self, reconciler, scenario_specs, store):
        result = apply(reconciler, scenario_specs, store)

        assert result.status == RunStatus.SUCCEEDED
        assert result.exit_code == 0
        for spec in scenario_specs:
            applied = store.get(spec.name)
            assert applied.attributes == normalize_attributes(spec.kind, spec.attributes)
            assert applied.revision == 1
            assert applied.dependencies == sorted(spec.dependency_names())
            assert applied.updated_at is not None

    def test_second_plan_is_all_noop(self, reconciler, scenario_specs, store):
        apply(reconciler, scenario_specs, store)
        second = build_plan(scenario_specs, store)
        assert not second.has_changes
        assert {op.action for op in second} == {OperationAction.NOOP}

    def test_provider_ids_and_outputs(self, reconciler, scenario_specs, store, cloud):
        apply(reconciler, scenario_specs, store)

        assert store.get("v1").provider_id.startswith("vpc-")
        alb = store.get("alb1")
        assert alb.provider_id.startswith("arn:aws:elasticloadbalancing:us-east-1:")
        assert alb.outputs["dns_name"].endswith(".us-east-1.elb.amazonaws.com")
        assert alb.outputs["subnets_id"] == [store.get("s1").provider_id]
        assert cloud.count() == 4

    def test_update_bumps_revision(self, reconciler, scenario_specs, scenario, store):
        apply(reconciler, scenario_specs, store)
        sg = make_spec(
            "sg1", "security_group",
            vpc=Ref("v1"), description="web", ingress=["tcp:443:0.0.0.0/0"],
        )
        specs = [sg if s.name == "sg1" else s for s in scenario_specs]
        changeset = build_plan(specs, store)
        assert [op.name for op in changeset.by_action(OperationAction.UPDATE)] == ["sg1"]

        result = reconciler.run(changeset)
        assert result.status == RunStatus.SUCCEEDED
        assert store.get("sg1").revision == 2
        assert store.get("sg1").attributes["ingress"] == frozenset({"tcp:443:0.0.0.0/0"})
        assert store.get("alb1").revision == 1

    def test_orphan_is_deleted(self, reconciler, scenario_specs, store, cloud):
        apply(reconciler, scenario_specs, store)
        remaining = [s for s in scenario_specs if s.name != "alb1"]

        result = apply(reconciler, remaining, store)

        assert result.status == RunStatus.SUCCEEDED
        assert store.get("alb1") is None
        assert cloud.count("load_balancer") == 0

    def test_destroy_removes_everything(self, reconciler, scenario_specs, store, cloud):
        apply(reconciler, scenario_specs, store)

        result = reconciler.run(build_destroy_plan(store))

        assert result.status == RunStatus.SUCCEEDED
        assert store.list() == []
        assert cloud.count() == 0
        deleted_alb = result.event("alb1", OperationStatus.SUCCEEDED)
        assert deleted_alb.seq < result.event("sg1", OperationStatus.IN_PROGRESS).seq
        assert deleted_alb.seq < result.event("s1", OperationStatus.IN_PROGRESS).seq

    def test_destroy_tolerates_out_of_band_removal(self, reconciler, scenario_specs, store, cloud):
        apply(reconciler, scenario_specs, store)
        cloud.remove_out_of_band("load_balancer", "alb1")

        result = reconciler.run(build_destroy_plan(store))

        assert result.status == RunStatus.SUCCEEDED
        assert store.list() == []

    def test_create_adopts_existing_resource(self, reconciler, scenario_specs, store, cloud):
        apply(reconciler, scenario_specs, store)
        store.delete("v1")

        result = apply(reconciler, scenario_specs, store)

        assert result.status == RunStatus.SUCCEEDED
        assert cloud.count("vpc") == 1
        assert store.get("v1").revision == 1


class TestOrdering:
    """Una dependencia termina (y se registra) antes de que arranque su dependiente."""

    def test_dependencies_happen_before_dependents(self, reconciler, scenario_specs, store):
        result = apply(reconciler, scenario_specs, store)

        for spec in scenario_specs:
            started = result.event(spec.name, OperationStatus.IN_PROGRESS)
            for dep in spec.dependency_names():
                finished = result.event(dep, OperationStatus.SUCCEEDED)
                assert finished.seq < started.seq
                assert finished.at <= started.at

    def test_state_is_committed_before_dependents_start(self, provider, scenario_specs, store, sleeps):
        seen = {}
        original = provider.create

        def create(spec, refs):
            for name in spec.dependency_names():
                seen[(spec.name, name)] = store.get(name) is not None
            return original(spec, refs)

        provider.create = create
        reconciler = Reconciler(provider, store, max_workers=4, sleep=sleeps.append)
        apply(reconciler, scenario_specs, store)

        assert seen
        assert all(seen.values())

    def test_independent_branches_run_in_parallel(self, provider, scenario_specs, store, sleeps):
        """s1 y sg1 solo dependen de v1: deben estar en vuelo a la vez."""
        lock = threading.Lock()
        active = set()
        overlaps = []
        both_started = threading.Barrier(2, timeout=5)
        original = provider.create

        def create(spec, refs):
            with lock:
                active.add(spec.name)
                overlaps.append(set(active))
            try:
                if spec.name in ("s1", "sg1"):
                    both_started.wait()
                return original(spec, refs)
            finally:
                with lock:
                    active.discard(spec.name)

        provider.create = create
        reconciler = Reconciler(provider, store, max_workers=4, sleep=sleeps.append)
        result = apply(reconciler, scenario_specs, store)

        assert result.status == RunStatus.SUCCEEDED
        assert any({"s1", "sg1"} <= seen for seen in overlaps)
        assert all(seen == {"v1"} for seen in overlaps if "v1" in seen)
        assert all(seen == {"alb1"} for seen in overlaps if "alb1" in seen)

    def test_operation_timestamps(self, reconciler, scenario_specs, store):
        result = apply(reconciler, scenario_specs, store)
        for op in result.operations:
            assert op.started_at is not None
            assert op.finished_at >= op.started_at


class TestFailures:
    """Reintentos de errores transitorios y fallos que omiten dependientes."""

    def test_transient_error_twice_then_success(self, reconciler, scenario_specs, store, cloud, retry_policy, sleeps):
        cloud.inject("alb1", TransientProviderError("Throttling: Rate exceeded"), times=2, operation="create")

        result = apply(reconciler, scenario_specs, store)

        alb = next(op for op in result.operations if op.name == "alb1")
        assert alb.status == OperationStatus.SUCCEEDED
        assert alb.attempts == 3
        assert alb.backoff_total >= retry_policy.minimum_backoff(2)
        assert len(sleeps) == 2
        assert result.status == RunStatus.SUCCEEDED
        assert cloud.count("load_balancer") == 1

    def test_retries_are_bounded(self, reconciler, scenario_specs, store, cloud, retry_policy):
        cloud.inject("v1", TransientProviderError("Throttling"), times=10, operation="create")

        result = apply(reconciler, scenario_specs, store)

        v1 = result.operations[0]
        assert v1.status == OperationStatus.FAILED
        assert v1.attempts == retry_policy.max_attempts
        assert "TransientProviderError" in v1.error
        assert {op.status for op in result.operations[1:]} == {OperationStatus.SKIPPED}

    def test_permission_error_skips_dependents(self, reconciler, scenario_specs, store, cloud, sleeps):
        cloud.inject("sg1", ProviderPermissionError("AccessDenied: ec2:CreateSecurityGroup"), operation="create")

        result = apply(reconciler, scenario_specs, store)
        status = {op.name: op for op in result.operations}

        assert status["sg1"].status == OperationStatus.FAILED
        assert status["sg1"].attempts == 1
        assert "AccessDenied" in status["sg1"].error
        assert status["alb1"].status == OperationStatus.SKIPPED
        assert status["alb1"].attempts == 0
        assert status["s1"].status == OperationStatus.SUCCEEDED
        assert result.status == RunStatus.PARTIAL_FAILURE
        assert result.exit_code == 1
        assert sleeps == []
        assert store.get("sg1") is None
        assert store.get("alb1") is None
        assert store.get("s1") is not None
        assert cloud.count("load_balancer") == 0

    def test_failed_run_is_resumed_by_next_plan(self, reconciler, scenario_specs, store, cloud):
        cloud.inject("sg1", ProviderPermissionError("AccessDenied"), operation="create")
        apply(reconciler, scenario_specs, store)

        changeset = build_plan(scenario_specs, store)
        assert [op.name for op in changeset.by_action(OperationAction.CREATE)] == ["sg1", "alb1"]

        result = reconciler.run(changeset)
        assert result.status == RunStatus.SUCCEEDED

    def test_unexpected_exception_fails_operation(self, provider, scenario_specs, store):
        def explode(spec, refs):
            raise RuntimeError("boom")

        provider.create = explode
        result = Reconciler(provider, store, sleep=no_sleep).run(build_plan(scenario_specs, store))

        assert result.operations[0].status == OperationStatus.FAILED
        assert "RuntimeError: boom" in result.operations[0].error
        assert result.status == RunStatus.PARTIAL_FAILURE


class TestReadiness:
    """Recursos asíncronos: espera acotada hasta 'listo'."""

    def test_waits_until_ready(self, scenario_specs, store):
        cloud = SimulatedCloud(ready_after=3)
        provider = build_simulated_provider(cloud, poll_interval=0, sleep=no_sleep)

        result = Reconciler(provider, store, sleep=no_sleep).run(build_plan(scenario_specs, store))

        assert result.status == RunStatus.SUCCEEDED

    def test_provisioning_timeout(self, scenario_specs, store):
        cloud = SimulatedCloud(ready_after=5)
        impatient = build_simulated_provider(cloud, poll_timeout=0, poll_interval=0, sleep=no_sleep)

        result = Reconciler(impatient, store, sleep=no_sleep).run(build_plan(scenario_specs, store))
        alb = next(op for op in result.operations if op.name == "alb1")

        assert alb.status == OperationStatus.FAILED
        assert alb.attempts == 1
        assert "ProvisioningTimeout" in alb.error
        assert result.status == RunStatus.PARTIAL_FAILURE

        # El ALB quedó creado en el provider: el siguiente apply lo adopta
        patient = build_simulated_provider(cloud, poll_interval=0, sleep=no_sleep)
        result = Reconciler(patient, store, sleep=no_sleep).run(build_plan(scenario_specs, store))
        assert result.status == RunStatus.SUCCEEDED
        assert cloud.count("load_balancer") == 1


class TestCancellation:
    """Cancelar: lo pendiente pasa a Skipped, lo completado no se revierte."""

    def test_cancel_before_run(self, reconciler, scenario_specs, store, cloud):
        reconciler.cancel()

        result = apply(reconciler, scenario_specs, store)

        assert {op.status for op in result.operations} == {OperationStatus.SKIPPED}
        assert result.status == RunStatus.CANCELLED
        assert result.exit_code == 1
        assert cloud.count() == 0

    def test_cancel_during_backoff(self, provider, scenario_specs, store, cloud):
        cloud.inject("s1", TransientProviderError("Throttling"), operation="create")
        reconciler = Reconciler(provider, store, max_workers=1, sleep=lambda delay: reconciler.cancel())

        result = apply(reconciler, scenario_specs, store)
        status = {op.name: op.status for op in result.operations}

        assert status["v1"] == OperationStatus.SUCCEEDED
        assert status["s1"] == OperationStatus.SKIPPED
        assert status["alb1"] == OperationStatus.SKIPPED
        assert result.status == RunStatus.CANCELLED
        assert store.get("v1") is not None
        assert store.get("s1") is None

    def test_in_flight_operation_finishes(self, provider, scenario_specs, store):
        original = provider.create

        def create(spec, refs):
            applied = original(spec, refs)
            if spec.name == "v1":
                reconciler.cancel()
            return applied

        provider.create = create
        reconciler = Reconciler(provider, store, sleep=no_sleep)

        result = apply(reconciler, scenario_specs, store)
        status = {op.name: op.status for op in result.operations}

        assert status["v1"] == OperationStatus.SUCCEEDED
        assert store.get("v1").revision == 1
        assert {status["s1"], status["sg1"], status["alb1"]} == {OperationStatus.SKIPPED}
        assert result.status == RunStatus.CANCELLED


@pytest.mark.parametrize("workers", [1, 2, 8])
def test_converges_with_any_pool_size(provider, scenario_specs, store, workers):
    result = Reconciler(provider, store, max_workers=workers, sleep=no_sleep).run(build_plan(scenario_specs, store))
    assert result.status == RunStatus.SUCCEEDED
    assert len(store.list()) == 4
