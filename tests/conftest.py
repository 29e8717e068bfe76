"""Fixtures compartidas para los tests de ORBITA."""

from typing import Dict, List

import pytest

from orbita.core.reconcile import Reconciler, RetryPolicy
from orbita.core.resources.models import Ref, ResourceSpec
from orbita.core.state import MemoryStateStore
from orbita.providers.simulated import SimulatedCloud, build_simulated_provider
from tests.helpers import make_spec, no_sleep


@pytest.fixture
def scenario_specs() -> List[ResourceSpec]:
    """v1 → (s1, sg1) → alb1."""
    return [
        make_spec("v1", "vpc", cidr_block="10.0.0.0/16"),
        make_spec(
            "s1", "subnet",
            vpc=Ref("v1"), cidr_block="10.0.1.0/24", availability_zone="us-east-1a",
        ),
        make_spec(
            "sg1", "security_group",
            vpc=Ref("v1"), description="web", ingress=["tcp:443:0.0.0.0/0", "tcp:80:0.0.0.0/0"],
        ),
        make_spec(
            "alb1", "load_balancer",
            subnets=[Ref("s1")], security_groups=[Ref("sg1")],
        ),
    ]


@pytest.fixture
def scenario(scenario_specs) -> Dict[str, ResourceSpec]:
    return {s.name: s for s in scenario_specs}


@pytest.fixture
def store() -> MemoryStateStore:
    return MemoryStateStore()


@pytest.fixture
def cloud() -> SimulatedCloud:
    return SimulatedCloud()


@pytest.fixture
def provider(cloud):
    return build_simulated_provider(cloud, poll_interval=0, sleep=no_sleep)


@pytest.fixture
def retry_policy() -> RetryPolicy:
    return RetryPolicy(max_attempts=4, base_delay=0.5, multiplier=2.0, max_delay=10.0, jitter=0.1)


@pytest.fixture
def sleeps() -> List[float]:
    """Esperas de backoff registradas por el Reconciler."""
    return []


@pytest.fixture
def reconciler(provider, store, retry_policy, sleeps) -> Reconciler:
    return Reconciler(provider, store, retry=retry_policy, max_workers=4, sleep=sleeps.append)
