"""
Adapters por tipo de recurso sobre la nube simulada.

Cada adapter solo declara cómo se identifica su recurso (prefijo o ARN),
si debe esperar a que esté listo y qué valores calculados expone.
"""

import logging
import secrets
import time
from typing import Any, Callable, Dict, List, Optional, Type

from orbita.core.errors import NotFoundError
from orbita.core.infra.base import BaseAdapter
from orbita.core.infra.contracts import Provider
from orbita.core.resources.models import ResourceKind
from orbita.providers.simulated.cloud import ACCOUNT_ID, SimulatedCloud

logger = logging.getLogger(__name__)


def _plain(value: Any) -> Any:
    """Valores resueltos aptos para JSON (conjuntos → listas ordenadas)."""
    if isinstance(value, (set, frozenset)):
        return sorted(value)
    return value


class SimulatedAdapter(BaseAdapter):
    """Implementa los hooks de BaseAdapter sobre SimulatedCloud."""

    id_prefix: str = ""
    arn_service: Optional[str] = None
    arn_resource: str = ""

    def __init__(self, cloud: SimulatedCloud, region: str = "us-east-1", **kwargs):
        super().__init__(**kwargs)
        self.cloud = cloud
        self.region = region

    def _new_id(self, name: str, attributes: Dict[str, Any]) -> str:
        if self.arn_service:
            token = secrets.token_hex(8)
            return f"arn:aws:{self.arn_service}:{self.region}:{ACCOUNT_ID}:{self.arn_resource}/{name}/{token}"
        return self.cloud.new_id(self.id_prefix)

    def _outputs(self, provider_id: str, attributes: Dict[str, Any], resolved: Dict[str, Any]) -> Dict[str, Any]:
        """Ids resueltos de las referencias, como <atributo>_id."""
        return {
            f"{key}_id": _plain(value)
            for key, value in resolved.items()
            if value != attributes.get(key)
        }

    def _find(self, name: str) -> Optional[str]:
        return self.cloud.find(self.kind.value, name)

    def _provision(self, name: str, attributes: Dict[str, Any], resolved: Dict[str, Any]) -> str:
        provider_id = self._new_id(name, attributes)
        return self.cloud.create(
            self.kind.value,
            name,
            provider_id,
            attributes,
            self._outputs(provider_id, attributes, resolved),
            asynchronous=self.waits_for_ready,
        )

    def _modify(self, provider_id: str, attributes: Dict[str, Any], resolved: Dict[str, Any]) -> str:
        self.cloud.update(provider_id, attributes, self._outputs(provider_id, attributes, resolved))
        return provider_id

    def _remove(self, provider_id: str) -> None:
        self.cloud.delete(provider_id)

    def _read(self, provider_id: str) -> Optional[Dict[str, Any]]:
        return self.cloud.get(provider_id)

    def _is_ready(self, provider_id: str) -> bool:
        return self.cloud.poll(provider_id)


class VpcAdapter(SimulatedAdapter):
    kind = ResourceKind.VPC
    id_prefix = "vpc"


class SubnetAdapter(SimulatedAdapter):
    kind = ResourceKind.SUBNET
    id_prefix = "subnet"


class SecurityGroupAdapter(SimulatedAdapter):
    kind = ResourceKind.SECURITY_GROUP
    id_prefix = "sg"


class LoadBalancerAdapter(SimulatedAdapter):
    """Un ALB recién creado no resuelve DNS hasta estar 'active'."""
    kind = ResourceKind.LOAD_BALANCER
    arn_service = "elasticloadbalancing"
    arn_resource = "loadbalancer/app"
    waits_for_ready = True

    def _outputs(self, provider_id, attributes, resolved):
        out = super()._outputs(provider_id, attributes, resolved)
        name, token = provider_id.split("/")[-2:]
        out["dns_name"] = f"{name}-{token[:8]}.{self.region}.elb.amazonaws.com"
        return out


class TargetGroupAdapter(SimulatedAdapter):
    kind = ResourceKind.TARGET_GROUP
    arn_service = "elasticloadbalancing"
    arn_resource = "targetgroup"


class ListenerAdapter(SimulatedAdapter):
    kind = ResourceKind.LISTENER
    arn_service = "elasticloadbalancing"
    arn_resource = "listener/app"


class EcsClusterAdapter(SimulatedAdapter):
    kind = ResourceKind.ECS_CLUSTER
    arn_service = "ecs"
    arn_resource = "cluster"


class EcsTaskDefinitionAdapter(SimulatedAdapter):
    """Cada cambio registra una nueva revisión de la familia."""
    kind = ResourceKind.ECS_TASK_DEFINITION
    arn_service = "ecs"
    arn_resource = "task-definition"

    def _outputs(self, provider_id, attributes, resolved):
        out = super()._outputs(provider_id, attributes, resolved)
        current = self.cloud.peek(provider_id)
        revision = (current or {}).get("outputs", {}).get("revision", 0) + 1
        out["revision"] = revision
        out["family_revision"] = f"{attributes['family']}:{revision}"
        return out


class EcsServiceAdapter(SimulatedAdapter):
    """Espera a que las tareas deseadas estén corriendo."""
    kind = ResourceKind.ECS_SERVICE
    arn_service = "ecs"
    arn_resource = "service"
    waits_for_ready = True

    def _outputs(self, provider_id, attributes, resolved):
        out = super()._outputs(provider_id, attributes, resolved)
        out["running_count"] = attributes.get("desired_count", 1)
        return out


class S3BucketAdapter(SimulatedAdapter):
    """El nombre del bucket es su identificador global."""
    kind = ResourceKind.S3_BUCKET

    def _new_id(self, name, attributes):
        return attributes["bucket_name"]

    def _outputs(self, provider_id, attributes, resolved):
        out = super()._outputs(provider_id, attributes, resolved)
        out["arn"] = f"arn:aws:s3:::{provider_id}"
        if attributes.get("website_index"):
            out["website_endpoint"] = f"{provider_id}.s3-website-{self.region}.amazonaws.com"
        return out

    def _modify(self, provider_id, attributes, resolved):
        if attributes["bucket_name"] == provider_id:
            return super()._modify(provider_id, attributes, resolved)
        # un bucket no se renombra: se crea el nuevo y luego se borra el anterior
        logger.info("Bucket %s renombrado a %s: se reemplaza", provider_id, attributes["bucket_name"])
        current = self.cloud.peek(provider_id)
        if current is None:
            raise NotFoundError(f"Recurso inexistente: {provider_id}")
        new_id = self._provision(current["name"], attributes, resolved)
        self.cloud.delete(provider_id)
        return new_id


class RdsInstanceAdapter(SimulatedAdapter):
    kind = ResourceKind.RDS_INSTANCE
    arn_service = "rds"
    arn_resource = "db"
    waits_for_ready = True

    _PORTS = {"postgres": 5432, "mysql": 3306, "mariadb": 3306}

    def _outputs(self, provider_id, attributes, resolved):
        out = super()._outputs(provider_id, attributes, resolved)
        name, token = provider_id.split("/")[-2:]
        out["endpoint"] = f"{name}.{token[:12]}.{self.region}.rds.amazonaws.com"
        out["port"] = self._PORTS.get(attributes.get("engine", ""), 5432)
        return out


class PipelineAdapter(SimulatedAdapter):
    kind = ResourceKind.PIPELINE
    arn_service = "codepipeline"
    arn_resource = "pipeline"


class LogGroupAdapter(SimulatedAdapter):
    kind = ResourceKind.LOG_GROUP
    arn_service = "logs"
    arn_resource = "log-group"


class AlarmAdapter(SimulatedAdapter):
    kind = ResourceKind.ALARM
    arn_service = "cloudwatch"
    arn_resource = "alarm"


ADAPTERS: List[Type[SimulatedAdapter]] = [
    VpcAdapter,
    SubnetAdapter,
    SecurityGroupAdapter,
    LoadBalancerAdapter,
    TargetGroupAdapter,
    ListenerAdapter,
    EcsClusterAdapter,
    EcsTaskDefinitionAdapter,
    EcsServiceAdapter,
    S3BucketAdapter,
    RdsInstanceAdapter,
    PipelineAdapter,
    LogGroupAdapter,
    AlarmAdapter,
]


def build_simulated_provider(
    cloud: Optional[SimulatedCloud] = None,
    region: str = "us-east-1",
    poll_timeout: float = 300.0,
    poll_interval: float = 5.0,
    sleep: Callable[[float], None] = time.sleep,
) -> Provider:
    """Provider con un adapter simulado por cada tipo de recurso."""
    cloud = cloud or SimulatedCloud()
    adapters = [
        cls(cloud, region=region, poll_timeout=poll_timeout, poll_interval=poll_interval, sleep=sleep)
        for cls in ADAPTERS
    ]
    return Provider("simulated", adapters)
