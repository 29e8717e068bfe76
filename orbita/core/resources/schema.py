"""
Esquema de atributos por tipo de recurso.

Cada atributo declara su tipo semántico, si es requerido, su valor por defecto
y, para referencias, qué tipos de recurso puede apuntar. El esquema decide
también la normalización usada por el Diff Engine: los conjuntos se comparan
sin orden, las listas con orden.
"""

import copy
from dataclasses import dataclass
from typing import Any, Dict, FrozenSet, Optional

from orbita.core.resources.models import ResourceKind

# Tipos semánticos de atributo
STR = "str"
INT = "int"
BOOL = "bool"
REF = "ref"
SET = "set"          # conjunto de str (sin orden)
REFSET = "refset"    # conjunto de Ref (sin orden)
LIST = "list"        # secuencia (con orden)
MAP = "map"

SET_TYPES = frozenset({SET, REFSET})


@dataclass(frozen=True)
class Attr:
    type: str
    required: bool = False
    default: Any = None
    targets: FrozenSet[ResourceKind] = frozenset()


def _req(type_: str, *targets: ResourceKind) -> Attr:
    return Attr(type_, required=True, targets=frozenset(targets))


def _opt(type_: str, default: Any = None, *targets: ResourceKind) -> Attr:
    return Attr(type_, default=default, targets=frozenset(targets))


K = ResourceKind

_TAGS = _opt(MAP, {})

SCHEMAS: Dict[ResourceKind, Dict[str, Attr]] = {
    K.VPC: {
        "cidr_block": _req(STR),
        "enable_dns_support": _opt(BOOL, True),
        "enable_dns_hostnames": _opt(BOOL, True),
        "tags": _TAGS,
    },
    K.SUBNET: {
        "vpc": _req(REF, K.VPC),
        "cidr_block": _req(STR),
        "availability_zone": _req(STR),
        "map_public_ip_on_launch": _opt(BOOL, False),
        "tags": _TAGS,
    },
    K.SECURITY_GROUP: {
        "vpc": _req(REF, K.VPC),
        "description": _req(STR),
        "ingress": _opt(SET, []),
        "egress": _opt(SET, ["all:0:0.0.0.0/0"]),
        "source_groups": _opt(REFSET, [], K.SECURITY_GROUP),
        "tags": _TAGS,
    },
    K.LOAD_BALANCER: {
        "subnets": _req(REFSET, K.SUBNET),
        "security_groups": _req(REFSET, K.SECURITY_GROUP),
        "scheme": _opt(STR, "internet-facing"),
        "type": _opt(STR, "application"),
        "idle_timeout": _opt(INT, 60),
        "tags": _TAGS,
    },
    K.TARGET_GROUP: {
        "vpc": _req(REF, K.VPC),
        "port": _req(INT),
        "protocol": _req(STR),
        "target_type": _opt(STR, "ip"),
        "health_check_path": _opt(STR, "/"),
        "tags": _TAGS,
    },
    K.LISTENER: {
        "load_balancer": _req(REF, K.LOAD_BALANCER),
        "port": _req(INT),
        "protocol": _req(STR),
        "default_target_group": _req(REF, K.TARGET_GROUP),
        "certificate_arn": _opt(STR),
        "rules": _opt(LIST, []),
    },
    K.ECS_CLUSTER: {
        "container_insights": _opt(BOOL, False),
        "tags": _TAGS,
    },
    K.ECS_TASK_DEFINITION: {
        "family": _req(STR),
        "image": _req(STR),
        "cpu": _req(INT),
        "memory": _req(INT),
        "container_port": _opt(INT, 80),
        "network_mode": _opt(STR, "awsvpc"),
        "environment": _opt(MAP, {}),
        "secrets": _opt(MAP, {}),
        "log_group": _opt(REF, None, K.LOG_GROUP),
    },
    K.ECS_SERVICE: {
        "cluster": _req(REF, K.ECS_CLUSTER),
        "task_definition": _req(REF, K.ECS_TASK_DEFINITION),
        "subnets": _req(REFSET, K.SUBNET),
        "security_groups": _req(REFSET, K.SECURITY_GROUP),
        "desired_count": _opt(INT, 1),
        "launch_type": _opt(STR, "FARGATE"),
        "assign_public_ip": _opt(BOOL, False),
        "target_group": _opt(REF, None, K.TARGET_GROUP),
    },
    K.S3_BUCKET: {
        "bucket_name": _req(STR),
        "versioning": _opt(BOOL, False),
        "block_public_access": _opt(BOOL, True),
        "website_index": _opt(STR),
        "tags": _TAGS,
    },
    K.RDS_INSTANCE: {
        "engine": _req(STR),
        "engine_version": _opt(STR),
        "instance_class": _req(STR),
        "allocated_storage": _req(INT),
        "subnets": _req(REFSET, K.SUBNET),
        "security_groups": _req(REFSET, K.SECURITY_GROUP),
        "db_name": _opt(STR),
        "master_username": _opt(STR, "admin"),
        "master_password_ref": _opt(STR),
        "multi_az": _opt(BOOL, False),
        "publicly_accessible": _opt(BOOL, False),
        "tags": _TAGS,
    },
    K.PIPELINE: {
        "source_repository": _req(STR),
        "branch": _req(STR),
        "stages": _opt(LIST, ["source", "build", "deploy"]),
        "buildspec": _opt(STR, "buildspec.yml"),
        "artifact_bucket": _opt(REF, None, K.S3_BUCKET),
        "deploy_service": _opt(REF, None, K.ECS_SERVICE),
    },
    K.LOG_GROUP: {
        "retention_days": _opt(INT, 14),
        "tags": _TAGS,
    },
    K.ALARM: {
        "metric_name": _req(STR),
        "namespace": _req(STR),
        "threshold": _req(INT),
        "comparison": _req(STR),
        "statistic": _opt(STR, "Average"),
        "period": _opt(INT, 60),
        "evaluation_periods": _opt(INT, 1),
        "target": _opt(REF, None),
        "actions": _opt(SET, []),
    },
}


def schema_for(kind: ResourceKind) -> Dict[str, Attr]:
    return SCHEMAS[ResourceKind(kind)]


def _normalize_value(attr: Optional[Attr], value: Any) -> Any:
    if attr is not None and attr.type in SET_TYPES:
        return frozenset(value)
    if isinstance(value, (set, frozenset)):
        return frozenset(value)
    if isinstance(value, tuple):
        return list(value)
    return value


def normalize_attributes(kind: ResourceKind, attributes: Dict[str, Any]) -> Dict[str, Any]:
    """
    Forma canónica para comparar: aplica defaults, descarta None y
    convierte los atributos de tipo conjunto a frozenset.
    """
    schema = schema_for(kind)
    merged: Dict[str, Any] = dict(attributes)
    for key, attr in schema.items():
        if key not in merged and attr.default is not None:
            merged[key] = copy.deepcopy(attr.default)

    normalized: Dict[str, Any] = {}
    for key, value in merged.items():
        if value is None:
            continue
        normalized[key] = _normalize_value(schema.get(key), value)
    return normalized
