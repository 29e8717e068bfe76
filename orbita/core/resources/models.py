"""
Modelos de datos del motor (agnósticos de interfaz, filesystem y provider).

- ResourceSpec: estado deseado de un recurso (lo escribe el operador).
- AppliedState: último estado confirmado por el provider (lo escribe el Reconciler).
"""

from dataclasses import dataclass
from datetime import datetime
from enum import Enum
from typing import Any, Dict, FrozenSet, List, Optional, Set

from pydantic import BaseModel, ConfigDict, Field


class ResourceKind(str, Enum):
    """Tipos de recurso soportados."""
    VPC = "vpc"
    SUBNET = "subnet"
    SECURITY_GROUP = "security_group"
    LOAD_BALANCER = "load_balancer"
    LISTENER = "listener"
    TARGET_GROUP = "target_group"
    ECS_CLUSTER = "ecs_cluster"
    ECS_TASK_DEFINITION = "ecs_task_definition"
    ECS_SERVICE = "ecs_service"
    S3_BUCKET = "s3_bucket"
    RDS_INSTANCE = "rds_instance"
    PIPELINE = "pipeline"
    LOG_GROUP = "log_group"
    ALARM = "alarm"


@dataclass(frozen=True)
class Ref:
    """Referencia a otro ResourceSpec por nombre lógico (dependencia implícita)."""
    name: str

    def __str__(self) -> str:
        return f"!ref {self.name}"


def sort_key(value: Any) -> tuple:
    """Orden estable para elementos de conjuntos (str y Ref mezclados)."""
    if isinstance(value, Ref):
        return (1, value.name)
    return (0, str(value))


def collect_refs(value: Any) -> Set[str]:
    """Nombres referenciados con Ref en cualquier nivel de un valor."""
    if isinstance(value, Ref):
        return {value.name}
    found: Set[str] = set()
    if isinstance(value, dict):
        for v in value.values():
            found |= collect_refs(v)
    elif isinstance(value, (list, tuple, set, frozenset)):
        for v in value:
            found |= collect_refs(v)
    return found


def encode_value(value: Any) -> Any:
    """Convierte un valor de atributo a JSON (Ref y conjuntos con marcador)."""
    if isinstance(value, Ref):
        return {"$ref": value.name}
    if isinstance(value, (set, frozenset)):
        return {"$set": [encode_value(v) for v in sorted(value, key=sort_key)]}
    if isinstance(value, (list, tuple)):
        return [encode_value(v) for v in value]
    if isinstance(value, dict):
        return {k: encode_value(v) for k, v in value.items()}
    return value


def decode_value(value: Any) -> Any:
    """Inversa de encode_value."""
    if isinstance(value, dict):
        if set(value) == {"$ref"}:
            return Ref(value["$ref"])
        if set(value) == {"$set"}:
            return frozenset(decode_value(v) for v in value["$set"])
        return {k: decode_value(v) for k, v in value.items()}
    if isinstance(value, list):
        return [decode_value(v) for v in value]
    return value


class ResourceSpec(BaseModel):
    """Estado deseado de un recurso. El core nunca lo muta."""

    model_config = ConfigDict(frozen=True)

    name: str = Field(..., description="Nombre lógico único y estable (ej: alb1)")
    kind: ResourceKind
    attributes: Dict[str, Any] = Field(default_factory=dict)
    depends_on: FrozenSet[str] = Field(default_factory=frozenset, description="Dependencias explícitas")

    def references(self) -> Set[str]:
        """Dependencias implícitas: recursos referenciados desde atributos."""
        return collect_refs(self.attributes)

    def dependency_names(self) -> Set[str]:
        return set(self.depends_on) | self.references()


class AppliedState(BaseModel):
    """Último estado confirmado como vivo en el provider."""

    name: str
    kind: ResourceKind
    attributes: Dict[str, Any] = Field(default_factory=dict)
    provider_id: str = Field(..., description="Identificador opaco asignado por el provider")
    revision: int = Field(0, description="Se incrementa en cada apply exitoso")
    outputs: Dict[str, Any] = Field(default_factory=dict, description="Valores calculados (ARN, DNS); no se comparan")
    dependencies: List[str] = Field(default_factory=list, description="Dependencias resueltas al aplicar")
    updated_at: Optional[datetime] = None

    def to_record(self) -> Dict[str, Any]:
        """Registro JSON persistible."""
        data = self.model_dump(mode="json", exclude={"attributes", "outputs"})
        data["attributes"] = encode_value(self.attributes)
        data["outputs"] = encode_value(self.outputs)
        return data

    @classmethod
    def from_record(cls, data: Dict[str, Any]) -> "AppliedState":
        data = dict(data)
        data["attributes"] = decode_value(data.get("attributes") or {})
        data["outputs"] = decode_value(data.get("outputs") or {})
        return cls(**data)
