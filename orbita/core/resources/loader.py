"""
Loader del estado deseado.

Carga YAML (un archivo o un directorio de *.yaml) y lo convierte a ResourceSpecs.
Formato:

    version: 1
    resources:
      - name: v1
        kind: vpc
        attributes:
          cidr_block: 10.0.0.0/16
      - name: s1
        kind: subnet
        attributes:
          vpc: !ref v1          # o {ref: v1}
          cidr_block: 10.0.1.0/24
          availability_zone: us-east-1a

`resources` también puede ser un mapa nombre -> {kind, attributes, depends_on}.
"""

import logging
from pathlib import Path
from typing import Any, Dict, List, Union

import yaml
from pydantic import BaseModel, Field
from pydantic import ValidationError as PydanticValidationError

from orbita.core.errors import ConfigError, ValidationError
from orbita.core.resources.models import Ref, ResourceSpec

logger = logging.getLogger(__name__)

SUPPORTED_VERSIONS = {1}
_ENTRY_KEYS = {"name", "kind", "attributes", "depends_on"}


class _DesiredYamlLoader(yaml.SafeLoader):
    """SafeLoader con el tag !ref."""


def _construct_ref(loader: yaml.SafeLoader, node: yaml.Node) -> Ref:
    return Ref(str(loader.construct_scalar(node)).strip())


_DesiredYamlLoader.add_constructor("!ref", _construct_ref)


class DesiredDocument(BaseModel):
    """Documento raíz del estado deseado."""
    version: int = Field(1, description="Versión del esquema")
    resources: Union[List[Dict[str, Any]], Dict[str, Dict[str, Any]]] = Field(default_factory=list)


def _resolve_refs(value: Any) -> Any:
    """Convierte mapas {ref: nombre} en Ref."""
    if isinstance(value, dict):
        if set(value) == {"ref"} and isinstance(value["ref"], str):
            return Ref(value["ref"])
        return {k: _resolve_refs(v) for k, v in value.items()}
    if isinstance(value, list):
        return [_resolve_refs(v) for v in value]
    return value


def _read_yaml(path: Path) -> Dict[str, Any]:
    try:
        with open(path, "r") as f:
            data = yaml.load(f, Loader=_DesiredYamlLoader)
    except yaml.YAMLError as e:
        raise ConfigError(f"YAML inválido en {path}: {e}") from e
    except OSError as e:
        raise ConfigError(f"No se pudo leer {path}: {e}") from e
    if data is None:
        return {}
    if not isinstance(data, dict):
        raise ConfigError(f"{path}: el documento raíz debe ser un mapa")
    return data


def _entries(document: DesiredDocument) -> List[Dict[str, Any]]:
    if isinstance(document.resources, dict):
        entries = []
        for name, body in document.resources.items():
            entry = dict(body or {})
            entry.setdefault("name", name)
            entries.append(entry)
        return entries
    return list(document.resources)


def parse_resource(entry: Dict[str, Any]) -> ResourceSpec:
    """Convierte una entrada del documento en ResourceSpec."""
    name = entry.get("name")
    unknown = set(entry) - _ENTRY_KEYS
    if unknown:
        raise ValidationError(f"claves desconocidas: {', '.join(sorted(unknown))}", resource=name)
    try:
        return ResourceSpec(
            name=name,
            kind=entry.get("kind"),
            attributes=_resolve_refs(entry.get("attributes") or {}),
            depends_on=entry.get("depends_on") or [],
        )
    except PydanticValidationError as e:
        first = e.errors()[0]
        field = ".".join(str(p) for p in first.get("loc", ()))
        raise ValidationError(first.get("msg", str(e)), resource=name, attribute=field or None) from e


def parse_document(data: Dict[str, Any], source: str = "<memoria>") -> List[ResourceSpec]:
    try:
        document = DesiredDocument(**data)
    except PydanticValidationError as e:
        raise ConfigError(f"{source}: documento inválido: {e}") from e
    if document.version not in SUPPORTED_VERSIONS:
        raise ConfigError(f"{source}: versión de esquema no soportada: {document.version}")
    return [parse_resource(entry) for entry in _entries(document)]


def load_desired(path: Path) -> Dict[str, ResourceSpec]:
    """
    Carga el estado deseado desde un archivo o directorio.

    Returns:
        ResourceSpecs por nombre lógico.

    Raises:
        ConfigError: archivo faltante o YAML inválido.
        ValidationError: entradas inválidas o nombres duplicados.
    """
    path = Path(path)
    if path.is_dir():
        files = sorted(list(path.glob("*.yaml")) + list(path.glob("*.yml")))
        if not files:
            raise ConfigError(f"No hay archivos YAML en {path}")
    elif path.exists():
        files = [path]
    else:
        raise ConfigError(f"Estado deseado no encontrado: {path}")

    specs: Dict[str, ResourceSpec] = {}
    for file in files:
        for spec in parse_document(_read_yaml(file), source=str(file)):
            if spec.name in specs:
                raise ValidationError(f"nombre lógico duplicado (en {file.name})", resource=spec.name)
            specs[spec.name] = spec
        logger.debug("Estado deseado cargado desde %s", file)
    return specs
