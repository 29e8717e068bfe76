"""
Validación de ResourceSpecs (lógica pura).

Sin I/O; solo reglas sobre estructuras de datos. Cada fallo levanta
ValidationError nombrando el recurso y el atributo ofensivo.
"""

import re
from typing import Any, Iterable, Mapping

from orbita.core.errors import ValidationError
from orbita.core.resources.models import Ref, ResourceSpec
from orbita.core.resources.schema import (
    BOOL, INT, LIST, MAP, REF, REFSET, SET, STR, Attr, schema_for,
)

_NAME_RE = re.compile(r"^[A-Za-z0-9][A-Za-z0-9_.-]*$")


def validate_name(name: str) -> None:
    """Valida que el nombre lógico sea seguro para paths y claves de estado."""
    if not name or not name.strip():
        raise ValidationError("El nombre lógico no puede estar vacío")
    if not _NAME_RE.match(name) or ".." in name:
        raise ValidationError(
            "El nombre lógico solo admite letras, dígitos, '_', '-' y '.'", resource=name
        )


def _check_type(spec: ResourceSpec, key: str, attr: Attr, value: Any) -> None:
    def fail(expected: str) -> None:
        raise ValidationError(
            f"se esperaba {expected}, recibido {type(value).__name__}",
            resource=spec.name,
            attribute=key,
        )

    if attr.type == STR and not isinstance(value, str):
        fail("cadena")
    # bool es subclase de int: se excluye explícitamente
    elif attr.type == INT and (isinstance(value, bool) or not isinstance(value, int)):
        fail("entero")
    elif attr.type == BOOL and not isinstance(value, bool):
        fail("booleano")
    elif attr.type == REF and not isinstance(value, Ref):
        fail("referencia (!ref nombre)")
    elif attr.type == MAP and not isinstance(value, dict):
        fail("mapa")
    elif attr.type == LIST and not isinstance(value, (list, tuple)):
        fail("lista")
    elif attr.type in (SET, REFSET):
        if not isinstance(value, (list, tuple, set, frozenset)):
            fail("conjunto")
        item_type = Ref if attr.type == REFSET else str
        for item in value:
            if not isinstance(item, item_type):
                raise ValidationError(
                    f"elemento inválido {item!r} en conjunto",
                    resource=spec.name,
                    attribute=key,
                )


def _check_reference(
    spec: ResourceSpec, key: str, attr: Attr, ref: Ref, known: Mapping[str, ResourceSpec]
) -> None:
    target = known.get(ref.name)
    if target is None:
        raise ValidationError(f"referencia a recurso inexistente '{ref.name}'", resource=spec.name, attribute=key)
    if ref.name == spec.name:
        raise ValidationError("un recurso no puede referenciarse a sí mismo", resource=spec.name, attribute=key)
    if attr.targets and target.kind not in attr.targets:
        allowed = ", ".join(sorted(k.value for k in attr.targets))
        raise ValidationError(
            f"'{ref.name}' es {target.kind.value}; se esperaba {allowed}",
            resource=spec.name,
            attribute=key,
        )


def validate_spec(spec: ResourceSpec, known: Mapping[str, ResourceSpec]) -> None:
    """
    Valida un ResourceSpec contra su esquema y el conjunto completo deseado.

    known: todos los ResourceSpecs deseados por nombre (para resolver dependencias).
    """
    validate_name(spec.name)
    schema = schema_for(spec.kind)

    for key in spec.attributes:
        if key not in schema:
            raise ValidationError("atributo desconocido", resource=spec.name, attribute=key)

    for key, attr in schema.items():
        value = spec.attributes.get(key)
        if value is None:
            if attr.required:
                raise ValidationError("atributo requerido ausente", resource=spec.name, attribute=key)
            continue
        _check_type(spec, key, attr, value)
        if attr.type == REF:
            _check_reference(spec, key, attr, value, known)
        elif attr.type == REFSET:
            for ref in value:
                _check_reference(spec, key, attr, ref, known)

    # Referencias anidadas en mapas/listas (sin tipo de destino)
    for name in spec.references():
        if name not in known:
            raise ValidationError(f"referencia a recurso inexistente '{name}'", resource=spec.name)

    for dep in sorted(spec.depends_on):
        if dep == spec.name:
            raise ValidationError("un recurso no puede depender de sí mismo", resource=spec.name, attribute="depends_on")
        if dep not in known:
            raise ValidationError(f"dependencia inexistente '{dep}'", resource=spec.name, attribute="depends_on")


def validate_specs(specs: Iterable[ResourceSpec]) -> None:
    """Valida el conjunto deseado completo; nombres duplicados incluidos."""
    known = {}
    for spec in specs:
        if spec.name in known:
            raise ValidationError("nombre lógico duplicado", resource=spec.name)
        known[spec.name] = spec
    for name in sorted(known):
        validate_spec(known[name], known)
