"""
Resources: modelo de recursos, esquema por tipo, validación y carga del estado deseado.
"""

from orbita.core.resources.models import (
    AppliedState,
    Ref,
    ResourceKind,
    ResourceSpec,
)
from orbita.core.resources.schema import normalize_attributes, schema_for
from orbita.core.resources.validator import validate_name, validate_spec, validate_specs
from orbita.core.resources.loader import load_desired, parse_document

__all__ = [
    "AppliedState",
    "Ref",
    "ResourceKind",
    "ResourceSpec",
    "normalize_attributes",
    "schema_for",
    "validate_name",
    "validate_spec",
    "validate_specs",
    "load_desired",
    "parse_document",
]
