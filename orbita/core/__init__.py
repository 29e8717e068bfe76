"""
Core: lógica de reconciliación.

ENFORCEMENT (arquitectura limpia):
- Este paquete NO debe importar: orbita.cli ni orbita.providers.* (implementaciones).
- Permitido: typing, pathlib.Path, pydantic, yaml, orbita.core.*.
- Los providers y la CLI importan desde core; nunca al revés.
"""

from orbita.core.errors import (
    OrbitaError,
    ValidationError,
    ConfigError,
    CycleError,
    ProviderError,
    TransientProviderError,
)

__all__ = [
    "OrbitaError",
    "ValidationError",
    "ConfigError",
    "CycleError",
    "ProviderError",
    "TransientProviderError",
]
