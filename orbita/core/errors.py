"""
Errores del motor de reconciliación.

El core solo define excepciones; la CLI se encarga del formato de salida
y de traducirlas a códigos de salida.
"""

from typing import List, Optional


class OrbitaError(Exception):
    """Error base de ORBITA."""
    pass


class ValidationError(OrbitaError):
    """Spec inválida: falla antes de cualquier llamada al provider."""

    def __init__(self, message: str, resource: Optional[str] = None, attribute: Optional[str] = None):
        self.resource = resource
        self.attribute = attribute
        prefix = ""
        if resource and attribute:
            prefix = f"{resource}.{attribute}: "
        elif resource:
            prefix = f"{resource}: "
        super().__init__(f"{prefix}{message}")


class ConfigError(OrbitaError):
    """Error de configuración (archivo faltante, formato inválido)."""
    pass


class CycleError(OrbitaError):
    """El grafo de dependencias no es acíclico."""

    def __init__(self, cycle: List[str]):
        self.cycle = list(cycle)
        super().__init__("Ciclo de dependencias: " + " -> ".join(self.cycle))


class StateConflictError(OrbitaError):
    """La revisión almacenada no coincide con la esperada (escritor concurrente)."""

    def __init__(self, name: str, expected: int, actual: int):
        self.name = name
        self.expected = expected
        self.actual = actual
        super().__init__(
            f"Conflicto de estado en '{name}': revisión esperada {expected}, encontrada {actual}"
        )


class OperationCancelled(OrbitaError):
    """La ejecución fue cancelada mientras la operación esperaba."""
    pass


class ProviderError(OrbitaError):
    """Error delegado desde un provider de infraestructura."""

    retryable = False


class TransientProviderError(ProviderError):
    """Rate limiting o lag de consistencia eventual: se reintenta."""

    retryable = True


class ProvisioningTimeout(ProviderError):
    """El recurso nunca alcanzó el estado esperado dentro del límite."""
    pass


class ProviderPermissionError(ProviderError):
    """Permisos insuficientes en el provider: no se reintenta."""
    pass


class NotFoundError(ProviderError):
    """El recurso no existe en el provider: no se reintenta."""
    pass
