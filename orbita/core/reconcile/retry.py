"""
Política de reintentos con backoff exponencial.

Solo los errores transitorios del provider (rate limiting, lag de consistencia
eventual) se reintentan; el resto falla al primer intento.
"""

import random
from typing import Callable

from pydantic import BaseModel, Field

from orbita.core.errors import OrbitaError


class RetryPolicy(BaseModel):
    """Valores por defecto ilustrativos; todos configurables."""
    max_attempts: int = Field(5, ge=1, description="Intentos totales (incluye el primero)")
    base_delay: float = Field(0.5, ge=0, description="Espera tras el primer fallo (s)")
    multiplier: float = Field(2.0, ge=1)
    max_delay: float = Field(30.0, ge=0)
    jitter: float = Field(0.1, ge=0, description="Fracción aleatoria añadida sobre la espera base")

    def base_schedule(self, failed_attempt: int) -> float:
        """Espera base tras el intento fallido número `failed_attempt` (1-based)."""
        return min(self.base_delay * (self.multiplier ** (failed_attempt - 1)), self.max_delay)

    def delay(self, failed_attempt: int, rng: Callable[[], float] = random.random) -> float:
        """Espera con jitter aditivo: nunca menor que la base."""
        base = self.base_schedule(failed_attempt)
        return base + base * self.jitter * rng()

    def minimum_backoff(self, retries: int) -> float:
        """Espera total mínima para `retries` reintentos."""
        return sum(self.base_schedule(n) for n in range(1, retries + 1))

    def should_retry(self, error: Exception, attempt: int) -> bool:
        return (
            isinstance(error, OrbitaError)
            and getattr(error, "retryable", False)
            and attempt < self.max_attempts
        )
