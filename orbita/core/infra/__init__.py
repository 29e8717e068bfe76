"""
Contratos y base para providers de infraestructura.

Los providers (simulated, ...) implementan estos contratos;
el core no depende de ningún provider concreto.
"""

from orbita.core.infra.contracts import Provider, ResourceAdapter
from orbita.core.infra.base import BaseAdapter, poll_until_ready

__all__ = ["Provider", "ResourceAdapter", "BaseAdapter", "poll_until_ready"]
