"""
Provider simulado: nube en memoria con un adapter por tipo de recurso.
"""

from orbita.providers.simulated.cloud import SimulatedCloud
from orbita.providers.simulated.adapters import ADAPTERS, build_simulated_provider

__all__ = ["SimulatedCloud", "ADAPTERS", "build_simulated_provider"]
