"""
Providers de infraestructura (implementaciones de orbita.core.infra).
"""

import time
from typing import Callable

from orbita.core.errors import ConfigError
from orbita.core.infra.contracts import Provider
from orbita.core.runtime.settings import Settings
from orbita.providers.simulated import SimulatedCloud, build_simulated_provider

SIMULATED_CLOUD_FILE = "simulated-cloud.json"


def create_provider(settings: Settings, sleep: Callable[[float], None] = time.sleep) -> Provider:
    """Instancia el provider configurado en settings.provider."""
    if settings.provider == "simulated":
        cloud = SimulatedCloud(path=settings.state_dir / SIMULATED_CLOUD_FILE)
        return build_simulated_provider(
            cloud,
            region=settings.region,
            poll_timeout=settings.poll_timeout,
            poll_interval=settings.poll_interval,
            sleep=sleep,
        )
    raise ConfigError(f"Provider desconocido: '{settings.provider}' (disponibles: simulated)")


__all__ = ["create_provider"]
