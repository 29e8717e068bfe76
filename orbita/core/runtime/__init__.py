"""
Runtime: resolución de rutas de estado y configuración del motor.
"""

from orbita.core.runtime.resolver import state_root, config_file
from orbita.core.runtime.settings import Settings, load_settings

__all__ = ["state_root", "config_file", "Settings", "load_settings"]
