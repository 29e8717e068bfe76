"""
Configuración del motor.

Precedencia: defaults < orbita.yaml (o --config) < variables ORBITA_* < flags de la CLI.
"""

import logging
import os
from pathlib import Path
from typing import Any, Dict, Mapping, Optional

import yaml
from pydantic import BaseModel, Field
from pydantic import ValidationError as PydanticValidationError

from orbita.core.errors import ConfigError
from orbita.core.reconcile.retry import RetryPolicy
from orbita.core.runtime.resolver import config_file, state_root

logger = logging.getLogger(__name__)

# Variable de entorno -> (sección, clave)
ENV_VARS = {
    "ORBITA_PROVIDER": (None, "provider"),
    "ORBITA_REGION": (None, "region"),
    "ORBITA_MAX_WORKERS": (None, "max_workers"),
    "ORBITA_POLL_TIMEOUT": (None, "poll_timeout"),
    "ORBITA_POLL_INTERVAL": (None, "poll_interval"),
    "ORBITA_RETRY_MAX_ATTEMPTS": ("retry", "max_attempts"),
    "ORBITA_RETRY_BASE_DELAY": ("retry", "base_delay"),
    "ORBITA_RETRY_MAX_DELAY": ("retry", "max_delay"),
}


class Settings(BaseModel):
    state_dir: Path = Field(default_factory=state_root, description="Directorio del State Store")
    provider: str = Field("simulated", description="Provider de infraestructura")
    region: str = Field("us-east-1")
    max_workers: int = Field(4, ge=1, description="Operaciones en paralelo")
    poll_timeout: float = Field(300.0, gt=0, description="Límite de espera hasta 'listo' (s)")
    poll_interval: float = Field(5.0, ge=0)
    retry: RetryPolicy = Field(default_factory=RetryPolicy)


def _read_config(path: Path) -> Dict[str, Any]:
    try:
        with open(path, "r") as f:
            data = yaml.safe_load(f) or {}
    except (OSError, yaml.YAMLError) as e:
        raise ConfigError(f"Error al cargar {path}: {e}") from e
    if not isinstance(data, dict):
        raise ConfigError(f"{path}: la configuración debe ser un mapa")
    return data


def load_settings(
    config_path: Optional[Path] = None,
    environ: Optional[Mapping[str, str]] = None,
    overrides: Optional[Mapping[str, Any]] = None,
) -> Settings:
    """
    Construye Settings combinando archivo, entorno y overrides.

    Raises:
        ConfigError: archivo inexistente/ilegible o valores inválidos.
    """
    env = os.environ if environ is None else environ
    data: Dict[str, Any] = {}

    if config_path is not None:
        if not Path(config_path).exists():
            raise ConfigError(f"Archivo de configuración no encontrado: {config_path}")
        data.update(_read_config(Path(config_path)))
    else:
        found = config_file()
        if found:
            logger.debug("Usando configuración %s", found)
            data.update(_read_config(found))

    data.setdefault("state_dir", state_root(env))
    retry = dict(data.get("retry") or {})
    for var, (section, key) in ENV_VARS.items():
        value = env.get(var)
        if value is None or value == "":
            continue
        if section == "retry":
            retry[key] = value
        else:
            data[key] = value
    if retry:
        data["retry"] = retry

    for key, value in (overrides or {}).items():
        if value is not None:
            data[key] = value

    try:
        return Settings(**data)
    except PydanticValidationError as e:
        raise ConfigError(f"Configuración inválida: {e}") from e
