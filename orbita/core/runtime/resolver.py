"""
Resolución de rutas de estado.

- state_root(): directorio canónico del State Store.
- config_file(): archivo de configuración opcional (orbita.yaml) del proyecto.

El estado real NUNCA vive dentro del repo del estado deseado; por defecto se
escribe en ~/.local/state/orbita/ (o $XDG_STATE_HOME/orbita/).
"""

import os
from pathlib import Path
from typing import Mapping, Optional

CONFIG_FILENAMES = ("orbita.yaml", "orbita.yml")


def state_root(environ: Optional[Mapping[str, str]] = None) -> Path:
    """
    Directorio raíz del estado.
    Resolución: ORBITA_STATE_DIR → $XDG_STATE_HOME/orbita → ~/.local/state/orbita.
    """
    env = os.environ if environ is None else environ
    explicit = env.get("ORBITA_STATE_DIR", "").strip()
    if explicit:
        return Path(explicit).expanduser()
    xdg = env.get("XDG_STATE_HOME", "").strip()
    if xdg:
        return Path(xdg).expanduser() / "orbita"
    return Path.home() / ".local" / "state" / "orbita"


def config_file(start: Optional[Path] = None) -> Optional[Path]:
    """orbita.yaml en el directorio actual (o `start`), si existe."""
    base = Path(start) if start else Path.cwd()
    for name in CONFIG_FILENAMES:
        candidate = base / name
        if candidate.exists():
            return candidate
    return None
