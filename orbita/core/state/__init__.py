"""
State: almacén del último estado aplicado por recurso.
"""

from orbita.core.state.store import FileStateStore, MemoryStateStore, StateStore

__all__ = ["FileStateStore", "MemoryStateStore", "StateStore"]
