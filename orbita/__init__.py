"""
ORBITA - Motor de reconciliación de infraestructura declarativa.

Arquitectura:
- orbita.core: modelo de recursos, plan, State Store y reconciler (sin I/O de CLI)
- orbita.providers: implementaciones de provider (simulado)
- orbita.cli: comandos typer
"""

__version__ = "0.1.0"
