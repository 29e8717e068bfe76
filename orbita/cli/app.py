"""
CLI de ORBITA.

Solo compone comandos; la lógica vive en orbita.core y orbita.providers.
Códigos de salida: 0 éxito, 1 fallo parcial/cancelación, 2 validación o configuración.
"""

import logging
import signal
import threading
from contextlib import contextmanager
from pathlib import Path
from typing import Dict, Optional

import typer
from dotenv import load_dotenv
from rich.console import Console
from rich.logging import RichHandler
from rich.markup import escape
from rich.panel import Panel
from rich.prompt import Confirm

from orbita import __version__
from orbita.cli.render import display_drift, render_plan, render_run, render_states
from orbita.core.errors import ConfigError, CycleError, OrbitaError, ValidationError
from orbita.core.plan import DependencyGraph, build_destroy_plan, build_plan, detect_drift
from orbita.core.plan.models import ChangeSet
from orbita.core.reconcile import Reconciler, RunStatus
from orbita.core.resources import load_desired, validate_specs
from orbita.core.runtime import Settings, load_settings
from orbita.core.state import FileStateStore
from orbita.providers import create_provider

DEFAULT_DESIRED = Path("infra.yaml")

EXIT_FAILURE = 1
EXIT_INVALID = 2

app = typer.Typer(
    name="orbita",
    help="ORBITA - Motor de reconciliación de infraestructura declarativa",
    add_completion=False,
    no_args_is_help=True,
)
state_app = typer.Typer(help="Inspección del State Store", no_args_is_help=True)
app.add_typer(state_app, name="state")

console = Console()
logger = logging.getLogger("orbita")


def _setup_logging(verbose: bool) -> None:
    level = logging.DEBUG if verbose else logging.WARNING
    handler = RichHandler(console=Console(stderr=True), show_path=False, rich_tracebacks=verbose)
    root = logging.getLogger("orbita")
    root.handlers = [handler]
    root.setLevel(level)
    root.propagate = False


def _settings(ctx: typer.Context) -> Settings:
    return ctx.obj["settings"]


def _fail(error: OrbitaError, code: int = EXIT_INVALID) -> None:
    console.print(f"[red]❌ {escape(str(error))}[/red]")
    raise typer.Exit(code=code)


def _store(settings: Settings) -> FileStateStore:
    try:
        return FileStateStore(settings.state_dir)
    except ConfigError as e:
        _fail(e)


@contextmanager
def _cancel_on_interrupt(reconciler: Reconciler):
    """Ctrl+C cancela la ejecución: lo en vuelo termina, lo pendiente se omite."""
    if threading.current_thread() is not threading.main_thread():
        yield
        return

    def _handler(signum, frame):
        console.print("\n[yellow]⚠️ Cancelando... esperando operaciones en vuelo[/yellow]")
        reconciler.cancel()

    previous = signal.signal(signal.SIGINT, _handler)
    try:
        yield
    finally:
        signal.signal(signal.SIGINT, previous)


def _execute(ctx: typer.Context, changeset: ChangeSet, store: FileStateStore, yes: bool, prompt: str) -> None:
    settings = _settings(ctx)
    if not changeset.has_changes:
        console.print("\n[green]✅ Sin cambios: la infraestructura ya coincide con el estado deseado[/green]")
        return

    if not yes and not Confirm.ask(f"\n¿{prompt}?", default=False):
        console.print("[yellow]Operación cancelada[/yellow]")
        raise typer.Exit(code=EXIT_FAILURE)

    try:
        provider = create_provider(settings)
    except ConfigError as e:
        _fail(e)

    reconciler = Reconciler(
        provider,
        store,
        retry=settings.retry,
        max_workers=settings.max_workers,
    )
    with _cancel_on_interrupt(reconciler):
        result = reconciler.run(changeset)

    console.print()
    render_run(result, console)
    if result.status != RunStatus.SUCCEEDED:
        raise typer.Exit(code=result.exit_code)


@app.callback()
def main_callback(
    ctx: typer.Context,
    config: Optional[Path] = typer.Option(None, "--config", "-c", help="Archivo de configuración (orbita.yaml)"),
    state_dir: Optional[Path] = typer.Option(None, "--state-dir", help="Directorio del State Store"),
    workers: Optional[int] = typer.Option(None, "--workers", "-w", help="Operaciones en paralelo"),
    verbose: bool = typer.Option(False, "--verbose", "-v", help="Logs detallados"),
):
    """Carga .env, configuración y logging para todos los comandos."""
    env_file = Path.cwd() / ".env"
    if env_file.exists():
        load_dotenv(env_file)
    _setup_logging(verbose)

    overrides: Dict[str, object] = {"state_dir": state_dir, "max_workers": workers}
    try:
        settings = load_settings(config_path=config, overrides=overrides)
    except ConfigError as e:
        _fail(e)
    logger.debug("Settings: %s", settings)
    ctx.obj = {"settings": settings}


@app.command()
def validate(
    file: Path = typer.Option(DEFAULT_DESIRED, "--file", "-f", help="Estado deseado (YAML o directorio)"),
):
    """Valida el estado deseado sin consultar el State Store"""
    try:
        specs = load_desired(file)
        validate_specs(specs.values())
        graph = DependencyGraph.from_specs(specs.values())
        graph.check()
    except (ValidationError, CycleError, ConfigError) as e:
        _fail(e)

    lines = [f"[bold]{i}.[/bold] " + ", ".join(level) for i, level in enumerate(graph.levels(), 1)]
    console.print(Panel.fit(
        f"[bold green]✅ {len(specs)} recursos válidos[/bold green]\n\n" + "\n".join(lines),
        title="Orden de aplicación",
        border_style="green",
    ))


@app.command()
def plan(
    ctx: typer.Context,
    file: Path = typer.Option(DEFAULT_DESIRED, "--file", "-f", help="Estado deseado (YAML o directorio)"),
):
    """Muestra el plan de cambios sin aplicar nada"""
    settings = _settings(ctx)
    store = _store(settings)
    try:
        changeset = build_plan(load_desired(file).values(), store)
    except (ValidationError, CycleError, ConfigError) as e:
        _fail(e)

    console.print(Panel.fit(f"[bold cyan]Plan[/bold cyan] [dim]{file}[/dim]", border_style="cyan"))
    render_plan(changeset, console)


@app.command()
def apply(
    ctx: typer.Context,
    file: Path = typer.Option(DEFAULT_DESIRED, "--file", "-f", help="Estado deseado (YAML o directorio)"),
    yes: bool = typer.Option(False, "--yes", "-y", help="No pedir confirmación"),
):
    """Reconcilia la infraestructura con el estado deseado"""
    settings = _settings(ctx)
    store = _store(settings)
    try:
        changeset = build_plan(load_desired(file).values(), store)
    except (ValidationError, CycleError, ConfigError) as e:
        _fail(e)

    console.print(Panel.fit(f"[bold cyan]Apply[/bold cyan] [dim]{file}[/dim]", border_style="cyan"))
    render_plan(changeset, console)
    _execute(ctx, changeset, store, yes, "Aplicar estos cambios")


@app.command()
def destroy(
    ctx: typer.Context,
    yes: bool = typer.Option(False, "--yes", "-y", help="No pedir confirmación"),
):
    """Elimina todos los recursos del State Store (dependientes primero)"""
    settings = _settings(ctx)
    store = _store(settings)
    try:
        changeset = build_destroy_plan(store)
    except (CycleError, ConfigError) as e:
        _fail(e)

    console.print(Panel.fit("[bold red]Destroy[/bold red]", border_style="red"))
    render_plan(changeset, console, title="Recursos a eliminar")
    _execute(ctx, changeset, store, yes, "Eliminar TODOS estos recursos")


@app.command()
def drift(
    ctx: typer.Context,
    name: Optional[str] = typer.Argument(None, help="Recurso concreto (por defecto, todos)"),
):
    """Detecta cambios fuera de banda entre el estado aplicado y el real"""
    settings = _settings(ctx)
    store = _store(settings)
    try:
        provider = create_provider(settings)
        diffs = detect_drift(store, provider, name)
    except ConfigError as e:
        _fail(e)

    display_drift(diffs, console)
    if any(d.severity == "error" for d in diffs):
        raise typer.Exit(code=EXIT_FAILURE)


@state_app.command("list")
def state_list(ctx: typer.Context):
    """Lista los recursos registrados"""
    store = _store(_settings(ctx))
    try:
        states = store.list()
    except ConfigError as e:
        _fail(e)
    render_states(states, console)


@state_app.command("show")
def state_show(
    ctx: typer.Context,
    name: str = typer.Argument(..., help="Nombre del recurso"),
):
    """Muestra el AppliedState de un recurso"""
    store = _store(_settings(ctx))
    try:
        state = store.get(name)
    except ConfigError as e:
        _fail(e)
    if state is None:
        console.print(f"[red]❌ '{escape(name)}' no tiene estado aplicado[/red]")
        raise typer.Exit(code=EXIT_FAILURE)
    console.print_json(data=state.to_record())


@app.command()
def version(ctx: typer.Context):
    """Muestra la versión de ORBITA"""
    settings = _settings(ctx)
    console.print(Panel.fit(
        "[bold cyan]ORBITA[/bold cyan]\n"
        "[dim]Motor de reconciliación de infraestructura declarativa[/dim]\n\n"
        f"[bold]Versión:[/bold] {__version__}\n"
        f"[bold]Provider:[/bold] {settings.provider} ({settings.region})\n"
        f"[bold]Estado:[/bold] {settings.state_dir}",
        border_style="cyan"
    ))


def main():
    app()


if __name__ == "__main__":
    main()
