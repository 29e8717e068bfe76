"""
Salida legible (rich) de planes, ejecuciones, drift y estado.
"""

from typing import Any, List

from rich.console import Console
from rich.markup import escape
from rich.panel import Panel
from rich.table import Table

from orbita.core.plan.drift import StateDiff
from orbita.core.plan.models import ChangeSet, OperationAction, OperationStatus
from orbita.core.reconcile.reconciler import RunResult, RunStatus
from orbita.core.resources.models import AppliedState, Ref, sort_key

ACTION_STYLE = {
    OperationAction.CREATE: "[green]+ crear[/green]",
    OperationAction.UPDATE: "[yellow]~ actualizar[/yellow]",
    OperationAction.DELETE: "[red]- eliminar[/red]",
    OperationAction.NOOP: "[dim]= sin cambios[/dim]",
}

STATUS_STYLE = {
    OperationStatus.SUCCEEDED: "[green]✔ Succeeded[/green]",
    OperationStatus.FAILED: "[red]✘ Failed[/red]",
    OperationStatus.SKIPPED: "[yellow]⏭ Skipped[/yellow]",
    OperationStatus.NOOP: "[dim]= NoOp[/dim]",
    OperationStatus.PENDING: "[dim]Pending[/dim]",
    OperationStatus.IN_PROGRESS: "[cyan]InProgress[/cyan]",
}


def format_value(value: Any) -> str:
    if isinstance(value, Ref):
        return f"!ref {value.name}"
    if isinstance(value, (set, frozenset)):
        return "{" + ", ".join(format_value(v) for v in sorted(value, key=sort_key)) + "}"
    if isinstance(value, list):
        return "[" + ", ".join(format_value(v) for v in value) + "]"
    if value is None:
        return "∅"
    return str(value)


def render_plan(changeset: ChangeSet, console: Console, title: str = "Plan de cambios") -> None:
    """Muestra el ChangeSet y las oleadas de ejecución."""
    table = Table(title=title, show_header=True, header_style="bold cyan")
    table.add_column("#", style="cyan", width=4)
    table.add_column("Acción")
    table.add_column("Tipo", style="cyan")
    table.add_column("Recurso", style="bold")
    table.add_column("Detalle", style="yellow")

    for idx, op in enumerate(changeset, 1):
        detail = ""
        if op.action == OperationAction.UPDATE:
            detail = "\n".join(
                escape(f"{k}: {format_value(old)} → {format_value(new)}") for k, (old, new) in op.changes.items()
            )
        elif op.requires:
            detail = "[dim]tras " + ", ".join(sorted(op.requires)) + "[/dim]"
        table.add_row(str(idx), ACTION_STYLE[op.action], op.kind.value, op.name, detail)

    console.print(table)

    waves = [[op.name for op in wave if op.is_change] for wave in changeset.waves()]
    waves = [w for w in waves if w]
    if waves:
        lines = [f"[bold]{i}.[/bold] " + ", ".join(w) for i, w in enumerate(waves, 1)]
        console.print(Panel.fit("\n".join(lines), title="Oleadas (en paralelo)", border_style="cyan"))

    counts = changeset.counts()
    console.print(
        f"[bold]Resumen:[/bold] [green]{counts['create']} crear[/green], "
        f"[yellow]{counts['update']} actualizar[/yellow], "
        f"[red]{counts['delete']} eliminar[/red], "
        f"[dim]{counts['noop']} sin cambios[/dim]"
    )


def render_run(result: RunResult, console: Console) -> None:
    """Resumen de ejecución: estado final de cada operación y detalle de errores."""
    table = Table(title="Resumen de ejecución", show_header=True, header_style="bold cyan")
    table.add_column("Recurso", style="bold")
    table.add_column("Acción", style="cyan")
    table.add_column("Estado")
    table.add_column("Intentos", justify="right")
    table.add_column("Detalle", style="yellow")

    for op in result.operations:
        detail = escape(op.error or "")
        if op.status == OperationStatus.SUCCEEDED and op.backoff_total:
            detail = f"[dim]backoff {op.backoff_total:.2f}s[/dim]"
        table.add_row(op.name, op.action.value, STATUS_STYLE[op.status], str(op.attempts), detail)
    console.print(table)

    if result.status == RunStatus.SUCCEEDED:
        console.print("\n[bold green]✅ Reconciliación completada[/bold green]")
    elif result.status == RunStatus.CANCELLED:
        console.print("\n[yellow]⚠️ Ejecución cancelada: las operaciones pendientes se omitieron[/yellow]")
    else:
        console.print("\n[red]❌ Fallo parcial: revisa las operaciones Failed/Skipped[/red]")


def display_drift(diffs: List[StateDiff], console: Console) -> None:
    """Muestra drift agrupado por recurso."""
    if not diffs:
        console.print("[green]✅ No se detectó drift. Estado aplicado y real coinciden.[/green]")
        return

    by_resource = {}
    for diff in diffs:
        by_resource.setdefault(diff.resource_id, []).append(diff)

    for resource, resource_diffs in by_resource.items():
        table = Table(title=f"Drift detectado: {resource}", show_header=True, header_style="bold")
        table.add_column("Campo", style="cyan")
        table.add_column("Aplicado", style="green")
        table.add_column("Real", style="yellow")
        table.add_column("Severidad", style="red")

        for diff in resource_diffs:
            severity_style = {
                "error": "[red]ERROR[/red]",
                "warning": "[yellow]WARNING[/yellow]",
                "info": "[blue]INFO[/blue]"
            }.get(diff.severity, diff.severity)
            table.add_row(
                diff.field, escape(format_value(diff.desired)), escape(format_value(diff.actual)), severity_style
            )

        console.print(table)
        console.print()


def render_states(states: List[AppliedState], console: Console) -> None:
    if not states:
        console.print("[dim]El State Store está vacío[/dim]")
        return
    table = Table(title="Estado aplicado", show_header=True, header_style="bold cyan")
    table.add_column("Recurso", style="bold")
    table.add_column("Tipo", style="cyan")
    table.add_column("Provider ID", style="green")
    table.add_column("Revisión", justify="right")
    table.add_column("Dependencias", style="dim")
    for state in states:
        table.add_row(
            state.name,
            state.kind.value,
            state.provider_id,
            str(state.revision),
            ", ".join(state.dependencies),
        )
    console.print(table)
