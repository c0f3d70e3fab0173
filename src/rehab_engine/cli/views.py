"""
CLI view formatters using Rich for pretty console output.

Handles table formatting and display of presets, configs and snapshots.
"""

import dataclasses

from rich.console import Console
from rich.table import Table

from ..core.exercises.loader import ExercisePreset
from ..core.models import ScoreSnapshot

console = Console()

_PHASE_STYLES = {
    "complete": "green",
    "rest": "blue",
    "pain_check": "yellow",
    "hold_top": "magenta",
}


def format_preset_table(presets: list[ExercisePreset]) -> Table:
    """
    Format registered presets as a Rich table.

    Args:
        presets: Presets to list, in display order

    Returns:
        Rich Table object
    """
    table = Table(title="Exercises")

    table.add_column("ID", style="cyan", no_wrap=True)
    table.add_column("Name", style="bold")
    table.add_column("Engine", style="magenta")
    table.add_column("Description")

    for p in presets:
        table.add_row(p.exercise_id, p.display_name, p.kind, p.description)

    return table


def _fmt_value(value: object) -> str:
    if isinstance(value, tuple):
        if not value:
            return "[dim]-[/dim]"
        if dataclasses.is_dataclass(value[0]):
            return ", ".join(getattr(v, "name", str(v)) for v in value)
        return f"{len(value)} points"
    if isinstance(value, float):
        return f"{value:g}"
    return str(value)


def format_config_table(preset: ExercisePreset) -> Table:
    """Format a preset's SessionConfig as a two-column table."""
    table = Table(title=f"{preset.display_name} ({preset.kind})", show_header=True, header_style="dim")
    table.add_column("Setting", style="cyan", no_wrap=True)
    table.add_column("Value", justify="right")

    for f in dataclasses.fields(preset.config):
        table.add_row(f.name, _fmt_value(getattr(preset.config, f.name)))

    return table


def _fmt_phase(phase: str, transitioned: bool) -> str:
    style = _PHASE_STYLES.get(phase)
    text = f"[{style}]{phase}[/{style}]" if style else phase
    return f"→ {text}" if transitioned else text


def _fmt_flags(snapshot: ScoreSnapshot) -> str:
    flags = []
    if snapshot.stalled:
        flags.append("[red]stalled[/red]")
    if snapshot.sensor_gap:
        flags.append("[yellow]gap[/yellow]")
    return " ".join(flags)


def format_snapshot_table(rows: list[tuple[int, ScoreSnapshot]], title: str = "Replay") -> Table:
    """
    Format replayed snapshots as a Rich table.

    Args:
        rows: (record number, snapshot) pairs
        title: Table title

    Returns:
        Rich Table object
    """
    table = Table(title=title)

    table.add_column("#", justify="right", style="dim")
    table.add_column("Phase", no_wrap=True)
    table.add_column("Instruction", style="cyan")
    table.add_column("Feedback", style="green")
    table.add_column("Prog", justify="right")
    table.add_column("Set", justify="right")
    table.add_column("Rep", justify="right")
    table.add_column("Acc", justify="right")
    table.add_column("Smo", justify="right")
    table.add_column("Con", justify="right")
    table.add_column("End", justify="right")
    table.add_column("Peak", justify="right")
    table.add_column("Avg", justify="right")
    table.add_column("Flags")

    for number, snap in rows:
        m = snap.metrics
        table.add_row(
            str(number),
            _fmt_phase(snap.phase, snap.transitioned),
            snap.instruction_key,
            snap.feedback_key,
            f"{m.progress_fraction:.2f}",
            str(m.set_count),
            str(m.rep_count),
            f"{m.accuracy:.0f}",
            f"{m.smoothness:.0f}",
            f"{m.consistency:.0f}",
            f"{m.endurance:.0f}",
            f"{m.peak:.0f}",
            f"{m.avg:.0f}",
            _fmt_flags(snap),
        )

    return table


def print_snapshots(rows: list[tuple[int, ScoreSnapshot]], title: str = "Replay") -> None:
    """Print replayed snapshots, or a notice when there are none."""
    if not rows:
        console.print("[yellow]No records in replay log.[/yellow]")
        return
    console.print(format_snapshot_table(rows, title=title))


def print_error(message: str) -> None:
    """Print an error message."""
    console.print(f"[red]Error: {message}[/red]")


def print_warning(message: str) -> None:
    """Print a warning message."""
    console.print(f"[yellow]Warning: {message}[/yellow]")


def print_info(message: str) -> None:
    """Print an info message."""
    console.print(f"[blue]{message}[/blue]")


def print_success(message: str) -> None:
    """Print a success message."""
    console.print(f"[green]{message}[/green]")
