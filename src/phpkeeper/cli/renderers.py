"""Renderers for displaying PHP versions and operation progress using Rich."""

from __future__ import annotations

from typing import Iterable

from rich import box
from rich.console import Console
from rich.panel import Panel
from rich.progress import BarColumn, Progress, SpinnerColumn, TaskID, TextColumn
from rich.table import Table
from rich.text import Text

from phpkeeper.commands.base import ProgressCallback
from phpkeeper.core.models import Formula, InstalledSnapshot, ProgressEvent

console = Console()


def formula_status(formula: Formula, installations: InstalledSnapshot) -> str:
    """Human-readable status of a formula, with color coding."""
    if not formula.is_installed:
        return "[dim]Not installed[/dim]"

    short = formula.display_name.removeprefix("PHP ")
    installation = installations.get(short)
    bits = []
    if installation is not None and not installation.is_healthy:
        bits.append("[red]Broken[/red]")
    if formula.has_upgrade:
        bits.append(f"[yellow]Upgrade to {formula.upgrade_version}[/yellow]")
    if formula.unavailable_after_upgrade:
        bits.append("[magenta]Reinstalled after upgrade[/magenta]")
    return ", ".join(bits) or "[green]Up-to-date[/green]"


def formula_table(
    formulae: Iterable[Formula],
    installations: InstalledSnapshot,
    active: str | None = None,
) -> Table:
    """Create a Rich Table listing PHP formulae.

    Args:
        formulae: The formulae to display.
        installations: Installed versions keyed by short version.
        active: Short version of the linked PHP binary.

    Returns:
        A Rich Table.
    """
    table = Table(box=box.MINIMAL_HEAVY_HEAD)
    table.add_column("", width=1)
    table.add_column("Version", style="bold")
    table.add_column("Formula")
    table.add_column("Installed")
    table.add_column("Status")

    for f in formulae:
        short = f.display_name.removeprefix("PHP ")
        name = f"{f.display_name} [cyan](pre-release)[/cyan]" if f.prerelease else f.display_name
        table.add_row(
            "[green]●[/green]" if short == active else "",
            name,
            f.name,
            f.installed_version or "",
            formula_status(f, installations),
        )

    return table


def operation_progress() -> Progress:
    return Progress(
        SpinnerColumn(),
        TextColumn("[bold]{task.description}"),
        BarColumn(),
        TextColumn("{task.percentage:>3.0f}%"),
        console=console,
    )


def progress_sink(progress: Progress, task: TaskID) -> ProgressCallback:
    """Progress callback that drives one Rich progress task."""
    def on_progress(event: ProgressEvent) -> None:
        description = event.description.replace("\n", " ")
        progress.update(task, completed=event.value, description=f"{event.title} {description}")

    return on_progress


def transcript_panel(lines: list[str], limit: int = 40) -> Panel:
    """Panel with the last lines Homebrew printed before a failure."""
    shown = lines[-limit:]
    skipped = len(lines) - len(shown)
    body = "\n".join(shown) or "(no output)"
    if skipped:
        body = f"... {skipped} earlier lines omitted\n{body}"
    return Panel(Text(body), title="Homebrew output", border_style="dim", expand=False)
