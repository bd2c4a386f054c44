"""Rich-based display and logging setup for Gmail Sender Purge."""

from __future__ import annotations

import logging

from rich.console import Console
from rich.logging import RichHandler
from rich.panel import Panel
from rich.progress import (
    BarColumn,
    MofNCompleteColumn,
    Progress,
    SpinnerColumn,
    TextColumn,
    TimeElapsedColumn,
)
from rich.table import Table

from .constants import TOP_SENDERS_LIMIT
from .models import AnalysisResult, Checkpoint, DeletionResult

console = Console()


def configure_logging(verbose: bool = False) -> None:
    """Route log records through Rich on the shared console."""
    logging.basicConfig(
        level=logging.DEBUG if verbose else logging.INFO,
        format="%(message)s",
        datefmt="[%X]",
        handlers=[RichHandler(console=console, show_path=False, rich_tracebacks=True)],
        force=True,
    )
    # discovery cache warnings are noise for an installed-app client
    logging.getLogger("googleapiclient.discovery_cache").setLevel(logging.ERROR)


def create_progress(description: str) -> Progress:
    """Create a configured Rich Progress bar."""
    return Progress(
        SpinnerColumn(),
        TextColumn(f"[bold blue]{description}"),
        BarColumn(),
        MofNCompleteColumn(),
        TimeElapsedColumn(),
        console=console,
    )


def _format_mb(size: int) -> str:
    return f"{size / 1024 / 1024:.2f} MB"


def display_analysis_results(result: AnalysisResult, limit: int = TOP_SENDERS_LIMIT) -> None:
    """Show the busiest senders, sorted by message count descending."""
    ranked = sorted(result.senders.items(), key=lambda item: item[1].count, reverse=True)

    table = Table(title="Top Senders")
    table.add_column("#", justify="right", style="dim")
    table.add_column("Sender")
    table.add_column("Count", justify="right")
    table.add_column("Size", justify="right")
    table.add_column("Last email")

    for idx, (sender, stats) in enumerate(ranked[:limit], start=1):
        table.add_row(str(idx), sender, str(stats.count), _format_mb(stats.total_size), stats.last_seen or "")

    console.print(table)
    summary = f"Senders: {len(result.senders)}  |  Messages: {result.total_messages}"
    if result.report_path is not None:
        summary += f"  |  Report: {result.report_path}"
    console.print(Panel(summary, title="Summary"))


def display_deletion_summary(result: DeletionResult) -> None:
    """Display per-sender counts and the overall total after a deletion run."""
    table = Table(title="Deleted Messages")
    table.add_column("Sender")
    table.add_column("Deleted", justify="right")
    table.add_column("Status")

    for email, count in result.per_target.items():
        status = "[red]aborted[/red]" if email in result.aborted_targets else "[green]done[/green]"
        table.add_row(email, str(count), status)

    console.print(table)

    color = "yellow" if result.aborted_targets else "green"
    console.print(
        Panel(
            f"[bold {color}]Deleted {result.total_deleted} messages "
            f"from {len(result.per_target)} senders.[/bold {color}]\n"
            f"Report saved to: {result.report_path}",
            title="Done",
        )
    )


def _describe_stat(value) -> str:
    if isinstance(value, (list, dict)):
        return f"{len(value)} entries"
    return str(value)


def display_checkpoint(key: str, checkpoint: Checkpoint) -> None:
    """Show one saved checkpoint: when it was written, its cursor and its stats."""
    lines = [f"Saved: {checkpoint.timestamp or 'unknown'}"]
    if checkpoint.cursor:
        lines.append(f"Cursor: {checkpoint.cursor}")
    for name, value in checkpoint.stats.items():
        lines.append(f"{name}: {_describe_stat(value)}")
    console.print(Panel("\n".join(lines), title=key))
