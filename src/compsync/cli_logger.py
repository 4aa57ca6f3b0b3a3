"""CLI output utilities for consistent messaging.

User-facing results go through the rich console helpers below. Library
modules log through the standard ``logging`` tree; ``configure_logging``
routes those records to a RichHandler on stderr.
"""

import logging
from typing import TYPE_CHECKING

from rich.console import Console
from rich.logging import RichHandler
from rich.table import Table

if TYPE_CHECKING:
    from compsync.sync_record import BatchResult, SyncRecord

_console = Console()
_err_console = Console(stderr=True)


def configure_logging(verbose: bool = False) -> None:
    """Send compsync log records to a RichHandler.

    Args:
        verbose: Emit DEBUG records instead of WARNING and above.
    """
    logger = logging.getLogger("compsync")
    logger.handlers.clear()
    handler = RichHandler(
        console=_err_console,
        show_time=False,
        show_path=False,
        rich_tracebacks=True,
    )
    logger.addHandler(handler)
    logger.setLevel(logging.DEBUG if verbose else logging.WARNING)


def success(message: str) -> None:
    """Print a success message with green checkmark."""
    _console.print(f"[green]✓[/green] {message}")


def error(message: str) -> None:
    """Print an error message with red X."""
    _console.print(f"[red]✗[/red] {message}")


def warning(message: str) -> None:
    """Print a warning message with yellow exclamation."""
    _console.print(f"[yellow]![/yellow] {message}")


def info(message: str) -> None:
    """Print an info message (no prefix)."""
    _console.print(message)


def dim(message: str) -> None:
    """Print a dimmed message (for secondary info)."""
    _console.print(f"[dim]{message}[/dim]")


def sync_record(record: "SyncRecord") -> None:
    """Print one sync run: a headline plus one line per artifact."""
    headline = f"{record.direction.value} sync of '{record.bundle_id}'"
    if record.cancelled:
        warning(f"{headline} cancelled: {record.message}")
        return
    if record.success:
        success(f"{headline}: {record.message}")
    else:
        error(f"{headline}: {record.message}")

    if record.changeset is not None and not record.changeset.is_empty:
        for change in record.changeset.fields_to_add:
            dim(f"  + {change.field_name}")
        for change in record.changeset.fields_to_update:
            dim(f"  ~ {change.field_name} ({', '.join(change.reasons)})")
        for change in record.changeset.fields_to_remove:
            dim(f"  - {change.field_name}")

    for result in record.results:
        target = result.path if result.path is not None else result.artifact
        line = f"  {result.status.value}: {target}"
        if result.message:
            line += f" ({result.message})"
        if result.failed:
            error(line)
        else:
            dim(line)


def batch_summary(batch: "BatchResult") -> None:
    """Print a per-bundle table for a batch run."""
    table = Table(title="Sync summary")
    table.add_column("Bundle")
    table.add_column("Direction")
    table.add_column("Result")
    table.add_column("Detail", overflow="fold")

    for entry in batch.entries:
        if entry.error is not None:
            table.add_row(entry.bundle_id, "-", "[red]error[/red]", str(entry.error))
            continue
        records = entry.records
        if any(r.cancelled for r in records):
            outcome = "[yellow]cancelled[/yellow]"
        elif entry.success:
            outcome = "[green]ok[/green]"
        else:
            outcome = "[red]failed[/red]"
        directions = " + ".join(r.direction.value for r in records)
        detail = "; ".join(r.message for r in records if r.message)
        table.add_row(entry.bundle_id, directions, outcome, detail)

    _console.print(table)
