"""Rich-based display functions for Mail Harvester."""

from rich.console import Console
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

from .constants import SUBJECT_DISPLAY_LIMIT
from .models import HarvestResult, Mismatch

console = Console()


def _truncate(text: str | None, limit: int = SUBJECT_DISPLAY_LIMIT) -> str:
    if not text:
        return ""
    return text if len(text) <= limit else text[: limit - 1] + "…"


def _format_size(size_bytes: int) -> str:
    if size_bytes < 1024:
        return f"{size_bytes} B"
    if size_bytes < 1024 * 1024:
        return f"{size_bytes / 1024:.1f} KB"
    return f"{size_bytes / (1024 * 1024):.1f} MB"


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


def display_attachments(rows: list[dict], title: str = "Attachments") -> None:
    """Display ledger entries and their attachments, one row per file."""
    table = Table(title=title)
    table.add_column("#", justify="right", style="dim")
    table.add_column("Date")
    table.add_column("Subject")
    table.add_column("File")
    table.add_column("Original name")
    table.add_column("Size", justify="right")
    table.add_column("Duplicate")

    count = 0
    for row in rows:
        for attachment in row["attachments"].values():
            count += 1
            duplicate = attachment.get("is_duplicate")
            table.add_row(
                str(count),
                row.get("date") or "",
                _truncate(row.get("subject")),
                attachment.get("filename", ""),
                attachment.get("original_file_name", ""),
                _format_size(int(attachment.get("size", 0))),
                "[yellow]yes[/yellow]" if duplicate else "no",
            )

    console.print(table)
    console.print(
        Panel(f"Messages: {len(rows)}  |  Attachments: {count}", title="Summary")
    )


def display_harvest_summary(result: HarvestResult) -> None:
    """Display the counters of a finished harvest run."""
    lines = [
        f"[bold]Listed:[/bold] {result.listed}",
        f"[bold]Whitelisted:[/bold] {result.whitelisted}",
        f"[bold]Already processed:[/bold] {result.duplicates}",
        f"[bold]With spreadsheet attachments:[/bold] {result.fetched}",
        f"[bold]Saved to ledger:[/bold] {result.saved}",
        f"[bold]Attachments stored:[/bold] {result.attachments_stored}",
        f"[bold]Duplicate attachments:[/bold] {result.duplicate_attachments}",
    ]
    console.print(Panel("\n".join(lines), title="Harvest"))


def display_mismatches(mismatches: list[Mismatch], repaired: list[str] | None = None) -> None:
    """Display attachment files that differ from the ledger."""
    if not mismatches:
        console.print("[green]All attachment files match the ledger.[/green]")
        return

    repaired = repaired or []
    table = Table(title="Mismatched attachments")
    table.add_column("File")
    table.add_column("Original name")
    table.add_column("Message")
    table.add_column("Repaired")
    for mismatch in mismatches:
        table.add_row(
            mismatch.expected_filename,
            mismatch.original_filename,
            mismatch.ledger_key,
            "[green]yes[/green]" if mismatch.expected_filename in repaired else "[red]no[/red]",
        )
    console.print(table)
