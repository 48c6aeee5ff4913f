"""CLI entry point for Mail Harvester."""

from __future__ import annotations

import json
import logging
from pathlib import Path

import click
from rich.logging import RichHandler

from . import constants
from .config import ensure_config, ensure_directories, load_config
from .display import console, display_attachments, display_harvest_summary, display_mismatches
from .errors import MailHarvesterError
from .export import export_attachments
from .harvest import harvest
from .ledger import Ledger
from .reconciler import find_mismatches, repair


def _setup_logging(verbose: bool) -> None:
    logger = logging.getLogger("mail_harvester")
    logger.setLevel(logging.DEBUG if verbose else logging.INFO)
    if not any(isinstance(h, RichHandler) for h in logger.handlers):
        logger.addHandler(RichHandler(console=console, show_path=False, markup=False))


def _parse_assignment(text: str) -> tuple[str, object]:
    key, sep, raw = text.partition("=")
    if not sep or not key.strip():
        raise click.BadParameter(f"expected key=value, got '{text}'", param_hint="--set")
    try:
        value = json.loads(raw)
    except json.JSONDecodeError:
        value = raw
    return key.strip(), value


@click.group()
@click.version_option(version="0.1.0", prog_name="mail-harvester")
@click.option("-v", "--verbose", is_flag=True, help="Show debug log output.")
def cli(verbose: bool) -> None:
    """Mail Harvester - collect spreadsheet attachments from a POP3 mailbox."""
    _setup_logging(verbose)


@cli.command()
@click.option(
    "--config",
    "config_path",
    type=click.Path(dir_okay=False, path_type=Path),
    default=None,
    help="Configuration file (default: ~/.mail-harvester/config/mail_configurations.json).",
)
def fetch(config_path: Path | None) -> None:
    """Fetch new mail and store its spreadsheet attachments."""
    ensure_directories()
    try:
        config = load_config(ensure_config(config_path))
        result = harvest(config, Ledger())
    except MailHarvesterError as e:
        raise click.ClickException(str(e)) from e

    display_harvest_summary(result)


@cli.command()
@click.option("-y", "--year", type=int, default=None, help="Year of the message date.")
@click.option("-m", "--month", type=int, default=None, help="Month of the message date (1-12).")
@click.option("-o", "--export", "output", default=None, help="Also write the listing to this file.")
@click.option(
    "--format",
    "fmt",
    type=click.Choice(["csv", "json"]),
    default="csv",
    help="Export format.",
)
def attachments(year: int | None, month: int | None, output: str | None, fmt: str) -> None:
    """List ledgered attachments, optionally for one month."""
    if (year is None) != (month is None):
        raise click.UsageError("--year and --month must be given together.")

    ledger = Ledger()
    if year is None:
        rows = ledger.all_attachments()
        title = "Attachments"
    else:
        try:
            rows = ledger.attachments_by_month(year, month)
        except ValueError as e:
            raise click.ClickException(str(e)) from e
        title = f"Attachments {month:02d}.{year}"

    if not rows:
        console.print("[dim]No attachments found.[/dim]")
        return

    display_attachments(rows, title=title)
    if output:
        export_attachments(rows, format=fmt, output_path=output)


@cli.command()
@click.argument("filenames", nargs=-1, required=True)
@click.option(
    "-s",
    "--set",
    "assignments",
    multiple=True,
    required=True,
    help="Status field as key=value (JSON values are parsed, e.g. imported=true).",
)
def status(filenames: tuple[str, ...], assignments: tuple[str, ...]) -> None:
    """Update the status of attachment files (<hash>.<ext>)."""
    fields = dict(_parse_assignment(a) for a in assignments)
    updated = Ledger().update_attachment_status(filenames, fields)
    if updated:
        console.print(f"[green]Updated {updated} of {len(filenames)} attachment(s).[/green]")
    else:
        console.print("[yellow]No attachment was updated.[/yellow]")


@cli.command(name="repair")
@click.option("--dry-run", is_flag=True, help="Only report mismatched files.")
def repair_cmd(dry_run: bool) -> None:
    """Rewrite attachment files that no longer match the ledger."""
    ledger = Ledger()
    if not len(ledger):
        console.print("[dim]Ledger is empty.[/dim]")
        return

    mismatches = find_mismatches(ledger)
    if dry_run or not mismatches:
        display_mismatches(mismatches)
        return

    repaired = repair(mismatches)
    display_mismatches(mismatches, repaired)


@cli.group(name="config")
def config_group() -> None:
    """Manage the mail configuration."""


@config_group.command(name="init")
@click.option(
    "--custom",
    "custom_path",
    type=click.Path(dir_okay=False, path_type=Path),
    default=None,
    help="Copy this configuration instead of the default one.",
)
def config_init(custom_path: Path | None) -> None:
    """Create the directories and the configuration file if missing."""
    ensure_directories()
    try:
        path = ensure_config(custom_path=custom_path)
    except MailHarvesterError as e:
        raise click.ClickException(str(e)) from e
    console.print(f"Configuration: {path}")


@config_group.command(name="show")
def config_show() -> None:
    """Print the configuration with the password hidden."""
    try:
        config = load_config()
    except MailHarvesterError as e:
        raise click.ClickException(str(e)) from e

    login = config.login
    console.print(f"[bold]Server:[/bold] {login.hostname}:{login.port}")
    console.print(f"[bold]User:[/bold] {login.username}")
    console.print(f"[bold]Senders:[/bold] {', '.join(config.whitelist.senders)}")
    console.print(f"[bold]Receivers:[/bold] {', '.join(config.whitelist.receivers)}")
    console.print(f"[bold]Headers kept:[/bold] {', '.join(config.headers_to_filter)}")
    if config.is_placeholder:
        console.print(f"[yellow]Placeholder login, edit {constants.CONFIG_PATH} before fetching.[/yellow]")


@cli.group(name="ledger")
def ledger_group() -> None:
    """Inspect the processed-mail ledger."""


@ledger_group.command(name="info")
def ledger_info() -> None:
    """Show ledger statistics."""
    info = Ledger().get_info()

    if not info["message_count"]:
        console.print("[dim]Ledger is empty.[/dim]")
        return

    console.print(f"[bold]Ledger size:[/bold] {info['file_size'] / 1024:.1f} KB")
    console.print(f"[bold]Last read:[/bold] {info['last_read_date']}")
    console.print(f"[bold]Messages:[/bold] {info['message_count']}")
    console.print(f"[bold]Attachments:[/bold] {info['attachment_count']}")
