"""Harvest orchestration: list, filter, dedupe, fetch, extract, persist."""

from __future__ import annotations

import logging
from dataclasses import replace
from pathlib import Path

from . import constants
from .attachments import mark_attachments
from .config import MailConfig
from .dedup import drop_duplicates, index_by_hash, mark_duplicates, trim_headers
from .display import console, create_progress
from .errors import ConfigError, ProtocolError
from .headers import extract_email_info
from .ledger import Ledger
from .mailbox import fetch_bodies, fetch_headers, list_all
from .models import HarvestResult, Message
from .session import Pop3Session
from .storage import archive_message, store_attachment
from .whitelist import filter_whitelisted

logger = logging.getLogger(__name__)


def _session_for(config: MailConfig) -> Pop3Session:
    login = config.login
    return Pop3Session(login.hostname, login.port, login.username, login.password)


def _fetch(session: Pop3Session, config: MailConfig, ledger: Ledger, result: HarvestResult) -> list[Message]:
    """Network half of the pipeline; returns the messages worth extracting."""
    console.print("[bold]Step 1/3:[/bold] Listing messages...")
    try:
        entries = list_all(session)
    except ProtocolError as exc:
        logger.warning("LIST was rejected: %s", exc)
        entries = []
    result.listed = len(entries)
    console.print(f"  Found [bold]{len(entries)}[/bold] messages")
    if not entries:
        return []

    console.print("[bold]Step 2/3:[/bold] Fetching headers...")
    with create_progress("Fetching headers") as progress:
        task = progress.add_task("headers", total=len(entries))

        def on_header(done: int, total: int) -> None:
            progress.update(task, completed=done)

        messages = fetch_headers(session, entries, callback=on_header)

    messages = filter_whitelisted(messages, config.whitelist)
    result.whitelisted = len(messages)

    messages = mark_duplicates(messages, ledger)
    result.duplicates = sum(1 for m in messages if m.is_duplicate)
    messages = trim_headers(drop_duplicates(messages), config.headers_to_filter)
    console.print(
        f"  [bold]{result.whitelisted}[/bold] whitelisted, "
        f"[bold]{len(messages)}[/bold] not processed yet"
    )
    if not messages:
        return []

    console.print("[bold]Step 3/3:[/bold] Retrieving message bodies...")
    with create_progress("Retrieving bodies") as progress:
        task = progress.add_task("bodies", total=len(messages))

        def on_body(done: int, total: int) -> None:
            progress.update(task, completed=done)

        messages = fetch_bodies(session, messages, callback=on_body)

    result.fetched = len(messages)
    return messages


def harvest(
    config: MailConfig,
    ledger: Ledger,
    session: Pop3Session | None = None,
    eml_dir: Path | None = None,
    attachments_dir: Path | None = None,
) -> HarvestResult:
    """Run one harvest against the configured mailbox.

    A :class:`~mail_harvester.errors.TransportError` aborts the run: while
    connecting it does so before any message is read, and a connection
    lost mid-run leaves the ledger untouched.  The session is closed as
    soon as the network work is done, whatever happens.
    """
    if config.is_placeholder:
        raise ConfigError(
            "The configuration still holds the placeholder login. "
            "Edit it before fetching mail."
        )

    eml_dir = Path(eml_dir or constants.EML_DIR)
    attachments_dir = Path(attachments_dir or constants.ATTACHMENTS_DIR)
    session = session or _session_for(config)
    result = HarvestResult()

    with session:
        messages = _fetch(session, config, ledger, result)

    if not messages:
        return result

    index = index_by_hash(messages)
    index = mark_attachments(index, ledger.attachment_hashes())

    records: dict[str, dict] = {}
    for key, message in index.items():
        for attachment in message.attachments.values():
            if attachment.is_duplicate:
                result.duplicate_attachments += 1
            elif store_attachment(attachment, attachments_dir):
                result.attachments_stored += 1
        archive_message(key, message.body_raw, eml_dir)
        message = replace(message, info=extract_email_info(message.header_raw))
        records[key] = message.to_record()

    if records:
        ledger.save(records)
        logger.info("Saved %d messages to %s", len(records), ledger.path)
    result.saved = len(records)
    result.saved_keys = list(records)
    return result
