"""Mailbox listing, header retrieval and body retrieval over a POP3 session."""

from __future__ import annotations

import logging
import re
from dataclasses import replace
from datetime import datetime
from typing import Callable

from .attachments import has_spreadsheet_attachment
from .constants import DATE_FORMAT
from .errors import ProtocolError
from .hashing import content_key
from .models import ListingEntry, Message
from .session import Pop3Session, encode_lines

logger = logging.getLogger(__name__)

_LISTING_RE = re.compile(r"^(\d+) (\d+)$")


def list_all(session: Pop3Session) -> list[ListingEntry]:
    """Return ``(number, size)`` for every message, in server order."""
    entries: list[ListingEntry] = []
    for line in session.command("LIST"):
        match = _LISTING_RE.match(line.strip())
        if match is None:
            logger.debug("Skipping malformed LIST line: %r", line)
            continue
        entries.append(ListingEntry(number=int(match.group(1)), size=int(match.group(2))))
    return entries


def fetch_headers(
    session: Pop3Session,
    entries: list[ListingEntry],
    callback: Callable[[int, int], None] | None = None,
) -> list[Message]:
    """Fetch the header block of every listed message with ``TOP n 0``."""
    messages: list[Message] = []
    total = len(entries)

    for done, entry in enumerate(entries, start=1):
        try:
            lines = session.command(f"TOP {entry.number} 0")
        except ProtocolError as exc:
            logger.warning("Could not fetch headers of message %d: %s", entry.number, exc)
        else:
            messages.append(
                Message(
                    number=entry.number,
                    size=entry.size,
                    header_raw="".join(lines),
                    read_date=datetime.now().strftime(DATE_FORMAT),
                )
            )

        if callback:
            callback(done, total)

    return messages


def fetch_bodies(
    session: Pop3Session,
    messages: list[Message],
    callback: Callable[[int, int], None] | None = None,
) -> list[Message]:
    """Retrieve full messages with ``RETR n``.

    Messages whose body does not announce an xlsx, xls or csv attachment
    are dropped.
    """
    kept: list[Message] = []
    total = len(messages)

    for done, message in enumerate(messages, start=1):
        try:
            lines = session.command(f"RETR {message.number}")
        except ProtocolError as exc:
            logger.warning("Could not retrieve message %d: %s", message.number, exc)
            lines = None

        if lines is not None:
            raw = encode_lines(lines)
            if has_spreadsheet_attachment(raw):
                kept.append(replace(message, body_raw=raw, body_hash=content_key(raw)))
            else:
                logger.debug("Dropping message %d: no spreadsheet attachment", message.number)

        if callback:
            callback(done, total)

    return kept
