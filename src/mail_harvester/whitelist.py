"""Sender/receiver allow-list filtering of header blocks."""

from __future__ import annotations

import logging

from .config import Whitelist
from .headers import iter_header_fields, parse_address, split_addresses
from .models import Message

logger = logging.getLogger(__name__)

_SENDER_FIELDS = ("from", "return-path")


def extract_sender(header_raw: str) -> str:
    """Return the first From/Return-Path value that is a valid address, or ""."""
    for field in iter_header_fields(header_raw):
        if field.name.lower() in _SENDER_FIELDS:
            sender = parse_address(field.value)
            if sender:
                return sender
    return ""


def extract_receivers(header_raw: str) -> list[str]:
    """Return every valid address found on To lines."""
    receivers: list[str] = []
    for field in iter_header_fields(header_raw):
        if field.name.lower() == "to":
            receivers.extend(split_addresses(field.value))
    return receivers


def is_whitelisted(header_raw: str, whitelist: Whitelist) -> bool:
    """A message passes only if its sender AND at least one receiver are allowed."""
    sender = extract_sender(header_raw)
    receivers = extract_receivers(header_raw)
    if not sender or not receivers:
        return False

    allowed_senders = {s.casefold() for s in whitelist.senders}
    allowed_receivers = {r.casefold() for r in whitelist.receivers}
    return sender.casefold() in allowed_senders and bool(
        {r.casefold() for r in receivers} & allowed_receivers
    )


def filter_whitelisted(messages: list[Message], whitelist: Whitelist) -> list[Message]:
    """Keep the messages whose headers match the whitelist, in order."""
    kept = [m for m in messages if is_whitelisted(m.header_raw, whitelist)]
    logger.info("%d of %d messages match the whitelist", len(kept), len(messages))
    return kept
