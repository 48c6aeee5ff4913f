"""Message-level deduplication and header trimming."""

from __future__ import annotations

import json
import logging
from dataclasses import replace
from typing import Container

from .constants import CRLF
from .hashing import content_key
from .headers import iter_header_fields, parse_address
from .models import Message

logger = logging.getLogger(__name__)


def header_hash(message: Message) -> str:
    """Stable key of a message: digest over its header metadata, sorted keys."""
    payload = json.dumps({"raw": message.header_raw, "size": message.size}, sort_keys=True)
    return content_key(payload)


def mark_duplicates(messages: list[Message], known_hashes: Container[str]) -> list[Message]:
    """Return copies of ``messages`` with ``header_hash`` and ``is_duplicate`` set.

    A message is a duplicate when its hash is already in ``known_hashes``
    (usually the ledger) or was produced by an earlier message of this run.
    """
    seen: set[str] = set()
    marked: list[Message] = []
    for message in messages:
        key = header_hash(message)
        is_duplicate = key in known_hashes or key in seen
        seen.add(key)
        marked.append(replace(message, header_hash=key, is_duplicate=is_duplicate))
    return marked


def drop_duplicates(messages: list[Message]) -> list[Message]:
    kept = [m for m in messages if not m.is_duplicate]
    if len(kept) != len(messages):
        logger.info("Skipping %d already processed messages", len(messages) - len(kept))
    return kept


def trim_header(header_raw: str, headers_to_keep: list[str]) -> str:
    """Reduce a header block to the allowed fields.

    ``Return-Path`` survives only when its value is a valid address.
    """
    keep = {name.lower() for name in headers_to_keep}
    kept: list[str] = []
    for field in iter_header_fields(header_raw):
        name = field.name.lower()
        if name == "return-path":
            if parse_address(field.value):
                kept.append(field.text)
        elif name in keep:
            kept.append(field.text)
    return CRLF.join(kept) + CRLF if kept else ""


def trim_headers(messages: list[Message], headers_to_keep: list[str]) -> list[Message]:
    """Trim every header block.  Must run after :func:`mark_duplicates`."""
    return [replace(m, header_raw=trim_header(m.header_raw, headers_to_keep)) for m in messages]


def index_by_hash(messages: list[Message]) -> dict[str, Message]:
    """Re-key the working set by header hash; the first message per key wins."""
    index: dict[str, Message] = {}
    for message in messages:
        index.setdefault(message.header_hash, message)
    return index
