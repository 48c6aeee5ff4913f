"""Spreadsheet attachment extraction from raw MIME message bodies.

This is a regular-expression scanner, not a MIME parser.  It understands
exactly one shape of attachment: a part announced by
``Content-Disposition: attachment; filename="..."`` (or, as a fallback, by
``Content-Type: application/...; name="..."``) whose payload is base64
and ends at the next MIME boundary.  Everything else is ignored.  All of
the pattern knowledge lives in this module behind
:func:`extract_attachments`, so it can be swapped for a real parser
without touching the pipeline.
"""

from __future__ import annotations

import base64
import binascii
import logging
import re
from dataclasses import replace
from functools import lru_cache
from typing import Iterator

from .constants import ALLOWED_EXTENSIONS, LINE_ENCODING
from .hashing import attachment_key, normalize_base64
from .models import Attachment, Message

logger = logging.getLogger(__name__)

_DISPOSITION_RE = re.compile(
    r'Content-Disposition:\s*attachment;\s*filename="([^"]+)"', re.IGNORECASE
)
_SPREADSHEET_RE = re.compile(
    r'Content-Disposition:\s*attachment;\s*filename="[^"]+\.(?:'
    + "|".join(ALLOWED_EXTENSIONS)
    + r')"',
    re.IGNORECASE,
)

# Anything up to the transfer encoding header, without leaving the MIME part.
_WITHIN_PART = r"(?:(?!\r?\n--).)*?"
# The base64 header, any part headers that follow it, then the payload up
# to the next boundary line.
_BASE64_TAIL = (
    r"Content-Transfer-Encoding:\s*base64[ \t]*\r?\n"
    r"(?:[A-Za-z0-9-]+:[^\r\n]*\r?\n)*"
    r"\s*(.*?)\r?\n--"
)


@lru_cache(maxsize=256)
def _disposition_payload_re(filename: str) -> re.Pattern[str]:
    return re.compile(
        r'Content-Disposition:\s*attachment;\s*filename="'
        + re.escape(filename)
        + '"'
        + _WITHIN_PART
        + _BASE64_TAIL,
        re.IGNORECASE | re.DOTALL,
    )


@lru_cache(maxsize=256)
def _content_type_payload_re(filename: str) -> re.Pattern[str]:
    return re.compile(
        r'Content-Type:\s*application/(?:vnd\.ms-excel|octet-stream);\s*name="'
        + re.escape(filename)
        + '"'
        + _WITHIN_PART
        + _BASE64_TAIL,
        re.IGNORECASE | re.DOTALL,
    )


def _as_text(body: str | bytes) -> str:
    if isinstance(body, bytes):
        return body.decode(LINE_ENCODING, errors="surrogateescape")
    return body


def extension_of(filename: str) -> str:
    """Lower-cased extension without the dot, "" when there is none."""
    _stem, dot, extension = filename.rpartition(".")
    return extension.lower() if dot else ""


def has_spreadsheet_attachment(body: str | bytes) -> bool:
    """Cheap pre-check: does the body announce an xlsx/xls/csv attachment?"""
    return bool(_SPREADSHEET_RE.search(_as_text(body)))


def _find_payload(text: str, filename: str, marker_start: int) -> str | None:
    match = _disposition_payload_re(filename).match(text, marker_start)
    if match is None:
        part_start = max(text.rfind("\n--", 0, marker_start), 0)
        match = _content_type_payload_re(filename).search(text, part_start)
    return match.group(1) if match else None


def iter_payloads(body: str | bytes) -> Iterator[tuple[str, str]]:
    """Yield ``(filename, encoded payload)`` for every attachment marker.

    For each marker the nearest following base64 block is used; markers
    without one are logged and skipped.
    """
    text = _as_text(body)
    for marker in _DISPOSITION_RE.finditer(text):
        filename = marker.group(1)
        encoded = _find_payload(text, filename, marker.start())
        if encoded is None:
            logger.debug("No base64 payload found for attachment '%s'", filename)
            continue
        yield filename, encoded


def decode_payload(encoded: str) -> bytes:
    """Strictly decode base64 text after removing whitespace and line breaks.

    Payloads that do not re-encode to the same text (non-zero padding bits)
    are rejected, so the stored bytes always reproduce the attachment key.
    """
    normalized = normalize_base64(encoded)
    content = base64.b64decode(normalized, validate=True)
    if base64.b64encode(content).decode("ascii") != normalized:
        raise ValueError("payload is not canonical base64")
    return content


def extract_attachments(body: str | bytes) -> list[Attachment]:
    """Return the valid spreadsheet attachments of a raw message body.

    Attachments with a disallowed extension are skipped silently and
    undecodable payloads are logged; neither stops the scan.
    """
    attachments: list[Attachment] = []
    for filename, encoded in iter_payloads(body):
        extension = extension_of(filename)
        if extension not in ALLOWED_EXTENSIONS:
            logger.debug("Skipping attachment '%s': extension not allowed", filename)
            continue
        try:
            content = decode_payload(encoded)
        except (binascii.Error, ValueError) as exc:
            logger.warning("Attachment '%s' could not be decoded: %s", filename, exc)
            continue
        attachments.append(
            Attachment(
                content_hash=attachment_key(encoded),
                original_filename=filename,
                extension=extension,
                size=len(content),
                content=content,
            )
        )
    return attachments


def mark_attachments(index: dict[str, Message], known_hashes: set[str]) -> dict[str, Message]:
    """Attach extracted attachments to each message and flag duplicates.

    ``known_hashes`` is the run-wide attachment universe.  Every recorded
    hash is added to it, so a repeat in a later message of the same run is
    flagged as well.  Messages left without a valid attachment are dropped.
    """
    result: dict[str, Message] = {}
    for key, message in index.items():
        attachments: dict[str, Attachment] = {}
        for attachment in extract_attachments(message.body_raw):
            if attachment.content_hash in attachments:
                continue
            is_duplicate = attachment.content_hash in known_hashes
            known_hashes.add(attachment.content_hash)
            attachments[attachment.content_hash] = replace(attachment, is_duplicate=is_duplicate)

        if not attachments:
            logger.info("Dropping message %s: it has no valid attachments", key)
            continue
        result[key] = replace(message, attachments=attachments)
    return result


def locate_payload(
    body: str | bytes, original_filename: str, expected_key: str | None = None
) -> bytes | None:
    """Re-derive an attachment's bytes from an archived message.

    When ``expected_key`` is given, only a payload with that key is
    returned, so a message carrying several files of the same name still
    yields the right one.
    """
    for filename, encoded in iter_payloads(body):
        if filename != original_filename:
            continue
        if expected_key is not None and attachment_key(encoded) != expected_key:
            continue
        try:
            return decode_payload(encoded)
        except (binascii.Error, ValueError) as exc:
            logger.warning("Archived attachment '%s' could not be decoded: %s", filename, exc)
    return None
