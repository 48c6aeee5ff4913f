"""Detect and repair attachment files that drifted from their ledgered keys."""

from __future__ import annotations

import logging
from pathlib import Path

from . import constants
from .attachments import extension_of, locate_payload
from .hashing import file_key
from .ledger import Ledger
from .models import Attachment, Mismatch
from .storage import archive_path, store_attachment

logger = logging.getLogger(__name__)


def find_mismatches(ledger: Ledger, attachments_dir: Path | None = None) -> list[Mismatch]:
    """List every ledgered attachment whose file is missing or has a different key.

    A file shared by several ledger entries is reported once, for the
    first entry that references it.
    """
    attachments_dir = Path(attachments_dir or constants.ATTACHMENTS_DIR)
    mismatches: list[Mismatch] = []
    seen: set[str] = set()

    for ledger_key, record in ledger.records.items():
        for attachment_key, attachment in (record.get("attachments") or {}).items():
            filename = attachment.get("filename") or f"{attachment_key}.{attachment.get('extension', '')}"
            if filename in seen:
                continue
            seen.add(filename)
            path = attachments_dir / filename
            if path.exists():
                if file_key(path.read_bytes()) == attachment_key:
                    continue
                logger.info("%s does not match its ledgered content key", filename)
            else:
                logger.info("%s is missing", filename)

            mismatches.append(
                Mismatch(
                    ledger_key=ledger_key,
                    attachment_key=attachment_key,
                    original_filename=attachment.get("original_file_name", ""),
                    expected_filename=filename,
                )
            )
    return mismatches


def repair(
    mismatches: list[Mismatch],
    eml_dir: Path | None = None,
    attachments_dir: Path | None = None,
) -> list[str]:
    """Rewrite mismatched files from their archived messages.

    Entries whose archive or payload cannot be found are logged and
    skipped.  Returns the names of the files that were rewritten.
    """
    eml_dir = Path(eml_dir or constants.EML_DIR)
    attachments_dir = Path(attachments_dir or constants.ATTACHMENTS_DIR)
    repaired: list[str] = []

    for mismatch in mismatches:
        if mismatch.expected_filename in repaired:
            continue

        eml_path = archive_path(mismatch.ledger_key, eml_dir)
        if not eml_path.exists():
            logger.warning(
                "Cannot repair %s: archived message %s not found",
                mismatch.expected_filename,
                eml_path.name,
            )
            continue

        content = locate_payload(
            eml_path.read_bytes(), mismatch.original_filename, mismatch.attachment_key
        )
        if content is None:
            logger.warning(
                "Cannot repair %s: no payload for '%s' in %s",
                mismatch.expected_filename,
                mismatch.original_filename,
                eml_path.name,
            )
            continue

        attachment = Attachment(
            content_hash=mismatch.attachment_key,
            original_filename=mismatch.original_filename,
            extension=extension_of(mismatch.expected_filename),
            size=len(content),
            content=content,
        )
        store_attachment(attachment, attachments_dir, overwrite=True)
        logger.info("Repaired %s from %s", mismatch.expected_filename, eml_path.name)
        repaired.append(mismatch.expected_filename)

    return repaired


def find_and_repair(
    ledger: Ledger,
    eml_dir: Path | None = None,
    attachments_dir: Path | None = None,
) -> tuple[list[Mismatch], list[str]]:
    """Run :func:`find_mismatches` then :func:`repair`."""
    if not len(ledger):
        return [], []
    mismatches = find_mismatches(ledger, attachments_dir)
    return mismatches, repair(mismatches, eml_dir, attachments_dir)
