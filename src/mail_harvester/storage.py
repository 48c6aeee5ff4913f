"""Writing decoded attachments and raw messages to disk."""

from __future__ import annotations

import logging
from pathlib import Path

from .models import Attachment

logger = logging.getLogger(__name__)


def store_attachment(attachment: Attachment, destination: Path, overwrite: bool = False) -> bool:
    """Write an attachment's bytes to ``destination/<hash>.<ext>``.

    Returns False without touching the disk when the file already exists
    and ``overwrite`` is not set.
    """
    destination = Path(destination)
    destination.mkdir(parents=True, exist_ok=True)
    path = destination / attachment.filename
    if path.exists() and not overwrite:
        logger.debug("Attachment %s already stored", path.name)
        return False

    path.write_bytes(attachment.content)
    logger.debug("Stored %s (%s, %d bytes)", path.name, attachment.original_filename, attachment.size)
    return True


def archive_message(message_hash: str, raw: bytes, destination: Path) -> bool:
    """Write a raw message to ``destination/<message_hash>.eml`` unless it exists."""
    destination = Path(destination)
    destination.mkdir(parents=True, exist_ok=True)
    path = archive_path(message_hash, destination)
    if path.exists():
        return False

    path.write_bytes(raw)
    return True


def archive_path(message_hash: str, destination: Path) -> Path:
    return Path(destination) / f"{message_hash}.eml"
